"""
Command execution utilities.

This module provides tools for executing external programs in a sanitized
environment, with simulation support.
"""
import logging
import subprocess
import uuid
from enum import Enum
from typing import Dict, List

from cryptboot.utils.format import TermColors, colorize

logger = logging.getLogger('cryptboot')

# Commands never inherit the caller's environment
SANITIZED_ENV: Dict[str, str] = {"PATH": "/bin:/usr/bin"}


class SimulationMode(Enum):
    """Enumeration for simulation modes"""
    DISABLED = 0  # Normal operation
    SIMULATE = 1  # Simulate operations


class CommandRunner:
    """
    Class responsible for command execution with simulation support.
    Acts as a wrapper around subprocess.run with additional functionality.
    """
    def __init__(self, simulation_mode: SimulationMode, colored_output: bool = True):
        """
        Initialize the command runner.

        Args:
            simulation_mode: Simulation mode to operate in
            colored_output: Whether to use colored output in terminal
        """
        self.simulation_mode = simulation_mode
        self.colored_output = colored_output
        self.commands_run = []

        # Generate a unique simulation ID
        self.simulation_id = str(uuid.uuid4())[:8]

    @property
    def simulating(self) -> bool:
        return self.simulation_mode == SimulationMode.SIMULATE

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        interactive: bool = False,
        silent: bool = False,
        **kwargs
    ) -> subprocess.CompletedProcess:
        """
        Run an external program or simulate running it.

        Args:
            cmd: Command to run as list of strings
            check: Whether to raise on non-zero return code
            interactive: Inherit the terminal instead of capturing output
                (needed for passphrase prompts and user commands)
            silent: Discard the program's stdout and stderr
            **kwargs: Additional arguments to pass to subprocess.run

        Returns:
            CompletedProcess instance from subprocess.run

        Raises:
            subprocess.CalledProcessError: If check is set and the command failed
        """
        cmd_str = ' '.join(cmd)
        logger.debug(f"Command requested: {cmd_str}")

        self.commands_run.append({
            "command": list(cmd),
            "simulated": self.simulating
        })

        if self.simulating:
            sim_prefix = colorize(f"[SIM:{self.simulation_id}]", TermColors.SIM, self.colored_output)
            logger.info(f"{sim_prefix} Would execute: {cmd_str}")
            return subprocess.CompletedProcess(args=cmd, returncode=0, stdout="", stderr="")

        if silent:
            kwargs.update(stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        elif not interactive:
            kwargs.update(capture_output=True)

        try:
            result = subprocess.run(
                cmd,
                check=check,
                text=True,
                env=dict(SANITIZED_ENV),
                **kwargs
            )
        except FileNotFoundError:
            self._log_exec_failure(f"Command not found: {cmd[0]}", silent)
            result = subprocess.CompletedProcess(args=cmd, returncode=127, stdout="", stderr="")
            if check:
                raise subprocess.CalledProcessError(127, cmd)
            return result
        except PermissionError:
            self._log_exec_failure(f"Command not executable: {cmd[0]}", silent)
            result = subprocess.CompletedProcess(args=cmd, returncode=126, stdout="", stderr="")
            if check:
                raise subprocess.CalledProcessError(126, cmd)
            return result
        except subprocess.CalledProcessError as e:
            if silent:
                logger.debug(f"Command failed: {cmd_str} (return code {e.returncode})")
            else:
                logger.error(colorize(f"Command failed: {cmd_str}", TermColors.ERROR, self.colored_output))
                logger.error(f"Return code: {e.returncode}")
                if e.stdout:
                    logger.error(f"Stdout: {e.stdout}")
                if e.stderr:
                    logger.error(f"Stderr: {e.stderr}")
            raise

        return result

    def _log_exec_failure(self, message: str, silent: bool) -> None:
        if silent:
            logger.debug(message)
        else:
            logger.error(colorize(message, TermColors.ERROR, self.colored_output))

    def get_simulation_report(self) -> str:
        """
        Generate a report of all simulated commands.

        Returns:
            Formatted string with report of simulated commands
        """
        if not self.simulating:
            return "Simulation mode is not active."

        report = []
        report.append("=" * 80)
        report.append(f"SIMULATION REPORT [ID: {self.simulation_id}]")
        report.append("=" * 80)
        report.append("")

        for i, cmd_record in enumerate(self.commands_run, 1):
            report.append(f"{i}. {' '.join(cmd_record['command'])}")

        report.append("")
        report.append("-" * 80)
        report.append(f"Total commands simulated: {len(self.commands_run)}")
        report.append("=" * 80)

        return "\n".join(report)
