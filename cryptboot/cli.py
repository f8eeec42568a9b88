"""
Command-line interface for cryptboot.

This module handles argument parsing and dispatches to the command handlers.
"""
import argparse
import logging
import subprocess
import sys
from typing import Callable, Dict, List, Optional

from cryptboot.config import (
    Config, DEFAULT_BOOT_MOUNTPOINT, DEFAULT_CONFIG_PATH, DEFAULT_EFI_MOUNTPOINT,
    dump_config, load_config
)
from cryptboot.core.boot import EncryptedBoot
from cryptboot.core.grub import Grub
from cryptboot.core.signing import move_sbctl, sign_all
from cryptboot.core.exceptions import CommandFailedError, CryptbootError
from cryptboot.utils.command import CommandRunner, SimulationMode
from cryptboot.utils.format import TermColors, colorize
from cryptboot.utils.logging import setup_logging
from cryptboot.utils.validation import MOUNT_TOOLS, check_prerequisites

logger = logging.getLogger('cryptboot')


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Namespace containing parsed arguments
    """
    parser = argparse.ArgumentParser(
        prog="cryptboot",
        description="Manage an encrypted boot partition and the GRUB installed on it"
    )

    parser.add_argument(
        "-c", "--config",
        default=str(DEFAULT_CONFIG_PATH),
        help=f"Configuration file (default: {DEFAULT_CONFIG_PATH})"
    )

    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Print the commands that would run without making any changes"
    )

    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    configure = subparsers.add_parser(
        "configure",
        help="Create a configuration from command line"
    )
    configure.add_argument(
        "--boot-device",
        required=True,
        help="Path to a LUKS formatted device used to store boot files (or PARTUUID=...)"
    )
    configure.add_argument(
        "--boot-mountpoint",
        default=DEFAULT_BOOT_MOUNTPOINT,
        help=f"Path where boot partition will be mounted (default: {DEFAULT_BOOT_MOUNTPOINT})"
    )
    configure.add_argument(
        "--efi-device",
        required=True,
        help="Path to the device holding your EFI partition (or PARTUUID=...)"
    )
    configure.add_argument(
        "--efi-mountpoint",
        default=DEFAULT_EFI_MOUNTPOINT,
        help=f"Path where EFI partition will be mounted (default: {DEFAULT_EFI_MOUNTPOINT})"
    )

    subparsers.add_parser("mount", help="Mount encrypted boot partition")
    subparsers.add_parser("umount", help="Unmount encrypted boot partition")

    grub_install = subparsers.add_parser(
        "grub-install",
        help="Install GRUB in EFI mountpoint"
    )
    grub_install.add_argument(
        "--no-sign",
        action="store_true",
        help="Do not sign GRUB after installation"
    )

    subparsers.add_parser(
        "move-sbctl",
        help="Move sbctl files to encrypted boot partition and link /usr/share/secureboot to them"
    )

    run = subparsers.add_parser(
        "run",
        help="Mount encrypted boot partition, run command and unmount"
    )
    run.add_argument(
        "-s", "--sign-all",
        action="store_true",
        help="Run sbctl sign-all before unmounting (useful when running a system update)"
    )
    run.add_argument(
        "command_line",
        nargs=argparse.REMAINDER,
        help="Command line to run"
    )

    return parser.parse_args(argv)


def open_boot(config: Config, cmd_runner: CommandRunner) -> EncryptedBoot:
    """
    Clean up any leftover state, then mount the encrypted boot.

    The returned EncryptedBoot does not unmount on exit.
    """
    boot = EncryptedBoot.from_config(config.boot, cmd_runner)
    boot.reset()
    boot.mount()
    return boot


def cmd_mount(args: argparse.Namespace, config: Config, cmd_runner: CommandRunner) -> None:
    open_boot(config, cmd_runner)


def cmd_umount(args: argparse.Namespace, config: Config, cmd_runner: CommandRunner) -> None:
    EncryptedBoot.from_config(config.boot, cmd_runner).umount()
    logger.info(colorize("Encrypted boot unmounted", TermColors.SUCCESS, cmd_runner.colored_output))


def cmd_grub_install(args: argparse.Namespace, config: Config, cmd_runner: CommandRunner) -> None:
    with open_boot(config, cmd_runner).umount_on_exit():
        grub = Grub(config.grub, cmd_runner)
        grub.mkconfig(config.boot)
        grub.install(config.boot)

        if not args.no_sign:
            sign_all(cmd_runner)


def cmd_move_sbctl(args: argparse.Namespace, config: Config, cmd_runner: CommandRunner) -> None:
    with open_boot(config, cmd_runner).umount_on_exit() as boot:
        move_sbctl(boot)


def cmd_run(args: argparse.Namespace, config: Config, cmd_runner: CommandRunner) -> None:
    command_line = list(args.command_line)
    if command_line and command_line[0] == "--":
        command_line = command_line[1:]

    with open_boot(config, cmd_runner).umount_on_exit():
        if command_line:
            program = command_line[0]
            try:
                cmd_runner.run(command_line, interactive=True)
            except subprocess.CalledProcessError as e:
                raise CommandFailedError(
                    f"failed to run {program}: exit status {e.returncode}",
                    operation=program,
                    returncode=e.returncode,
                )

        if args.sign_all:
            sign_all(cmd_runner)


COMMANDS: Dict[str, Callable[[argparse.Namespace, Config, CommandRunner], None]] = {
    "mount": cmd_mount,
    "umount": cmd_umount,
    "grub-install": cmd_grub_install,
    "move-sbctl": cmd_move_sbctl,
    "run": cmd_run,
}


def required_tools(args: argparse.Namespace) -> List[str]:
    """List the programs a command invokes"""
    tools = list(MOUNT_TOOLS)
    if args.command == "grub-install":
        tools += ["grub-mkconfig", "grub-install"]
        if not args.no_sign:
            tools.append("sbctl")
    elif args.command == "run" and args.sign_all:
        tools.append("sbctl")
    return tools


def display_simulation_summary(cmd_runner: CommandRunner) -> None:
    """
    Display the commands recorded in simulation mode.

    Args:
        cmd_runner: CommandRunner instance for executing commands
    """
    if not cmd_runner.simulating:
        return

    print(colorize("SIMULATION COMPLETE - NO CHANGES WERE MADE", TermColors.SIM + TermColors.BOLD,
                   cmd_runner.colored_output))
    print(cmd_runner.get_simulation_report())


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    args = None
    try:
        args = parse_arguments(argv)

        setup_logging(args.debug)

        if args.command == "configure":
            config = Config.from_options(
                boot_device=args.boot_device,
                efi_device=args.efi_device,
                boot_mountpoint=args.boot_mountpoint,
                efi_mountpoint=args.efi_mountpoint,
            )
            print(dump_config(config), end="")
            return 0

        cmd_runner = CommandRunner(
            SimulationMode.SIMULATE if args.simulate else SimulationMode.DISABLED,
            not args.no_color
        )

        if args.simulate:
            logger.info("Running in simulation mode - NO CHANGES WILL BE MADE")

        try:
            check_prerequisites(cmd_runner, required_tools(args))
        except RuntimeError as e:
            logger.error(str(e))
            return 1

        config = load_config(args.config)

        handler = COMMANDS.get(args.command)
        if handler is not None:
            handler(args, config, cmd_runner)

        display_simulation_summary(cmd_runner)
        return 0

    except CryptbootError as e:
        logger.error(str(e))
        return 1

    except KeyboardInterrupt:
        logger.error("Operation cancelled by user")
        return 130

    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if args is not None and args.debug:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
