"""
Validation utilities.

This module checks the permissions and tools a command needs before it runs.
"""
import logging
import os
import shutil
from typing import Iterable, List

from cryptboot.utils.command import CommandRunner, SANITIZED_ENV

logger = logging.getLogger('cryptboot')

# Tools needed to mount and unmount the encrypted boot
MOUNT_TOOLS = ["cryptsetup", "mount", "umount"]


def check_prerequisites(cmd_runner: CommandRunner, tools: Iterable[str] = MOUNT_TOOLS) -> None:
    """
    Check for root privileges and required tools.

    Nothing is checked in simulation mode.

    Args:
        cmd_runner: CommandRunner instance for executing commands
        tools: Programs that must be found on the sanitized PATH

    Raises:
        RuntimeError: If prerequisites are not met
    """
    if cmd_runner.simulating:
        return

    if os.geteuid() != 0:
        raise RuntimeError("this program needs to run as root")

    missing: List[str] = [
        tool for tool in tools
        if shutil.which(tool, path=SANITIZED_ENV["PATH"]) is None
    ]
    if missing:
        raise RuntimeError(f"Missing required tools: {', '.join(missing)}")

    logger.debug("All prerequisites satisfied")
