"""
Filesystem mounting module.

This module attaches block devices to directories and detaches them again.
"""
import logging
import subprocess
from enum import Enum
from pathlib import Path
from typing import Iterable

from cryptboot.utils.command import CommandRunner
from cryptboot.utils.format import TermColors, colorize
from cryptboot.core.device import Device
from cryptboot.core.exceptions import InvalidDeviceError, InvalidMountpointError, MountError

logger = logging.getLogger('cryptboot')


class UnmountFlag(Enum):
    """umount(8) options, emitted in declaration order"""
    RECURSIVE = "-R"  # Unmount everything mounted beneath the mountpoint too
    FORCE = "-f"
    LAZY = "-l"       # Detach now, clean up once no longer busy
    QUIET = "-q"      # Do not complain about "not mounted"


def check_device(device: Device, operation: str, cmd_runner: CommandRunner) -> None:
    """
    Make sure a device is a block device before acting on it.

    In simulation mode the check only warns, since simulated unlocks never
    create a mapper device.

    Raises:
        InvalidDeviceError: If the device is not a block device
    """
    if device.is_valid():
        return
    if cmd_runner.simulating:
        logger.warning(f"{operation}: {device} is not a block device (ignored in simulation)")
        return
    raise InvalidDeviceError(f"{operation} error invalid device: {device}")


def mount(device: Device, mountpoint: Path, cmd_runner: CommandRunner) -> None:
    """
    Mount a device on an existing directory.

    Args:
        device: Device to mount
        mountpoint: Directory to mount it on
        cmd_runner: CommandRunner instance for executing commands

    Raises:
        InvalidDeviceError: If the device is not a block device
        InvalidMountpointError: If the mountpoint is not a directory
        MountError: If mount command fails
    """
    mountpoint = Path(mountpoint)
    check_device(device, "mount", cmd_runner)
    if not mountpoint.is_dir():
        if cmd_runner.simulating:
            logger.warning(f"mount: {mountpoint} is not a directory (ignored in simulation)")
        else:
            raise InvalidMountpointError(f"mount invalid mountpoint: {mountpoint}")

    try:
        cmd_runner.run(["mount", str(device), str(mountpoint)])
    except subprocess.CalledProcessError as e:
        raise MountError(
            f"Failed to mount {device} to {mountpoint}: exit status {e.returncode}",
            operation="mount",
            returncode=e.returncode,
        )
    logger.info(colorize(f"Mounted {device} to {mountpoint}", TermColors.SUCCESS, cmd_runner.colored_output))


def unmount(mountpoint: Path, flags: Iterable[UnmountFlag], cmd_runner: CommandRunner) -> None:
    """
    Unmount a directory.

    The mountpoint is not checked beforehand: unmounting something that is not
    mounted is an ordinary command failure.

    Args:
        mountpoint: Directory to unmount
        flags: Set of UnmountFlag to pass to umount
        cmd_runner: CommandRunner instance for executing commands

    Raises:
        MountError: If umount command fails
    """
    flags = set(flags)
    args = [flag.value for flag in UnmountFlag if flag in flags]
    quiet = UnmountFlag.QUIET in flags

    try:
        cmd_runner.run(["umount", *args, str(mountpoint)], silent=quiet)
    except subprocess.CalledProcessError as e:
        raise MountError(
            f"Failed to unmount {mountpoint}: exit status {e.returncode}",
            operation="umount",
            returncode=e.returncode,
        )
    logger.info(f"Unmounted {mountpoint}")
