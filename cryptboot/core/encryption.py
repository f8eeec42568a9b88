"""
Disk encryption module.

This module opens and closes LUKS devices with cryptsetup.
"""
import logging
import subprocess

from cryptboot.utils.command import CommandRunner
from cryptboot.core.device import Device
from cryptboot.core.mount import check_device
from cryptboot.core.exceptions import EncryptionError

logger = logging.getLogger('cryptboot')


def unlock(device: Device, mapper_name: str, cmd_runner: CommandRunner) -> None:
    """
    Open an encrypted device under the given mapper name.

    cryptsetup is run on the terminal so it can prompt for the passphrase.

    Args:
        device: LUKS device to open
        mapper_name: Name of the decrypted device under /dev/mapper
        cmd_runner: CommandRunner instance for executing commands

    Raises:
        InvalidDeviceError: If the device is not a block device
        EncryptionError: If cryptsetup fails (wrong passphrase, already open,
            not a LUKS device)
    """
    check_device(device, "cryptsetup open", cmd_runner)
    logger.info(f"Opening {device} as {mapper_name}")

    try:
        cmd_runner.run(["cryptsetup", "open", str(device), mapper_name], interactive=True)
    except subprocess.CalledProcessError as e:
        raise EncryptionError(
            f"cryptsetup open failed for {device}: exit status {e.returncode}",
            operation="cryptsetup open",
            returncode=e.returncode,
        )


def lock_release(mapper_name: str, cmd_runner: CommandRunner, silent: bool = False) -> None:
    """
    Close an unlocked device.

    Args:
        mapper_name: Name of the decrypted device under /dev/mapper
        cmd_runner: CommandRunner instance for executing commands
        silent: Discard cryptsetup's own output; failure is still raised

    Raises:
        EncryptionError: If cryptsetup close fails
    """
    try:
        cmd_runner.run(["cryptsetup", "close", mapper_name], silent=silent)
    except subprocess.CalledProcessError as e:
        raise EncryptionError(
            f"cryptsetup close failed for {mapper_name}: exit status {e.returncode}",
            operation="cryptsetup close",
            returncode=e.returncode,
        )
    logger.info(f"Closed {mapper_name}")
