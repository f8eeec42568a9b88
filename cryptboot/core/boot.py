"""
Encrypted boot partition lifecycle.

The boot stack is built in three layers: the LUKS device is opened under
BOOT_MAPPER_NAME, the decrypted device is mounted on the boot mountpoint, and
the EFI system partition is mounted beneath it. Teardown goes in reverse.
"""
import logging
from dataclasses import dataclass
from pathlib import Path

from cryptboot.utils.command import CommandRunner
from cryptboot.utils.format import TermColors, colorize
from cryptboot.core.device import Device, MapperDevice
from cryptboot.core.encryption import unlock, lock_release
from cryptboot.core.mount import UnmountFlag, mount, unmount
from cryptboot.core.exceptions import CryptbootError

logger = logging.getLogger('cryptboot')

BOOT_MAPPER_NAME = "cryptboot-boot"


@dataclass(frozen=True)
class EfiConfig:
    device: Device
    mountpoint: Path


@dataclass(frozen=True)
class VolumeConfig:
    """Encrypted boot setup: LUKS device, its mountpoint and the nested EFI partition"""
    device: Device
    mountpoint: Path
    efi: EfiConfig
    mapper_name: str = BOOT_MAPPER_NAME


class EncryptedBoot:
    """
    Mounts and unmounts the encrypted boot stack.

    Mount state is not tracked: callers must not mount twice. When
    umount_on_exit() was requested, leaving the ``with`` block unmounts
    the stack whatever the outcome of the block.
    """
    def __init__(self, config: VolumeConfig, cmd_runner: CommandRunner, umount_on_exit: bool = False):
        self.config = config
        self.cmd_runner = cmd_runner
        self.auto_umount = umount_on_exit

    @classmethod
    def from_config(cls, config: VolumeConfig, cmd_runner: CommandRunner) -> "EncryptedBoot":
        return cls(config, cmd_runner, umount_on_exit=False)

    @property
    def name(self) -> str:
        return self.config.mapper_name

    def umount_on_exit(self) -> "EncryptedBoot":
        self.auto_umount = True
        return self

    def mount(self) -> None:
        """
        Open the LUKS device and mount boot then EFI.

        Stops at the first failing step. Steps already done are left in
        place; reset() is the way back from a partial mount.

        Raises:
            InvalidDeviceError, InvalidMountpointError, EncryptionError, MountError
        """
        unlock(self.config.device, self.name, self.cmd_runner)
        mount(MapperDevice(self.name), self.config.mountpoint, self.cmd_runner)
        mount(self.config.efi.device, self.config.efi.mountpoint, self.cmd_runner)
        logger.info(colorize(
            f"Encrypted boot mounted on {self.config.mountpoint}",
            TermColors.SUCCESS,
            self.cmd_runner.colored_output
        ))

    def umount(self) -> None:
        """
        Unmount EFI and boot, then close the LUKS device.

        A failing EFI unmount is only logged; the recursive boot unmount
        detaches it anyway. The device is not closed if boot stays mounted.

        Raises:
            MountError: If the boot mountpoint could not be unmounted
            EncryptionError: If the LUKS device could not be closed
        """
        try:
            unmount(self.config.efi.mountpoint, set(), self.cmd_runner)
        except CryptbootError as e:
            logger.warning(f"Ignoring EFI unmount failure: {e}")

        unmount(self.config.mountpoint, {UnmountFlag.RECURSIVE}, self.cmd_runner)
        lock_release(self.name, self.cmd_runner, silent=False)

    def reset(self) -> None:
        """
        Tear down whatever a previous run may have left behind.

        Every step is attempted and every failure discarded.
        """
        logger.debug("Resetting encrypted boot state")
        steps = (
            lambda: unmount(
                self.config.efi.mountpoint,
                {UnmountFlag.FORCE, UnmountFlag.RECURSIVE, UnmountFlag.QUIET},
                self.cmd_runner
            ),
            lambda: unmount(
                self.config.mountpoint,
                {UnmountFlag.FORCE, UnmountFlag.RECURSIVE, UnmountFlag.QUIET},
                self.cmd_runner
            ),
            lambda: lock_release(self.name, self.cmd_runner, silent=True),
        )
        for step in steps:
            try:
                step()
            except Exception as e:
                logger.debug(f"Reset step failed: {e}")

    def __enter__(self) -> "EncryptedBoot":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if not self.auto_umount:
            return False
        try:
            self.umount()
        except CryptbootError as e:
            if exc is None:
                raise
            logger.error(f"Failed to unmount encrypted boot: {e}")
        return False
