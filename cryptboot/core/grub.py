"""
GRUB installation module.

GRUB has to read the encrypted boot partition itself, so the EFI image is
built with the crypto, LUKS and LVM modules embedded.
"""
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

from cryptboot.utils.command import CommandRunner
from cryptboot.core.boot import VolumeConfig
from cryptboot.core.exceptions import BootloaderError, InvalidMountpointError

logger = logging.getLogger('cryptboot')

DEFAULT_TARGET = "x86_64-efi"
DEFAULT_BOOTLOADER_ID = "GRUB"

MODULES = [
    # common modules
    "all_video", "boot", "btrfs", "cat", "chain", "configfile", "echo",
    "efifwsetup", "efinet", "ext2", "fat", "font", "gettext", "gfxmenu",
    "gfxterm", "gfxterm_background", "gzio", "halt", "help", "hfsplus",
    "iso9660", "jpeg", "keystatus", "loadenv", "loopback", "linux", "ls",
    "lsefi", "lsefimmap", "lsefisystab", "lssal", "memdisk", "minicmd",
    "normal", "ntfs", "part_apple", "part_msdos", "part_gpt",
    "password_pbkdf2", "png", "probe", "reboot", "regexp", "search",
    "search_fs_uuid", "search_fs_file", "search_label", "sleep", "smbios",
    "squash4", "test", "true", "video", "xfs", "zfs", "zfscrypt", "zfsinfo",
    # crypto support
    "cryptodisk", "gcry_arcfour", "gcry_blowfish", "gcry_camellia",
    "gcry_cast5", "gcry_crc", "gcry_des", "gcry_dsa", "gcry_idea",
    "gcry_md4", "gcry_md5", "gcry_rfc2268", "gcry_rijndael", "gcry_rmd160",
    "gcry_rsa", "gcry_seed", "gcry_serpent", "gcry_sha1", "gcry_sha256",
    "gcry_sha512", "gcry_tiger", "gcry_twofish", "gcry_whirlpool",
    "luks", "lvm", "mdraid09", "mdraid1x", "raid5rec", "raid6rec",
]

# Only available on x86 EFI platforms
X86_EFI_MODULES = ["cpuid", "play", "tpm"]
X86_EFI_TARGETS = ("x86_64-efi", "i386-efi")


@dataclass(frozen=True)
class GrubConfig:
    target: str = DEFAULT_TARGET
    bootloader_id: str = DEFAULT_BOOTLOADER_ID
    add_modules: Tuple[str, ...] = ()


class Grub:
    def __init__(self, config: GrubConfig, cmd_runner: CommandRunner):
        self.config = config
        self.cmd_runner = cmd_runner

    def modules_for_target(self, target: str) -> List[str]:
        """
        List the modules to embed for a target.

        Args:
            target: GRUB platform (e.g. x86_64-efi)

        Returns:
            Static module list, platform modules, then extra configured modules
        """
        modules = list(MODULES)

        if target in X86_EFI_TARGETS:
            modules.extend(X86_EFI_MODULES)

        for module in self.config.add_modules:
            if module not in modules:
                modules.append(module)

        return modules

    def mkconfig(self, boot: VolumeConfig) -> None:
        """
        Generate grub.cfg in the mounted boot partition.

        Raises:
            BootloaderError: If grub-mkconfig fails
        """
        grub_dir = Path(boot.mountpoint) / "grub"
        if not grub_dir.exists():
            if self.cmd_runner.simulating:
                logger.info(f"Would create directory: {grub_dir}")
            else:
                grub_dir.mkdir()

        try:
            self.cmd_runner.run(["grub-mkconfig", "-o", str(grub_dir / "grub.cfg")], interactive=True)
        except subprocess.CalledProcessError as e:
            raise BootloaderError(
                f"grub-mkconfig failed: exit status {e.returncode}",
                operation="grub-mkconfig",
                returncode=e.returncode,
            )
        logger.info(f"Generated {grub_dir / 'grub.cfg'}")

    def install(self, boot: VolumeConfig) -> None:
        """
        Install GRUB in the EFI system partition.

        Raises:
            InvalidMountpointError: If the EFI mountpoint is not a directory
            BootloaderError: If grub-install fails
        """
        esp = Path(boot.efi.mountpoint)
        if not esp.is_dir() and not self.cmd_runner.simulating:
            raise InvalidMountpointError(f"esp directory not found: {esp}")

        cmd = [
            "grub-install",
            f"--target={self.config.target}",
            f"--efi-directory={esp}",
            f"--bootloader-id={self.config.bootloader_id}",
            f"--modules={' '.join(self.modules_for_target(self.config.target))}",
            "--disable-shim-lock",
        ]
        try:
            self.cmd_runner.run(cmd, interactive=True)
        except subprocess.CalledProcessError as e:
            raise BootloaderError(
                f"grub-install failed: exit status {e.returncode}",
                operation="grub-install",
                returncode=e.returncode,
            )
        logger.info(f"Installed GRUB ({self.config.target}) in {esp}")
