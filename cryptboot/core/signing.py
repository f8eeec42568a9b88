"""
Secure Boot signing with sbctl.
"""
import logging
import os
import shutil
import subprocess
from pathlib import Path

from cryptboot.utils.command import CommandRunner
from cryptboot.core.boot import VolumeConfig, EncryptedBoot
from cryptboot.core.exceptions import CryptbootError, SigningError

logger = logging.getLogger('cryptboot')

SBCTL_DIR = Path("/usr/share/secureboot")


def sbctl(subcommand: str, cmd_runner: CommandRunner) -> None:
    """
    Run an sbctl subcommand.

    Raises:
        SigningError: If sbctl fails
    """
    try:
        cmd_runner.run(["sbctl", subcommand], interactive=True)
    except subprocess.CalledProcessError as e:
        raise SigningError(
            f"sbctl {subcommand} failed: exit status {e.returncode}",
            operation=f"sbctl {subcommand}",
            returncode=e.returncode,
        )


def sign_all(cmd_runner: CommandRunner) -> None:
    """Re-sign every file sbctl tracks"""
    logger.info("Signing files with sbctl")
    sbctl("sign-all", cmd_runner)


def move_sbctl(boot: EncryptedBoot, sbctl_dir: Path = SBCTL_DIR) -> None:
    """
    Move the sbctl key database into the encrypted boot partition.

    The original location is replaced by a symlink. The boot stack must be
    mounted. Nothing is done when the database already lives there.

    Args:
        boot: Mounted encrypted boot
        sbctl_dir: sbctl database directory

    Raises:
        CryptbootError: If the destination already exists
    """
    config: VolumeConfig = boot.config
    source = Path(sbctl_dir).resolve()
    destination = (Path(config.mountpoint) / "secureboot").resolve()

    if source == destination:
        logger.info(f"sbctl files already in {destination}")
        return

    if destination.exists() or destination.is_symlink():
        raise CryptbootError(f"cannot move sbctl files: {destination} already exists")

    if boot.cmd_runner.simulating:
        logger.info(f"Would move {source} to {destination} and link {sbctl_dir} to it")
        return

    shutil.move(str(source), str(destination))
    if Path(sbctl_dir).is_symlink():
        Path(sbctl_dir).unlink()
    os.symlink(destination, sbctl_dir)
    logger.info(f"Moved {source} to {destination}")
