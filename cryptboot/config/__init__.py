"""
Configuration file handling.

This module reads the TOML configuration describing the encrypted boot
partition and GRUB, and renders it back for the configure command.
"""
import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Union

from cryptboot.core.boot import EfiConfig, VolumeConfig
from cryptboot.core.device import device_from_config, device_to_config
from cryptboot.core.exceptions import ConfigError
from cryptboot.core.grub import GrubConfig

logger = logging.getLogger('cryptboot')

DEFAULT_CONFIG_PATH = Path("/etc/cryptboot/config.toml")
DEFAULT_BOOT_MOUNTPOINT = "/boot"
DEFAULT_EFI_MOUNTPOINT = "/boot/efi"


@dataclass(frozen=True)
class Config:
    boot: VolumeConfig
    grub: GrubConfig = field(default_factory=GrubConfig)

    @classmethod
    def from_options(
        cls,
        boot_device: str,
        efi_device: str,
        boot_mountpoint: str = DEFAULT_BOOT_MOUNTPOINT,
        efi_mountpoint: str = DEFAULT_EFI_MOUNTPOINT,
    ) -> "Config":
        """Build a configuration from command line values"""
        volume = VolumeConfig(
            device=device_from_config(boot_device),
            mountpoint=Path(boot_mountpoint),
            efi=EfiConfig(
                device=device_from_config(efi_device),
                mountpoint=Path(efi_mountpoint),
            ),
        )
        check_efi_nesting(volume, "command line")
        return cls(boot=volume)


def check_efi_nesting(volume: VolumeConfig, where: str = "configuration") -> None:
    """
    Make sure the EFI mountpoint lies beneath the boot mountpoint.

    Raises:
        ConfigError: If the EFI partition would be mounted outside boot
    """
    boot = Path(os.path.normpath(volume.mountpoint))
    efi = Path(os.path.normpath(volume.efi.mountpoint))
    if efi == boot or not efi.is_relative_to(boot):
        raise ConfigError(
            f"{where}: EFI mountpoint {volume.efi.mountpoint} must be inside boot mountpoint {volume.mountpoint}"
        )


def _table(data: Dict[str, Any], key: str, where: str) -> Dict[str, Any]:
    value = data.get(key)
    if not isinstance(value, dict):
        raise ConfigError(f"{where}: missing [{key}] table")
    return value


def _string(data: Dict[str, Any], key: str, where: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ConfigError(f"{where}: '{key}' must be a non-empty string")
    return value


def parse_config(data: Dict[str, Any], where: str = "configuration") -> Config:
    """
    Build a Config from parsed TOML data.

    Args:
        data: Parsed TOML document
        where: Name of the source, used in error messages

    Returns:
        Config instance

    Raises:
        ConfigError: If a required key is missing or has the wrong type
    """
    boot = _table(data, "boot", where)
    efi = _table(boot, "efi", f"{where} [boot]")

    volume = VolumeConfig(
        device=device_from_config(_string(boot, "device", f"{where} [boot]")),
        mountpoint=Path(_string(boot, "mountpoint", f"{where} [boot]")),
        efi=EfiConfig(
            device=device_from_config(_string(efi, "device", f"{where} [boot.efi]")),
            mountpoint=Path(_string(efi, "mountpoint", f"{where} [boot.efi]")),
        ),
    )
    check_efi_nesting(volume, where)

    grub = data.get("grub", {})
    if not isinstance(grub, dict):
        raise ConfigError(f"{where}: [grub] must be a table")
    defaults = GrubConfig()
    add_modules = grub.get("add_modules", [])
    if not isinstance(add_modules, list) or not all(isinstance(m, str) for m in add_modules):
        raise ConfigError(f"{where} [grub]: 'add_modules' must be a list of strings")

    grub_config = GrubConfig(
        target=_string(grub, "target", f"{where} [grub]") if "target" in grub else defaults.target,
        bootloader_id=(
            _string(grub, "bootloader_id", f"{where} [grub]")
            if "bootloader_id" in grub else defaults.bootloader_id
        ),
        add_modules=tuple(add_modules),
    )

    return Config(boot=volume, grub=grub_config)


def load_config(path: Union[str, Path] = DEFAULT_CONFIG_PATH) -> Config:
    """
    Read and parse a configuration file.

    Raises:
        ConfigError: If the file cannot be read or is not a valid configuration
    """
    path = Path(path)
    logger.debug(f"Loading configuration from {path}")
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigError(f"failed to read configuration file {path}: {e}")
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"invalid configuration file {path}: {e}")

    return parse_config(data, str(path))


def _toml_value(value: Union[str, List[str]]) -> str:
    if isinstance(value, list):
        return "[" + ", ".join(_toml_value(v) for v in value) + "]"
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def dump_config(config: Config) -> str:
    """Render a configuration as TOML"""
    sections = [
        ("boot", {
            "device": device_to_config(config.boot.device),
            "mountpoint": str(config.boot.mountpoint),
        }),
        ("boot.efi", {
            "device": device_to_config(config.boot.efi.device),
            "mountpoint": str(config.boot.efi.mountpoint),
        }),
        ("grub", {
            "target": config.grub.target,
            "bootloader_id": config.grub.bootloader_id,
            "add_modules": list(config.grub.add_modules),
        }),
    ]

    lines = []
    for name, values in sections:
        if lines:
            lines.append("")
        lines.append(f"[{name}]")
        for key, value in values.items():
            lines.append(f"{key} = {_toml_value(value)}")
    return "\n".join(lines) + "\n"
