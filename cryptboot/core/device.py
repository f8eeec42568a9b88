"""
Block device references.

A device can be named by its path, by its GPT partition UUID, or by the
device-mapper name it was unlocked under.
"""
import os
import stat
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from cryptboot.core.exceptions import ConfigError

PARTUUID_DIR = Path("/dev/disk/by-partuuid")
MAPPER_DIR = Path("/dev/mapper")
PARTUUID_PREFIX = "PARTUUID="


class Device:
    """Base class for block device references"""

    def full_path(self) -> Path:
        raise NotImplementedError

    def is_valid(self) -> bool:
        """
        Check that the device currently resolves to a block device.

        This is a point-in-time check; it never raises.
        """
        try:
            st = os.stat(self.full_path())
        except (OSError, ValueError):
            return False
        return stat.S_ISBLK(st.st_mode)

    def __str__(self) -> str:
        return str(self.full_path())


@dataclass(frozen=True)
class PathDevice(Device):
    path: Path

    def full_path(self) -> Path:
        return Path(self.path)


@dataclass(frozen=True)
class PartUuidDevice(Device):
    partuuid: uuid.UUID

    def full_path(self) -> Path:
        return PARTUUID_DIR / str(self.partuuid)


@dataclass(frozen=True)
class MapperDevice(Device):
    name: str

    def full_path(self) -> Path:
        return MAPPER_DIR / self.name


def device_from_config(value: Union[str, Path]) -> Device:
    """
    Build a device reference from a configuration value.

    Args:
        value: Either a device path or "PARTUUID=<uuid>"

    Returns:
        The matching Device

    Raises:
        ConfigError: If a PARTUUID value is not a valid UUID
    """
    text = str(value)
    if text.upper().startswith(PARTUUID_PREFIX):
        raw = text[len(PARTUUID_PREFIX):]
        try:
            return PartUuidDevice(uuid.UUID(raw))
        except ValueError:
            raise ConfigError(f"Invalid partition UUID: {raw}")
    return PathDevice(Path(text))


def device_to_config(device: Device) -> str:
    """Inverse of device_from_config"""
    if isinstance(device, PartUuidDevice):
        return f"{PARTUUID_PREFIX}{device.partuuid}"
    return str(device.full_path())
