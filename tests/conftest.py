import subprocess
from pathlib import Path

import pytest

from cryptboot.core.boot import EfiConfig, VolumeConfig
from cryptboot.core.device import Device, PathDevice
from cryptboot.utils.command import CommandRunner, SimulationMode


class FakeRunner(CommandRunner):
    """Records commands and fails those whose prefix was registered."""

    def __init__(self) -> None:
        super().__init__(SimulationMode.DISABLED, colored_output=False)
        self.calls: list[dict] = []
        self.failures: dict[tuple, int] = {}

    def fail(self, *prefix: str, returncode: int = 32) -> None:
        self.failures[tuple(prefix)] = returncode

    def run(self, cmd, check=True, interactive=False, silent=False, **kwargs):
        cmd = list(cmd)
        self.calls.append({"cmd": cmd, "interactive": interactive, "silent": silent})
        for prefix, rc in self.failures.items():
            if tuple(cmd[: len(prefix)]) == prefix:
                if check:
                    raise subprocess.CalledProcessError(rc, cmd)
                return subprocess.CompletedProcess(cmd, rc, "", "")
        return subprocess.CompletedProcess(cmd, 0, "", "")

    @property
    def commands(self) -> list[list[str]]:
        return [call["cmd"] for call in self.calls]


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def valid_devices(monkeypatch):
    monkeypatch.setattr(Device, "is_valid", lambda self: True)


@pytest.fixture
def volume(tmp_path: Path) -> VolumeConfig:
    boot = tmp_path / "boot"
    efi = boot / "efi"
    efi.mkdir(parents=True)
    return VolumeConfig(
        device=PathDevice(Path("/dev/sda2")),
        mountpoint=boot,
        efi=EfiConfig(device=PathDevice(Path("/dev/sda1")), mountpoint=efi),
    )
