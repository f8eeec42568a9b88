import pytest

from cryptboot import cli
from cryptboot.core.boot import BOOT_MAPPER_NAME
from cryptboot.utils import validation


@pytest.fixture
def config_file(tmp_path, volume):
    path = tmp_path / "config.toml"
    path.write_text(
        "[boot]\n"
        'device = "/dev/sda2"\n'
        f'mountpoint = "{volume.mountpoint}"\n'
        "[boot.efi]\n"
        'device = "/dev/sda1"\n'
        f'mountpoint = "{volume.efi.mountpoint}"\n'
    )
    return path


@pytest.fixture
def as_root(monkeypatch, runner):
    monkeypatch.setattr(cli, "CommandRunner", lambda *args, **kwargs: runner)
    monkeypatch.setattr(cli, "check_prerequisites", lambda cmd_runner, tools: None)


def _reset(volume):
    return [
        ["umount", "-R", "-f", "-q", str(volume.efi.mountpoint)],
        ["umount", "-R", "-f", "-q", str(volume.mountpoint)],
        ["cryptsetup", "close", BOOT_MAPPER_NAME],
    ]


def _mount(volume):
    return [
        ["cryptsetup", "open", "/dev/sda2", BOOT_MAPPER_NAME],
        ["mount", f"/dev/mapper/{BOOT_MAPPER_NAME}", str(volume.mountpoint)],
        ["mount", "/dev/sda1", str(volume.efi.mountpoint)],
    ]


def _umount(volume):
    return [
        ["umount", str(volume.efi.mountpoint)],
        ["umount", "-R", str(volume.mountpoint)],
        ["cryptsetup", "close", BOOT_MAPPER_NAME],
    ]


def test_configure_prints_toml(capsys):
    rc = cli.main(["configure", "--boot-device", "/dev/sda2", "--efi-device", "/dev/sda1"])

    out = capsys.readouterr().out
    assert rc == 0
    assert '[boot]\ndevice = "/dev/sda2"\nmountpoint = "/boot"\n' in out
    assert '[boot.efi]\ndevice = "/dev/sda1"\nmountpoint = "/boot/efi"\n' in out
    assert 'target = "x86_64-efi"' in out


def test_requires_root(monkeypatch, config_file):
    monkeypatch.setattr(validation.os, "geteuid", lambda: 1000)

    assert cli.main(["-c", str(config_file), "mount"]) == 1


def test_missing_config_fails(as_root, tmp_path):
    assert cli.main(["-c", str(tmp_path / "none.toml"), "mount"]) == 1


def test_mount_resets_then_stays_mounted(as_root, valid_devices, runner, volume, config_file):
    assert cli.main(["-c", str(config_file), "mount"]) == 0

    assert runner.commands == _reset(volume) + _mount(volume)


def test_umount(as_root, runner, volume, config_file):
    assert cli.main(["-c", str(config_file), "umount"]) == 0

    assert runner.commands == _umount(volume)


def test_grub_install(as_root, valid_devices, runner, volume, config_file):
    assert cli.main(["-c", str(config_file), "grub-install"]) == 0

    commands = runner.commands
    assert commands[:6] == _reset(volume) + _mount(volume)
    assert [cmd[0] for cmd in commands[6:9]] == ["grub-mkconfig", "grub-install", "sbctl"]
    assert commands[9:] == _umount(volume)


def test_grub_install_no_sign(as_root, valid_devices, runner, config_file):
    assert cli.main(["-c", str(config_file), "grub-install", "--no-sign"]) == 0

    assert ["sbctl", "sign-all"] not in runner.commands


def test_run_failure_still_unmounts(as_root, valid_devices, runner, volume, config_file):
    runner.fail("pacman")

    rc = cli.main(["-c", str(config_file), "run", "-s", "pacman", "-Syu"])

    assert rc == 1
    commands = runner.commands
    assert ["pacman", "-Syu"] in commands
    assert ["sbctl", "sign-all"] not in commands
    assert commands[-3:] == _umount(volume)
    assert commands.count(["umount", "-R", str(volume.mountpoint)]) == 1


def test_run_command_is_interactive(as_root, valid_devices, runner, config_file):
    assert cli.main(["-c", str(config_file), "run", "--", "sh", "-c", "true"]) == 0

    call = next(c for c in runner.calls if c["cmd"][0] == "sh")
    assert call["cmd"] == ["sh", "-c", "true"]
    assert call["interactive"] is True


def test_mount_failure_is_reported(as_root, valid_devices, runner, volume, config_file):
    runner.fail("cryptsetup", "open", returncode=2)

    assert cli.main(["-c", str(config_file), "mount"]) == 1
    assert runner.commands == _reset(volume) + _mount(volume)[:1]


def test_simulate_prints_report(monkeypatch, config_file, capsys):
    assert cli.main(["-c", str(config_file), "--simulate", "--no-color", "mount"]) == 0

    out = capsys.readouterr().out
    assert "SIMULATION COMPLETE" in out
    assert f"cryptsetup open /dev/sda2 {BOOT_MAPPER_NAME}" in out


def test_required_tools():
    args = cli.parse_arguments(["grub-install"])
    assert {"grub-install", "grub-mkconfig", "sbctl", "cryptsetup"} <= set(cli.required_tools(args))

    args = cli.parse_arguments(["run", "ls"])
    assert "sbctl" not in cli.required_tools(args)


def test_simulate_has_no_short_flag(config_file):
    with pytest.raises(SystemExit):
        cli.parse_arguments(["-s", "mount"])

    args = cli.parse_arguments(["--simulate", "run", "-s", "ls"])
    assert args.simulate is True
    assert args.sign_all is True
    assert args.command_line == ["ls"]


def test_configure_rejects_efi_outside_boot(capsys):
    rc = cli.main([
        "configure", "--boot-device", "/dev/sda2", "--efi-device", "/dev/sda1",
        "--efi-mountpoint", "/efi",
    ])

    assert rc == 1
    assert capsys.readouterr().out == ""
