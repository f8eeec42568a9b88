import pytest

from cryptboot.core.boot import EncryptedBoot
from cryptboot.core.exceptions import CryptbootError, SigningError
from cryptboot.core.signing import move_sbctl, sign_all


def test_sign_all(runner):
    sign_all(runner)

    assert runner.commands == [["sbctl", "sign-all"]]


def test_sign_all_failure(runner):
    runner.fail("sbctl")

    with pytest.raises(SigningError, match="sbctl sign-all failed"):
        sign_all(runner)


def test_move_sbctl_moves_and_links(volume, runner, tmp_path):
    sbctl_dir = tmp_path / "secureboot"
    (sbctl_dir / "keys").mkdir(parents=True)
    (sbctl_dir / "keys" / "db.key").write_text("key")

    move_sbctl(EncryptedBoot.from_config(volume, runner), sbctl_dir)

    destination = volume.mountpoint / "secureboot"
    assert (destination / "keys" / "db.key").read_text() == "key"
    assert sbctl_dir.is_symlink()
    assert sbctl_dir.resolve() == destination.resolve()


def test_move_sbctl_is_noop_when_already_moved(volume, runner, tmp_path):
    destination = volume.mountpoint / "secureboot"
    destination.mkdir()
    sbctl_dir = tmp_path / "secureboot"
    sbctl_dir.symlink_to(destination)

    move_sbctl(EncryptedBoot.from_config(volume, runner), sbctl_dir)

    assert destination.is_dir()
    assert sbctl_dir.is_symlink()


def test_move_sbctl_refuses_existing_destination(volume, runner, tmp_path):
    sbctl_dir = tmp_path / "secureboot"
    (sbctl_dir / "keys").mkdir(parents=True)
    (volume.mountpoint / "secureboot").mkdir()

    with pytest.raises(CryptbootError, match="already exists"):
        move_sbctl(EncryptedBoot.from_config(volume, runner), sbctl_dir)

    assert (sbctl_dir / "keys").is_dir()
    assert not sbctl_dir.is_symlink()
    assert not (volume.mountpoint / "secureboot" / "secureboot").exists()
