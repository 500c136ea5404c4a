"""Tests for host integration helpers in rnas.system.packages."""

import pytest

from rnas.system import packages


@pytest.fixture
def which(mocker):
    """Control which tools shutil.which finds: which({"rsync", ...})."""

    def install(found):
        return mocker.patch(
            "rnas.system.packages.shutil.which",
            side_effect=lambda name: f"/usr/bin/{name}" if name in found else None,
        )

    return install


class TestInstallPackages:
    """Tests for install_packages()."""

    def test_nothing_missing(self, fake_run, which):
        which(set(packages.REQUIRED_TOOLS))

        assert packages.install_packages() is True
        assert fake_run.calls == []

    def test_installs_when_missing(self, fake_run, which):
        which(set(packages.REQUIRED_TOOLS) - {"rsync"})

        packages.install_packages()

        assert fake_run.calls[0] == ["apt-get", "update", "-qq"]
        assert fake_run.calls[1][:4] == ["apt-get", "install", "-y", "-qq"]
        assert "rsync" in fake_run.calls[1]

    def test_install_failure_is_a_warning(self, fake_run, which):
        which(set())
        fake_run.on("apt-get", "install", returncode=100)

        assert packages.install_packages() is False


class TestSymlink:
    """Tests for the PATH symlink helpers."""

    def test_install(self, tmp_path):
        launcher = tmp_path / "rnas-launcher"
        launcher.write_text("#!/bin/sh\n")

        assert packages.install_symlink(str(launcher)) is True
        assert packages.SYMLINK_PATH.resolve() == launcher.resolve()
        assert packages.has_symlink()

    def test_install_is_idempotent(self, tmp_path):
        launcher = tmp_path / "rnas-launcher"
        launcher.write_text("#!/bin/sh\n")
        packages.install_symlink(str(launcher))

        assert packages.install_symlink(str(launcher)) is False

    def test_install_replaces_stale_link(self, tmp_path):
        launcher = tmp_path / "rnas-launcher"
        launcher.write_text("#!/bin/sh\n")
        packages.SYMLINK_PATH.parent.mkdir(parents=True)
        packages.SYMLINK_PATH.symlink_to(tmp_path / "gone")

        assert packages.install_symlink(str(launcher)) is True
        assert packages.SYMLINK_PATH.resolve() == launcher.resolve()

    def test_remove(self, tmp_path):
        launcher = tmp_path / "rnas-launcher"
        launcher.write_text("#!/bin/sh\n")
        packages.install_symlink(str(launcher))

        assert packages.remove_symlink() is True
        assert not packages.has_symlink()
        assert launcher.exists()

    def test_remove_leaves_regular_files(self):
        packages.SYMLINK_PATH.parent.mkdir(parents=True)
        packages.SYMLINK_PATH.write_text("#!/bin/sh\n")

        assert packages.remove_symlink() is False
        assert packages.has_symlink()


class TestSystemd:
    def test_reload(self, fake_run, which):
        which({"systemctl"})

        assert packages.reload_systemd() is True
        assert fake_run.calls == [["systemctl", "daemon-reload"]]

    def test_reload_without_systemctl(self, fake_run, which):
        which(set())

        assert packages.reload_systemd() is False
        assert fake_run.calls == []

    def test_reload_failure(self, fake_run, which):
        which({"systemctl"})
        fake_run.on("systemctl", returncode=1)

        assert packages.reload_systemd() is False
