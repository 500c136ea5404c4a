"""
Pytest configuration and shared fixtures for rnas tests.

Every test runs against a private copy of the host: configuration, fstab,
mount table, lock file, SSH directory and PATH symlink all live under
tmp_path, and subprocess.run is answered by FakeRunner so no external tool
is ever executed.
"""

import subprocess
from pathlib import Path
from typing import List

import pytest

from rnas.app.context import RnasContext
from rnas.config import settings
from rnas.config.settings import RnasConfig
from rnas.storage.markers import MarkerStore


HOSTNAME = "testhost"


# ==============================================================================
# Command Fixtures
# ==============================================================================


class FakeRunner:
    """Stand-in for subprocess.run that records calls and answers by prefix.

    Later registrations win, so a test can override a broad default with a
    more specific answer.
    """

    def __init__(self) -> None:
        self.calls: List[List[str]] = []
        self.kwargs: List[dict] = []
        self._answers: list = []

    def on(self, *prefix: str, returncode: int = 0, stdout: str = "", stderr: str = ""):
        self._answers.append((tuple(prefix), returncode, stdout, stderr, None))
        return self

    def raise_on(self, *prefix: str, error: BaseException):
        self._answers.append((tuple(prefix), 0, "", "", error))
        return self

    def __call__(self, args, **kwargs):
        args = list(args)
        self.calls.append(args)
        self.kwargs.append(kwargs)
        for prefix, returncode, stdout, stderr, error in reversed(self._answers):
            if tuple(args[: len(prefix)]) == prefix:
                if error is not None:
                    raise error
                return subprocess.CompletedProcess(args, returncode, stdout, stderr)
        return subprocess.CompletedProcess(args, 0, "", "")

    def commands(self, name: str) -> List[List[str]]:
        return [call for call in self.calls if call[0] == name]

    def called(self, *prefix: str) -> bool:
        return any(tuple(call[: len(prefix)]) == prefix for call in self.calls)


@pytest.fixture
def fake_run(mocker) -> FakeRunner:
    """Fixture replacing subprocess.run; every command succeeds unless told otherwise."""
    runner = FakeRunner()
    mocker.patch("subprocess.run", side_effect=runner)
    return runner


# ==============================================================================
# Host Isolation
# ==============================================================================


@pytest.fixture(autouse=True)
def isolated_host(tmp_path, monkeypatch) -> Path:
    """Point every system path rnas touches into tmp_path."""
    root = tmp_path / "host"
    (root / "etc").mkdir(parents=True)
    (root / "proc").mkdir()
    (root / "proc" / "mounts").write_text("")
    monkeypatch.setattr("rnas.config.settings.CONFIG_PATH", root / "etc" / "rnas" / "rnas.json")
    monkeypatch.setattr("rnas.config.settings.MOUNT_ROOT", root / "mnt" / "rnas")
    monkeypatch.setattr("rnas.storage.mount.PROC_MOUNTS", root / "proc" / "mounts")
    monkeypatch.setattr("rnas.storage.mount.FSTAB_PATH", root / "etc" / "fstab")
    monkeypatch.setattr("rnas.storage.lock.LOCK_PATH", root / "run" / "rnas.lock")
    monkeypatch.setattr("rnas.services.ssh.SSH_DIR", root / "root" / ".ssh")
    monkeypatch.setattr("rnas.system.packages.SYMLINK_PATH", root / "usr" / "bin" / "rnas")
    return root


@pytest.fixture
def mount_table(isolated_host) -> Path:
    """Path of the fake /proc/mounts."""
    return isolated_host / "proc" / "mounts"


@pytest.fixture
def fstab(isolated_host) -> Path:
    return isolated_host / "etc" / "fstab"


@pytest.fixture
def ssh_dir(isolated_host) -> Path:
    return isolated_host / "root" / ".ssh"


@pytest.fixture
def ssh_key(ssh_dir) -> Path:
    """An existing ed25519 key pair."""
    ssh_dir.mkdir(parents=True)
    key = ssh_dir / "id_ed25519"
    key.write_text("PRIVATE")
    (ssh_dir / "id_ed25519.pub").write_text("ssh-ed25519 AAAAC3Nza rnas@testhost\n")
    return key


@pytest.fixture
def mount_at(mount_table):
    """Add a line to the fake mount table: mount_at(mount_point, "/dev/loop0")."""

    def mount(mount_point: Path, source: str = "/dev/loop0") -> None:
        with open(mount_table, "a", encoding="utf-8") as handle:
            handle.write(f"{source} {mount_point} ext4 rw,relatime 0 0\n")

    return mount


# ==============================================================================
# Configuration Fixtures
# ==============================================================================


@pytest.fixture
def config(tmp_path) -> RnasConfig:
    """Valid configuration rooted in tmp_path for host 'testhost'."""
    return RnasConfig(
        rnas_dir=str(tmp_path / "var" / "rnas"),
        image_size="10M",
        remote_server="backup.example.com",
        remote_port=2222,
        remote_user="root",
        remote_path="/receive",
        cron_schedule="0 2 * * *",
        hostname=HOSTNAME,
        mount_root=str(tmp_path / "host" / "mnt" / "rnas"),
    )


@pytest.fixture
def markers(config) -> MarkerStore:
    return MarkerStore.for_config(config)


@pytest.fixture
def initialized(config, markers) -> RnasConfig:
    """Host with the initialized marker and a 1 MiB image in place."""
    config.base_dir.mkdir(parents=True, exist_ok=True)
    config.image_path.write_bytes(b"\0" * 1024 * 1024)
    markers.set_initialized()
    return config


@pytest.fixture
def ctx(config) -> RnasContext:
    return RnasContext(config=config, config_path=settings.CONFIG_PATH)


@pytest.fixture
def answers(mocker):
    """Feed canned answers to console prompts: answers("y", "yes").

    Once the replies run out, input() raises EOFError and prompts fall back
    to their defaults.
    """

    def feed(*replies: str):
        queue = list(replies)

        def reply(prompt=""):
            if not queue:
                raise EOFError
            return queue.pop(0)

        return mocker.patch("builtins.input", side_effect=reply)

    return feed
