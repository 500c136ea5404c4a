"""Host integration: required tools, the PATH symlink and systemd reloads."""

from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path

from rnas.logging import LoggerFactory
from rnas.system.commands import command_error, run_command


log = LoggerFactory.for_system()

SYMLINK_PATH = Path(os.environ.get("RNAS_SYMLINK_PATH", "/usr/local/bin/rnas"))

REQUIRED_TOOLS = ("rsync", "fallocate", "mkfs.ext4", "resize2fs", "fsfreeze", "ssh", "crontab")
APT_PACKAGES = ("rsync", "util-linux", "coreutils", "e2fsprogs", "openssh-client", "cron")


def missing_tools() -> list[str]:
    return [tool for tool in REQUIRED_TOOLS if shutil.which(tool) is None]


def install_packages() -> bool:
    """Install the required packages with apt-get when any tool is missing.

    Failures are logged as warnings; installation continues without them.

    Returns:
        True when every required tool is available afterwards
    """
    missing = missing_tools()
    if not missing:
        log.debug("All required tools are installed")
        return True
    log.info(f"Installing required packages (missing: {', '.join(missing)})...")
    update = run_command(["apt-get", "update", "-qq"])
    if update.returncode != 0:
        log.warning(f"apt-get update failed: {command_error(update)}")
    install = run_command(["apt-get", "install", "-y", "-qq", *APT_PACKAGES])
    if install.returncode != 0:
        log.warning("Some packages failed to install, continuing anyway...")
        return False
    return not missing_tools()


# ==============================================================================
# PATH symlink
# ==============================================================================


def has_symlink(path: Path | None = None) -> bool:
    """True when rnas is reachable at the PATH location (symlink or installed script)."""
    path = path or SYMLINK_PATH
    return path.is_symlink() or path.is_file()


def install_symlink(launcher: str, path: Path | None = None) -> bool:
    """Point the PATH symlink at the launcher. Returns False when already correct."""
    path = path or SYMLINK_PATH
    target = Path(launcher)
    if path.resolve() == target.resolve():
        log.debug(f"{path} already points to {launcher}")
        return False
    if path.is_symlink() or path.exists():
        path.unlink()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.symlink_to(target)
    log.info(f"Added rnas to PATH: {path} -> {target}")
    return True


def remove_symlink(path: Path | None = None) -> bool:
    path = path or SYMLINK_PATH
    if not path.is_symlink():
        return False
    path.unlink()
    log.info(f"Removed {path}")
    return True


# ==============================================================================
# systemd
# ==============================================================================


def run_systemctl_command(args: list[str]) -> subprocess.CompletedProcess:
    """Run systemctl command."""
    if not shutil.which("systemctl"):
        log.debug(f"systemctl command skipped: {' '.join(args)} (systemctl missing)")
        return subprocess.CompletedProcess(
            args=["systemctl"], returncode=1, stdout="", stderr="systemctl missing"
        )
    return run_command(["systemctl", *args])


def reload_systemd() -> bool:
    """Make systemd pick up fstab changes. Best effort."""
    result = run_systemctl_command(["daemon-reload"])
    if result.returncode != 0:
        log.warning("Failed to reload systemd daemon")
        return False
    return True
