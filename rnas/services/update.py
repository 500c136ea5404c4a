"""Self-update of a git checkout installation."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Optional

from rnas.logging import LoggerFactory
from rnas.storage.exceptions import UpdateError
from rnas.system.commands import command_error, run_command


log = LoggerFactory.for_system()

PACKAGE_DIR = Path(__file__).resolve().parents[1]
REPO_ROOT = PACKAGE_DIR.parent

UPDATE_AVAILABLE = "Update available"
UP_TO_DATE = "Up to date"


def is_git_repo(repo_root: Path) -> bool:
    """Check if directory is a git repository."""
    return repo_root.is_dir() and (repo_root / ".git").exists()


def has_dirty_working_tree(repo_root: Path) -> bool:
    """Check if git working tree has uncommitted changes."""
    status = run_command(["git", "status", "--porcelain"], cwd=repo_root)
    dirty = bool(status.stdout.strip())
    log.debug(f"Dirty working tree: {dirty}")
    return dirty


def is_dubious_ownership_error(stderr: str) -> bool:
    return "detected dubious ownership" in (stderr or "").lower()


def get_update_status(repo_root: Path) -> tuple[str, Optional[int]]:
    """Check if updates are available.

    Returns:
        (status text, commits behind or None when unknown)
    """
    if not is_git_repo(repo_root):
        log.debug("Update status check: repo not found")
        return "Repo not found", None
    fetch = run_command(["git", "fetch", "--quiet"], cwd=repo_root)
    if fetch.returncode != 0:
        log.debug(f"Update status check: fetch failed {fetch.returncode}")
        return "Unable to check", None
    upstream = run_command(["git", "rev-parse", "--abbrev-ref", "@{u}"], cwd=repo_root)
    upstream_ref = upstream.stdout.strip()
    if upstream.returncode != 0 or not upstream_ref:
        log.debug("Update status check: upstream missing")
        return "No upstream configured", None
    behind = run_command(["git", "rev-list", "--count", "HEAD..@{u}"], cwd=repo_root)
    if behind.returncode != 0:
        log.debug("Update status check: rev-list failed")
        return "Unable to check", None
    count = behind.stdout.strip()
    log.debug(f"Update status check: behind count={count!r}")
    if count.isdigit():
        behind_count = int(count)
        return (UPDATE_AVAILABLE if behind_count > 0 else UP_TO_DATE), behind_count
    return UP_TO_DATE, None


def backup_package(package_dir: Path) -> Path:
    """Copy the package directory to <package>.bak, replacing an older copy."""
    backup_dir = package_dir.with_name(package_dir.name + ".bak")
    if backup_dir.exists():
        shutil.rmtree(backup_dir)
    shutil.copytree(package_dir, backup_dir)
    log.info(f"Backup created: {backup_dir}")
    return backup_dir


def run_update(
    repo_root: Path | None = None, package_dir: Path | None = None
) -> Optional[int]:
    """Pull the latest version.

    Returns:
        Number of commits pulled, 0 when already up to date

    Raises:
        UpdateError: If the checkout cannot be updated
    """
    repo_root = repo_root or REPO_ROOT
    package_dir = package_dir or PACKAGE_DIR
    if not is_git_repo(repo_root):
        raise UpdateError(f"{repo_root} is not a git checkout")
    status, behind_count = get_update_status(repo_root)
    if status == UP_TO_DATE:
        log.info("Already running the latest version")
        return 0
    if status != UPDATE_AVAILABLE:
        raise UpdateError(status)
    if has_dirty_working_tree(repo_root):
        raise UpdateError(f"local changes in {repo_root}, commit or stash them first")
    backup_package(package_dir)
    log.info(f"Pulling {behind_count} new commit(s)...")
    pull = run_command(["git", "pull", "--ff-only"], cwd=repo_root)
    if pull.returncode != 0:
        if is_dubious_ownership_error(pull.stderr):
            raise UpdateError(
                "git safety check failed, run: "
                f"git config --global --add safe.directory {repo_root}"
            )
        raise UpdateError(command_error(pull))
    log.success("Update completed")
    return behind_count
