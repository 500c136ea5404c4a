"""Loop-mount, mount table and freeze utilities for the rnas disk image.

Mounted state is never cached: every query re-reads the live mount table, so
an image unmounted behind rnas's back is reported correctly.

Functions:
    - find_mount(): Source device of a mount point from /proc/mounts
    - is_mounted(): Whether a mount point is active
    - mount_image(): Loop-mount the image (escalates to an explicit loop mount)
    - unmount_image(): Unmount (escalates to a lazy unmount)
    - has_fstab_entry() / add_fstab_entry() / remove_fstab_entry()
    - freeze_filesystem() / thaw_filesystem(): fsfreeze wrappers, never raise

Example:
    >>> mount_image(config.image_path, config.mount_point)
    >>> is_mounted(config.mount_point)
    True
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Optional

from rnas.logging import LoggerFactory
from rnas.storage.exceptions import MountFailedError, UnmountFailedError
from rnas.system.commands import command_error, run_command


log = LoggerFactory.for_mount()

PROC_MOUNTS = Path(os.environ.get("RNAS_PROC_MOUNTS", "/proc/mounts"))
FSTAB_PATH = Path(os.environ.get("RNAS_FSTAB_PATH", "/etc/fstab"))

FSTAB_OPTIONS = "ext4 defaults,nofail 0 2"


def _decode_mount_field(value: str) -> str:
    """Undo the octal escapes the kernel uses for spaces, tabs and backslashes."""
    for escaped, char in (("\\040", " "), ("\\011", "\t"), ("\\012", "\n"), ("\\134", "\\")):
        value = value.replace(escaped, char)
    return value


def _encode_fstab_field(value: str) -> str:
    return value.replace("\\", "\\134").replace(" ", "\\040").replace("\t", "\\011")


def read_mount_table() -> list[tuple[str, str]]:
    """Return (source, mount point) pairs from the live mount table."""
    try:
        lines = PROC_MOUNTS.read_text(encoding="utf-8").splitlines()
    except FileNotFoundError:
        return []
    entries = []
    for line in lines:
        parts = line.split()
        if len(parts) > 1:
            entries.append((_decode_mount_field(parts[0]), _decode_mount_field(parts[1])))
    return entries


def find_mount(mount_point: Path) -> Optional[str]:
    """Return the source (e.g. /dev/loop0) mounted at mount_point, if any."""
    target = os.path.normpath(str(mount_point))
    for source, point in read_mount_table():
        if os.path.normpath(point) == target:
            return source
    return None


def is_mounted(mount_point: Path) -> bool:
    if not PROC_MOUNTS.exists():
        return os.path.ismount(mount_point)
    return find_mount(mount_point) is not None


def mount_image(image_path: Path, mount_point: Path) -> None:
    """Loop-mount image_path at mount_point.

    Does nothing when the mount point is already active. A failed plain mount
    is retried once as an explicit ext4 loop mount.

    Raises:
        MountFailedError: If both mount attempts fail
    """
    image_path = Path(image_path)
    mount_point = Path(mount_point)
    if is_mounted(mount_point):
        log.info(f"Filesystem already mounted at {mount_point}")
        return
    mount_point.mkdir(parents=True, exist_ok=True)
    log.info(f"Mounting {image_path} at {mount_point}")
    result = run_command(["mount", str(image_path), str(mount_point)])
    if result.returncode != 0:
        log.warning(f"mount failed ({command_error(result)}), retrying as explicit loop mount")
        result = run_command(
            ["mount", "-t", "ext4", "-o", "loop", str(image_path), str(mount_point)]
        )
        if result.returncode != 0:
            raise MountFailedError(image_path, mount_point, command_error(result))
    os.chmod(mount_point, 0o755)


def unmount_image(mount_point: Path) -> None:
    """Unmount mount_point if it is mounted.

    Raises:
        UnmountFailedError: If both the polite and the lazy unmount fail
    """
    mount_point = Path(mount_point)
    if not is_mounted(mount_point):
        log.debug(f"{mount_point} is not mounted")
        return
    log.info(f"Unmounting {mount_point}")
    result = run_command(["umount", str(mount_point)])
    if result.returncode == 0:
        return
    log.error(f"Failed to unmount ({command_error(result)}). Using lazy unmount...")
    result = run_command(["umount", "-l", str(mount_point)])
    if result.returncode != 0:
        raise UnmountFailedError(mount_point, command_error(result))


# ==============================================================================
# fstab
# ==============================================================================


def _fstab_lines() -> list[str]:
    try:
        return FSTAB_PATH.read_text(encoding="utf-8").splitlines()
    except FileNotFoundError:
        return []


def _is_image_entry(line: str, image_path: Path) -> bool:
    parts = line.split()
    if not parts or parts[0].startswith("#"):
        return False
    return _decode_mount_field(parts[0]) == str(image_path)


def _write_fstab(lines: list[str]) -> None:
    fd, tmp_name = tempfile.mkstemp(prefix=".fstab.", dir=FSTAB_PATH.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write("\n".join(lines) + ("\n" if lines else ""))
        if FSTAB_PATH.exists():
            os.chmod(tmp_name, FSTAB_PATH.stat().st_mode & 0o777)
        else:
            os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, FSTAB_PATH)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def fstab_entry(image_path: Path, mount_point: Path) -> str:
    return (
        f"{_encode_fstab_field(str(image_path))} "
        f"{_encode_fstab_field(str(mount_point))} {FSTAB_OPTIONS}"
    )


def has_fstab_entry(image_path: Path) -> bool:
    return any(_is_image_entry(line, image_path) for line in _fstab_lines())


def add_fstab_entry(image_path: Path, mount_point: Path) -> bool:
    """Append the image's fstab line unless one exists. Returns True if added."""
    if has_fstab_entry(image_path):
        log.debug("fstab entry already exists")
        return False
    lines = _fstab_lines()
    lines.append(fstab_entry(image_path, mount_point))
    _write_fstab(lines)
    log.info(f"Added fstab entry for {image_path}")
    return True


def remove_fstab_entry(image_path: Path) -> bool:
    """Drop every fstab line for the image. Returns True if anything was removed."""
    lines = _fstab_lines()
    kept = [line for line in lines if not _is_image_entry(line, image_path)]
    if len(kept) == len(lines):
        return False
    _write_fstab(kept)
    log.info(f"Removed fstab entry for {image_path}")
    return True


# ==============================================================================
# Freeze / thaw
# ==============================================================================


def freeze_filesystem(mount_point: Path) -> bool:
    """Suspend writes on mount_point. Failure is a warning, never an error."""
    log.info(f"Freezing filesystem at {mount_point}...")
    result = run_command(["fsfreeze", "--freeze", str(mount_point)])
    if result.returncode != 0:
        log.warning(
            f"Failed to freeze filesystem ({command_error(result)}), "
            "continuing without freeze guarantees"
        )
        return False
    return True


def thaw_filesystem(mount_point: Path) -> bool:
    """Resume writes on mount_point. Best effort."""
    log.info(f"Unfreezing filesystem at {mount_point}...")
    result = run_command(["fsfreeze", "--unfreeze", str(mount_point)])
    if result.returncode != 0:
        log.warning(f"Failed to unfreeze filesystem ({command_error(result)})")
        return False
    return True
