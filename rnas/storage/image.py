"""Disk image allocation, formatting, expansion and removal.

The rnas disk is a single regular file formatted as ext4 and loop-mounted.

Allocation:
    fallocate is tried first (fast, reserves blocks without writing them);
    when the underlying filesystem does not support it, the image is
    zero-filled with dd instead.

Expansion:
    freeze -> extend file -> thaw -> grow filesystem. The grow step runs
    after the thaw because resize2fs needs a writable filesystem. When the
    grow step fails the file is already larger than the filesystem; that
    state is surfaced as ResizeFailedError and repaired by grow_filesystem().

Example:
    >>> create_image(Path("/var/rnas/host.img"), "10G")
    >>> expand_image(config, 5)
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from rnas.config.settings import RnasConfig, parse_size
from rnas.logging import LoggerFactory
from rnas.storage.exceptions import (
    AllocationFailedError,
    FormatFailedError,
    ResizeFailedError,
)
from rnas.storage.mount import find_mount, freeze_filesystem, is_mounted, thaw_filesystem
from rnas.system.commands import command_error, run_command


log = LoggerFactory.for_image()

MIB = 1024**2
GIB = 1024**3


def human_size(size_bytes: Optional[int]) -> str:
    if size_bytes is None:
        return "0B"
    size = float(size_bytes)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size < 1024.0:
            return f"{size:.1f}{unit}"
        size /= 1024.0
    return f"{size:.1f}PB"


def image_size_bytes(path: Path) -> Optional[int]:
    """Apparent size of the image file, or None when it does not exist."""
    try:
        return Path(path).stat().st_size
    except FileNotFoundError:
        return None


def _zero_fill_args(path: Path, size_bytes: int, *, append: bool = False) -> list[str]:
    if size_bytes % MIB == 0:
        block, count = "1M", size_bytes // MIB
    else:
        block, count = "1K", -(-size_bytes // 1024)
    args = ["dd", "if=/dev/zero", f"of={path}", f"bs={block}", f"count={count}", "status=none"]
    if append:
        args += ["oflag=append", "conv=notrunc"]
    return args


def allocate_image(path: Path, size: str) -> None:
    """Allocate a file of the declared size.

    Raises:
        AllocationFailedError: If both fallocate and the dd fallback fail
    """
    path = Path(path)
    size_bytes = parse_size(size)
    path.parent.mkdir(parents=True, exist_ok=True)
    log.info(f"Creating image disk ({size}) at {path}")
    result = run_command(["fallocate", "-l", str(size_bytes), str(path)])
    if result.returncode == 0:
        return
    log.warning(f"fallocate failed ({command_error(result)}), falling back to zero-fill")
    result = run_command(_zero_fill_args(path, size_bytes))
    if result.returncode != 0:
        path.unlink(missing_ok=True)
        raise AllocationFailedError(path, size, command_error(result))


def format_image(path: Path) -> None:
    """Create an ext4 filesystem on the image.

    Raises:
        FormatFailedError: If mkfs.ext4 fails
    """
    log.info(f"Formatting {path} as ext4...")
    result = run_command(["mkfs.ext4", "-F", "-q", str(path)])
    if result.returncode != 0:
        raise FormatFailedError(path, command_error(result))


def create_image(path: Path, size: str) -> None:
    """Allocate, restrict to owner-only and format a new image."""
    path = Path(path)
    allocate_image(path, size)
    os.chmod(path, 0o600)
    format_image(path)
    log.info(f"Image disk created: {path} ({human_size(image_size_bytes(path))})")


def extend_image_file(path: Path, increment_bytes: int) -> None:
    """Append increment_bytes to the image file.

    On total failure the file is truncated back to its previous size.

    Raises:
        AllocationFailedError: If both fallocate and the dd fallback fail
    """
    path = Path(path)
    current = path.stat().st_size
    log.info(f"Expanding image file by {human_size(increment_bytes)}...")
    result = run_command(
        ["fallocate", "-o", str(current), "-l", str(increment_bytes), str(path)]
    )
    if result.returncode == 0:
        return
    log.warning(f"fallocate failed ({command_error(result)}), falling back to zero-fill append")
    result = run_command(_zero_fill_args(path, increment_bytes, append=True))
    if result.returncode != 0:
        os.truncate(path, current)
        raise AllocationFailedError(path, human_size(increment_bytes), command_error(result))


def grow_filesystem(image_path: Path, mount_point: Path) -> None:
    """Grow the ext4 filesystem to fill its image file.

    Idempotent: resize2fs is a no-op when the filesystem already fills the
    file. Mounted images are grown online through their loop device; an
    unmounted image is checked with e2fsck first, as resize2fs requires.

    Raises:
        ResizeFailedError: If any step fails
    """
    source = find_mount(mount_point)
    if source:
        if source.startswith("/dev/loop"):
            result = run_command(["losetup", "-c", source])
            if result.returncode != 0:
                raise ResizeFailedError(image_path, command_error(result))
        log.info(f"Resizing mounted ext4 filesystem on {source}...")
        result = run_command(["resize2fs", source])
    else:
        log.info(f"Checking {image_path} before offline resize...")
        check = run_command(["e2fsck", "-f", "-p", str(image_path)])
        # 0: clean, 1: errors corrected
        if check.returncode not in (0, 1):
            raise ResizeFailedError(image_path, f"e2fsck: {command_error(check)}")
        log.info(f"Resizing ext4 filesystem on {image_path}...")
        result = run_command(["resize2fs", str(image_path)])
    if result.returncode != 0:
        raise ResizeFailedError(image_path, command_error(result))


def expand_image(config: RnasConfig, increment_gib: int) -> int:
    """Grow the image by increment_gib GiB and resize its filesystem.

    Returns:
        New image size in bytes

    Raises:
        ValueError: If increment_gib is not a positive integer
        AllocationFailedError: If the file could not be extended
        ResizeFailedError: If the file was extended but the filesystem was not grown
    """
    if isinstance(increment_gib, bool) or not isinstance(increment_gib, int) or increment_gib < 1:
        raise ValueError(f"Increment must be a positive number of GiB, got {increment_gib!r}")
    image_path = config.image_path
    mounted = is_mounted(config.mount_point)
    if mounted:
        freeze_filesystem(config.mount_point)
    try:
        extend_image_file(image_path, increment_gib * GIB)
    finally:
        if mounted:
            thaw_filesystem(config.mount_point)
    grow_filesystem(image_path, config.mount_point)
    new_size = image_size_bytes(image_path) or 0
    log.info(f"Disk expanded to {human_size(new_size)}")
    return new_size


def delete_image(path: Path) -> bool:
    """Remove an image or snapshot file. Returns False when it was already absent."""
    path = Path(path)
    if not path.exists():
        return False
    path.unlink()
    log.info(f"Removed {path}")
    return True
