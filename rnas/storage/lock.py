"""Exclusive lock held by lifecycle-mutating commands.

A scheduled backup and a manual backup (or an uninstall) started at the same
time would otherwise race on the single snapshot path. Every command that
freezes, copies, transfers, resizes or removes anything takes this lock for
its whole duration; a second invocation fails fast with LockHeldError.

Usage:
    from rnas.storage.lock import lifecycle_lock

    with lifecycle_lock():
        run_backup(...)
"""

from __future__ import annotations

import fcntl
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from rnas.logging import LoggerFactory
from rnas.storage.exceptions import LockHeldError


log = LoggerFactory.for_system()

LOCK_PATH = Path(os.environ.get("RNAS_LOCK_PATH", "/run/lock/rnas.lock"))


@contextmanager
def lifecycle_lock(path: Path | None = None) -> Generator[Path, None, None]:
    """Hold a non-blocking exclusive flock on the lock file.

    Raises:
        LockHeldError: If another process holds the lock
    """
    path = path or LOCK_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a+", encoding="utf-8") as handle:
        try:
            fcntl.flock(handle, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as error:
            raise LockHeldError(path) from error
        handle.seek(0)
        handle.truncate()
        handle.write(f"{os.getpid()}\n")
        handle.flush()
        log.debug(f"Lifecycle lock acquired: {path}")
        try:
            yield path
        finally:
            fcntl.flock(handle, fcntl.LOCK_UN)
            log.debug(f"Lifecycle lock released: {path}")
