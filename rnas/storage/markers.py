"""Marker files encoding the rnas lifecycle.

Two zero-byte files in the base directory carry all persistent lifecycle
state:

    DISK_EXIST       host is managed by rnas (image allocated and formatted)
    BACKUP_DISABLED  unattended backups are suppressed; forced backups still run

The store provides no concurrency control; lifecycle-mutating commands hold
rnas.storage.lock.lifecycle_lock while they change markers.
"""

from __future__ import annotations

from pathlib import Path

from rnas.config.settings import RnasConfig
from rnas.domain.models import BackupSchedule, InstallState, LifecycleState
from rnas.logging import LoggerFactory


log = LoggerFactory.for_system()


class MarkerStore:
    def __init__(self, initialized_marker: Path, backup_disabled_marker: Path):
        self.initialized_marker = Path(initialized_marker)
        self.backup_disabled_marker = Path(backup_disabled_marker)

    @classmethod
    def for_config(cls, config: RnasConfig) -> MarkerStore:
        return cls(config.initialized_marker, config.backup_disabled_marker)

    def read(self) -> LifecycleState:
        """Read both markers once."""
        install = (
            InstallState.INITIALIZED if self.is_initialized() else InstallState.UNINITIALIZED
        )
        schedule = (
            BackupSchedule.DISABLED if self.is_backup_disabled() else BackupSchedule.ENABLED
        )
        return LifecycleState(install=install, schedule=schedule)

    def is_initialized(self) -> bool:
        return self.initialized_marker.is_file()

    def set_initialized(self) -> None:
        _touch(self.initialized_marker)

    def clear_initialized(self) -> None:
        _remove(self.initialized_marker)

    def is_backup_disabled(self) -> bool:
        return self.backup_disabled_marker.is_file()

    def set_backup_disabled(self) -> None:
        _touch(self.backup_disabled_marker)

    def clear_backup_disabled(self) -> None:
        _remove(self.backup_disabled_marker)


def _touch(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.touch(exist_ok=True)
    log.debug(f"Marker set: {path}")


def _remove(path: Path) -> None:
    if path.exists():
        path.unlink()
        log.debug(f"Marker cleared: {path}")
