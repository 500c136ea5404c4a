"""Domain model for rnas lifecycle, backup and status reporting.

The on-disk marker files stay the source of truth; these types are the
in-process view of them, read once per command.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


# ==============================================================================
# Lifecycle Domain
# ==============================================================================


class InstallState(Enum):
    """Whether this host is managed by rnas (initialized marker present)."""

    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"


class BackupSchedule(Enum):
    """Whether unattended backups may run (disable marker absent)."""

    ENABLED = "enabled"
    DISABLED = "disabled"


@dataclass(frozen=True)
class LifecycleState:
    """Snapshot of both marker files."""

    install: InstallState
    schedule: BackupSchedule

    @property
    def is_initialized(self) -> bool:
        return self.install is InstallState.INITIALIZED

    @property
    def is_backup_disabled(self) -> bool:
        return self.schedule is BackupSchedule.DISABLED


# ==============================================================================
# Backup Domain
# ==============================================================================


class BackupTrigger(Enum):
    """How a backup run was started.

    SCHEDULED runs honour the disable marker; FORCED runs bypass it.
    """

    SCHEDULED = "scheduled"
    FORCED = "forced"


class BackupPhase(Enum):
    """Phases of a backup run.

    IDLE -> FROZEN -> SNAPSHOTTED -> THAWED -> TRANSFERRING -> DONE,
    with FAILED reachable from any phase.
    """

    IDLE = "idle"
    FROZEN = "frozen"
    SNAPSHOTTED = "snapshotted"
    THAWED = "thawed"
    TRANSFERRING = "transferring"
    DONE = "done"
    FAILED = "failed"


@dataclass
class BackupRun:
    """Mutable record of one backup run, kept for reporting and tests."""

    trigger: BackupTrigger
    phase: BackupPhase = BackupPhase.IDLE
    history: list[BackupPhase] = field(default_factory=lambda: [BackupPhase.IDLE])
    frozen: bool = False
    snapshot_bytes: Optional[int] = None

    def advance(self, phase: BackupPhase) -> None:
        self.phase = phase
        self.history.append(phase)


# ==============================================================================
# Connectivity Domain
# ==============================================================================


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one connectivity check."""

    name: str
    passed: bool
    details: tuple[str, ...] = ()
    advisory: bool = False  # failure does not fail the aggregate


@dataclass(frozen=True)
class ConnectivityReport:
    """Aggregate of all connectivity checks."""

    checks: tuple[CheckResult, ...]

    @property
    def total(self) -> int:
        return len(self.checks)

    @property
    def passed_count(self) -> int:
        return sum(1 for check in self.checks if check.passed)

    @property
    def failures(self) -> list[CheckResult]:
        return [check for check in self.checks if not check.passed]

    @property
    def all_passed(self) -> bool:
        return self.passed_count == self.total

    @property
    def ok(self) -> bool:
        """True when every non-advisory check passed."""
        return all(check.passed or check.advisory for check in self.checks)

    def summary(self) -> str:
        if self.all_passed:
            return "All checks passed"
        return f"{self.passed_count} of {self.total} checks passed"


# ==============================================================================
# Status Domain
# ==============================================================================


class AutoBackupState(Enum):
    ENABLED = "enabled"
    DISABLED = "disabled"
    NOT_CONFIGURED = "not configured"


@dataclass(frozen=True)
class DiskUsage:
    used_bytes: int
    total_bytes: int
    percent: float


@dataclass(frozen=True)
class StatusReport:
    """Everything `rnas status` shows, collected before rendering."""

    version: str
    hostname: str
    install_state: InstallState
    image_path: str
    mount_point: str
    declared_size: str
    image_exists: bool = False
    image_size_bytes: Optional[int] = None
    image_modified: Optional[datetime] = None
    mounted: bool = False
    disk_usage: Optional[DiskUsage] = None
    auto_backup: AutoBackupState = AutoBackupState.NOT_CONFIGURED
    cron_schedule: str = ""
    snapshot_exists: bool = False
    snapshot_size_bytes: Optional[int] = None
    remote: str = ""
    remote_path: str = ""
    config_file: Optional[str] = None
    ssh_key: Optional[str] = None
    ssh_ok: Optional[bool] = None
    fstab_configured: bool = False
    symlink_configured: bool = False

    @property
    def is_initialized(self) -> bool:
        return self.install_state is InstallState.INITIALIZED
