"""Domain models for rnas lifecycle and backup operations."""

from __future__ import annotations

from .models import (
    AutoBackupState,
    BackupPhase,
    BackupRun,
    BackupSchedule,
    BackupTrigger,
    CheckResult,
    ConnectivityReport,
    DiskUsage,
    InstallState,
    LifecycleState,
    StatusReport,
)


__all__ = [
    "AutoBackupState",
    "BackupPhase",
    "BackupRun",
    "BackupSchedule",
    "BackupTrigger",
    "CheckResult",
    "ConnectivityReport",
    "DiskUsage",
    "InstallState",
    "LifecycleState",
    "StatusReport",
]
