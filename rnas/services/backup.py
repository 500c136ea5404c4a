"""Backup runner: freeze, snapshot, thaw, transfer, clean up.

Phases:
    IDLE -> FROZEN -> SNAPSHOTTED -> THAWED -> TRANSFERRING -> DONE

FAILED is recorded whenever a run raises. The thaw step always runs once the
freeze was attempted, whatever the copy outcome. A failed transfer keeps the
snapshot on disk so the next run can retry it; the next snapshot overwrites it.

Callers hold rnas.storage.lock.lifecycle_lock around run_backup().
"""

from __future__ import annotations

import shutil
from pathlib import Path

from rnas.config.settings import RnasConfig
from rnas.domain.models import BackupPhase, BackupRun, BackupTrigger, LifecycleState
from rnas.logging import LoggerFactory
from rnas.services.ssh import check_ssh_connection
from rnas.storage.exceptions import (
    BackupDisabled,
    ConnectivityFailedError,
    ImageMissingError,
    NotInitializedError,
    TransferFailedError,
)
from rnas.storage.image import human_size, image_size_bytes
from rnas.storage.mount import freeze_filesystem, is_mounted, thaw_filesystem
from rnas.system.commands import run_command


log = LoggerFactory.for_backup()

RSYNC_IO_TIMEOUT_SECONDS = 300


def rsync_args(config: RnasConfig) -> list[str]:
    """Build the rsync command line that ships the snapshot."""
    remote_shell = f"ssh -p {config.remote_port} -o Compression=no -o ServerAliveInterval=30"
    return [
        "rsync",
        "-vS",
        "--compress-level=1",
        "--inplace",
        "--partial",
        "--progress",
        f"--timeout={RSYNC_IO_TIMEOUT_SECONDS}",
        "--stats",
        "--human-readable",
        "-e",
        remote_shell,
        str(config.snapshot_path),
        config.remote_destination,
    ]


def check_preconditions(
    config: RnasConfig, state: LifecycleState, trigger: BackupTrigger
) -> None:
    """Refuse to run on an uninitialized host, a missing image or a disabled schedule.

    Raises:
        NotInitializedError: If the initialized marker is absent
        BackupDisabled: If a scheduled run finds the disable marker
        ImageMissingError: If the image file is gone
    """
    if not state.is_initialized:
        raise NotInitializedError(config.initialized_marker)
    if trigger is BackupTrigger.SCHEDULED and state.is_backup_disabled:
        raise BackupDisabled(config.backup_disabled_marker)
    if not config.image_path.is_file():
        raise ImageMissingError(config.image_path)


def take_snapshot(config: RnasConfig, run: BackupRun) -> int:
    """Freeze, copy the image to the snapshot path, thaw.

    Returns:
        Snapshot size in bytes
    """
    mount_point = config.mount_point
    mounted = is_mounted(mount_point)
    if mounted:
        run.frozen = freeze_filesystem(mount_point)
    else:
        log.info(f"{mount_point} is not mounted, copying without freeze")
    run.advance(BackupPhase.FROZEN)
    try:
        log.info(f"Copying image to {config.snapshot_path}...")
        shutil.copyfile(config.image_path, config.snapshot_path)
        run.advance(BackupPhase.SNAPSHOTTED)
    finally:
        if mounted:
            thaw_filesystem(mount_point)
            run.frozen = False
        run.advance(BackupPhase.THAWED)
    run.snapshot_bytes = image_size_bytes(config.snapshot_path) or 0
    log.info(f"Snapshot created ({human_size(run.snapshot_bytes)})")
    return run.snapshot_bytes


def transfer_snapshot(config: RnasConfig, run: BackupRun) -> None:
    """Ship the snapshot with rsync.

    Raises:
        TransferFailedError: If rsync exits non-zero (the snapshot is kept)
    """
    run.advance(BackupPhase.TRANSFERRING)
    log.info(f"Transferring to {config.remote_destination}...")
    # Streams progress to the terminal; rsync's own --timeout bounds stalls.
    result = run_command(rsync_args(config), capture=False)
    if result.returncode != 0:
        log.warning(f"Snapshot kept for retry: {config.snapshot_path}")
        raise TransferFailedError(config.snapshot_path, result.returncode)


def run_backup(
    config: RnasConfig,
    state: LifecycleState,
    trigger: BackupTrigger = BackupTrigger.SCHEDULED,
) -> BackupRun:
    """Run one complete backup.

    Args:
        config: Loaded configuration
        state: Lifecycle markers read for this invocation
        trigger: SCHEDULED honours the disable marker, FORCED bypasses it

    Returns:
        The finished run, phase DONE

    Raises:
        BackupDisabled: Scheduled run while backups are disabled (nothing is created)
        NotInitializedError, ImageMissingError: Preconditions not met
        ConnectivityFailedError: SSH preflight failed (nothing is created)
        TransferFailedError: rsync failed (snapshot kept)
    """
    check_preconditions(config, state, trigger)
    run = BackupRun(trigger=trigger)
    log.info(f"Starting {trigger.value} backup of {config.image_path}")
    try:
        if not check_ssh_connection(config):
            raise ConnectivityFailedError(config.remote_server, config.remote_port)
        take_snapshot(config, run)
        transfer_snapshot(config, run)
    except Exception:
        run.advance(BackupPhase.FAILED)
        raise
    Path(config.snapshot_path).unlink(missing_ok=True)
    log.info("Cleaned up local snapshot")
    run.advance(BackupPhase.DONE)
    log.success("Backup completed")
    return run


def create_snapshot_only(config: RnasConfig, state: LifecycleState) -> BackupRun:
    """Freeze, copy and thaw without transferring. The snapshot is left in place.

    Raises:
        NotInitializedError, ImageMissingError: Preconditions not met
    """
    check_preconditions(config, state, BackupTrigger.FORCED)
    run = BackupRun(trigger=BackupTrigger.FORCED)
    try:
        take_snapshot(config, run)
    except Exception:
        run.advance(BackupPhase.FAILED)
        raise
    log.info(f"Local copy created: {config.snapshot_path}")
    return run
