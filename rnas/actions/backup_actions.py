"""backup, backup --force and copy-only."""

from __future__ import annotations

from rnas.app.context import RnasContext
from rnas.domain.models import BackupRun, BackupTrigger
from rnas.logging import LoggerFactory, operation_context
from rnas.services.backup import check_preconditions, create_snapshot_only, run_backup
from rnas.storage.image import human_size, image_size_bytes
from rnas.ui import console


log = LoggerFactory.for_backup()


def backup(ctx: RnasContext) -> BackupRun:
    """Unattended backup: skipped (exit 0) while backups are disabled."""
    config, state = ctx.config, ctx.state
    check_preconditions(config, state, BackupTrigger.SCHEDULED)
    with operation_context("backup", trigger=BackupTrigger.SCHEDULED.value):
        run = run_backup(config, state, BackupTrigger.SCHEDULED)
    _print_summary(ctx)
    return run


def forced_backup(ctx: RnasContext) -> BackupRun:
    """Manual backup that runs whatever the disable marker says.

    The marker is cleared for the duration of the run and put back
    afterwards, on success and on failure alike.
    """
    markers = ctx.markers
    was_disabled = ctx.state.is_backup_disabled
    if was_disabled:
        log.warning("Forcing backup despite disabled flag...")
        markers.clear_backup_disabled()
    try:
        with operation_context("backup", trigger=BackupTrigger.FORCED.value):
            run = run_backup(ctx.config, ctx.refresh_state(), BackupTrigger.FORCED)
    finally:
        if was_disabled:
            markers.set_backup_disabled()
            ctx.refresh_state()
            log.info("Automatic backups remain disabled")
    _print_summary(ctx)
    return run


def _print_summary(ctx: RnasContext) -> None:
    config = ctx.config
    console.print_header("Backup completed successfully!")
    size = human_size(image_size_bytes(config.image_path))
    console.print_field("Image", f"{config.image_path.name} ({size})")
    console.print_field("Remote", f"{config.remote_server}:{config.remote_path}")


def copy_only(ctx: RnasContext) -> BackupRun:
    """Create the local snapshot without sending it."""
    with operation_context("copy"):
        run = create_snapshot_only(ctx.config, ctx.state)
    console.print_header("Backup Copy Created")
    console.print_field("Path", ctx.config.snapshot_path)
    console.print_field("Size", human_size(run.snapshot_bytes))
    return run
