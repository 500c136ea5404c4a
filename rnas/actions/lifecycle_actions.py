"""expand, delete, purge, repair, enable-backup and disable-backup."""

from __future__ import annotations

import subprocess

from rnas.actions.backup_actions import forced_backup
from rnas.app.context import RnasContext
from rnas.logging import LoggerFactory, operation_context
from rnas.services import schedule
from rnas.storage.exceptions import (
    ImageMissingError,
    NotInitializedError,
    OperationCancelledError,
    RnasError,
)
from rnas.storage.image import delete_image, expand_image, grow_filesystem, human_size
from rnas.storage.mount import (
    add_fstab_entry,
    is_mounted,
    mount_image,
    remove_fstab_entry,
    unmount_image,
)
from rnas.system.packages import install_symlink, reload_systemd, remove_symlink
from rnas.ui import console


log = LoggerFactory.for_system()


def require_initialized(ctx: RnasContext) -> None:
    if not ctx.state.is_initialized:
        raise NotInitializedError(ctx.config.initialized_marker)


def require_image(ctx: RnasContext) -> None:
    require_initialized(ctx)
    if not ctx.config.image_path.is_file():
        raise ImageMissingError(ctx.config.image_path)


def ensure_backup_job(ctx: RnasContext) -> None:
    """Install the cron job; a crontab failure is reported but not fatal."""
    try:
        schedule.install_backup_job(ctx.config.cron_schedule)
    except subprocess.CalledProcessError as error:
        log.warning(f"Failed to configure cron job: {(error.stderr or '').strip() or error}")


def parse_increment(text: str) -> int:
    """Validate an expand increment given in GiB.

    Raises:
        RnasError: If text is not a positive whole number
    """
    value = str(text).strip()
    if not value.isdigit() or int(value) < 1:
        raise RnasError(
            f"Invalid increment: {text!r}",
            hint="expand requires a positive number of GiB, e.g. 'rnas expand 5'",
        )
    return int(value)


def expand(ctx: RnasContext, increment: str) -> int:
    gib = parse_increment(increment)
    require_image(ctx)
    if not console.confirm(f"Expand disk by {gib}G? Continue?", default=True):
        raise OperationCancelledError("Expansion")
    with operation_context("expand", increment_gib=gib):
        new_size = expand_image(ctx.config, gib)
    console.print_header("Disk Expansion Completed!")
    console.print_field("Image", ctx.config.image_path.name)
    console.print_field("New Size", human_size(new_size))
    console.print_field("Mount Point", ctx.config.mount_point)
    return new_size


def _teardown(ctx: RnasContext, *, remove_image: bool) -> None:
    config, markers = ctx.config, ctx.markers
    unmount_image(config.mount_point)
    if remove_fstab_entry(config.image_path):
        reload_systemd()
    markers.clear_initialized()
    markers.clear_backup_disabled()
    ctx.refresh_state()
    if remove_image:
        log.info("Removing disk image and snapshot...")
        delete_image(config.image_path)
        delete_image(config.snapshot_path)
    else:
        log.info(f"Keeping disk image at {config.image_path}")
    try:
        config.mount_point.rmdir()
    except OSError:
        log.debug(f"Mount point {config.mount_point} left in place")
    try:
        schedule.remove_backup_job()
    except subprocess.CalledProcessError as error:
        log.warning(f"Failed to remove cron job: {error}")
    remove_symlink()


def delete(ctx: RnasContext) -> None:
    """Uninstall, optionally sending a final backup first.

    A failed final backup aborts the deletion with nothing removed.
    """
    require_initialized(ctx)
    if not console.confirm("Delete RNAS from this host?", default=False):
        raise OperationCancelledError("Deletion")
    with operation_context("delete"):
        if console.confirm("Send a final backup to the remote server first?", default=True):
            log.info("Performing backup before deletion...")
            try:
                forced_backup(ctx)
            except RnasError:
                log.error("Backup failed. Aborting deletion")
                raise
        remove_image = console.confirm(
            "Also remove the disk image? This cannot be undone.", default=False
        )
        _teardown(ctx, remove_image=remove_image)
    console.print_header("RNAS Deletion Completed!")


def purge(ctx: RnasContext) -> None:
    """Remove everything without a backup. Two confirmations."""
    require_initialized(ctx)
    if not console.confirm(
        "Purge RNAS WITHOUT backup? This cannot be undone! Continue?", default=False
    ):
        raise OperationCancelledError("Purge")
    if not console.confirm_typed("Are you absolutely sure?"):
        raise OperationCancelledError("Purge")
    with operation_context("purge"):
        _teardown(ctx, remove_image=True)
    console.print_header("RNAS Purge Completed!")
    print("All data has been destroyed (no backup sent)")


def repair(ctx: RnasContext) -> None:
    """Restore every piece of host integration. Safe to run repeatedly."""
    require_image(ctx)
    config = ctx.config
    with operation_context("repair"):
        config.base_dir.mkdir(parents=True, exist_ok=True)
        config.mount_point.mkdir(parents=True, exist_ok=True)
        install_symlink(schedule.default_launcher())
        if not add_fstab_entry(config.image_path, config.mount_point):
            log.info("fstab entry already exists")
        mount_image(config.image_path, config.mount_point)
        grow_filesystem(config.image_path, config.mount_point)
        ensure_backup_job(ctx)
        reload_systemd()
    console.print_header("RNAS Repair Completed!")
    console.print_field("Image Path", config.image_path)
    console.print_field("Mount Point", config.mount_point)
    console.print_field(
        "Mount Status", "Mounted" if is_mounted(config.mount_point) else "Not Mounted"
    )


def enable_backup(ctx: RnasContext) -> None:
    require_initialized(ctx)
    if ctx.state.is_backup_disabled:
        ctx.markers.clear_backup_disabled()
        ctx.refresh_state()
        log.info("Automatic backups have been enabled")
    else:
        log.info("Automatic backups are already enabled")
    ensure_backup_job(ctx)
    console.print_header("Automatic Backups Enabled")
    console.print_field("Schedule", ctx.config.cron_schedule)


def disable_backup(ctx: RnasContext) -> None:
    require_initialized(ctx)
    if not console.confirm(
        "Disable automatic backups? You can still run manual backups. Continue?",
        default=True,
    ):
        raise OperationCancelledError("Disabling backups")
    ctx.markers.set_backup_disabled()
    ctx.refresh_state()
    console.print_header("Automatic Backups Disabled")
    print("Cron job will skip backups until re-enabled")
    print("Manual backups can still be run with: rnas backup --force")
    print("To re-enable: rnas enable-backup")
