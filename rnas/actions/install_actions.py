"""install / init: bring a host under rnas management."""

from __future__ import annotations

from rnas.actions.config_actions import edit_config
from rnas.actions.lifecycle_actions import ensure_backup_job
from rnas.actions.ssh_actions import run_setup_ssh
from rnas.app.context import RnasContext
from rnas.config.settings import ensure_valid, write_default_config
from rnas.logging import LoggerFactory, operation_context
from rnas.services.schedule import default_launcher
from rnas.storage.exceptions import (
    AlreadyInitializedError,
    OperationCancelledError,
    SshSetupError,
)
from rnas.storage.image import create_image, delete_image, human_size, image_size_bytes
from rnas.storage.mount import add_fstab_entry, mount_image
from rnas.system.packages import install_packages, install_symlink, reload_systemd
from rnas.ui import console


log = LoggerFactory.for_system()


def print_summary(ctx: RnasContext) -> None:
    config = ctx.config
    console.print_header("Configuration Summary")
    console.print_field("RNAS Directory", config.rnas_dir)
    console.print_field("Image Size", config.image_size)
    console.print_field("Mount Point", config.mount_point)
    console.print_field("Remote Server", f"{config.remote_server}:{config.remote_port}")
    console.print_field("Remote Path", config.remote_path)
    console.print_field("Backup Schedule", config.cron_schedule)
    print(console.RULE)


def _prepare_config(ctx: RnasContext) -> None:
    if not ctx.config_path.exists():
        write_default_config(ctx.config_path)
    if console.confirm("Edit configuration before initializing?", default=False):
        edit_config(ctx)
    ctx.reload()
    ensure_valid(ctx.config)


def _setup_ssh(ctx: RnasContext) -> None:
    log.info("Setting up SSH keys for backup...")
    try:
        run_setup_ssh(ctx)
    except SshSetupError as error:
        log.warning(f"SSH setup was skipped or failed: {error.reason}")
        if not console.confirm(
            "Continue without SSH verification? (backups may fail)", default=False
        ):
            raise OperationCancelledError("Initialization") from error


def _provision_image(ctx: RnasContext) -> None:
    """Create the image, or reuse one kept by an earlier delete."""
    image_path = ctx.config.image_path
    if image_path.is_file():
        size = human_size(image_size_bytes(image_path))
        if console.confirm(f"Reuse existing disk image {image_path} ({size})?", default=True):
            log.info(f"Reusing existing image {image_path}")
            return
        delete_image(image_path)
    create_image(image_path, ctx.config.image_size)


def install(ctx: RnasContext) -> None:
    """Interactive installation.

    Raises:
        AlreadyInitializedError: If the host is already managed
        ConfigInvalidError: If the configuration does not validate
        OperationCancelledError: If the operator declines to proceed
    """
    if ctx.state.is_initialized:
        raise AlreadyInitializedError(ctx.config.initialized_marker)
    log.info("Initializing RNAS system...")
    _prepare_config(ctx)
    print_summary(ctx)
    if not console.confirm("Proceed with initialization?", default=True):
        raise OperationCancelledError("Initialization")
    _setup_ssh(ctx)

    config = ctx.config
    with operation_context("install", image=str(config.image_path)):
        install_packages()
        config.base_dir.mkdir(parents=True, exist_ok=True)
        config.mount_point.mkdir(parents=True, exist_ok=True)
        _provision_image(ctx)
        add_fstab_entry(config.image_path, config.mount_point)
        reload_systemd()
        mount_image(config.image_path, config.mount_point)
        ctx.markers.set_initialized()
        ctx.refresh_state()
        install_symlink(default_launcher())
        ensure_backup_job(ctx)

    console.print_header("RNAS Initialization Completed Successfully!")
    console.print_field("Image Path", config.image_path)
    console.print_field("Mount Point", config.mount_point)
    console.print_field("Backup Schedule", config.cron_schedule)
