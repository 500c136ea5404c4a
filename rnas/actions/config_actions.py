"""config-show, config-edit, config-validate and config-reset."""

from __future__ import annotations

import os
import shlex
import shutil
import tempfile
import time
from datetime import datetime
from pathlib import Path

from rnas.actions.ssh_actions import run_setup_ssh
from rnas.app.context import RnasContext
from rnas.config.settings import (
    config_to_mapping,
    read_config_file,
    save_config,
    validate_config,
    write_default_config,
)
from rnas.logging import LoggerFactory
from rnas.services.ssh import check_ssh_connection
from rnas.storage.exceptions import (
    ConfigError,
    ConfigInvalidError,
    ConfigNotFoundError,
    ConfigParseError,
    OperationCancelledError,
    SshSetupError,
)
from rnas.system.commands import run_command
from rnas.ui import console


log = LoggerFactory.for_config()

DEFAULT_EDITOR = "nano"


def show_config(ctx: RnasContext) -> None:
    config = ctx.config
    path = ctx.config_path
    console.print_header("Current RNAS Configuration")
    if path.is_file():
        modified = datetime.fromtimestamp(path.stat().st_mtime).strftime("%Y-%m-%d %H:%M:%S")
        console.print_field("Config File", path)
        console.print_field("Last Modified", modified)
    else:
        console.print_field("Config File", f"{path} (not found)")
        console.print_field("Status", "Using built-in defaults")
    print("")
    for key, value in config_to_mapping(config).items():
        console.print_field(key, value)
    print("")
    print("Derived Values:")
    console.print_field("  hostname", config.hostname)
    console.print_field("  mount_point", config.mount_point)
    console.print_field("  image_path", config.image_path)
    console.print_field("  snapshot_path", config.snapshot_path)


def open_editor(path: Path) -> None:
    """Open path in $EDITOR (default nano) attached to the terminal.

    Raises:
        ConfigError: If the editor cannot be started
    """
    editor = os.environ.get("EDITOR") or DEFAULT_EDITOR
    log.info("Opening configuration editor...")
    result = run_command(shlex.split(editor) + [str(path)], capture=False)
    if result.returncode == 127:
        raise ConfigError(f"Editor not found: {editor}", hint="Set $EDITOR to an installed editor")


def _check_scratch(ctx: RnasContext, scratch: Path):
    """Parse and validate the edited copy. Returns (config or None, violations)."""
    try:
        candidate = read_config_file(
            scratch, hostname=ctx.config.hostname, mount_root=ctx.config.mount_root
        )
    except ConfigParseError as error:
        return None, [error.reason]
    return candidate, validate_config(candidate)


def edit_config(ctx: RnasContext) -> None:
    """Edit a scratch copy, validate it, and only then replace the real file.

    Raises:
        OperationCancelledError: If the operator declines to create a missing file
        ConfigInvalidError: If the operator discards an invalid edit
    """
    path = ctx.config_path
    if not path.exists():
        log.warning("Configuration file not found")
        if not console.confirm("Create new configuration file?", default=True):
            raise OperationCancelledError("Configuration edit")
        write_default_config(path)

    old_remote = ctx.config.remote_settings()
    fd, scratch_name = tempfile.mkstemp(prefix="rnas-config.", suffix=".json")
    os.close(fd)
    scratch = Path(scratch_name)
    try:
        shutil.copyfile(path, scratch)
        while True:
            open_editor(scratch)
            log.info("Validating configuration...")
            candidate, errors = _check_scratch(ctx, scratch)
            if candidate is not None and not errors:
                save_config(candidate, path)
                log.info("Configuration is valid")
                break
            for error in errors:
                log.error(f"Invalid {error}")
            if not console.confirm("Re-edit configuration?", default=False):
                log.info("Discarding changes")
                raise ConfigInvalidError(errors)
    finally:
        scratch.unlink(missing_ok=True)

    config = ctx.reload()
    if config.remote_settings() != old_remote:
        log.warning("Remote server configuration changed")
        if console.confirm("Test connection to new remote server?", default=True):
            if not check_ssh_connection(config) and console.confirm(
                "Connection failed. Run SSH setup wizard?", default=True
            ):
                try:
                    run_setup_ssh(ctx)
                except SshSetupError as error:
                    log.warning(str(error))
    log.info("Configuration saved successfully")


def validate_config_file(ctx: RnasContext) -> None:
    """Validate the file on disk (not the defaults).

    Raises:
        ConfigNotFoundError: If there is no configuration file
        ConfigParseError: If the file cannot be parsed
        ConfigInvalidError: If any rule is violated
    """
    path = ctx.config_path
    if not path.is_file():
        raise ConfigNotFoundError(path)
    log.info(f"Validating configuration file: {path}")
    config = read_config_file(
        path, hostname=ctx.config.hostname, mount_root=ctx.config.mount_root
    )
    errors = validate_config(config)
    if errors:
        for error in errors:
            print(f"  - {error}")
        raise ConfigInvalidError(errors)
    print("Configuration is valid")


def reset_config(ctx: RnasContext) -> None:
    """Back up the current file and write the defaults.

    Raises:
        OperationCancelledError: If the operator declines the overwrite
    """
    path = ctx.config_path
    log.warning("Resetting configuration to defaults...")
    if path.exists():
        if not console.confirm(
            "This will overwrite your current configuration. Continue?", default=False
        ):
            raise OperationCancelledError("Configuration reset")
        backup = path.with_name(f"{path.name}.bak.{time.strftime('%Y%m%d_%H%M%S')}")
        shutil.copy2(path, backup)
        log.info(f"Backed up current config to: {backup}")
    write_default_config(path)
    print(f"Config file: {path}")
    print("Edit with: sudo rnas config-edit")
