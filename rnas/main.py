"""rnas command line entry point.

Global preconditions run in order before any verb: root privileges, then the
configuration is loaded and (for all but install, help and config-*)
validated. Verbs that change the lifecycle run under the lifecycle lock.
"""

import argparse
import os
from typing import Callable, Dict

from rnas import __version__
from rnas.actions import (
    backup_actions,
    config_actions,
    install_actions,
    lifecycle_actions,
    ssh_actions,
    status_actions,
    update_actions,
)
from rnas.app.context import RnasContext
from rnas.config.settings import config_from_mapping, ensure_valid, load_config
from rnas.logging import LoggerFactory, setup_logging
from rnas.storage.exceptions import ConfigParseError, PrivilegeError, RnasError
from rnas.storage.lock import lifecycle_lock


log = LoggerFactory.for_system()

ALIASES = {"init": "install", "uninstall": "delete"}

CONFIG_VERBS = frozenset({"config-show", "config-edit", "config-validate", "config-reset"})
UNVALIDATED_VERBS = CONFIG_VERBS | {"install", "help"}
LOCKED_VERBS = frozenset(
    {
        "install",
        "backup",
        "copy-only",
        "expand",
        "delete",
        "purge",
        "repair",
        "enable-backup",
        "disable-backup",
        "config-edit",
        "config-reset",
        "update",
    }
)

EXAMPLES = """\
examples:
  sudo rnas install              initial setup
  sudo rnas config-edit          change settings
  sudo rnas verify-connection    diagnose the remote connection
  sudo rnas backup --force       back up even when automatic backups are disabled
  sudo rnas expand 10            grow the disk by 10 GiB
  sudo rnas repair               restore fstab, mount, cron job and symlink
  sudo rnas delete               uninstall (optionally with a final backup)
"""

Handler = Callable[[RnasContext, argparse.Namespace], object]

HANDLERS: Dict[str, Handler] = {
    "install": lambda ctx, args: install_actions.install(ctx),
    "status": lambda ctx, args: status_actions.status(ctx),
    "backup": lambda ctx, args: (
        backup_actions.forced_backup(ctx) if args.force else backup_actions.backup(ctx)
    ),
    "copy-only": lambda ctx, args: backup_actions.copy_only(ctx),
    "expand": lambda ctx, args: lifecycle_actions.expand(ctx, args.increment),
    "delete": lambda ctx, args: lifecycle_actions.delete(ctx),
    "purge": lambda ctx, args: lifecycle_actions.purge(ctx),
    "repair": lambda ctx, args: lifecycle_actions.repair(ctx),
    "enable-backup": lambda ctx, args: lifecycle_actions.enable_backup(ctx),
    "disable-backup": lambda ctx, args: lifecycle_actions.disable_backup(ctx),
    "config-show": lambda ctx, args: config_actions.show_config(ctx),
    "config-edit": lambda ctx, args: config_actions.edit_config(ctx),
    "config-validate": lambda ctx, args: config_actions.validate_config_file(ctx),
    "config-reset": lambda ctx, args: config_actions.reset_config(ctx),
    "verify-connection": lambda ctx, args: ssh_actions.verify_connection(ctx),
    "setup-ssh": lambda ctx, args: ssh_actions.run_setup_ssh(ctx),
    "update": lambda ctx, args: update_actions.update(ctx),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rnas",
        description="Remote NAS backup manager",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Enable verbose debug output")
    parser.add_argument("--trace", action="store_true", help="Also log raw command output")
    parser.add_argument("--version", action="version", version=f"rnas {__version__}")
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    sub.add_parser("install", aliases=["init"], help="Create the disk, mount it, schedule backups")
    sub.add_parser("status", help="Show detailed status and configuration")
    backup = sub.add_parser("backup", help="Back up the disk image to the remote server")
    backup.add_argument(
        "--force", action="store_true", help="Back up even if automatic backups are disabled"
    )
    sub.add_parser("copy-only", help="Create a local snapshot without sending it")
    expand = sub.add_parser("expand", help="Grow the disk by N GiB")
    expand.add_argument("increment", metavar="N", help="GiB to add, e.g. 5")
    sub.add_parser("delete", aliases=["uninstall"], help="Remove rnas, optionally after a backup")
    sub.add_parser("purge", help="Remove rnas and all data without backup")
    sub.add_parser("repair", help="Restore fstab, mount, filesystem size, cron job and symlink")
    sub.add_parser("enable-backup", help="Enable automatic backups")
    sub.add_parser("disable-backup", help="Disable automatic backups")
    sub.add_parser("config-show", help="Display current configuration values")
    sub.add_parser("config-edit", help="Edit the configuration file (creates if missing)")
    sub.add_parser("config-validate", help="Validate the configuration file")
    sub.add_parser("config-reset", help="Reset the configuration to defaults")
    sub.add_parser("verify-connection", help="Test SSH and remote server connectivity")
    sub.add_parser("setup-ssh", help="Run the SSH key setup wizard")
    sub.add_parser("update", help="Update rnas from its git checkout")
    sub.add_parser("help", help="Show this help message")
    return parser


def load_context(command: str) -> RnasContext:
    """Load the configuration, validating it unless the verb repairs or creates it."""
    try:
        config = load_config()
    except ConfigParseError as error:
        if command not in UNVALIDATED_VERBS:
            raise
        log.warning(f"{error}; continuing with built-in defaults")
        config = config_from_mapping({})
    if command not in UNVALIDATED_VERBS:
        ensure_valid(config)
    return RnasContext(config=config)


def dispatch(command: str, args: argparse.Namespace) -> int:
    if os.geteuid() != 0:
        raise PrivilegeError()
    ctx = load_context(command)
    handler = HANDLERS[command]
    if command in LOCKED_VERBS:
        with lifecycle_lock():
            handler(ctx, args)
    else:
        handler(ctx, args)
    return 0


def report_error(error: RnasError) -> None:
    if error.exit_code == 0:
        log.warning(str(error))
    else:
        log.error(str(error))
    if error.hint:
        log.info(error.hint)


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command in (None, "help"):
        parser.print_help()
        return 0 if args.command == "help" else 1
    command = ALIASES.get(args.command, args.command)
    setup_logging(debug=args.debug, trace=args.trace)
    log.debug(f"rnas {__version__}: {command}")
    try:
        return dispatch(command, args)
    except RnasError as error:
        report_error(error)
        return error.exit_code
    except KeyboardInterrupt:
        log.warning("Interrupted")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
