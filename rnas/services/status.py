"""Collect everything `rnas status` reports.

Collection is separate from rendering so the report can be asserted in tests
without capturing console output.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

import psutil

from rnas import __version__
from rnas.config import settings
from rnas.config.settings import RnasConfig
from rnas.domain.models import (
    AutoBackupState,
    DiskUsage,
    InstallState,
    LifecycleState,
    StatusReport,
)
from rnas.services import schedule, ssh
from rnas.storage.image import image_size_bytes
from rnas.storage.mount import has_fstab_entry, is_mounted
from rnas.system.packages import has_symlink


QUICK_SSH_TIMEOUT_SECONDS = 5


def get_disk_usage(mount_point: Path) -> Optional[DiskUsage]:
    try:
        usage = psutil.disk_usage(str(mount_point))
    except OSError:
        return None
    return DiskUsage(used_bytes=usage.used, total_bytes=usage.total, percent=usage.percent)


def get_auto_backup_state(state: LifecycleState) -> tuple[AutoBackupState, str]:
    """Auto-backup state and the installed cron schedule."""
    if state.is_backup_disabled:
        return AutoBackupState.DISABLED, ""
    line = schedule.find_backup_job()
    if line is None:
        return AutoBackupState.NOT_CONFIGURED, ""
    return AutoBackupState.ENABLED, schedule.job_schedule(line)


def _modified_time(path: Path) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(path.stat().st_mtime)
    except FileNotFoundError:
        return None


def collect_status(
    config: RnasConfig,
    state: LifecycleState,
    *,
    config_path: Path | None = None,
    check_ssh: bool = True,
) -> StatusReport:
    """Build the status report.

    Args:
        config: Loaded configuration
        state: Lifecycle markers read for this invocation
        config_path: Configuration file location (defaults to settings.CONFIG_PATH)
        check_ssh: Run the quick SSH round trip (5 second bound)
    """
    config_path = config_path or settings.CONFIG_PATH
    base = dict(
        version=__version__,
        hostname=config.hostname,
        image_path=str(config.image_path),
        mount_point=str(config.mount_point),
        declared_size=config.image_size,
    )
    if not state.is_initialized:
        return StatusReport(install_state=InstallState.UNINITIALIZED, **base)

    size = image_size_bytes(config.image_path)
    mounted = is_mounted(config.mount_point)
    auto_backup, cron_schedule = get_auto_backup_state(state)
    key_path = ssh.find_ssh_key()
    ssh_ok = None
    if key_path is not None and check_ssh:
        ssh_ok = ssh.check_ssh_connection(
            config,
            timeout=QUICK_SSH_TIMEOUT_SECONDS,
            connect_timeout=QUICK_SSH_TIMEOUT_SECONDS,
        )
    return StatusReport(
        install_state=InstallState.INITIALIZED,
        image_exists=size is not None,
        image_size_bytes=size,
        image_modified=_modified_time(config.image_path),
        mounted=mounted,
        disk_usage=get_disk_usage(config.mount_point) if mounted else None,
        auto_backup=auto_backup,
        cron_schedule=cron_schedule,
        snapshot_exists=config.snapshot_path.exists(),
        snapshot_size_bytes=image_size_bytes(config.snapshot_path),
        remote=f"{config.remote_server}:{config.remote_port}",
        remote_path=config.remote_path,
        config_file=str(config_path) if config_path.is_file() else None,
        ssh_key=str(key_path) if key_path else None,
        ssh_ok=ssh_ok,
        fstab_configured=has_fstab_entry(config.image_path),
        symlink_configured=has_symlink(),
        **base,
    )
