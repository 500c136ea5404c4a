"""Rendering of `rnas status`."""

from __future__ import annotations

from rnas.app.context import RnasContext
from rnas.domain.models import AutoBackupState, StatusReport
from rnas.services.status import collect_status
from rnas.storage.image import human_size
from rnas.ui import console


def _mark(ok: bool, good: str, bad: str) -> str:
    return f"[OK] {good}" if ok else f"[--] {bad}"


def render_status(report: StatusReport) -> None:
    console.print_header("RNAS Status Report")
    console.print_field("Version", report.version)
    console.print_field("Hostname", report.hostname)
    print("")
    console.print_field(
        "Installation", _mark(report.is_initialized, "Installed", "Not Installed")
    )
    if not report.is_initialized:
        print("")
        print("Run 'rnas install' to initialize RNAS")
        return

    if report.image_exists:
        console.print_field(
            "Image Disk",
            f"[OK] Exists ({human_size(report.image_size_bytes)}, "
            f"{report.image_size_bytes} bytes; declared {report.declared_size})",
        )
    else:
        console.print_field("Image Disk", "[--] Missing")
    console.print_field("Image Path", report.image_path)
    console.print_field("Mount Status", _mark(report.mounted, "Mounted", "Not Mounted"))
    console.print_field("Mount Point", report.mount_point)
    if report.disk_usage is not None:
        usage = report.disk_usage
        console.print_field(
            "Disk Usage",
            f"{human_size(usage.used_bytes)} / {human_size(usage.total_bytes)} "
            f"({usage.percent:.0f}% used)",
        )

    if report.auto_backup is AutoBackupState.ENABLED:
        console.print_field("Auto Backup", "[OK] Enabled")
        console.print_field("Backup Schedule", report.cron_schedule)
    elif report.auto_backup is AutoBackupState.DISABLED:
        console.print_field("Auto Backup", "[!!] Disabled")
    else:
        console.print_field("Auto Backup", "[--] Not Configured")
    if report.image_modified is not None:
        console.print_field(
            "Last Modified", report.image_modified.strftime("%Y-%m-%d %H:%M:%S")
        )
    if report.snapshot_exists:
        console.print_field(
            "Backup Copy", f"[!!] Exists ({human_size(report.snapshot_size_bytes)})"
        )

    print("")
    console.print_field("Remote Server", report.remote)
    console.print_field("Remote Path", report.remote_path)
    print("")
    console.print_field("Config File", report.config_file or "[!!] Using defaults")
    console.print_field("SSH Key", report.ssh_key or "[--] Not found")
    if report.ssh_ok is not None:
        console.print_field(
            "SSH Connection",
            _mark(report.ssh_ok, "Working", "Failed (run 'rnas verify-connection')"),
        )
    print("")
    console.print_field("fstab Entry", _mark(report.fstab_configured, "Configured", "Missing"))
    console.print_field(
        "PATH Symlink", _mark(report.symlink_configured, "Configured", "Missing")
    )
    print(console.RULE)


def status(ctx: RnasContext) -> StatusReport:
    report = collect_status(ctx.config, ctx.state, config_path=ctx.config_path)
    render_status(report)
    return report
