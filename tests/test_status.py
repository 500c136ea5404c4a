"""Tests for status collection and rendering."""

from collections import namedtuple

import pytest

from rnas.actions import status_actions
from rnas.domain.models import AutoBackupState, InstallState
from rnas.services import status


JOB = "0 2 * * * /usr/local/bin/rnas backup # rnas-backup"

Usage = namedtuple("Usage", ["total", "used", "free", "percent"])


class TestCollectStatus:
    """Tests for collect_status()."""

    def test_uninitialized_host(self, config, markers, fake_run):
        report = status.collect_status(config, markers.read())

        assert report.install_state is InstallState.UNINITIALIZED
        assert report.hostname == "testhost"
        assert report.declared_size == "10M"
        assert fake_run.calls == []

    def test_initialized_host(self, initialized, markers, fake_run, ssh_key, mount_at, mocker):
        mount_at(initialized.mount_point)
        fake_run.on("crontab", "-l", stdout=f"{JOB}\n")
        mocker.patch(
            "rnas.services.status.psutil.disk_usage",
            return_value=Usage(total=1000, used=250, free=750, percent=25.0),
        )

        report = status.collect_status(initialized, markers.read())

        assert report.is_initialized
        assert report.image_exists
        assert report.image_size_bytes == 1024 * 1024
        assert report.image_modified is not None
        assert report.mounted
        assert report.disk_usage.percent == 25.0
        assert report.auto_backup is AutoBackupState.ENABLED
        assert report.cron_schedule == "0 2 * * *"
        assert report.remote == "backup.example.com:2222"
        assert report.ssh_key == str(ssh_key)
        assert report.ssh_ok is True
        assert report.config_file is None
        assert not report.snapshot_exists
        assert not report.fstab_configured
        assert not report.symlink_configured

    def test_quick_ssh_check_is_bounded(self, initialized, markers, fake_run, ssh_key):
        status.collect_status(initialized, markers.read())

        ssh_index = [call[0] for call in fake_run.calls].index("ssh")
        assert fake_run.kwargs[ssh_index]["timeout"] == 5
        assert "ConnectTimeout=5" in fake_run.calls[ssh_index]

    def test_ssh_skipped_without_key(self, initialized, markers, fake_run):
        report = status.collect_status(initialized, markers.read())

        assert report.ssh_key is None
        assert report.ssh_ok is None
        assert not fake_run.called("ssh")

    def test_disabled_backups(self, initialized, markers, fake_run):
        markers.set_backup_disabled()
        fake_run.on("crontab", "-l", stdout=f"{JOB}\n")

        report = status.collect_status(initialized, markers.read(), check_ssh=False)

        assert report.auto_backup is AutoBackupState.DISABLED

    def test_missing_job(self, initialized, markers, fake_run):
        fake_run.on("crontab", "-l", returncode=1)

        report = status.collect_status(initialized, markers.read(), check_ssh=False)

        assert report.auto_backup is AutoBackupState.NOT_CONFIGURED

    def test_missing_image_and_leftover_snapshot(self, initialized, markers, fake_run):
        initialized.image_path.rename(initialized.snapshot_path)

        report = status.collect_status(initialized, markers.read(), check_ssh=False)

        assert not report.image_exists
        assert report.image_size_bytes is None
        assert report.snapshot_exists
        assert report.snapshot_size_bytes == 1024 * 1024

    def test_disk_usage_error(self, tmp_path, mocker):
        mocker.patch(
            "rnas.services.status.psutil.disk_usage", side_effect=FileNotFoundError("gone")
        )

        assert status.get_disk_usage(tmp_path) is None


class TestRenderStatus:
    """Tests for the status action output."""

    def test_not_installed(self, ctx, fake_run, capsys):
        status_actions.status(ctx)

        out = capsys.readouterr().out
        assert "Not Installed" in out
        assert "Run 'rnas install'" in out
        assert "Remote Server" not in out

    @pytest.mark.parametrize(
        "disabled, expected", [(False, "[OK] Enabled"), (True, "[!!] Disabled")]
    )
    def test_installed(self, ctx, initialized, markers, fake_run, capsys, disabled, expected):
        fake_run.on("crontab", "-l", stdout=f"{JOB}\n")
        if disabled:
            markers.set_backup_disabled()

        status_actions.status(ctx)

        out = capsys.readouterr().out
        assert "[OK] Installed" in out
        assert expected in out
        assert "backup.example.com:2222" in out
        assert "[!!] Using defaults" in out
        assert "[--] Not Mounted" in out
