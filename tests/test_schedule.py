"""Tests for crontab management in rnas.services.schedule."""

import subprocess

import pytest

from rnas.services import schedule


LAUNCHER = "/usr/local/bin/rnas"
JOB = f"0 2 * * * {LAUNCHER} backup # rnas-backup"


def crontab_input(fake_run):
    """Text written by the last `crontab -` call."""
    for call, kwargs in reversed(list(zip(fake_run.calls, fake_run.kwargs))):
        if call == ["crontab", "-"]:
            return kwargs["input"]
    raise AssertionError("crontab was not written")


class TestReadCrontab:
    def test_missing_crontab_reads_empty(self, fake_run):
        fake_run.on("crontab", "-l", returncode=1, stderr="no crontab for root")

        assert schedule.read_crontab() == []
        assert schedule.find_backup_job() is None
        assert not schedule.has_backup_job()

    def test_finds_tagged_job(self, fake_run):
        fake_run.on("crontab", "-l", stdout=f"MAILTO=root\n{JOB}\n")

        assert schedule.find_backup_job() == JOB
        assert schedule.job_schedule(JOB) == "0 2 * * *"


class TestInstallBackupJob:
    """Tests for install_backup_job()."""

    def test_install_into_empty_crontab(self, fake_run):
        fake_run.on("crontab", "-l", returncode=1)

        assert schedule.install_backup_job("0 2 * * *", LAUNCHER) is True
        assert crontab_input(fake_run) == f"{JOB}\n"

    def test_current_job_is_left_alone(self, fake_run):
        fake_run.on("crontab", "-l", stdout=f"{JOB}\n")

        assert schedule.install_backup_job("0 2 * * *", LAUNCHER) is False
        assert not fake_run.called("crontab", "-")

    def test_schedule_change_replaces_job(self, fake_run):
        fake_run.on("crontab", "-l", stdout=f"@reboot /usr/bin/other\n{JOB}\n")

        schedule.install_backup_job("30 4 * * 0", LAUNCHER)

        assert crontab_input(fake_run) == (
            "@reboot /usr/bin/other\n"
            f"30 4 * * 0 {LAUNCHER} backup # rnas-backup\n"
        )

    def test_write_failure_raises(self, fake_run):
        fake_run.on("crontab", "-", returncode=1, stderr="errors in crontab file")

        with pytest.raises(subprocess.CalledProcessError):
            schedule.install_backup_job("0 2 * * *", LAUNCHER)

    def test_default_launcher_uses_path(self, mocker):
        mocker.patch("rnas.services.schedule.shutil.which", return_value=LAUNCHER)

        assert schedule.default_launcher() == LAUNCHER


class TestRemoveBackupJob:
    def test_remove_keeps_other_lines(self, fake_run):
        fake_run.on("crontab", "-l", stdout=f"@reboot /usr/bin/other\n{JOB}\n")

        assert schedule.remove_backup_job() is True
        assert crontab_input(fake_run) == "@reboot /usr/bin/other\n"

    def test_remove_last_line_writes_empty_table(self, fake_run):
        fake_run.on("crontab", "-l", stdout=f"{JOB}\n")

        schedule.remove_backup_job()

        assert crontab_input(fake_run) == ""

    def test_nothing_to_remove(self, fake_run):
        fake_run.on("crontab", "-l", stdout="@reboot /usr/bin/other\n")

        assert schedule.remove_backup_job() is False
        assert not fake_run.called("crontab", "-")
