"""Crontab management for the unattended backup job.

The job is a single line in root's crontab, identified by a trailing tag:

    0 2 * * * /usr/local/bin/rnas backup # rnas-backup
"""

from __future__ import annotations

import shutil
import sys
from pathlib import Path
from typing import Optional

from rnas.logging import LoggerFactory
from rnas.system.commands import run_checked_command, run_command


log = LoggerFactory.for_schedule()

JOB_TAG = "# rnas-backup"


def default_launcher() -> str:
    """Path of the installed rnas executable."""
    found = shutil.which("rnas")
    if found:
        return found
    return str(Path(sys.argv[0]).resolve())


def job_line(schedule: str, launcher: str) -> str:
    return f"{schedule} {launcher} backup {JOB_TAG}"


def read_crontab() -> list[str]:
    """Current crontab lines; a missing crontab reads as empty."""
    result = run_command(["crontab", "-l"])
    if result.returncode != 0:
        return []
    return result.stdout.splitlines()


def write_crontab(lines: list[str]) -> None:
    """Replace the crontab.

    Raises:
        subprocess.CalledProcessError: If crontab rejects the new table
    """
    content = "\n".join(lines) + "\n" if lines else ""
    run_checked_command(["crontab", "-"], input_text=content)


def _is_job(line: str) -> bool:
    return line.rstrip().endswith(JOB_TAG)


def find_backup_job() -> Optional[str]:
    for line in read_crontab():
        if _is_job(line):
            return line
    return None


def has_backup_job() -> bool:
    return find_backup_job() is not None


def job_schedule(line: str) -> str:
    """The five schedule fields of a job line."""
    return " ".join(line.split()[:5])


def install_backup_job(schedule: str, launcher: Optional[str] = None) -> bool:
    """Install or replace the tagged job. Returns False when already current."""
    wanted = job_line(schedule, launcher or default_launcher())
    lines = read_crontab()
    if wanted in lines:
        log.debug("Cron job already configured")
        return False
    kept = [line for line in lines if not _is_job(line)]
    kept.append(wanted)
    write_crontab(kept)
    log.info(f"Cron job configured: {schedule}")
    return True


def remove_backup_job() -> bool:
    """Drop the tagged job. Returns False when there was none."""
    lines = read_crontab()
    kept = [line for line in lines if not _is_job(line)]
    if len(kept) == len(lines):
        return False
    write_crontab(kept)
    log.info("Cron job removed")
    return True
