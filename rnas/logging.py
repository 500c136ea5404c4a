from __future__ import annotations

import os
import sys
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from loguru import Logger

from loguru import logger

DEFAULT_LOG_DIR = Path(os.environ.get("RNAS_LOG_DIR", "/var/log/rnas"))

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[source]: <8}</cyan> | "
    "{message}"
)


def setup_logging(
    *,
    debug: bool = False,
    trace: bool = False,
    log_dir: Path | None = None,
) -> Logger:
    """
    Setup console and file logging for a single rnas invocation.

    Log Files:
    - operations.log: INFO+ events (7 day retention)
    - debug.log: DEBUG+ events when --debug or --trace is enabled (3 day retention)
    - structured.jsonl: Structured JSON logs for analysis (7 day retention)

    File sinks are skipped with a warning when the log directory or a log
    file cannot be opened, so read-only commands keep working on a read-only
    /var/log and for non-root users.

    Args:
        debug: Enable DEBUG level logging
        trace: Enable TRACE level logging (very verbose)
        log_dir: Custom log directory (defaults to /var/log/rnas)
    """
    logger.remove()
    logger.configure(extra={"job_id": "-", "tags": [], "source": "rnas"})

    if trace:
        console_level = "TRACE"
    elif debug:
        console_level = "DEBUG"
    else:
        console_level = "INFO"

    # SINK 1: Console (stderr)
    logger.add(
        sys.stderr,
        level=console_level,
        backtrace=False,
        diagnose=False,
        colorize=None,
        format=CONSOLE_FORMAT,
    )

    log_dir = log_dir or DEFAULT_LOG_DIR
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as error:
        logger.warning(f"File logging disabled, cannot create {log_dir}: {error}")
        return logger

    handler_ids: list[int] = []
    try:
        _add_file_sinks(log_dir, handler_ids, debug=debug, trace=trace)
    except OSError as error:
        for handler_id in handler_ids:
            logger.remove(handler_id)
        logger.warning(f"File logging disabled, cannot write to {log_dir}: {error}")

    return logger


def _add_file_sinks(log_dir: Path, handler_ids: list[int], *, debug: bool, trace: bool) -> None:
    """Add the file sinks, recording each handler id as it is added.

    loguru opens the file inside logger.add, so an unwritable log file raises
    OSError here.
    """
    # SINK 2: Operations Log - Important events only (INFO+)
    handler_ids.append(
        logger.add(
            log_dir / "operations.log",
            level="INFO",
            rotation="5 MB",
            retention="7 days",
            compression="zip",
            backtrace=False,
            diagnose=False,
            format=(
                "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
                "{level: <8} | "
                "{extra[source]: <8} | "
                "{extra[job_id]: <15} | "
                "{message}"
            ),
        )
    )

    # SINK 3: Debug Log - Detailed diagnostics
    if debug or trace:
        handler_ids.append(
            logger.add(
                log_dir / "debug.log",
                level="TRACE" if trace else "DEBUG",
                rotation="10 MB",
                retention="3 days",
                compression="zip",
                backtrace=True,
                diagnose=True,
                format=(
                    "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
                    "{level: <8} | "
                    "{extra[source]: <8} | "
                    "{extra[job_id]: <15} | "
                    "{extra[tags]} | "
                    "{message}"
                ),
            )
        )

    # SINK 4: Structured JSON Log
    handler_ids.append(
        logger.add(
            log_dir / "structured.jsonl",
            level="INFO",
            rotation="10 MB",
            retention="7 days",
            compression="zip",
            serialize=True,
            format="{message}",
        )
    )


def get_logger(
    *,
    job_id: str | None = None,
    tags: Iterable[str] | None = None,
    source: str | None = None,
) -> Logger:
    """
    Get a logger with bound context.

    Args:
        job_id: Job identifier for tracking operations
        tags: Tags for filtering (e.g., ["backup", "remote"])
        source: Source component (e.g., "backup", "image")
    """
    extras: dict[str, object] = {}
    if job_id is not None:
        extras["job_id"] = job_id
    if tags is not None:
        extras["tags"] = list(tags)
    if source is not None:
        extras["source"] = source
    return logger.bind(**extras)


@contextmanager
def operation_context(operation: str, **details):
    """
    Context manager for tracking long-running operations with automatic timing.

    Logs operation start, completion, and failure with duration tracking.

    Example:
        with operation_context("backup", trigger="scheduled") as log:
            log.debug("Freezing filesystem")
    """
    job_id = f"{operation}-{uuid.uuid4().hex[:8]}"

    with logger.contextualize(job_id=job_id, operation=operation, **details):
        start_time = time.time()
        log = logger.bind(source=operation, job_id=job_id, tags=[operation])

        log.info(f"{operation.capitalize()} started")

        try:
            yield log
            duration = time.time() - start_time
            log.bind(duration_seconds=round(duration, 2)).success(
                f"{operation.capitalize()} completed in {duration:.1f}s"
            )
        except Exception as e:
            duration = time.time() - start_time
            log.bind(
                error=str(e),
                error_type=type(e).__name__,
                duration_seconds=round(duration, 2),
            ).error(f"{operation.capitalize()} failed after {duration:.1f}s")
            raise


class LoggerFactory:
    """
    Factory for creating domain-specific loggers with automatic context.

    Each factory method returns a logger pre-configured with appropriate
    source and tags for the domain.
    """

    @staticmethod
    def for_backup(job_id: str | None = None) -> Logger:
        """Logger for backup runs."""
        if job_id is None:
            job_id = f"backup-{uuid.uuid4().hex[:8]}"
        return logger.bind(job_id=job_id, source="backup", tags=["backup", "remote"])

    @staticmethod
    def for_image() -> Logger:
        """Logger for disk image allocation, formatting and resizing."""
        return logger.bind(source="image", tags=["image", "storage"])

    @staticmethod
    def for_mount() -> Logger:
        """Logger for mount table, fstab and freeze operations."""
        return logger.bind(source="mount", tags=["mount", "storage"])

    @staticmethod
    def for_ssh() -> Logger:
        """Logger for SSH keys and remote connectivity."""
        return logger.bind(source="ssh", tags=["ssh", "remote"])

    @staticmethod
    def for_schedule() -> Logger:
        """Logger for crontab management."""
        return logger.bind(source="cron", tags=["schedule"])

    @staticmethod
    def for_config() -> Logger:
        """Logger for configuration loading and editing."""
        return logger.bind(source="config", tags=["config"])

    @staticmethod
    def for_system() -> Logger:
        """Logger for system operations (commands, packages, update)."""
        return logger.bind(source="system", tags=["system"])
