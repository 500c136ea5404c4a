"""Subprocess helpers shared by every component that shells out."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Optional, Sequence

from rnas.logging import get_logger


log = get_logger(source="command", tags=["system", "command"])


def validate_command_args(args: Sequence[str]) -> None:
    """Validate command arguments before executing."""
    if not args or not args[0] or not all(isinstance(arg, str) for arg in args):
        raise ValueError("Command args must be a non-empty list of strings.")


def run_command(
    args: Sequence[str],
    *,
    cwd: Optional[Path] = None,
    input_text: Optional[str] = None,
    timeout: Optional[float] = None,
    capture: bool = True,
) -> subprocess.CompletedProcess:
    """Run a command and return the completed process without raising on failure.

    A missing executable or an expired timeout is reported as a non-zero
    return code (127 and 124, like the shell and coreutils `timeout`) so
    callers only ever branch on ``returncode``.

    Args:
        args: Command and arguments
        cwd: Working directory
        input_text: Text fed to stdin
        timeout: Seconds before the process is killed
        capture: Capture stdout/stderr; pass False to stream to the terminal
    """
    args = list(args)
    validate_command_args(args)
    log.debug(f"Running command: {args!r}")
    try:
        result = subprocess.run(
            args,
            cwd=cwd,
            input=input_text,
            capture_output=capture,
            text=True,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as error:
        log.debug(f"Command not found: {args[0]}")
        return subprocess.CompletedProcess(args, 127, "", str(error))
    except subprocess.TimeoutExpired:
        log.debug(f"Command timed out after {timeout}s: {args[0]}")
        return subprocess.CompletedProcess(args, 124, "", f"timed out after {timeout}s")
    log.debug(f"Command return code: {result.returncode}")
    if capture:
        if result.stdout and result.stdout.strip():
            log.debug(f"Command stdout: {result.stdout.strip()}")
        if result.stderr and result.stderr.strip():
            log.debug(f"Command stderr: {result.stderr.strip()}")
    return result


def command_error(result: subprocess.CompletedProcess) -> str:
    """Best single-line description of why a command failed."""
    stderr = (result.stderr or "").strip()
    stdout = (result.stdout or "").strip()
    message = stderr or stdout or f"exit code {result.returncode}"
    return message.splitlines()[-1]


def run_checked_command(args: Sequence[str], **kwargs) -> str:
    """Run a command and raise CalledProcessError if it fails."""
    result = run_command(args, **kwargs)
    if result.returncode != 0:
        raise subprocess.CalledProcessError(
            result.returncode, list(args), output=result.stdout, stderr=result.stderr
        )
    return result.stdout or ""
