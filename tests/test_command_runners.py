"""Tests for the subprocess helpers in rnas.system.commands."""

import subprocess

import pytest
from loguru import logger

from rnas.system.commands import (
    command_error,
    run_checked_command,
    run_command,
    validate_command_args,
)


class TestValidateCommandArgs:
    """Tests for validate_command_args()."""

    def test_accepts_empty_argument_values(self):
        validate_command_args(["ssh-keygen", "-N", ""])

    @pytest.mark.parametrize("args", [[], [""], ["ls", 3]])
    def test_rejects_invalid(self, args):
        with pytest.raises(ValueError):
            validate_command_args(args)


class TestRunCommand:
    """Tests for run_command()."""

    def test_passes_options_to_subprocess(self, fake_run):
        fake_run.on("echo", stdout="hi\n")

        result = run_command(["echo", "hi"], input_text="data", timeout=3)

        assert result.stdout == "hi\n"
        kwargs = fake_run.kwargs[0]
        assert kwargs["input"] == "data"
        assert kwargs["timeout"] == 3
        assert kwargs["capture_output"] is True
        assert kwargs["check"] is False
        assert kwargs["text"] is True

    def test_streaming_disables_capture(self, fake_run):
        run_command(["rsync", "-v"], capture=False)

        assert fake_run.kwargs[0]["capture_output"] is False

    def test_missing_executable_returns_127(self, fake_run):
        fake_run.raise_on("nosuchtool", error=FileNotFoundError("nosuchtool"))

        result = run_command(["nosuchtool"])

        assert result.returncode == 127

    def test_timeout_returns_124(self, fake_run):
        fake_run.raise_on("ssh", error=subprocess.TimeoutExpired(["ssh"], 5))

        result = run_command(["ssh", "host", "true"], timeout=5)

        assert result.returncode == 124
        assert "timed out" in result.stderr

    def test_non_zero_is_returned_not_raised(self, fake_run):
        fake_run.on("false", returncode=1)

        assert run_command(["false"]).returncode == 1

    def test_output_is_logged_at_debug(self, fake_run):
        fake_run.on("df", stdout="42G\n", stderr="df: warning\n")
        records = []
        handler_id = logger.add(lambda message: records.append(message.record), level="TRACE")
        try:
            run_command(["df", "-BG"])
        finally:
            logger.remove(handler_id)

        levels = {record["message"]: record["level"].name for record in records}
        assert levels["Command stdout: 42G"] == "DEBUG"
        assert levels["Command stderr: df: warning"] == "DEBUG"


class TestCommandError:
    """Tests for command_error()."""

    def test_prefers_last_stderr_line(self):
        result = subprocess.CompletedProcess(["x"], 1, "out", "warning\nfatal: bad\n")

        assert command_error(result) == "fatal: bad"

    def test_falls_back_to_stdout(self):
        result = subprocess.CompletedProcess(["x"], 1, "only stdout", "")

        assert command_error(result) == "only stdout"

    def test_falls_back_to_exit_code(self):
        result = subprocess.CompletedProcess(["x"], 3, None, None)

        assert command_error(result) == "exit code 3"


class TestRunCheckedCommand:
    """Tests for run_checked_command()."""

    def test_returns_stdout(self, fake_run):
        fake_run.on("crontab", "-l", stdout="0 2 * * * job\n")

        assert run_checked_command(["crontab", "-l"]) == "0 2 * * * job\n"

    def test_raises_on_failure(self, fake_run):
        fake_run.on("crontab", returncode=1, stderr="no crontab")

        with pytest.raises(subprocess.CalledProcessError) as exc_info:
            run_checked_command(["crontab", "-"], input_text="")

        assert exc_info.value.returncode == 1
        assert exc_info.value.stderr == "no crontab"
