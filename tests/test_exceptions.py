"""
Tests for rnas.storage.exceptions module.

This test suite covers:
- Exception hierarchy
- Messages, hints and attributes
- Exit codes used by the dispatcher
"""

from pathlib import Path

import pytest

from rnas.storage.exceptions import (
    AllocationFailedError,
    AlreadyInitializedError,
    BackupDisabled,
    ConfigError,
    ConfigInvalidError,
    ConfigNotFoundError,
    ConfigParseError,
    ConnectivityFailedError,
    FormatFailedError,
    ImageError,
    ImageMissingError,
    LifecycleError,
    LockHeldError,
    MountError,
    MountFailedError,
    NotInitializedError,
    OperationCancelledError,
    PrivilegeError,
    RemoteError,
    ResizeFailedError,
    RnasError,
    SshSetupError,
    TransferFailedError,
    UnmountFailedError,
    UpdateError,
)


class TestExceptionHierarchy:
    """Test exception inheritance."""

    @pytest.mark.parametrize(
        "exc_class, parent",
        [
            (ConfigInvalidError, ConfigError),
            (ConfigParseError, ConfigError),
            (ConfigNotFoundError, ConfigError),
            (AlreadyInitializedError, LifecycleError),
            (NotInitializedError, LifecycleError),
            (ImageMissingError, LifecycleError),
            (OperationCancelledError, LifecycleError),
            (LockHeldError, LifecycleError),
            (PrivilegeError, LifecycleError),
            (AllocationFailedError, ImageError),
            (FormatFailedError, ImageError),
            (ResizeFailedError, ImageError),
            (MountFailedError, MountError),
            (UnmountFailedError, MountError),
            (ConnectivityFailedError, RemoteError),
            (TransferFailedError, RemoteError),
            (SshSetupError, RemoteError),
            (BackupDisabled, RnasError),
            (UpdateError, RnasError),
        ],
    )
    def test_parent(self, exc_class, parent):
        assert issubclass(exc_class, parent)
        assert issubclass(exc_class, RnasError)

    def test_base_is_exception(self):
        assert issubclass(RnasError, Exception)


class TestExitCodes:
    """Exit codes returned by the dispatcher."""

    def test_errors_exit_one(self):
        assert NotInitializedError(Path("/var/rnas/DISK_EXIST")).exit_code == 1

    def test_backup_disabled_exits_zero(self):
        assert BackupDisabled(Path("/var/rnas/BACKUP_DISABLED")).exit_code == 0


class TestMessages:
    """Messages, hints and attributes."""

    def test_config_invalid_counts_violations(self):
        error = ConfigInvalidError(["image_size: bad", "remote_port: bad"])

        assert error.count == 2
        assert error.violations == ["image_size: bad", "remote_port: bad"]
        assert "2 error(s)" in str(error)
        assert "config-edit" in error.hint

    def test_config_parse_error(self):
        error = ConfigParseError("/etc/rnas/rnas.json", "invalid JSON")

        assert error.path == Path("/etc/rnas/rnas.json")
        assert error.reason == "invalid JSON"
        assert "/etc/rnas/rnas.json" in str(error)

    def test_allocation_failed_with_reason(self):
        error = AllocationFailedError(Path("/var/rnas/h.img"), "10G", "No space left")

        assert str(error) == "Failed to allocate 10G for /var/rnas/h.img: No space left"

    def test_allocation_failed_without_reason(self):
        error = AllocationFailedError(Path("/var/rnas/h.img"), "10G")

        assert str(error) == "Failed to allocate 10G for /var/rnas/h.img"

    def test_resize_failed_hint_names_resize2fs(self):
        error = ResizeFailedError(Path("/var/rnas/h.img"))

        assert "resize2fs /var/rnas/h.img" in error.hint

    def test_transfer_failed_keeps_snapshot(self):
        error = TransferFailedError(Path("/var/rnas/h-copy.img"), 12)

        assert error.returncode == 12
        assert "exit code 12" in str(error)
        assert "/var/rnas/h-copy.img" in str(error)

    def test_connectivity_failed(self):
        error = ConnectivityFailedError("root@nas", 2222, "Permission denied")

        assert str(error) == "SSH connection to root@nas:2222 failed: Permission denied"
        assert "verify-connection" in error.hint

    def test_operation_cancelled(self):
        assert str(OperationCancelledError("Expansion")) == "Expansion cancelled"

    def test_privilege_error_hint(self):
        assert PrivilegeError().hint == "Re-run with sudo"

    def test_plain_error_has_no_hint(self):
        assert RnasError("boom").hint is None
