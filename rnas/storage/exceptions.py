"""Custom exceptions for rnas operations.

This module defines a hierarchy of exceptions so the command dispatcher can
turn every failure into a log line, a remediation hint and an exit code.

Exception Hierarchy:
    RnasError (base)
        ├── ConfigError
        │   ├── ConfigInvalidError
        │   ├── ConfigParseError
        │   └── ConfigNotFoundError
        ├── LifecycleError
        │   ├── AlreadyInitializedError
        │   ├── NotInitializedError
        │   ├── ImageMissingError
        │   ├── OperationCancelledError
        │   ├── LockHeldError
        │   └── PrivilegeError
        ├── ImageError
        │   ├── AllocationFailedError
        │   ├── FormatFailedError
        │   └── ResizeFailedError
        ├── MountError
        │   ├── MountFailedError
        │   └── UnmountFailedError
        ├── RemoteError
        │   ├── ConnectivityFailedError
        │   ├── TransferFailedError
        │   └── SshSetupError
        ├── BackupDisabled (soft, exit code 0)
        └── UpdateError

Usage:
    from rnas.storage.exceptions import NotInitializedError

    if not ctx.state.is_initialized:
        raise NotInitializedError(ctx.config.initialized_marker)
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence


class RnasError(Exception):
    """Base exception for all rnas operations.

    Attributes:
        hint: Optional remediation text printed after the error.
        exit_code: Process exit code the dispatcher returns for this error.
    """

    exit_code = 1

    def __init__(self, message: str, *, hint: Optional[str] = None):
        self.hint = hint
        super().__init__(message)


class ConfigError(RnasError):
    """Base exception for configuration errors."""


class ConfigInvalidError(ConfigError):
    """Configuration failed one or more validation checks."""

    def __init__(self, violations: Sequence[str]):
        self.violations = list(violations)
        self.count = len(self.violations)
        details = "; ".join(self.violations)
        super().__init__(
            f"Configuration validation failed with {self.count} error(s): {details}",
            hint="Run 'rnas config-validate' for details or 'rnas config-edit' to fix",
        )


class ConfigParseError(ConfigError):
    """Configuration file could not be parsed into a configuration record."""

    def __init__(self, path: Path, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(
            f"Failed to load configuration file {self.path}: {reason}",
            hint="Run 'rnas config-edit' or 'rnas config-reset'",
        )


class ConfigNotFoundError(ConfigError):
    """Configuration file does not exist."""

    def __init__(self, path: Path):
        self.path = Path(path)
        super().__init__(
            f"Configuration file not found: {self.path}",
            hint="Run 'rnas install' to create one, or 'rnas config-edit' to create manually",
        )


class LifecycleError(RnasError):
    """Base exception for lifecycle precondition failures."""


class AlreadyInitializedError(LifecycleError):
    """The host is already managed by rnas."""

    def __init__(self, marker: Path):
        self.marker = Path(marker)
        super().__init__(
            f"RNAS is already initialized (marker found at {self.marker})",
            hint="Use 'rnas status' to inspect or 'rnas repair' to fix the installation",
        )


class NotInitializedError(LifecycleError):
    """The host is not managed by rnas yet."""

    def __init__(self, marker: Path):
        self.marker = Path(marker)
        super().__init__(
            f"RNAS is not initialized (no marker at {self.marker})",
            hint="Run 'rnas install' first",
        )


class ImageMissingError(LifecycleError):
    """The disk image file is missing although the host is initialized."""

    def __init__(self, image_path: Path):
        self.image_path = Path(image_path)
        super().__init__(f"Image disk not found at {self.image_path}")


class OperationCancelledError(LifecycleError):
    """The operator declined a confirmation prompt."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"{operation} cancelled")


class LockHeldError(LifecycleError):
    """Another rnas invocation holds the lifecycle lock."""

    def __init__(self, lock_path: Path):
        self.lock_path = Path(lock_path)
        super().__init__(
            f"Another rnas process is running (lock file: {self.lock_path})",
            hint="Wait for the running command to finish and retry",
        )


class PrivilegeError(LifecycleError):
    """The command was not run with root privileges."""

    def __init__(self):
        super().__init__("This command must be run as root", hint="Re-run with sudo")


class ImageError(RnasError):
    """Base exception for disk image operations."""


class AllocationFailedError(ImageError):
    """Neither sparse allocation nor zero-fill could allocate the image."""

    def __init__(self, image_path: Path, size: str, reason: str = ""):
        self.image_path = Path(image_path)
        self.size = size
        self.reason = reason
        msg = f"Failed to allocate {size} for {self.image_path}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, hint="Check free space on the filesystem holding the image")


class FormatFailedError(ImageError):
    """mkfs failed on the allocated image."""

    def __init__(self, image_path: Path, reason: str = ""):
        self.image_path = Path(image_path)
        self.reason = reason
        msg = f"Failed to format {self.image_path} as ext4"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class ResizeFailedError(ImageError):
    """The image file was extended but the filesystem could not be grown."""

    def __init__(self, image_path: Path, reason: str = ""):
        self.image_path = Path(image_path)
        self.reason = reason
        msg = f"Image {self.image_path} was extended but the filesystem was not resized"
        if reason:
            msg += f": {reason}"
        super().__init__(
            msg,
            hint=f"Run 'rnas repair' or resize manually with: resize2fs {self.image_path}",
        )


class MountError(RnasError):
    """Base exception for mount-related errors."""


class MountFailedError(MountError):
    """Failed to mount the image, even with the explicit loop variant."""

    def __init__(self, image_path: Path, mount_point: Path, reason: str = ""):
        self.image_path = Path(image_path)
        self.mount_point = Path(mount_point)
        self.reason = reason
        msg = f"Failed to mount {self.image_path} at {self.mount_point}"
        if reason:
            msg += f": {reason}"
        super().__init__(
            msg, hint=f"You may need to check the image with: fsck.ext4 {self.image_path}"
        )


class UnmountFailedError(MountError):
    """Failed to unmount, even with a lazy unmount."""

    def __init__(self, mount_point: Path, reason: str = ""):
        self.mount_point = Path(mount_point)
        self.reason = reason
        msg = f"Failed to unmount {self.mount_point}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, hint=f"Check for processes using it: fuser -vm {self.mount_point}")


class RemoteError(RnasError):
    """Base exception for remote host errors."""


class ConnectivityFailedError(RemoteError):
    """The remote host is unreachable or SSH authentication failed."""

    def __init__(self, target: str, port: int, reason: str = ""):
        self.target = target
        self.port = port
        self.reason = reason
        msg = f"SSH connection to {target}:{port} failed"
        if reason:
            msg += f": {reason}"
        super().__init__(
            msg,
            hint=(
                "Run 'rnas verify-connection' for detailed diagnostics "
                "or 'rnas setup-ssh' to re-run key setup"
            ),
        )


class TransferFailedError(RemoteError):
    """rsync exited non-zero; the snapshot is kept for retry."""

    def __init__(self, snapshot_path: Path, returncode: int, reason: str = ""):
        self.snapshot_path = Path(snapshot_path)
        self.returncode = returncode
        self.reason = reason
        msg = f"Rsync failed with exit code {returncode}, keeping {self.snapshot_path} for retry"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, hint="Re-run 'rnas backup' once the remote is reachable")


class SshSetupError(RemoteError):
    """SSH key provisioning was skipped or did not produce a working login."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(
            f"SSH setup incomplete: {reason}",
            hint="Backups will fail until SSH works. Run 'rnas setup-ssh' later",
        )


class BackupDisabled(RnasError):
    """Scheduled backups are disabled; not a failure."""

    exit_code = 0

    def __init__(self, marker: Path):
        self.marker = Path(marker)
        super().__init__(
            "Automatic backups are disabled. Skipping backup.",
            hint="Run 'rnas backup --force' for a manual backup or 'rnas enable-backup'",
        )


class UpdateError(RnasError):
    """Self-update could not be completed."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Update failed: {reason}")
