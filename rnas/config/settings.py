"""Configuration record for rnas.

The configuration is a flat JSON object at CONFIG_PATH. It is parsed once per
invocation into an immutable RnasConfig; path-derived values (mount point,
image path, snapshot path, marker files) are always recomputed from the base
directory and the host name rather than stored.
"""

from __future__ import annotations

import json
import os
import re
import socket
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Union

from rnas.logging import LoggerFactory
from rnas.storage.exceptions import ConfigInvalidError, ConfigParseError


log = LoggerFactory.for_config()

CONFIG_PATH = Path(os.environ.get("RNAS_CONFIG_PATH", "/etc/rnas/rnas.json"))
MOUNT_ROOT = Path(os.environ.get("RNAS_MOUNT_ROOT", "/mnt/rnas"))

INITIALIZED_MARKER_NAME = "DISK_EXIST"
BACKUP_DISABLED_MARKER_NAME = "BACKUP_DISABLED"

IMAGE_SIZE_PATTERN = re.compile(r"^[0-9]+[GMK]$")
SIZE_MULTIPLIERS = {"K": 1024, "M": 1024**2, "G": 1024**3}

DEFAULT_SETTINGS: dict[str, Any] = {
    "rnas_dir": "/var/rnas",
    "image_size": "10G",
    "remote_server": "backup.example.com",
    "remote_port": 9901,
    "remote_user": "root",
    "remote_path": "/receive",
    "cron_schedule": "0 2 * * *",
}


def _current_mount_root() -> str:
    return str(MOUNT_ROOT)


@dataclass(frozen=True)
class RnasConfig:
    rnas_dir: str = DEFAULT_SETTINGS["rnas_dir"]
    image_size: str = DEFAULT_SETTINGS["image_size"]
    remote_server: str = DEFAULT_SETTINGS["remote_server"]
    remote_port: Union[int, str] = DEFAULT_SETTINGS["remote_port"]
    remote_user: str = DEFAULT_SETTINGS["remote_user"]
    remote_path: str = DEFAULT_SETTINGS["remote_path"]
    cron_schedule: str = DEFAULT_SETTINGS["cron_schedule"]
    # Host identity, never read from the file
    hostname: str = field(default_factory=socket.gethostname)
    mount_root: str = field(default_factory=_current_mount_root)

    @property
    def base_dir(self) -> Path:
        return Path(self.rnas_dir)

    @property
    def mount_point(self) -> Path:
        return Path(self.mount_root) / self.hostname

    @property
    def image_path(self) -> Path:
        return self.base_dir / f"{self.hostname}.img"

    @property
    def snapshot_path(self) -> Path:
        return self.base_dir / f"{self.hostname}-copy.img"

    @property
    def initialized_marker(self) -> Path:
        return self.base_dir / INITIALIZED_MARKER_NAME

    @property
    def backup_disabled_marker(self) -> Path:
        return self.base_dir / BACKUP_DISABLED_MARKER_NAME

    @property
    def remote_login(self) -> str:
        return f"{self.remote_user}@{self.remote_server}"

    @property
    def remote_destination(self) -> str:
        """rsync destination, e.g. root@host:/receive/"""
        return f"{self.remote_login}:{self.remote_path.rstrip('/')}/"

    @property
    def image_size_bytes(self) -> int:
        return parse_size(self.image_size)

    def remote_settings(self) -> tuple[str, str, Union[int, str], str]:
        return (self.remote_user, self.remote_server, self.remote_port, self.remote_path)


SETTING_KEYS = tuple(DEFAULT_SETTINGS)


def parse_size(text: str) -> int:
    """Convert an image size such as '10G' or '500M' to bytes."""
    value = str(text).strip()
    if not IMAGE_SIZE_PATTERN.match(value):
        raise ValueError(f"Invalid size: {text!r} (expected number+G/M/K)")
    return int(value[:-1]) * SIZE_MULTIPLIERS[value[-1]]


def _coerce_port(value: Any) -> Union[int, str]:
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, int):
        return value
    text = str(value).strip()
    return int(text) if text.isdigit() else text


def config_from_mapping(data: Mapping[str, Any], **identity: Any) -> RnasConfig:
    """Build a configuration from a mapping, rejecting unknown keys.

    Args:
        data: Parsed configuration values; missing keys fall back to defaults
        **identity: Optional hostname/mount_root overrides

    Raises:
        ValueError: If the mapping contains keys rnas does not know
    """
    unknown = sorted(set(data) - set(SETTING_KEYS))
    if unknown:
        raise ValueError(f"unknown key(s): {', '.join(unknown)}")
    values = dict(DEFAULT_SETTINGS)
    values.update(data)
    for key in ("rnas_dir", "image_size", "remote_server", "remote_user", "remote_path"):
        values[key] = "" if values[key] is None else str(values[key]).strip()
    values["cron_schedule"] = " ".join(str(values["cron_schedule"] or "").split())
    values["remote_port"] = _coerce_port(values["remote_port"])
    return RnasConfig(**values, **identity)


def config_to_mapping(config: RnasConfig) -> dict[str, Any]:
    return {key: getattr(config, key) for key in SETTING_KEYS}


def config_file_exists(path: Path | None = None) -> bool:
    return (path or CONFIG_PATH).is_file()


def read_config_file(path: Path, **identity: Any) -> RnasConfig:
    """Parse a configuration file.

    Raises:
        ConfigParseError: If the file is unreadable, not a JSON object, or has unknown keys
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as error:
        raise ConfigParseError(path, str(error)) from error
    except UnicodeDecodeError as error:
        reason = f"not valid UTF-8 ({error.reason} at byte {error.start})"
        raise ConfigParseError(path, reason) from error
    except json.JSONDecodeError as error:
        raise ConfigParseError(path, f"invalid JSON ({error})") from error
    if not isinstance(data, dict):
        raise ConfigParseError(path, "top level must be a JSON object")
    try:
        return config_from_mapping(data, **identity)
    except ValueError as error:
        raise ConfigParseError(path, str(error)) from error


def load_config(path: Path | None = None, **identity: Any) -> RnasConfig:
    """Load the configuration, falling back to built-in defaults when absent."""
    path = path or CONFIG_PATH
    if not path.exists():
        log.warning(f"No configuration file found at {path}, using built-in defaults")
        return config_from_mapping({}, **identity)
    log.debug(f"Loading configuration from {path}")
    return read_config_file(path, **identity)


def validate_config(config: RnasConfig) -> list[str]:
    """Run every validation rule and return the violations (empty when valid)."""
    errors = []
    if not IMAGE_SIZE_PATTERN.match(config.image_size):
        errors.append(
            f"image_size: '{config.image_size}' must match number+G/M/K, e.g. 10G, 500M"
        )
    cron_fields = config.cron_schedule.split()
    if len(cron_fields) != 5:
        errors.append(
            f"cron_schedule: '{config.cron_schedule}' must have 5 fields "
            "(minute hour day month weekday)"
        )
    port = config.remote_port
    if not isinstance(port, int) or not 1 <= port <= 65535:
        errors.append(f"remote_port: '{port}' must be numeric, 1-65535")
    if not config.rnas_dir.startswith("/"):
        errors.append(f"rnas_dir: '{config.rnas_dir}' must be an absolute path")
    if not config.remote_path.startswith("/"):
        errors.append(f"remote_path: '{config.remote_path}' must be an absolute path")
    if not config.remote_server:
        errors.append("remote_server: cannot be empty")
    if not config.remote_user:
        errors.append("remote_user: cannot be empty")
    return errors


def ensure_valid(config: RnasConfig) -> RnasConfig:
    """Return the configuration unchanged or raise ConfigInvalidError."""
    errors = validate_config(config)
    if errors:
        for error in errors:
            log.error(f"Invalid {error}")
        raise ConfigInvalidError(errors)
    return config


def save_config(config: RnasConfig, path: Path | None = None) -> Path:
    """Write the configuration atomically (temp file + rename)."""
    path = path or CONFIG_PATH
    write_config_mapping(config_to_mapping(config), path)
    return path


def write_config_mapping(data: Mapping[str, Any], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(json.dumps(dict(data), indent=2) + "\n")
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    log.debug(f"Wrote configuration file {path}")


def write_default_config(path: Path | None = None) -> Path:
    path = path or CONFIG_PATH
    write_config_mapping(DEFAULT_SETTINGS, path)
    log.info(f"Generated configuration file: {path}")
    return path

