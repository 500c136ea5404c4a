"""SSH key management and remote command execution.

All remote access goes through the system ssh client in batch mode, so
authentication relies on the local key pair only (no password prompts in
unattended runs). Timeouts: ConnectTimeout=5 for the TCP/auth handshake and
a 10 second wall clock limit per remote command.
"""

from __future__ import annotations

import os
import shlex
import subprocess
from pathlib import Path
from typing import Optional

from rnas.config.settings import RnasConfig
from rnas.logging import LoggerFactory
from rnas.system.commands import command_error, run_command


log = LoggerFactory.for_ssh()

SSH_DIR = Path(os.environ.get("RNAS_SSH_DIR", Path.home() / ".ssh"))
KEY_NAMES = ("id_ed25519", "id_rsa")

CONNECT_TIMEOUT_SECONDS = 5
COMMAND_TIMEOUT_SECONDS = 10


def find_ssh_key() -> Optional[Path]:
    """Return the first existing private key (ed25519 preferred)."""
    for name in KEY_NAMES:
        key_path = SSH_DIR / name
        if key_path.is_file():
            return key_path
    return None


def public_key_path(key_path: Path) -> Path:
    return key_path.with_name(key_path.name + ".pub")


def generate_ssh_key(hostname: str) -> Path:
    """Generate a passphrase-less ed25519 key pair.

    Raises:
        subprocess.CalledProcessError: If ssh-keygen fails
    """
    key_path = SSH_DIR / "id_ed25519"
    log.info("Generating SSH key pair...")
    SSH_DIR.mkdir(parents=True, exist_ok=True)
    os.chmod(SSH_DIR, 0o700)
    result = run_command(
        [
            "ssh-keygen",
            "-t",
            "ed25519",
            "-f",
            str(key_path),
            "-N",
            "",
            "-C",
            f"rnas@{hostname}",
            "-q",
        ]
    )
    if result.returncode != 0:
        raise subprocess.CalledProcessError(
            result.returncode, result.args, output=result.stdout, stderr=result.stderr
        )
    os.chmod(key_path, 0o600)
    os.chmod(public_key_path(key_path), 0o644)
    log.info(f"SSH key generated: {key_path}")
    return key_path


def read_public_key(key_path: Path) -> str:
    return public_key_path(key_path).read_text(encoding="utf-8").strip()


def ssh_args(config: RnasConfig, *, connect_timeout: int = CONNECT_TIMEOUT_SECONDS) -> list[str]:
    return [
        "ssh",
        "-p",
        str(config.remote_port),
        "-o",
        "BatchMode=yes",
        "-o",
        f"ConnectTimeout={connect_timeout}",
        "-o",
        "StrictHostKeyChecking=accept-new",
        config.remote_login,
    ]


def run_remote_command(
    config: RnasConfig,
    command: str,
    *,
    timeout: float = COMMAND_TIMEOUT_SECONDS,
    connect_timeout: int = CONNECT_TIMEOUT_SECONDS,
) -> subprocess.CompletedProcess:
    """Run a shell command on the remote host."""
    return run_command(
        ssh_args(config, connect_timeout=connect_timeout) + [command], timeout=timeout
    )


def check_ssh_connection(
    config: RnasConfig,
    *,
    timeout: float = COMMAND_TIMEOUT_SECONDS,
    connect_timeout: int = CONNECT_TIMEOUT_SECONDS,
) -> bool:
    """Authenticated round trip to the remote host."""
    log.info(f"Testing connection to {config.remote_server}:{config.remote_port}...")
    result = run_remote_command(
        config, "echo OK", timeout=timeout, connect_timeout=connect_timeout
    )
    if result.returncode == 0:
        log.info("SSH connection successful")
        return True
    log.error(f"SSH connection failed: {command_error(result)}")
    return False


def remote_path_writable(config: RnasConfig) -> bool:
    path = shlex.quote(config.remote_path)
    result = run_remote_command(config, f"test -d {path} && test -w {path} && echo OK")
    return result.returncode == 0 and "OK" in (result.stdout or "")


def remote_available_space(config: RnasConfig) -> Optional[str]:
    path = shlex.quote(config.remote_path)
    result = run_remote_command(
        config, f"df -BG {path} 2>/dev/null | tail -1 | awk '{{print $4}}'"
    )
    space = (result.stdout or "").strip()
    if result.returncode != 0 or not space:
        return None
    return space


def copy_ssh_id(config: RnasConfig) -> bool:
    """Install the public key on the remote host with ssh-copy-id.

    Runs attached to the terminal so the operator can type the remote password.
    """
    log.info("Attempting automatic key installation...")
    result = run_command(
        ["ssh-copy-id", "-p", str(config.remote_port), config.remote_login], capture=False
    )
    if result.returncode != 0:
        log.error("Automatic setup failed")
        return False
    log.info("Key successfully added to remote server")
    return True
