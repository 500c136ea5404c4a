"""Pre-backup connectivity diagnostics.

Five independent checks, each run regardless of the others' outcome:

    1. local SSH key pair present
    2. DNS resolution of the remote host
    3. ICMP reachability (advisory: firewalls may block ping)
    4. authenticated remote command
    5. remote path exists and is writable (plus free space, informational)
"""

from __future__ import annotations

import socket

from rnas.config.settings import RnasConfig
from rnas.domain.models import CheckResult, ConnectivityReport
from rnas.logging import LoggerFactory
from rnas.services import ssh
from rnas.system.commands import run_command


log = LoggerFactory.for_ssh()

PING_TIMEOUT_SECONDS = 5


def check_ssh_key() -> CheckResult:
    key_path = ssh.find_ssh_key()
    if key_path is None:
        return CheckResult("SSH key", False, ("No SSH key found",))
    pub_path = ssh.public_key_path(key_path)
    if not pub_path.is_file():
        return CheckResult(
            "SSH key",
            False,
            (f"Private key found: {key_path}", f"Public key missing: {pub_path}"),
        )
    return CheckResult(
        "SSH key", True, (f"Private key found: {key_path}", f"Public key found: {pub_path}")
    )


def check_dns(config: RnasConfig) -> CheckResult:
    host = config.remote_server
    try:
        infos = socket.getaddrinfo(host, None)
    except (socket.gaierror, UnicodeError) as error:
        return CheckResult("DNS resolution", False, (f"Failed to resolve {host}: {error}",))
    address = infos[0][4][0] if infos else "?"
    return CheckResult("DNS resolution", True, (f"{host} resolves to {address}",))


def check_ping(config: RnasConfig) -> CheckResult:
    result = run_command(
        ["ping", "-c", "1", "-W", str(PING_TIMEOUT_SECONDS), config.remote_server],
        timeout=PING_TIMEOUT_SECONDS + 1,
    )
    if result.returncode == 0:
        return CheckResult(
            "Network", True, ("Host is reachable (ping successful)",), advisory=True
        )
    return CheckResult(
        "Network", False, ("Ping failed (may be blocked by firewall)",), advisory=True
    )


def check_ssh_login(config: RnasConfig) -> CheckResult:
    if ssh.check_ssh_connection(config):
        return CheckResult(
            "SSH connection",
            True,
            (
                "SSH authentication successful",
                f"Connected to {config.remote_server}:{config.remote_port}",
            ),
        )
    return CheckResult("SSH connection", False, ("SSH connection failed",))


def check_remote_path(config: RnasConfig) -> CheckResult:
    if not ssh.remote_path_writable(config):
        return CheckResult("Remote path", False, (f"Failed to access {config.remote_path}",))
    details = [f"Path {config.remote_path} exists", "Path is writable"]
    space = ssh.remote_available_space(config)
    if space:
        details.append(f"Available space: {space}")
    return CheckResult("Remote path", True, tuple(details))


def verify_connectivity(config: RnasConfig) -> ConnectivityReport:
    """Run all checks and return the aggregate report."""
    checks = (
        check_ssh_key(),
        check_dns(config),
        check_ping(config),
        check_ssh_login(config),
        check_remote_path(config),
    )
    report = ConnectivityReport(checks)
    for check in report.failures:
        log.warning(f"Connectivity check failed: {check.name}")
    log.info(report.summary())
    return report
