"""SSH key setup wizard and connection diagnostics."""

from __future__ import annotations

import subprocess

from rnas.app.context import RnasContext
from rnas.config.settings import RnasConfig
from rnas.logging import LoggerFactory
from rnas.services import connectivity, ssh
from rnas.storage.exceptions import ConnectivityFailedError, SshSetupError
from rnas.ui import console


log = LoggerFactory.for_ssh()

SETUP_OPTIONS = {
    "1": "Automatic setup (requires password, recommended)",
    "2": "Manual setup (copy/paste instructions)",
    "3": "Skip for now (backups will fail!)",
}


def _print_manual_instructions(config: RnasConfig, public_key: str) -> None:
    print("")
    print("Manual Setup Instructions:")
    print(console.RULE)
    print("")
    print("1. Copy your public key (shown above)")
    print("")
    print(f"2. On the remote server ({config.remote_server}), run:")
    print("")
    console.print_lines(
        [
            "mkdir -p ~/.ssh",
            f'echo "{public_key}" >> ~/.ssh/authorized_keys',
            "chmod 700 ~/.ssh",
            "chmod 600 ~/.ssh/authorized_keys",
        ],
        indent="   ",
    )
    print("")
    print("3. OR use this one-liner on your local machine:")
    print("")
    print(f"   ssh-copy-id -p {config.remote_port} {config.remote_login}")
    print("")
    print(console.RULE)


def manual_setup(config: RnasConfig, public_key: str) -> None:
    """Show instructions and re-test until the login works or the operator gives up.

    Raises:
        SshSetupError: If the operator stops retrying
    """
    _print_manual_instructions(config, public_key)
    while True:
        console.ask("Press Enter when ready to test connection... ")
        if ssh.check_ssh_connection(config):
            print("SSH setup completed successfully!")
            return
        print("Connection still failing.")
        if not console.confirm("Try testing again?", default=False):
            raise SshSetupError("connection still failing after manual setup")


def run_setup_ssh(ctx: RnasContext) -> None:
    """Make sure this host can log in to the remote server with a key.

    Raises:
        SshSetupError: If the operator skips setup or gives up
    """
    config = ctx.config
    console.print_header("SSH Key Setup")
    key_path = ssh.find_ssh_key()
    if key_path is not None:
        log.info(f"Using existing SSH key: {key_path}")
    else:
        try:
            key_path = ssh.generate_ssh_key(config.hostname)
        except subprocess.CalledProcessError as error:
            raise SshSetupError(f"ssh-keygen failed: {error.stderr or error}") from error
    public_key = ssh.read_public_key(key_path)

    if ssh.check_ssh_connection(config):
        print("SSH connection already working!")
        return

    print("")
    print("SSH connection failed. Your public key needs to be added to the remote server.")
    print("")
    print("Public Key:")
    print(public_key)
    print("")
    choice = console.choose("Choose option", SETUP_OPTIONS, default="1")
    if choice == "3":
        log.warning("Skipping SSH setup")
        raise SshSetupError("skipped by operator")
    if choice == "1":
        if ssh.copy_ssh_id(config) and ssh.check_ssh_connection(config):
            print("SSH setup completed successfully!")
            return
        print("Falling back to manual setup...")
    manual_setup(config, public_key)


def verify_connection(ctx: RnasContext) -> None:
    """Run the five connectivity checks and print each result.

    Raises:
        ConnectivityFailedError: If any required check failed
    """
    config = ctx.config
    console.print_header("Backup Connectivity Verification")
    report = connectivity.verify_connectivity(config)
    for index, check in enumerate(report.checks, start=1):
        mark = "OK" if check.passed else ("WARN" if check.advisory else "FAIL")
        print(f"[{index}/{report.total}] {check.name}: {mark}")
        console.print_lines(check.details, indent="      ")
    print("")
    print(report.summary())
    if report.ok:
        return
    print("Failed checks:")
    console.print_lines(check.name for check in report.failures if not check.advisory)
    raise ConnectivityFailedError(
        config.remote_server, config.remote_port, report.summary()
    )
