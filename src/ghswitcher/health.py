"""Profile completeness checks and SSH key testing."""

from __future__ import annotations

import logging
import stat
from collections.abc import Iterable
from pathlib import Path

from pydantic import BaseModel

from .exceptions import NotFoundError, SshProbeError
from .gateways import SshProbeGateway
from .models import Identity, ProbeResult

logger = logging.getLogger(__name__)


class HealthIssue(BaseModel):
    """A problem found in a stored profile."""

    message: str
    remediation: str


def key_permissions_too_open(key: Path) -> bool:
    """Whether group or others can access the private key."""
    mode = stat.S_IMODE(key.stat().st_mode)
    return bool(mode & 0o077)


def candidate_ssh_keys(username: str, ssh_dir: Path | None = None) -> list[Path]:
    """Common private key locations for username, account-specific names first."""
    ssh_dir = ssh_dir or Path.home() / ".ssh"
    return [
        ssh_dir / f"id_ed25519_{username}",
        ssh_dir / f"id_rsa_{username}",
        ssh_dir / "id_ed25519",
        ssh_dir / "id_rsa",
        ssh_dir / "id_ecdsa",
    ]


def detect_ssh_key(username: str, ssh_dir: Path | None = None) -> Path | None:
    """Return the first existing key from the common locations, if any."""
    for key in candidate_ssh_keys(username, ssh_dir):
        if key.is_file():
            logger.debug("Detected SSH key %s for %s", key, username)
            return key
    return None


def check_profile(identity: Identity, registered_users: Iterable[str]) -> list[HealthIssue]:
    """List everything that would make a switch to identity fail or misbehave.

    Args:
        identity: Profile to inspect
        registered_users: Accounts gh holds credentials for

    Returns:
        Issues found, empty when the profile is complete
    """
    username = identity.username
    issues: list[HealthIssue] = []

    if not identity.name:
        issues.append(
            HealthIssue(
                message="Missing name",
                remediation=f'Run: ghs edit {username} name "Your Name"',
            ),
        )
    if not identity.email:
        issues.append(
            HealthIssue(
                message="Missing email",
                remediation=f"Run: ghs edit {username} email you@example.com",
            ),
        )

    key = identity.ssh_key
    if key is not None:
        if not key.is_file():
            issues.append(
                HealthIssue(
                    message=f"SSH key file not found: {key}",
                    remediation=f"Create the key or run: ghs edit {username} ssh_key_path <path>",
                ),
            )
        elif key_permissions_too_open(key):
            issues.append(
                HealthIssue(
                    message=f"SSH key permissions too open: {key}",
                    remediation=f"Run: chmod 600 {key}",
                ),
            )

    if username not in set(registered_users):
        issues.append(
            HealthIssue(
                message=f"{username} is not logged in to gh",
                remediation="Run: gh auth login",
            ),
        )

    return issues


def probe_ssh_key(identity: Identity, probe: SshProbeGateway, host: str) -> ProbeResult:
    """Probe the identity's SSH key against host.

    Returns:
        ProbeResult.SUCCESS when the host accepted the key

    Raises:
        NotFoundError: If the identity has no key or the file is missing
        SshProbeError: If the key is rejected or the host is unreachable
    """
    key = identity.ssh_key
    if key is None:
        msg = f"{identity.username} has no SSH key configured"
        raise NotFoundError(
            msg,
            remediation=f"Run: ghs edit {identity.username} ssh_key_path ~/.ssh/<key>",
        )
    if not key.is_file():
        msg = f"SSH key file not found: {key}"
        raise NotFoundError(
            msg,
            remediation=f"Create the key or run: ghs edit {identity.username} ssh_key_path <path>",
        )

    result = probe.probe(key, host)
    logger.info("SSH probe for %s: %s", identity.username, result.value)

    if result == ProbeResult.AUTH_REJECTED:
        msg = f"{host} rejected SSH key {key} for {identity.username}"
        raise SshProbeError(
            msg,
            result=result,
            remediation=f"Add {key}.pub to the {identity.username} account's SSH keys on {host}",
        )
    if result == ProbeResult.UNREACHABLE:
        msg = f"Could not reach {host} over SSH"
        raise SshProbeError(
            msg,
            result=result,
            remediation="Check your network connection, then rerun 'ghs test-ssh'",
        )
    return result
