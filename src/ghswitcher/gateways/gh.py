"""Production GitHub auth gateway backed by the gh CLI."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from ..exceptions import AuthSwitchFailedError, ExternalCommandError
from ._subprocess import run_command
from .base import GitHubAuthGateway

logger = logging.getLogger(__name__)


class RealGitHubAuthGateway(GitHubAuthGateway):
    """Reads gh's hosts.yml for account state and runs ``gh auth switch``.

    Reading hosts.yml keeps lookups offline; ``gh auth status`` would call
    the API to validate tokens.
    """

    def __init__(self, gh_config_dir: Path) -> None:
        self.hosts_file = Path(gh_config_dir) / "hosts.yml"

    def _host_entry(self, host: str) -> dict[str, Any]:
        if not self.hosts_file.exists():
            return {}
        try:
            with self.hosts_file.open(encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (yaml.YAMLError, OSError) as e:
            logger.warning("Could not read %s: %s", self.hosts_file, e)
            return {}
        entry = data.get(host) if isinstance(data, dict) else None
        return entry if isinstance(entry, dict) else {}

    def current_user(self, host: str) -> str | None:
        user = self._host_entry(host).get("user")
        return str(user) if user else None

    def registered_users(self, host: str) -> list[str]:
        entry = self._host_entry(host)
        users = entry.get("users")
        if isinstance(users, dict) and users:
            return [str(u) for u in users]
        # hosts.yml written before multi-account support only has "user"
        user = entry.get("user")
        return [str(user)] if user else []

    def switch_user(self, host: str, username: str) -> None:
        try:
            result = run_command(
                ["gh", "auth", "switch", "--hostname", host, "--user", username],
                f"switch gh account to {username}",
            )
        except ExternalCommandError as e:
            raise AuthSwitchFailedError(
                str(e),
                details=e.details,
                remediation=e.remediation,
            ) from e

        if result.returncode != 0:
            msg = f"gh could not switch to {username}: {result.stderr.strip() or 'unknown error'}"
            raise AuthSwitchFailedError(
                msg,
                details={"host": host, "username": username},
                remediation=f"Run: gh auth login --hostname {host}  (as {username})",
            )
        logger.info("gh active account on %s is now %s", host, username)
