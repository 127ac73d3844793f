"""Runtime settings resolved from the environment."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field

DEFAULT_GITHUB_HOST = "github.com"
DEFAULT_SSH_TIMEOUT = 5
IDENTITIES_FILENAME = "identities.yaml"
ASSIGNMENTS_FILENAME = "assignments.yaml"


def _xdg_config_home(env: dict[str, str]) -> Path:
    xdg = env.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg)
    return Path.home() / ".config"


class Settings(BaseModel):
    """Locations and limits used by every ghs command."""

    config_dir: Path = Field(..., description="Directory holding the store files")
    gh_config_dir: Path = Field(..., description="gh CLI configuration directory")
    github_host: str = Field(default=DEFAULT_GITHUB_HOST)
    ssh_timeout: int = Field(default=DEFAULT_SSH_TIMEOUT, ge=1, le=60)

    @property
    def identities_file(self) -> Path:
        return self.config_dir / IDENTITIES_FILENAME

    @property
    def assignments_file(self) -> Path:
        return self.config_dir / ASSIGNMENTS_FILENAME

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> Settings:
        """Build settings from environment variables.

        Args:
            env: Mapping to read instead of ``os.environ``

        Returns:
            Settings with defaults applied for anything unset
        """
        if env is None:
            env = dict(os.environ)

        config_home = _xdg_config_home(env)

        config_dir = env.get("GHS_CONFIG_DIR")
        gh_config_dir = env.get("GH_CONFIG_DIR")
        timeout = env.get("GHS_SSH_TIMEOUT", "").strip()

        return cls(
            config_dir=Path(config_dir).expanduser()
            if config_dir
            else config_home / "gh-switcher",
            gh_config_dir=Path(gh_config_dir).expanduser()
            if gh_config_dir
            else config_home / "gh",
            github_host=env.get("GHS_GITHUB_HOST") or DEFAULT_GITHUB_HOST,
            ssh_timeout=min(max(int(timeout), 1), 60)
            if timeout.isdigit()
            else DEFAULT_SSH_TIMEOUT,
        )
