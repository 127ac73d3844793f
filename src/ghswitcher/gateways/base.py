"""Abstract interfaces for the external tools gh-switcher drives.

All implementations (real and fake) must implement these interfaces. The
reconciler and guard only talk to git, gh and ssh through them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from ..models import ConfigScope, ProbeResult


class GitGateway(ABC):
    """Read and write git configuration for a working directory."""

    @abstractmethod
    def get_config(
        self,
        key: str,
        cwd: Path,
        scope: ConfigScope | None = None,
    ) -> str | None:
        """Return a config value, or None when unset.

        Args:
            key: Config key such as ``user.email``
            cwd: Directory git runs in
            scope: Restrict to one scope; None reads the effective value
        """
        ...

    @abstractmethod
    def set_config(self, key: str, value: str, cwd: Path, scope: ConfigScope) -> None:
        """Set a config value.

        Raises:
            ExternalCommandError: If git rejects the write
        """
        ...

    @abstractmethod
    def unset_config(self, key: str, cwd: Path, scope: ConfigScope) -> None:
        """Remove a config value; a key that is already unset is not an error."""
        ...

    @abstractmethod
    def git_dir(self, cwd: Path) -> Path | None:
        """Return the repository's git directory, or None outside a repository."""
        ...

    def hooks_dir(self, cwd: Path) -> Path | None:
        """Return the directory git runs hooks from, or None outside a repository."""
        git_dir = self.git_dir(cwd)
        return git_dir / "hooks" if git_dir is not None else None

    def is_repository(self, cwd: Path) -> bool:
        return self.git_dir(cwd) is not None


class GitHubAuthGateway(ABC):
    """Query and switch the gh CLI's active account."""

    @abstractmethod
    def current_user(self, host: str) -> str | None:
        """Return the active account for host without touching the network."""
        ...

    @abstractmethod
    def registered_users(self, host: str) -> list[str]:
        """Return every account gh holds credentials for on host."""
        ...

    @abstractmethod
    def switch_user(self, host: str, username: str) -> None:
        """Make username the active account.

        Raises:
            AuthSwitchFailedError: If gh refuses the switch
        """
        ...


class SshProbeGateway(ABC):
    """Check that an SSH key authenticates against a git host."""

    @abstractmethod
    def probe(self, key_path: Path, host: str) -> ProbeResult:
        """Attempt an SSH handshake with key_path against host."""
        ...
