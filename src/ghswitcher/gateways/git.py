"""Production git gateway backed by the git CLI."""

from __future__ import annotations

import logging
from pathlib import Path

from ..exceptions import ExternalCommandError
from ..models import ConfigScope
from ._subprocess import run_command
from .base import GitGateway

logger = logging.getLogger(__name__)

# git config exits 1 for a missing key on --get and 5 for a missing key on --unset
_MISSING_KEY_CODES = {1, 5}


class RealGitGateway(GitGateway):
    """Runs git config and git rev-parse via subprocess."""

    def get_config(
        self,
        key: str,
        cwd: Path,
        scope: ConfigScope | None = None,
    ) -> str | None:
        argv = ["git", "config"]
        if scope is not None:
            argv.append(f"--{scope.value}")
        argv += ["--get", key]

        result = run_command(argv, f"read git config {key}", cwd=cwd)
        if result.returncode != 0:
            return None
        value = result.stdout.strip()
        return value or None

    def set_config(self, key: str, value: str, cwd: Path, scope: ConfigScope) -> None:
        result = run_command(
            ["git", "config", f"--{scope.value}", key, value],
            f"set git config {key}",
            cwd=cwd,
        )
        if result.returncode != 0:
            msg = f"git config --{scope.value} {key} failed: {result.stderr.strip()}"
            raise ExternalCommandError(
                msg,
                details={"key": key, "scope": scope.value},
                remediation=f'Run: git config --{scope.value} {key} "{value}"',
            )

    def unset_config(self, key: str, cwd: Path, scope: ConfigScope) -> None:
        result = run_command(
            ["git", "config", f"--{scope.value}", "--unset-all", key],
            f"unset git config {key}",
            cwd=cwd,
        )
        if result.returncode != 0 and result.returncode not in _MISSING_KEY_CODES:
            msg = f"git config --{scope.value} --unset-all {key} failed: {result.stderr.strip()}"
            raise ExternalCommandError(
                msg,
                details={"key": key, "scope": scope.value},
                remediation=f"Run: git config --{scope.value} --unset-all {key}",
            )

    def git_dir(self, cwd: Path) -> Path | None:
        result = run_command(
            ["git", "rev-parse", "--absolute-git-dir"],
            "locate git directory",
            cwd=cwd,
        )
        if result.returncode != 0:
            return None
        return Path(result.stdout.strip())

    def hooks_dir(self, cwd: Path) -> Path | None:
        # honours core.hooksPath and linked worktrees
        result = run_command(
            ["git", "rev-parse", "--git-path", "hooks"],
            "locate git hooks directory",
            cwd=cwd,
        )
        if result.returncode != 0:
            return None
        hooks = Path(result.stdout.strip())
        if not hooks.is_absolute():
            hooks = Path(cwd) / hooks
        return hooks
