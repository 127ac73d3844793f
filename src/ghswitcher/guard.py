"""Pre-commit guard: expected vs. actual identity, and hook management."""

from __future__ import annotations

import logging
import os
import stat
import sys
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel

from .exceptions import NotARepositoryError, NotFoundError, PersistenceError
from .gateways import GitGateway, GitHubAuthGateway
from .models import (
    ActualIdentity,
    GuardIssue,
    GuardResult,
    GuardStatus,
    HookState,
)
from .profiles import ProfileStore
from .resolver import IdentityResolver

logger = logging.getLogger(__name__)

SKIP_ENV_VAR = "GHS_SKIP_HOOK"
HOOK_NAME = "pre-commit"
BACKUP_SUFFIX = ".ghs-backup"
HOOK_SIGNATURE = "# ghs-guard-hook"

_TRUTHY = {"1", "true", "yes"}


def is_bypassed(env: Mapping[str, str] | None = None) -> bool:
    """Whether the guard was explicitly disabled for this invocation."""
    if env is None:
        env = os.environ
    return env.get(SKIP_ENV_VAR, "").strip().lower() in _TRUTHY


def observe_identity(
    git: GitGateway,
    auth: GitHubAuthGateway,
    cwd: Path,
    host: str,
) -> ActualIdentity:
    """Read the effective git identity in cwd and the active gh account."""
    return ActualIdentity(
        name=git.get_config("user.name", cwd),
        email=git.get_config("user.email", cwd),
        auth_user=auth.current_user(host),
    )


class GuardValidator:
    """Classifies a directory as matched, mismatched or unassigned.

    Only local state is read (git config and gh's hosts file), so the check
    is cheap enough to run on every commit.
    """

    def __init__(
        self,
        profiles: ProfileStore,
        resolver: IdentityResolver,
        git: GitGateway,
        auth: GitHubAuthGateway,
        host: str,
    ) -> None:
        self.profiles = profiles
        self.resolver = resolver
        self.git = git
        self.auth = auth
        self.host = host

    def check(self, cwd: Path) -> GuardResult:
        """Compare the identity expected for cwd with the one in effect.

        Args:
            cwd: Directory the commit happens in

        Returns:
            Guard result with every disagreement listed as an issue
        """
        directory = os.fspath(cwd)
        actual = observe_identity(self.git, self.auth, Path(cwd), self.host)
        resolution = self.resolver.resolve(cwd)

        if resolution is None:
            logger.debug("No assignment covers %s", directory)
            return GuardResult(
                status=GuardStatus.UNASSIGNED,
                directory=directory,
                actual=actual,
            )

        username = resolution.username
        result = GuardResult(
            status=GuardStatus.MATCHED,
            directory=directory,
            expected_username=username,
            assigned_directory=resolution.directory,
            actual=actual,
        )

        try:
            identity = self.profiles.get(username)
        except NotFoundError:
            result.status = GuardStatus.MISMATCHED
            result.issues.append(
                GuardIssue(
                    field="identity",
                    expected=username,
                    remediation=(
                        "The assigned identity was removed. Run 'ghs assign --clean' "
                        f"or 'ghs add {username}'"
                    ),
                ),
            )
            return result

        if actual.auth_user != username:
            result.issues.append(
                GuardIssue(
                    field="auth_user",
                    expected=username,
                    actual=actual.auth_user,
                    remediation=f"Run: ghs switch {username}",
                ),
            )
        for field, key, expected, found in (
            ("name", "user.name", identity.name, actual.name),
            ("email", "user.email", identity.email, actual.email),
        ):
            if found == expected:
                continue
            if expected is None:
                manual = f"git config --unset {key}"
            else:
                manual = f'git config {key} "{expected}"'
            result.issues.append(
                GuardIssue(
                    field=field,
                    expected=expected,
                    actual=found,
                    remediation=f"Run: ghs switch {username}  (or {manual})",
                ),
            )

        if result.issues:
            result.status = GuardStatus.MISMATCHED
        logger.debug("Guard %s for %s: %s", result.status.value, directory, username)
        return result


def render_hook_script(python: str | None = None) -> str:
    """Return the pre-commit script body.

    The script prefers ``ghs`` on PATH, falls back to the interpreter that
    installed it, and never blocks a commit when neither is available.
    """
    python = python or sys.executable
    return f"""#!/bin/sh
{HOOK_SIGNATURE}
# Installed by gh-switcher: blocks commits made with the wrong GitHub identity.
# Bypass once with: {SKIP_ENV_VAR}=1 git commit ...
if [ "${{{SKIP_ENV_VAR}:-}}" = "1" ]; then
    exit 0
fi

backup="$(dirname "$0")/{HOOK_NAME}{BACKUP_SUFFIX}"
if [ -x "$backup" ]; then
    "$backup" "$@" || exit $?
fi

if command -v ghs >/dev/null 2>&1; then
    exec ghs guard run
fi
if [ -x "{python}" ]; then
    exec "{python}" -m ghswitcher guard run
fi
echo "gh-switcher: 'ghs' not found on PATH, skipping identity check" >&2
exit 0
"""


class HookReport(BaseModel):
    """Where the guard hook lives and what state it is in."""

    state: HookState
    hook_path: Path
    backup_path: Path | None = None


class GuardHookManager:
    """Installs, removes and inspects the pre-commit guard hook."""

    def __init__(self, git: GitGateway) -> None:
        self.git = git

    def _hook_paths(self, cwd: Path) -> tuple[Path, Path]:
        hooks_dir = self.git.hooks_dir(cwd)
        if hooks_dir is None:
            msg = f"{cwd} is not inside a git repository"
            raise NotARepositoryError(msg, remediation="Run 'git init' or cd into a repository")
        hook = hooks_dir / HOOK_NAME
        return hook, hook.with_name(HOOK_NAME + BACKUP_SUFFIX)

    @staticmethod
    def _is_ours(hook: Path) -> bool:
        try:
            return HOOK_SIGNATURE in hook.read_text(encoding="utf-8", errors="replace")
        except OSError:
            return False

    def status(self, cwd: Path) -> HookReport:
        hook, backup = self._hook_paths(cwd)
        if not hook.exists():
            state = HookState.NOT_INSTALLED
        elif self._is_ours(hook):
            state = HookState.INSTALLED
        else:
            state = HookState.FOREIGN
        return HookReport(
            state=state,
            hook_path=hook,
            backup_path=backup if backup.exists() else None,
        )

    def install(self, cwd: Path) -> HookReport:
        """Write the guard hook, keeping any existing foreign hook as a backup.

        Raises:
            NotARepositoryError: Outside a git repository
            PersistenceError: If the hook cannot be written
        """
        hook, backup = self._hook_paths(cwd)
        try:
            hook.parent.mkdir(parents=True, exist_ok=True)
            if hook.exists() and not self._is_ours(hook):
                os.replace(hook, backup)
                logger.info("Backed up existing hook to %s", backup)
            hook.write_text(render_hook_script(), encoding="utf-8")
            mode = hook.stat().st_mode
            hook.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        except OSError as e:
            msg = f"Failed to install hook at {hook}: {e}"
            raise PersistenceError(msg, remediation=f"Check permissions on {hook.parent}") from e

        logger.info("Installed guard hook at %s", hook)
        return HookReport(
            state=HookState.INSTALLED,
            hook_path=hook,
            backup_path=backup if backup.exists() else None,
        )

    def uninstall(self, cwd: Path) -> HookReport:
        """Remove the guard hook and restore any backed-up hook.

        Raises:
            NotFoundError: If no guard hook is installed
        """
        hook, backup = self._hook_paths(cwd)
        if not hook.exists() or not self._is_ours(hook):
            msg = f"No gh-switcher guard hook installed at {hook}"
            raise NotFoundError(msg, remediation="Run 'ghs guard install' first")

        try:
            hook.unlink()
            if backup.exists():
                os.replace(backup, hook)
                logger.info("Restored previous hook from %s", backup)
        except OSError as e:
            msg = f"Failed to remove hook at {hook}: {e}"
            raise PersistenceError(msg) from e

        state = HookState.FOREIGN if hook.exists() else HookState.NOT_INSTALLED
        return HookReport(state=state, hook_path=hook)
