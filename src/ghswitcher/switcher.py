"""Applies an identity to git config, the SSH command and gh auth."""

from __future__ import annotations

import logging
import shlex
from datetime import datetime
from pathlib import Path

from .exceptions import (
    AuthSwitchFailedError,
    ExternalCommandError,
    NotARepositoryError,
    SwitchStepError,
)
from .gateways import GitGateway, GitHubAuthGateway
from .models import ConfigScope, Identity, SwitchReport, SwitchStep
from .profiles import ProfileStore

logger = logging.getLogger(__name__)

SSH_COMMAND_KEY = "core.sshCommand"


def build_ssh_command(key_path: Path) -> str:
    """Return the core.sshCommand value that pins git to one key."""
    return f"ssh -i {shlex.quote(str(key_path))} -o IdentitiesOnly=yes"


class StateReconciler:
    """Switches the live git and gh state to a stored identity.

    Git field writes that succeed before a later failure are kept, since
    each is meaningful on its own. The SSH command is only changed after
    every git write succeeded and is restored if the gh switch fails, so an
    SSH key is never left active for the wrong gh account.
    """

    def __init__(
        self,
        profiles: ProfileStore,
        git: GitGateway,
        auth: GitHubAuthGateway,
        host: str,
    ) -> None:
        self.profiles = profiles
        self.git = git
        self.auth = auth
        self.host = host

    def default_scope(self, cwd: Path) -> ConfigScope:
        """Local inside a repository, global elsewhere."""
        return ConfigScope.LOCAL if self.git.is_repository(cwd) else ConfigScope.GLOBAL

    def switch(
        self,
        username: str,
        cwd: Path,
        scope: ConfigScope | None = None,
        now: datetime | None = None,
    ) -> SwitchReport:
        """Apply the identity for username.

        Args:
            username: Identity to activate
            cwd: Directory git commands run in
            scope: Git config scope; defaults to local inside a repository
            now: Timestamp recorded as last_used

        Returns:
            Report of the steps applied

        Raises:
            NotFoundError: If the identity does not exist
            NotARepositoryError: If local scope is requested outside a repository
            SwitchStepError: If a git write fails or the SSH key is missing
            AuthSwitchFailedError: If gh cannot activate the account
            PersistenceError: If last_used cannot be saved
        """
        identity = self.profiles.get(username)
        if scope is None:
            scope = self.default_scope(cwd)

        self._preflight(identity, cwd, scope)
        report = SwitchReport(username=username, scope=scope)

        self._apply_field(SwitchStep.GIT_NAME, "user.name", identity.name, cwd, scope)
        report.steps.append(SwitchStep.GIT_NAME)
        self._apply_field(SwitchStep.GIT_EMAIL, "user.email", identity.email, cwd, scope)
        report.steps.append(SwitchStep.GIT_EMAIL)

        self._apply_signing(identity, cwd, scope)
        report.steps.append(SwitchStep.SIGNING)

        previous_ssh = self.git.get_config(SSH_COMMAND_KEY, cwd, scope)
        ssh_command = self._apply_ssh(identity, cwd, scope)
        report.ssh_command = ssh_command
        report.steps.append(SwitchStep.SSH_KEY)

        try:
            self.auth.switch_user(self.host, username)
        except AuthSwitchFailedError:
            self._restore_ssh(previous_ssh, cwd, scope)
            raise
        report.steps.append(SwitchStep.AUTH)

        self.profiles.touch(username, now)
        report.steps.append(SwitchStep.PERSIST)

        logger.info("Switched to %s (%s scope)", username, scope.value)
        return report

    def _preflight(self, identity: Identity, cwd: Path, scope: ConfigScope) -> None:
        if scope == ConfigScope.LOCAL and not self.git.is_repository(cwd):
            msg = f"{cwd} is not inside a git repository"
            raise NotARepositoryError(
                msg,
                remediation="Run the command inside a repository or pass --global",
            )

        key = identity.ssh_key
        if key is not None and not key.is_file():
            msg = f"SSH key for {identity.username} not found: {key}"
            raise SwitchStepError(
                msg,
                step=SwitchStep.SSH_KEY,
                remediation=(
                    f"Create the key or run: ghs edit {identity.username} ssh_key_path <path>"
                ),
            )

        registered = self.auth.registered_users(self.host)
        if identity.username not in registered:
            msg = f"{identity.username} is not logged in to gh on {self.host}"
            raise AuthSwitchFailedError(
                msg,
                details={"registered": registered},
                remediation=f"Run: gh auth login --hostname {self.host}",
            )

    def _set(
        self,
        step: SwitchStep,
        key: str,
        value: str,
        cwd: Path,
        scope: ConfigScope,
    ) -> None:
        try:
            self.git.set_config(key, value, cwd, scope)
        except ExternalCommandError as e:
            msg = f"Failed at step {step.value}: {e}"
            raise SwitchStepError(msg, step=step, remediation=e.remediation) from e

    def _unset(self, step: SwitchStep, key: str, cwd: Path, scope: ConfigScope) -> None:
        try:
            self.git.unset_config(key, cwd, scope)
        except ExternalCommandError as e:
            msg = f"Failed at step {step.value}: {e}"
            raise SwitchStepError(msg, step=step, remediation=e.remediation) from e

    def _apply_field(
        self,
        step: SwitchStep,
        key: str,
        value: str | None,
        cwd: Path,
        scope: ConfigScope,
    ) -> None:
        # an unset profile field must not inherit the previous identity's value
        if value is None:
            self._unset(step, key, cwd, scope)
        else:
            self._set(step, key, value, cwd, scope)

    def _apply_signing(self, identity: Identity, cwd: Path, scope: ConfigScope) -> None:
        if identity.signing_key:
            self._set(SwitchStep.SIGNING, "user.signingkey", identity.signing_key, cwd, scope)
            auto_sign = "true" if identity.auto_sign else "false"
            self._set(SwitchStep.SIGNING, "commit.gpgsign", auto_sign, cwd, scope)
        else:
            self._unset(SwitchStep.SIGNING, "user.signingkey", cwd, scope)
            self._set(SwitchStep.SIGNING, "commit.gpgsign", "false", cwd, scope)

    def _apply_ssh(self, identity: Identity, cwd: Path, scope: ConfigScope) -> str | None:
        key = identity.ssh_key
        if key is None:
            self._unset(SwitchStep.SSH_KEY, SSH_COMMAND_KEY, cwd, scope)
            return None
        command = build_ssh_command(key)
        self._set(SwitchStep.SSH_KEY, SSH_COMMAND_KEY, command, cwd, scope)
        return command

    def _restore_ssh(self, previous: str | None, cwd: Path, scope: ConfigScope) -> None:
        try:
            if previous is None:
                self.git.unset_config(SSH_COMMAND_KEY, cwd, scope)
            else:
                self.git.set_config(SSH_COMMAND_KEY, previous, cwd, scope)
        except ExternalCommandError as e:
            logger.error("Could not restore %s after failed auth switch: %s", SSH_COMMAND_KEY, e)
            raise
        logger.info("Restored previous %s after failed auth switch", SSH_COMMAND_KEY)
