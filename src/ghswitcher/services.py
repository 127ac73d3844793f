"""Wiring of stores and gateways for one CLI invocation."""

from __future__ import annotations

from dataclasses import dataclass

from .assignments import AssignmentStore
from .config import Settings
from .gateways import (
    GitGateway,
    GitHubAuthGateway,
    RealGitGateway,
    RealGitHubAuthGateway,
    RealSshProbeGateway,
    SshProbeGateway,
)
from .guard import GuardHookManager, GuardValidator
from .profiles import ProfileStore
from .resolver import IdentityResolver
from .switcher import StateReconciler


@dataclass
class Services:
    """Everything a command needs, built once per invocation."""

    settings: Settings
    profiles: ProfileStore
    assignments: AssignmentStore
    git: GitGateway
    auth: GitHubAuthGateway
    probe: SshProbeGateway

    @property
    def host(self) -> str:
        return self.settings.github_host

    def resolver(self) -> IdentityResolver:
        return IdentityResolver(self.assignments)

    def reconciler(self) -> StateReconciler:
        return StateReconciler(self.profiles, self.git, self.auth, self.host)

    def validator(self) -> GuardValidator:
        return GuardValidator(
            self.profiles, self.resolver(), self.git, self.auth, self.host,
        )

    def hooks(self) -> GuardHookManager:
        return GuardHookManager(self.git)


def build_services(settings: Settings | None = None) -> Services:
    """Build production services from settings (or the environment)."""
    settings = settings or Settings.from_env()
    return Services(
        settings=settings,
        profiles=ProfileStore(settings.identities_file),
        assignments=AssignmentStore(settings.assignments_file),
        git=RealGitGateway(),
        auth=RealGitHubAuthGateway(settings.gh_config_dir),
        probe=RealSshProbeGateway(settings.ssh_timeout),
    )
