"""Gateways to the git, gh and ssh command-line tools."""

from .base import GitGateway, GitHubAuthGateway, SshProbeGateway
from .gh import RealGitHubAuthGateway
from .git import RealGitGateway
from .ssh import RealSshProbeGateway, classify_probe_output

__all__ = [
    "GitGateway",
    "GitHubAuthGateway",
    "RealGitGateway",
    "RealGitHubAuthGateway",
    "RealSshProbeGateway",
    "SshProbeGateway",
    "classify_probe_output",
]
