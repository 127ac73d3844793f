"""Core data models for gh-switcher identities, assignments and results."""

from __future__ import annotations

import os
import re
from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MAX_USERNAME_LENGTH = 39
MAX_FIELD_LENGTH = 255

EDITABLE_FIELDS = ("name", "email", "signing_key", "ssh_key_path", "auto_sign")


class ConfigScope(str, Enum):
    """Git configuration scope an identity is applied to."""

    LOCAL = "local"
    GLOBAL = "global"


class SwitchStep(str, Enum):
    """Ordered steps of an identity switch."""

    PREFLIGHT = "preflight"
    GIT_NAME = "git_name"
    GIT_EMAIL = "git_email"
    SIGNING = "signing"
    SSH_KEY = "ssh_key"
    AUTH = "auth"
    PERSIST = "persist"


class GuardStatus(str, Enum):
    """Classification returned by the guard validator."""

    MATCHED = "matched"
    MISMATCHED = "mismatched"
    UNASSIGNED = "unassigned"


class ProbeResult(str, Enum):
    """Outcome of an SSH authentication probe."""

    SUCCESS = "success"
    AUTH_REJECTED = "auth_rejected"
    UNREACHABLE = "unreachable"


class HookState(str, Enum):
    """Installation state of the pre-commit guard hook."""

    INSTALLED = "installed"
    NOT_INSTALLED = "not_installed"
    FOREIGN = "foreign"


def _blank_to_none(v: str | None) -> str | None:
    if v is None:
        return None
    v = v.strip()
    return v or None


class Identity(BaseModel):
    """A named set of git, auth and SSH settings for one GitHub account."""

    username: str = Field(..., description="GitHub login, unique in the store")
    name: str | None = Field(default=None, description="git user.name")
    email: str | None = Field(default=None, description="git user.email")
    signing_key: str | None = Field(default=None, description="git user.signingkey")
    ssh_key_path: str | None = Field(
        default=None,
        description="Private key used for git over SSH (may start with ~)",
    )
    auto_sign: bool = Field(default=False, description="Sign commits automatically")
    last_used: datetime | None = Field(
        default=None,
        description="When the identity was last switched to",
    )

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        """Validate username is a GitHub-style login."""
        if not v or not USERNAME_PATTERN.match(v):
            msg = (
                "Username may only contain letters, numbers, dots, "
                "underscores and hyphens"
            )
            raise ValueError(msg)
        if len(v) > MAX_USERNAME_LENGTH:
            msg = f"Username too long (max {MAX_USERNAME_LENGTH} characters)"
            raise ValueError(msg)
        return v

    @field_validator("name", "signing_key", "ssh_key_path", mode="before")
    @classmethod
    def validate_optional_text(cls, v: str | None) -> str | None:
        """Normalize blank optional strings to None and bound their length."""
        v = _blank_to_none(v)
        if v is not None and len(v) > MAX_FIELD_LENGTH:
            msg = f"Value too long (max {MAX_FIELD_LENGTH} characters)"
            raise ValueError(msg)
        return v

    @field_validator("email", mode="before")
    @classmethod
    def validate_email(cls, v: str | None) -> str | None:
        """Validate email looks like local@domain.tld."""
        v = _blank_to_none(v)
        if v is None:
            return None
        if len(v) > MAX_FIELD_LENGTH or not EMAIL_PATTERN.match(v):
            msg = "Invalid email format"
            raise ValueError(msg)
        return v

    @property
    def ssh_key(self) -> Path | None:
        """SSH key path with the home directory shorthand expanded."""
        if not self.ssh_key_path:
            return None
        return Path(os.path.expanduser(self.ssh_key_path))


class Assignment(BaseModel):
    """Binding of a normalized directory to an identity."""

    directory: str = Field(..., description="Absolute normalized directory path")
    username: str = Field(..., description="Assigned identity username")

    @field_validator("directory")
    @classmethod
    def validate_directory(cls, v: str) -> str:
        """Require an absolute path."""
        if not os.path.isabs(v):
            msg = "Assignment directory must be an absolute path"
            raise ValueError(msg)
        return v


class IdentityDocument(BaseModel):
    """On-disk layout of the identities file."""

    version: int = 1
    identities: list[Identity] = Field(default_factory=list)


class AssignmentDocument(BaseModel):
    """On-disk layout of the assignments file."""

    version: int = 1
    assignments: list[Assignment] = Field(default_factory=list)


class Resolution(BaseModel):
    """The assignment that applies to a working directory."""

    directory: str
    username: str
    exact: bool = Field(
        default=True,
        description="False when inherited from an ancestor directory",
    )


class ActualIdentity(BaseModel):
    """Identity currently observed in git config and gh auth."""

    name: str | None = None
    email: str | None = None
    auth_user: str | None = None


class GuardIssue(BaseModel):
    """A single disagreement between expected and actual identity."""

    field: str
    expected: str | None = None
    actual: str | None = None
    remediation: str


class GuardResult(BaseModel):
    """Outcome of a guard validation for one directory."""

    status: GuardStatus
    directory: str
    expected_username: str | None = None
    assigned_directory: str | None = None
    actual: ActualIdentity = Field(default_factory=ActualIdentity)
    issues: list[GuardIssue] = Field(default_factory=list)

    @property
    def blocks_commit(self) -> bool:
        """Whether the pre-commit hook must abort the commit."""
        return self.status == GuardStatus.MISMATCHED


class SwitchReport(BaseModel):
    """Summary of an identity switch."""

    username: str
    scope: ConfigScope
    steps: list[SwitchStep] = Field(default_factory=list)
    ssh_command: str | None = None
