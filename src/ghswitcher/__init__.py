"""gh-switcher: per-directory GitHub identities for git, SSH and gh."""

__version__ = "0.1.0"
__author__ = "gh-switcher Contributors"
__description__ = "Per-directory GitHub identity switching with a pre-commit guard"

from .assignments import AssignmentStore
from .guard import GuardHookManager, GuardValidator
from .models import Assignment, GuardStatus, Identity
from .profiles import ProfileStore
from .resolver import IdentityResolver
from .switcher import StateReconciler

__all__ = [
    "Assignment",
    "AssignmentStore",
    "GuardHookManager",
    "GuardStatus",
    "GuardValidator",
    "Identity",
    "IdentityResolver",
    "ProfileStore",
    "StateReconciler",
]
