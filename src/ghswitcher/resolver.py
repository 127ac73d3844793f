"""Directory to identity resolution by exact match then ancestor walk."""

from __future__ import annotations

import os

from .assignments import AssignmentStore
from .models import Resolution


class IdentityResolver:
    """Maps a working directory to its expected identity.

    Assignments are read once per resolver so a single command sees a
    consistent snapshot; build a new resolver for each invocation.
    """

    def __init__(self, assignments: AssignmentStore) -> None:
        self.assignments = assignments
        self._index: dict[str, str] | None = None

    def _lookup_table(self) -> dict[str, str]:
        if self._index is None:
            self._index = {a.directory: a.username for a in self.assignments.list()}
        return self._index

    def resolve(self, cwd: str | os.PathLike[str]) -> Resolution | None:
        """Find the assignment that applies to cwd.

        Args:
            cwd: Working directory to resolve

        Returns:
            The exact or nearest-ancestor assignment, or None when unassigned
        """
        table = self._lookup_table()
        start = self.assignments.normalize(os.fspath(cwd))

        current = start
        while True:
            username = table.get(current)
            if username is not None:
                return Resolution(
                    directory=current,
                    username=username,
                    exact=current == start,
                )
            parent = os.path.dirname(current)
            if parent == current:
                return None
            current = parent
