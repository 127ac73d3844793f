"""Assignment store: directory to identity bindings."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterable
from pathlib import Path

from .exceptions import NotFoundError
from .models import Assignment, AssignmentDocument
from .storage import ASSIGNMENTS_SCHEMA, load_document, save_document

logger = logging.getLogger(__name__)

PathNormalizer = Callable[[str], str]


def normalize_directory(directory: str | os.PathLike[str]) -> str:
    """Expand ~, make absolute, resolve symlinks and drop trailing separators."""
    path = os.path.realpath(os.path.expanduser(os.fspath(directory)))
    if len(path) > 1:
        path = path.rstrip(os.sep) or os.sep
    return path


class AssignmentStore:
    """Loads and persists directory assignments.

    Usernames are not checked against the profile store here; callers
    validate before assigning.
    """

    def __init__(
        self,
        path: Path,
        normalize: PathNormalizer = normalize_directory,
    ) -> None:
        """Initialize store with its backing file.

        Args:
            path: Location of assignments.yaml
            normalize: Path normalization applied to every directory argument
        """
        self.path = Path(path)
        self.normalize = normalize

    def _load(self) -> list[Assignment]:
        return load_document(
            self.path, ASSIGNMENTS_SCHEMA, AssignmentDocument,
        ).assignments

    def _save(self, assignments: list[Assignment]) -> None:
        save_document(self.path, AssignmentDocument(assignments=assignments))

    def list(self) -> list[Assignment]:
        """Return all assignments in insertion order."""
        return self._load()

    def get(self, directory: str | os.PathLike[str]) -> Assignment | None:
        """Return the assignment for exactly this directory, if any."""
        target = self.normalize(os.fspath(directory))
        for assignment in self._load():
            if assignment.directory == target:
                return assignment
        return None

    def assign(self, directory: str | os.PathLike[str], username: str) -> Assignment:
        """Bind directory to username, replacing any existing binding."""
        target = self.normalize(os.fspath(directory))
        assignment = Assignment(directory=target, username=username)

        assignments = self._load()
        for i, existing in enumerate(assignments):
            if existing.directory == target:
                assignments[i] = assignment
                break
        else:
            assignments.append(assignment)

        self._save(assignments)
        logger.info("Assigned %s to %s", target, username)
        return assignment

    def unassign(self, directory: str | os.PathLike[str]) -> Assignment:
        """Remove the binding for exactly this directory.

        Raises:
            NotFoundError: If the directory has no assignment
        """
        target = self.normalize(os.fspath(directory))
        assignments = self._load()
        for i, existing in enumerate(assignments):
            if existing.directory == target:
                removed = assignments.pop(i)
                self._save(assignments)
                logger.info("Unassigned %s", target)
                return removed

        msg = f"No assignment for {target}"
        raise NotFoundError(
            msg,
            remediation="Run 'ghs assign --list' to see assigned directories",
        )

    def find_stale(
        self,
        existing_usernames: Iterable[str],
        directory_exists: Callable[[str], bool] = os.path.isdir,
    ) -> list[Assignment]:
        """Return assignments whose identity or directory is gone."""
        known = set(existing_usernames)
        return [
            a
            for a in self._load()
            if a.username not in known or not directory_exists(a.directory)
        ]

    def clean(
        self,
        existing_usernames: Iterable[str],
        directory_exists: Callable[[str], bool] = os.path.isdir,
    ) -> int:
        """Drop assignments whose identity or directory no longer exists.

        Args:
            existing_usernames: Usernames currently in the profile store
            directory_exists: Predicate telling whether a directory is still on disk

        Returns:
            Number of assignments removed
        """
        known = set(existing_usernames)
        assignments = self._load()
        kept: list[Assignment] = []
        removed = 0
        for assignment in assignments:
            if assignment.username in known and directory_exists(assignment.directory):
                kept.append(assignment)
            else:
                logger.info(
                    "Dropping stale assignment %s -> %s",
                    assignment.directory,
                    assignment.username,
                )
                removed += 1

        if removed:
            self._save(kept)
        return removed
