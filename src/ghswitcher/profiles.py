"""Profile store: the ordered list of identities."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .exceptions import (
    DuplicateIdentityError,
    InvalidFieldError,
    InvalidIdentityError,
    NotFoundError,
)
from .models import EDITABLE_FIELDS, Identity, IdentityDocument
from .storage import IDENTITIES_SCHEMA, load_document, save_document

logger = logging.getLogger(__name__)


def _validation_message(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'value'}: {err['msg']}"
        for err in error.errors()
    )


class ProfileStore:
    """Loads, validates and persists identity records.

    Every mutating call re-reads the file, applies the change and writes the
    whole document back atomically.
    """

    def __init__(self, path: Path) -> None:
        """Initialize store with its backing file.

        Args:
            path: Location of identities.yaml
        """
        self.path = Path(path)

    def _load(self) -> list[Identity]:
        return load_document(self.path, IDENTITIES_SCHEMA, IdentityDocument).identities

    def _save(self, identities: list[Identity]) -> None:
        save_document(self.path, IdentityDocument(identities=identities))

    @staticmethod
    def _position(identities: list[Identity], username: str) -> int:
        for i, identity in enumerate(identities):
            if identity.username == username:
                return i
        msg = f"Identity '{username}' not found"
        raise NotFoundError(msg, remediation="Run 'ghs users' to see configured identities")

    def list(self) -> list[Identity]:
        """Return all identities in insertion order."""
        return self._load()

    def usernames(self) -> set[str]:
        return {identity.username for identity in self._load()}

    def get(self, username: str) -> Identity:
        """Return the identity for username.

        Raises:
            NotFoundError: If no identity has that username
        """
        identities = self._load()
        return identities[self._position(identities, username)]

    def index_of(self, username: str) -> int:
        """Return the 1-based position of username in listings."""
        return self._position(self._load(), username) + 1

    def lookup(self, ref: str) -> Identity:
        """Resolve a username or a 1-based index to an identity.

        Args:
            ref: Username, or digits selecting the Nth identity

        Returns:
            Matching identity

        Raises:
            NotFoundError: If nothing matches
        """
        identities = self._load()
        if ref.isdigit():
            index = int(ref)
            if 1 <= index <= len(identities):
                return identities[index - 1]
            msg = f"Identity #{ref} not found ({len(identities)} configured)"
            raise NotFoundError(msg, remediation="Run 'ghs users' to see available numbers")
        return identities[self._position(identities, ref)]

    def add(self, username: str, **fields: Any) -> int:
        """Append a new identity.

        Args:
            username: Unique GitHub login
            **fields: Optional profile fields (name, email, signing_key,
                ssh_key_path, auto_sign)

        Returns:
            1-based index of the new identity

        Raises:
            DuplicateIdentityError: If username is already stored
            InvalidIdentityError: If any field fails validation
        """
        identities = self._load()
        if any(identity.username == username for identity in identities):
            msg = f"Identity '{username}' already exists"
            raise DuplicateIdentityError(
                msg,
                remediation=f"Use 'ghs edit {username} <field> <value>' to change it",
            )

        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            msg = f"Unknown profile field(s): {', '.join(sorted(unknown))}"
            raise InvalidFieldError(msg, details={"allowed": list(EDITABLE_FIELDS)})

        try:
            identity = Identity(username=username, **fields)
        except ValidationError as e:
            msg = f"Invalid identity '{username}': {_validation_message(e)}"
            raise InvalidIdentityError(msg) from e

        identities.append(identity)
        self._save(identities)
        logger.info("Added identity %s", username)
        return len(identities)

    def update(self, username: str, field: str, value: Any) -> Identity:
        """Change one field of an identity.

        String values are coerced by the model: an empty string clears an
        optional field and auto_sign accepts yes/no style booleans.

        Raises:
            NotFoundError: If the identity does not exist
            InvalidFieldError: If field is not editable
            InvalidIdentityError: If the new value fails validation
        """
        if field not in EDITABLE_FIELDS:
            msg = f"Unknown field '{field}'"
            raise InvalidFieldError(
                msg,
                details={"allowed": list(EDITABLE_FIELDS)},
                remediation=f"Editable fields: {', '.join(EDITABLE_FIELDS)}",
            )

        identities = self._load()
        position = self._position(identities, username)
        data = identities[position].model_dump()
        data[field] = value

        try:
            updated = Identity.model_validate(data)
        except ValidationError as e:
            msg = f"Invalid value for {field}: {_validation_message(e)}"
            raise InvalidIdentityError(msg) from e

        identities[position] = updated
        self._save(identities)
        logger.info("Updated %s.%s", username, field)
        return updated

    def touch(self, username: str, when: datetime | None = None) -> Identity:
        """Record that username was just switched to."""
        identities = self._load()
        position = self._position(identities, username)
        updated = identities[position].model_copy(
            update={"last_used": when or datetime.now(tz=UTC)},
        )
        identities[position] = updated
        self._save(identities)
        return updated

    def remove(self, username: str) -> Identity:
        """Delete an identity; later identities shift down one position.

        Assignments pointing at the identity are left in place until an
        explicit clean.

        Raises:
            NotFoundError: If the identity does not exist
        """
        identities = self._load()
        removed = identities.pop(self._position(identities, username))
        self._save(identities)
        logger.info("Removed identity %s", username)
        return removed
