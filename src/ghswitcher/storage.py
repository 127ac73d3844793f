"""YAML document loading and atomic persistence for the flat-file stores."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, TypeVar

import jsonschema
import yaml
from pydantic import BaseModel, ValidationError

from .exceptions import PersistenceError, StoreFormatError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_NULLABLE_STRING = {"type": ["string", "null"]}

IDENTITIES_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "gh-switcher identities",
    "type": "object",
    "required": ["identities"],
    "properties": {
        "version": {"type": "integer", "minimum": 1},
        "identities": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["username"],
                "properties": {
                    "username": {"type": "string"},
                    "name": _NULLABLE_STRING,
                    "email": _NULLABLE_STRING,
                    "signing_key": _NULLABLE_STRING,
                    "ssh_key_path": _NULLABLE_STRING,
                    "auto_sign": {"type": "boolean"},
                    "last_used": _NULLABLE_STRING,
                },
                "additionalProperties": False,
            },
        },
    },
}

ASSIGNMENTS_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "gh-switcher assignments",
    "type": "object",
    "required": ["assignments"],
    "properties": {
        "version": {"type": "integer", "minimum": 1},
        "assignments": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["directory", "username"],
                "properties": {
                    "directory": {"type": "string"},
                    "username": {"type": "string"},
                },
                "additionalProperties": False,
            },
        },
    },
}


def load_document(
    path: Path,
    schema: dict[str, Any],
    model: type[ModelT],
) -> ModelT:
    """Load and validate a store document.

    Args:
        path: YAML file to read
        schema: JSON schema the raw document must satisfy
        model: Pydantic model for the validated document

    Returns:
        Parsed document, or an empty one when the file is missing or blank

    Raises:
        StoreFormatError: If the file cannot be read, parsed or validated
    """
    if not path.exists():
        return model()

    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        msg = f"Failed to parse {path}: {e}"
        raise StoreFormatError(msg, details={"path": str(path)}) from e
    except OSError as e:
        msg = f"Failed to read {path}: {e}"
        raise StoreFormatError(msg, details={"path": str(path)}) from e

    if data is None:
        return model()

    # yaml turns ISO timestamps into datetime; the schema sees strings
    raw = _stringify_datetimes(data)
    try:
        jsonschema.validate(raw, schema)
    except jsonschema.ValidationError as e:
        msg = f"Invalid store file {path}: {e.message}"
        raise StoreFormatError(
            msg,
            details={"path": str(path), "location": list(e.absolute_path)},
            remediation=f"Fix or remove {path} by hand",
        ) from e

    try:
        return model.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid store file {path}: {e}"
        raise StoreFormatError(
            msg,
            details={"path": str(path)},
            remediation=f"Fix or remove {path} by hand",
        ) from e


def save_document(path: Path, document: BaseModel) -> None:
    """Persist a store document through an atomic replace.

    Raises:
        PersistenceError: If the directory, temp file or rename fails
    """
    payload = document.model_dump(mode="json")
    text = yaml.safe_dump(
        payload,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )
    atomic_write_text(path, text)


def atomic_write_text(path: Path, text: str) -> None:
    """Write text to a sibling temp file, fsync it, then rename over path."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        msg = f"Failed to create directory {path.parent}: {e}"
        raise PersistenceError(msg, details={"path": str(path)}) from e

    tmp_name: str | None = None
    try:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.",
            suffix=".tmp",
            dir=path.parent,
        )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as e:
        msg = f"Failed to write {path}: {e}"
        raise PersistenceError(
            msg,
            details={"path": str(path)},
            remediation=f"Check permissions on {path.parent}",
        ) from e
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError:
                logger.debug("Could not remove temp file %s", tmp_name)

    logger.debug("Wrote %s", path)


def _stringify_datetimes(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _stringify_datetimes(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_stringify_datetimes(v) for v in value]
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value
