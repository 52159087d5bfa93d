"""
Backup document codec.

A backup is the whole snapshot as one JSON document (camelCase keys) plus a
schemaVersion marker. Documents written before the marker existed are read
as version 1.
"""

from __future__ import annotations

import json
from datetime import date
from typing import Any

from pydantic import ValidationError

from raporpaud.core.schemas import AppState

SCHEMA_VERSION = 1
SCHEMA_VERSION_KEY = "schemaVersion"
SUPPORTED_VERSIONS = frozenset({1})


class BackupError(Exception):
    """A backup document cannot be restored."""

    pass


class BackupFormatError(BackupError):
    """The document is not a readable snapshot."""

    pass


class BackupVersionError(BackupError):
    """The document was written by an unsupported schema version."""

    pass


def build_backup(state: AppState) -> str:
    """Serialize a snapshot to a backup document.

    Args:
        state: Snapshot to export (nothing is excluded)

    Returns:
        Pretty-printed JSON document
    """
    document = state.to_document()
    document[SCHEMA_VERSION_KEY] = SCHEMA_VERSION
    return json.dumps(document, indent=2, ensure_ascii=False)


def backup_filename(today: date | None = None) -> str:
    """Download name for a backup taken on ``today``.

    Examples:
        >>> backup_filename(date(2025, 6, 30))
        'Backup_Rapor_PAUD_2025-06-30.json'
    """
    return f"Backup_Rapor_PAUD_{(today or date.today()).isoformat()}.json"


def read_backup(document: str | bytes | dict[str, Any]) -> dict[str, Any]:
    """Decode a backup document and check its schema version.

    Raises:
        BackupFormatError: If the document is not a JSON object
        BackupVersionError: If schemaVersion is present but unsupported
    """
    if isinstance(document, str | bytes):
        try:
            data = json.loads(document)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise BackupFormatError(f"Backup is not valid JSON: {e}") from e
    else:
        data = document

    if not isinstance(data, dict):
        raise BackupFormatError("Backup must be a JSON object")

    version = data.get(SCHEMA_VERSION_KEY, SCHEMA_VERSION)
    if version not in SUPPORTED_VERSIONS:
        raise BackupVersionError(
            f"Unsupported backup schema version {version!r} "
            f"(supported: {', '.join(str(v) for v in sorted(SUPPORTED_VERSIONS))})"
        )
    return data


def parse_backup(document: str | bytes | dict[str, Any]) -> AppState:
    """Read a backup document into a snapshot.

    The session user stored in the document is not restored, so it is left
    out (older documents carry roles such as "guru" or "orangtua").

    Raises:
        BackupFormatError: If the document is not a JSON object or does not
            match the snapshot schema
        BackupVersionError: If schemaVersion is present but unsupported
    """
    data = {k: v for k, v in read_backup(document).items() if k != "user"}
    try:
        return AppState.from_document(data)
    except (ValidationError, AttributeError, TypeError) as e:
        raise BackupFormatError(f"Backup does not match the snapshot schema: {e}") from e
