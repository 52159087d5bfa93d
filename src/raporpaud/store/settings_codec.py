"""
Legacy settings column codec.

Older deployments had a single ``logo_url`` text column in the settings
table. Newer structured fields (logos per surface, assessment categories,
the three legacy P5 labels) are packed into that column as a compact JSON
side-document and unpacked on read. The wire format must stay byte-for-byte
compatible with rows written by existing clients.

Field map (side-document key -> settings field):

    default     logoUrl
    app         appLogoUrl
    report      reportLogoUrl
    categories  assessmentCategories
    lb          labelBerkembang
    lc          labelCakap
    lm          labelMahir
"""

from __future__ import annotations

import json
import logging
from typing import Any

from raporpaud.core.schemas.settings import SETTINGS_ROW_ID

logger = logging.getLogger(__name__)

PACKED_COLUMN = "logoUrl"

# Ordered: the packed JSON is emitted in this key order.
FIELD_MAP: tuple[tuple[str, str], ...] = (
    ("default", "logoUrl"),
    ("app", "appLogoUrl"),
    ("report", "reportLogoUrl"),
    ("categories", "assessmentCategories"),
    ("lb", "labelBerkembang"),
    ("lc", "labelCakap"),
    ("lm", "labelMahir"),
)

LABEL_DEFAULTS = {
    "labelBerkembang": "MB",
    "labelCakap": "BSH",
    "labelMahir": "SB",
}

# Structured fields that exist only inside the packed column.
PACKED_ONLY_FIELDS = tuple(field for _, field in FIELD_MAP if field != PACKED_COLUMN)


def pack_settings(settings: dict[str, Any]) -> dict[str, Any]:
    """Build the row payload for the settings table.

    Args:
        settings: camelCase settings document

    Returns:
        Copy with id forced to the singleton row id, the structured fields
        packed into ``logoUrl`` and removed from the top level
    """
    payload = {**settings, "id": SETTINGS_ROW_ID}

    # None members are left out, matching JSON.stringify on undefined.
    side_document = {
        short: settings[field]
        for short, field in FIELD_MAP
        if settings.get(field) is not None
    }
    payload[PACKED_COLUMN] = json.dumps(side_document, separators=(",", ":"), ensure_ascii=False)

    for field in PACKED_ONLY_FIELDS:
        payload.pop(field, None)

    return payload


def unpack_settings(row: dict[str, Any] | None) -> dict[str, Any] | None:
    """Expand a settings row read from the remote store.

    The packed column is only unpacked when it looks like a JSON object
    (starts with "{" after trimming); plain legacy logo URLs pass through.
    A malformed side-document leaves the row unchanged.

    Args:
        row: camelCase settings row, or None

    Returns:
        Settings document with first-class structured fields, or None
    """
    if not row:
        return None

    processed = dict(row)
    raw = processed.get(PACKED_COLUMN)
    if not isinstance(raw, str) or not raw.strip().startswith("{"):
        return processed

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Ignoring malformed packed settings column: {e}")
        return processed

    if not isinstance(parsed, dict):
        return processed

    processed[PACKED_COLUMN] = parsed.get("default") or ""
    processed["appLogoUrl"] = parsed.get("app")
    processed["reportLogoUrl"] = parsed.get("report")
    if isinstance(parsed.get("categories"), list):
        processed["assessmentCategories"] = parsed["categories"]
    for short, field in FIELD_MAP[-3:]:
        processed[field] = parsed.get(short) or LABEL_DEFAULTS[field]

    return processed
