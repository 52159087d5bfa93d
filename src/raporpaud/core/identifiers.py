"""
Identifier normalization and generation.

Every record crossing into the in-memory snapshot goes through
normalize_ids() so that identity comparisons never mix numeric and string
forms (the remote store may hand back integer ids).

Identifier formats:
- Simple adds: millisecond timestamp, e.g. "1718000000000"
- Natural-keyed upserts: parent ids joined with "-", e.g. "S1-T1"
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from typing import Any


def is_identifier_field(name: str) -> bool:
    """Check whether a field name denotes an id or a foreign key.

    Args:
        name: Field name in either camelCase or snake_case

    Returns:
        True for "id", "classId", "student_id", ...

    Examples:
        >>> is_identifier_field("tpId")
        True
        >>> is_identifier_field("identity")
        False
    """
    return name == "id" or name.endswith("Id") or name.endswith("_id")


def normalize_id(value: Any) -> str:
    """Coerce a single identifier value to its canonical string form.

    None becomes "" (an unset reference), floats with an integral value lose
    the trailing ".0" so 12.0 and 12 share one identity.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def normalize_ids(record: Any) -> Any:
    """Return a copy of ``record`` with every identifier field as a string.

    Walks nested mappings and lists. Non-identifier fields are copied as-is.
    Normalizing an already-normalized record yields an equal record.

    Args:
        record: Entity mapping, list of entity mappings, or scalar

    Returns:
        Normalized copy of the same shape
    """
    if isinstance(record, Mapping):
        normalized: dict[str, Any] = {}
        for key, value in record.items():
            if is_identifier_field(str(key)) and not isinstance(value, Mapping | list):
                normalized[key] = normalize_id(value)
            else:
                normalized[key] = normalize_ids(value)
        return normalized

    if isinstance(record, list):
        return [normalize_ids(item) for item in record]

    return record


def make_timestamp_id() -> str:
    """Generate an id for a simple add (epoch milliseconds)."""
    return str(int(time.time() * 1000))


def composite_id(*parts: Any) -> str:
    """Build a natural-key id from parent identifiers.

    Examples:
        >>> composite_id("S1", "T1")
        'S1-T1'
        >>> composite_id(7, "att")
        '7-att'
    """
    return "-".join(normalize_id(part) for part in parts)
