"""
Field and table naming at the remote boundary.

The application speaks camelCase; the remote tables use snake_case columns.
Keys are translated recursively through nested objects and arrays.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from typing import Any

# Collections whose storage table does not follow the snake_case rule.
TABLE_NAME_OVERRIDES = {
    "TPs": "tps",
    "tps": "tps",
}

_UPPER = re.compile(r"[A-Z]")
_UNDERSCORE_LOWER = re.compile(r"_([a-z])")


def to_snake_case(name: str) -> str:
    """Convert a camelCase name to snake_case.

    Examples:
        >>> to_snake_case("academicYear")
        'academic_year'
        >>> to_snake_case("p5Criteria")
        'p5_criteria'
    """
    return _UPPER.sub(lambda m: f"_{m.group(0).lower()}", name)


def to_camel_case(name: str) -> str:
    """Convert a snake_case name to camelCase.

    Examples:
        >>> to_camel_case("reflection_answers")
        'reflectionAnswers'
    """
    return _UNDERSCORE_LOWER.sub(lambda m: m.group(1).upper(), name)


def map_keys(obj: Any, mapper: Callable[[str], str]) -> Any:
    """Apply ``mapper`` to every key of every mapping inside ``obj``.

    Lists are walked element by element; scalars are returned unchanged.
    """
    if isinstance(obj, list):
        return [map_keys(item, mapper) for item in obj]
    if isinstance(obj, Mapping):
        return {mapper(str(key)): map_keys(value, mapper) for key, value in obj.items()}
    return obj


def table_name(collection: str) -> str:
    """Storage table for an application collection name.

    Examples:
        >>> table_name("TPs")
        'tps'
        >>> table_name("categoryResults")
        'category_results'
    """
    return TABLE_NAME_OVERRIDES.get(collection, to_snake_case(collection))
