"""
P5 (co-curricular) scale helpers.

The label scale is dynamic: settings.p5_labels holds an ordered list such as
["BB", "MB", "BSH", "BSB"], and a score is the 1-based position in that list.
Lookups outside the current scale return None instead of raising, since
labels can be shortened after criteria were written.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from raporpaud.core.schemas.settings import DEFAULT_P5_LABELS

if TYPE_CHECKING:
    from raporpaud.core.schemas import P5Criteria, SchoolSettings


def p5_labels(settings: SchoolSettings) -> list[str]:
    """Current label scale, falling back to the three default labels."""
    return list(settings.p5_labels) or list(DEFAULT_P5_LABELS)


def level_label(settings: SchoolSettings, score: int) -> str | None:
    """Label for a 1-based score, or None when the score is off the scale.

    Examples:
        >>> from raporpaud.core.schemas import SchoolSettings
        >>> level_label(SchoolSettings(p5_labels=["MB", "BSH", "SB"]), 2)
        'BSH'
        >>> level_label(SchoolSettings(p5_labels=["MB", "BSH", "SB"]), 4) is None
        True
    """
    labels = p5_labels(settings)
    if 1 <= score <= len(labels):
        return labels[score - 1]
    return None


def level_description(criteria: P5Criteria, score: int) -> str | None:
    """Indicator text of a criteria for a given level, or None if not written."""
    return criteria.level_descriptions.get(score) or None


def with_legacy_levels(criteria: P5Criteria) -> P5Criteria:
    """Populate level_descriptions from the legacy three-level fields.

    Only applies when no level description exists yet; otherwise the criteria
    is returned unchanged.
    """
    if criteria.level_descriptions:
        return criteria

    legacy = {
        1: criteria.desc_berkembang,
        2: criteria.desc_cakap,
        3: criteria.desc_mahir,
    }
    levels = {level: text for level, text in legacy.items() if text}
    if not levels:
        return criteria
    return criteria.model_copy(update={"level_descriptions": levels})


def stale_levels(criteria: P5Criteria, settings: SchoolSettings) -> list[int]:
    """Level indices described by a criteria that fall outside the label scale.

    These descriptions are kept as-is; callers only report them.
    """
    size = len(p5_labels(settings))
    return sorted(level for level in criteria.level_descriptions if level < 1 or level > size)
