"""
Referential integrity audit.

The remote store enforces no foreign keys, so deleting a class or a student
can leave dependent rows pointing at nothing. compute_orphans() finds them;
the engine's cleanup flow deletes them after confirmation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from raporpaud.core.schemas import COLLECTIONS

if TYPE_CHECKING:
    from raporpaud.core.schemas import AppState

# collection attribute -> ((foreign key attribute, referenced collection attribute), ...)
REFERENCES: dict[str, tuple[tuple[str, str], ...]] = {
    "students": (("class_id", "classes"),),
    "learning_objectives": (("class_id", "classes"),),
    "p5_criteria": (("class_id", "classes"),),
    "reflection_questions": (("class_id", "classes"),),
    "assessments": (("student_id", "students"), ("tp_id", "learning_objectives")),
    "category_results": (("student_id", "students"),),
    "p5_assessments": (("student_id", "students"), ("criteria_id", "p5_criteria")),
    "reflections": (("student_id", "students"),),
    "notes": (("student_id", "students"),),
    "attendance": (("student_id", "students"),),
    "reflection_answers": (("student_id", "students"), ("question_id", "reflection_questions")),
}


def compute_orphans(state: AppState) -> dict[str, list[str]]:
    """Find records whose foreign keys do not resolve.

    Identifier sets are taken from the snapshot as it is now, so a record
    whose parent is itself an orphan is only reported once its parent is gone.

    Args:
        state: Snapshot to audit

    Returns:
        Mapping of collection key (e.g. "students", "tps") to orphaned ids,
        with an entry for every audited collection
    """
    known_ids = {
        spec.field: {item.id for item in state.collection(spec.field)} for spec in COLLECTIONS
    }

    orphans: dict[str, list[str]] = {}
    for spec in COLLECTIONS:
        references = REFERENCES.get(spec.field)
        if not references:
            continue
        orphans[spec.key] = [
            item.id
            for item in state.collection(spec.field)
            if any(getattr(item, fk) not in known_ids[parent] for fk, parent in references)
        ]
    return orphans


def count_orphans(orphans: dict[str, list[str]]) -> int:
    """Total number of orphaned records across collections."""
    return sum(len(ids) for ids in orphans.values())
