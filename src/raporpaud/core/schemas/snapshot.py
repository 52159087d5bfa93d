"""
Application Snapshot

AppState is the complete in-memory state: twelve entity collections, the
settings singleton and the current user. COLLECTIONS describes each
collection once so that the remote adapter, the engine, the auditor and the
backup codec all iterate over the same table.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from raporpaud.core.identifiers import normalize_ids

from .entities import (
    Assessment,
    AttendanceData,
    CategoryResult,
    ClassRecord,
    EntityBase,
    LearningObjective,
    P5Assessment,
    P5Criteria,
    Reflection,
    ReflectionAnswer,
    ReflectionQuestion,
    Student,
    StudentNote,
)
from .settings import SchoolSettings, User, default_school_settings


@dataclass(frozen=True)
class CollectionSpec:
    """Static description of one snapshot collection.

    Attributes:
        field: AppState attribute name
        key: Snapshot document key (camelCase)
        remote: Collection name passed to the remote store
        model: Entity schema
        natural_key: Attributes that identify a record for upserts
    """

    field: str
    key: str
    remote: str
    model: type[EntityBase]
    natural_key: tuple[str, ...] = ("id",)


# Parent collections before their dependents (restore order).
COLLECTIONS: tuple[CollectionSpec, ...] = (
    CollectionSpec("classes", "classes", "classes", ClassRecord),
    CollectionSpec("learning_objectives", "tps", "TPs", LearningObjective),
    CollectionSpec("p5_criteria", "p5Criteria", "p5Criteria", P5Criteria),
    CollectionSpec(
        "reflection_questions", "reflectionQuestions", "reflectionQuestions", ReflectionQuestion
    ),
    CollectionSpec("students", "students", "students", Student),
    CollectionSpec(
        "assessments", "assessments", "assessments", Assessment, ("student_id", "tp_id")
    ),
    CollectionSpec(
        "category_results",
        "categoryResults",
        "categoryResults",
        CategoryResult,
        ("student_id", "category"),
    ),
    CollectionSpec(
        "p5_assessments",
        "p5Assessments",
        "p5Assessments",
        P5Assessment,
        ("student_id", "criteria_id"),
    ),
    CollectionSpec("reflections", "reflections", "reflections", Reflection),
    CollectionSpec(
        "reflection_answers",
        "reflectionAnswers",
        "reflectionAnswers",
        ReflectionAnswer,
        ("question_id", "student_id"),
    ),
    CollectionSpec("notes", "notes", "notes", StudentNote, ("student_id",)),
    CollectionSpec("attendance", "attendance", "attendance", AttendanceData, ("student_id",)),
)

COLLECTIONS_BY_FIELD: dict[str, CollectionSpec] = {spec.field: spec for spec in COLLECTIONS}


class AppState(BaseModel):
    """Snapshot of the whole application state."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user: User | None = None
    classes: list[ClassRecord] = Field(default_factory=list)
    students: list[Student] = Field(default_factory=list)
    learning_objectives: list[LearningObjective] = Field(default_factory=list, alias="tps")
    assessments: list[Assessment] = Field(default_factory=list)
    category_results: list[CategoryResult] = Field(default_factory=list)
    settings: SchoolSettings = Field(default_factory=default_school_settings)
    p5_criteria: list[P5Criteria] = Field(default_factory=list)
    p5_assessments: list[P5Assessment] = Field(default_factory=list)
    reflections: list[Reflection] = Field(default_factory=list)
    reflection_questions: list[ReflectionQuestion] = Field(default_factory=list)
    reflection_answers: list[ReflectionAnswer] = Field(default_factory=list)
    notes: list[StudentNote] = Field(default_factory=list)
    attendance: list[AttendanceData] = Field(default_factory=list)

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> AppState:
        """Build a snapshot from a camelCase document, normalizing every id.

        Missing collections become empty; a missing or null settings entry
        falls back to the defaults.
        """
        data: dict[str, Any] = {}
        for spec in COLLECTIONS:
            data[spec.key] = normalize_ids(document.get(spec.key) or [])
        if document.get("settings"):
            data["settings"] = document["settings"]
        if document.get("user"):
            data["user"] = document["user"]
        return cls.model_validate(data)

    def to_document(self) -> dict[str, Any]:
        """Serialize to the camelCase document used by the cache and backups."""
        return self.model_dump(mode="json", by_alias=True)

    def collection(self, field: str) -> list[Any]:
        """Return the live list behind a collection attribute."""
        return getattr(self, field)
