"""
Entity Schemas

Pydantic models for every collection held in the application snapshot.

Attributes are snake_case; serialized documents (local cache, backup file)
use the camelCase aliases. Unknown fields are kept so columns added on the
remote side survive a round trip.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class EntityBase(BaseModel):
    """Base schema shared by all entities: an opaque string id."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        """Let field defaults apply where the remote store returned NULL."""
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


# Classes and students
class ClassRecord(EntityBase):
    """A class (rombel) with its homeroom teacher."""

    name: str = ""
    teacher_name: str = ""
    nuptk: str = ""


class Student(EntityBase):
    """Student identity and family data."""

    nisn: str = ""
    name: str = ""
    class_id: str = ""
    pob: str = ""
    dob: str = ""
    religion: str = ""
    child_order: int | None = None
    gender: str = "L"
    phone: str = ""
    father_name: str = ""
    mother_name: str = ""
    father_job: str = ""
    mother_job: str = ""
    address: str = ""
    photo_url: str | None = None
    height: float | None = None
    weight: float | None = None


# Intracurricular assessment
class LearningObjective(EntityBase):
    """Learning objective (TP) belonging to a class and a category."""

    class_id: str = ""
    category: str = ""
    description: str = ""
    activity: str = ""


class Assessment(EntityBase):
    """Score of one student on one learning objective."""

    student_id: str = ""
    tp_id: str = ""
    score: int = 1
    semester: str = ""
    academic_year: str = ""


class CategoryResult(EntityBase):
    """Narrative result of one student for one assessment category."""

    student_id: str = ""
    category: str = ""
    teacher_note: str = ""
    generated_description: str = ""
    semester: str = ""
    academic_year: str = ""


# Co-curricular (P5)
class P5Criteria(EntityBase):
    """P5 sub-dimension with per-level descriptions.

    level_descriptions maps a 1-based level index to text. The legacy
    three-level fields are kept for documents written before the label
    scale became dynamic.
    """

    class_id: str = ""
    sub_dimension: str = ""
    level_descriptions: dict[int, str] = Field(default_factory=dict)
    desc_berkembang: str | None = None
    desc_cakap: str | None = None
    desc_mahir: str | None = None


class P5Assessment(EntityBase):
    """Score of one student on one P5 criteria."""

    student_id: str = ""
    criteria_id: str = ""
    score: int = 1
    teacher_note: str | None = None
    generated_description: str | None = None


# Reflections, notes, attendance
class Reflection(EntityBase):
    """Free-form reflection question/answer for a student."""

    student_id: str = ""
    question: str = ""
    answer: str = ""


class ReflectionQuestion(EntityBase):
    """Reflection question configured for a class."""

    class_id: str = ""
    question: str = ""
    active: bool = True


class ReflectionAnswer(EntityBase):
    """Answer of one student to one reflection question."""

    question_id: str = ""
    student_id: str = ""
    answer: str = ""


class StudentNote(EntityBase):
    """Teacher note for a student (one per student)."""

    student_id: str = ""
    note: str = ""


class AttendanceData(EntityBase):
    """Absence counters for a student (one per student)."""

    student_id: str = ""
    sick: int = 0
    permission: int = 0
    alpha: int = 0
