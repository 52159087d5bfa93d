"""Pydantic schemas for the application snapshot."""

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
from .settings import (
    DEFAULT_ASSESSMENT_CATEGORIES,
    DEFAULT_P5_LABELS,
    SETTINGS_ROW_ID,
    SchoolSettings,
    User,
    UserRole,
    default_school_settings,
)
from .snapshot import COLLECTIONS, COLLECTIONS_BY_FIELD, AppState, CollectionSpec

__all__ = [
    # Entities
    "EntityBase",
    "ClassRecord",
    "Student",
    "LearningObjective",
    "Assessment",
    "CategoryResult",
    "P5Criteria",
    "P5Assessment",
    "Reflection",
    "ReflectionQuestion",
    "ReflectionAnswer",
    "StudentNote",
    "AttendanceData",
    # Settings
    "SchoolSettings",
    "User",
    "UserRole",
    "SETTINGS_ROW_ID",
    "DEFAULT_P5_LABELS",
    "DEFAULT_ASSESSMENT_CATEGORIES",
    "default_school_settings",
    # Snapshot
    "AppState",
    "CollectionSpec",
    "COLLECTIONS",
    "COLLECTIONS_BY_FIELD",
]
