"""
School Settings and User Schemas

The settings singleton plus the logged-in user record.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

SETTINGS_ROW_ID = "global_settings"

DEFAULT_P5_LABELS = ["MB", "BSH", "SB"]

DEFAULT_ASSESSMENT_CATEGORIES = [
    "Al-Qur'an / Jilid",
    "Hafalan Surah & Doa",
    "Dinul Islam (Aqidah & Akhlak)",
    "Praktik Ibadah & Bahasa Arab",
]

UserRole = Literal["admin", "teacher", "parent"]


class SchoolSettings(BaseModel):
    """School identity, report branding, active period and label scales."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str | None = None

    # Identity
    name: str = ""
    npsn: str = ""
    address: str = ""
    postal_code: str = ""
    village: str = ""
    district: str = ""
    regency: str = ""
    province: str = ""
    website: str = ""
    email: str = ""
    headmaster: str = ""
    teacher: str = ""

    # Active period
    current_class: str = ""
    semester: str = "1"
    academic_year: str = "2024/2025"
    report_date: str = ""
    report_place: str = ""

    # Branding
    logo_url: str | None = None
    app_logo_url: str | None = None
    report_logo_url: str | None = None

    # AI provider
    ai_provider: Literal["gemini", "groq"] = "gemini"
    ai_api_key: str | None = None

    # Label scales
    assessment_categories: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ASSESSMENT_CATEGORIES)
    )
    p5_labels: list[str] = Field(default_factory=lambda: list(DEFAULT_P5_LABELS))
    label_berkembang: str = "MB"
    label_cakap: str = "BSH"
    label_mahir: str = "SB"

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        """Let field defaults apply where the remote store returned NULL."""
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


def default_school_settings() -> SchoolSettings:
    """Settings seeded at first run."""
    return SchoolSettings()


class User(BaseModel):
    """Logged-in account (role-gating only, not a security boundary)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    username: str
    name: str
    role: UserRole
