"""
Local Cache Models

Key/value rows backing the offline cache (one row per stored document).
"""

from __future__ import annotations

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class CacheEntry(Base, TimestampMixin):
    """One serialized document stored under a fixed key."""

    __tablename__ = "local_storage"

    key: Mapped[str] = mapped_column(String(100), primary_key=True, comment="Storage key")
    value: Mapped[str] = mapped_column(Text, nullable=False, comment="Serialized document")

    def __repr__(self) -> str:
        return f"<CacheEntry {self.key} ({len(self.value)} chars)>"
