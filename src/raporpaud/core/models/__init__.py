"""
Rapor PAUD SQLAlchemy Models

Tables of the local persistence cache.
"""

from .base import Base, TimestampMixin
from .cache import CacheEntry

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    # Cache
    "CacheEntry",
]
