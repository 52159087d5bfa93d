"""
Local Persistence Cache

Durable key/value storage for the offline snapshot, backed by SQLAlchemy.

Keys:
- raporPaudData: full application snapshot (written on every state change)
- appUser: current user, cleared on logout independently of the snapshot
- supabase_url / supabase_key: runtime overrides of the remote connection

Writes are synchronous so the engine can persist inside a state transition
without yielding to the event loop.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError
from sqlalchemy import create_engine, select, text
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from raporpaud.core.models import Base, CacheEntry
from raporpaud.core.schemas import AppState, User

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = "raporPaudData"
USER_KEY = "appUser"
REMOTE_URL_KEY = "supabase_url"
REMOTE_KEY_KEY = "supabase_key"


class LocalCache:
    """Key/value document store for the offline snapshot."""

    def __init__(self, url: str):
        """Initialize cache and create its table if needed.

        Args:
            url: SQLAlchemy database URL (e.g. "sqlite:///cache.db",
                 "sqlite://" for an in-memory cache)
        """
        self.url = url
        self.engine: Engine = self._create_engine(url)
        Base.metadata.create_all(self.engine)
        self._session_factory = sessionmaker(self.engine, class_=Session, expire_on_commit=False)

    @classmethod
    def from_settings(cls) -> LocalCache:
        """Create cache from application settings."""
        from raporpaud.config import settings

        return cls(settings.LOCAL_CACHE_URL)

    @staticmethod
    def _create_engine(url: str) -> Engine:
        # In-memory SQLite needs a single shared connection to keep its data.
        if url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(url)

    # ========================================================================
    # RAW KEY/VALUE ACCESS
    # ========================================================================

    def get_item(self, key: str) -> str | None:
        """Read the document stored under ``key``."""
        with self._session_factory() as session:
            entry = session.execute(
                select(CacheEntry).where(CacheEntry.key == key)
            ).scalar_one_or_none()
            return entry.value if entry else None

    def set_item(self, key: str, value: str) -> None:
        """Store (or replace) the document under ``key``."""
        with self._session_factory() as session, session.begin():
            entry = session.get(CacheEntry, key)
            if entry is None:
                session.add(CacheEntry(key=key, value=value))
            else:
                entry.value = value

    def remove_item(self, key: str) -> None:
        """Delete the document under ``key`` (no-op if absent)."""
        with self._session_factory() as session, session.begin():
            entry = session.get(CacheEntry, key)
            if entry is not None:
                session.delete(entry)

    # ========================================================================
    # SNAPSHOT
    # ========================================================================

    def save(self, snapshot: AppState) -> None:
        """Persist the full application snapshot."""
        self.set_item(SNAPSHOT_KEY, json.dumps(snapshot.to_document(), ensure_ascii=False))

    def load(self) -> AppState | None:
        """Return the last saved snapshot, or None if absent or unreadable."""
        raw = self.get_item(SNAPSHOT_KEY)
        if raw is None:
            return None
        try:
            return AppState.from_document(json.loads(raw))
        except (json.JSONDecodeError, ValidationError, AttributeError) as e:
            logger.warning(f"Discarding unreadable cached snapshot: {e}")
            return None

    # ========================================================================
    # SESSION USER
    # ========================================================================

    def save_user(self, user: User) -> None:
        """Persist the logged-in user."""
        self.set_item(USER_KEY, user.model_dump_json(by_alias=True))

    def load_user(self) -> User | None:
        """Return the persisted user, or None if absent or unreadable."""
        raw = self.get_item(USER_KEY)
        if raw is None:
            return None
        try:
            return User.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable cached user: {e}")
            return None

    def clear_user(self) -> None:
        """Forget the logged-in user; the snapshot is kept."""
        self.remove_item(USER_KEY)

    def ping(self) -> None:
        """Run a trivial query; raises if the cache database is unusable."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def close(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()
