"""
State Synchronization Engine

Owns the in-memory application snapshot and every way to change it.

Write policy (optimistic, no rollback):
1. Normalize the record's identifiers
2. Apply the change to the in-memory snapshot and persist it locally
3. If a remote connection is configured, send the matching remote write
4. On remote failure, publish an error notification; the local change stays

Local and remote may diverge after a failed write until the next
refresh_data(). Bulk administrative flows (reset, restore, cleanup) stop at
their first failed remote step and report it; earlier steps are not undone.

The engine assumes a single operator on one event loop: mutations are not
locked against each other.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterator, Mapping
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from raporpaud.core.accounts import authenticate
from raporpaud.core.identifiers import normalize_ids
from raporpaud.core.schemas import (
    COLLECTIONS,
    COLLECTIONS_BY_FIELD,
    AppState,
    Assessment,
    AttendanceData,
    CategoryResult,
    CollectionSpec,
    EntityBase,
    P5Assessment,
    ReflectionAnswer,
    SchoolSettings,
    StudentNote,
    User,
)

from .auditor import compute_orphans, count_orphans
from .backup import BackupError, build_backup, parse_backup, read_backup
from .confirmation import ConfirmationWorkflow, ConfirmVariant
from .notifications import Notification, NotificationCenter

if TYPE_CHECKING:
    import asyncio

    from raporpaud.config import Settings
    from raporpaud.store import LocalCache, RemoteResult, RemoteStore
    from raporpaud.store.remote import ImageFolder

logger = logging.getLogger(__name__)

Record = EntityBase | Mapping[str, Any]

COLLECTIONS_BY_KEY: dict[str, CollectionSpec] = {spec.key: spec for spec in COLLECTIONS}


class SyncError(Exception):
    """A remote step of a bulk flow failed; the remaining steps are skipped."""

    pass


class SyncEngine:
    """Single owner of the application snapshot.

    Readers get copies through ``state``; all changes go through the
    mutators below.
    """

    def __init__(
        self,
        *,
        remote: RemoteStore,
        cache: LocalCache,
        app_settings: Settings | None = None,
        notifier: Callable[[Notification], None] | None = None,
    ):
        """Initialize engine with an empty snapshot.

        Args:
            remote: Remote store client (may be unconfigured: offline mode)
            cache: Local persistence cache
            app_settings: Application settings (role passwords); defaults
                          to the global settings
            notifier: Called with every notification as it is published
        """
        if app_settings is None:
            from raporpaud.config import settings as app_settings

        self.remote = remote
        self.cache = cache
        self.app_settings = app_settings
        self.notifications = NotificationCenter(listener=notifier)
        self.confirmation = ConfirmationWorkflow()
        self._state = AppState()
        self._loading = 0
        self._natural_indexes: dict[str, dict[tuple[str, ...], int]] = {}

    @classmethod
    def from_settings(cls) -> SyncEngine:
        """Create engine, cache and remote client from application settings."""
        from raporpaud.store import LocalCache, RemoteStore

        cache = LocalCache.from_settings()
        return cls(remote=RemoteStore.from_settings(cache), cache=cache)

    # ========================================================================
    # READ-ONLY VIEWS
    # ========================================================================

    @property
    def state(self) -> AppState:
        """Deep copy of the current snapshot."""
        return self._state.model_copy(deep=True)

    def snapshot(self) -> dict[str, Any]:
        """Current snapshot as a camelCase document."""
        return self._state.to_document()

    @property
    def user(self) -> User | None:
        return self._state.user.model_copy() if self._state.user else None

    @property
    def settings(self) -> SchoolSettings:
        return self._state.settings.model_copy(deep=True)

    @property
    def is_online(self) -> bool:
        return self.remote.is_connected()

    @property
    def is_loading(self) -> bool:
        return self._loading > 0

    def find_record(self, field: str, record_id: str) -> EntityBase | None:
        """Return a copy of one record of a collection, or None."""
        record_id = str(record_id)
        for item in self._state.collection(field):
            if item.id == record_id:
                return item.model_copy(deep=True)
        return None

    def natural_key_id(self, field: str, record: Record) -> str:
        """Id an upsert of ``record`` is stored under.

        The id of the record already holding the same natural key, else the
        record's own (normalized) id.

        Raises:
            ValidationError: If the record does not fit the collection
        """
        spec = COLLECTIONS_BY_FIELD[field]
        entity = _coerce(spec, record)
        position = self._natural_index(spec).get(_natural_key(spec, entity))
        if position is None:
            return entity.id
        return self._state.collection(field)[position].id

    @contextmanager
    def _loading_scope(self) -> Iterator[None]:
        self._loading += 1
        try:
            yield
        finally:
            self._loading -= 1

    # ========================================================================
    # STARTUP AND SESSION
    # ========================================================================

    async def start(self) -> None:
        """Load-on-start.

        Restores the persisted user, pulls settings when online, then loads
        the session data if somebody is logged in.
        """
        user = self.cache.load_user()
        if user is not None:
            self._state.user = user

        if self.is_online:
            remote_settings = await self.remote.fetch_settings()
            if remote_settings is not None:
                self._state.settings = remote_settings

        if self._state.user is not None:
            await self.load_session()

        logger.info(
            f"Engine started ({'online' if self.is_online else 'offline'})",
            extra={"user": self._state.user.username if self._state.user else None},
        )

    async def load_session(self) -> None:
        """Fill the snapshot for the logged-in user.

        Online: full remote fetch. Offline, or when the fetch fails: the last
        cached snapshot (stale but available).
        """
        if self.is_online and await self.refresh_data():
            return

        cached = self.cache.load()
        if cached is None:
            logger.info("No cached snapshot to load")
            return

        cached.user = self._state.user
        self._replace_state(cached)
        logger.info("Loaded snapshot from local cache")

    async def login(self, username: str, password: str) -> bool:
        """Log in with one of the fixed role accounts.

        Returns:
            True if the credentials matched
        """
        user = authenticate(username, password, self.app_settings)
        if user is None:
            logger.info(f"Rejected login for {username!r}")
            return False

        self._state.user = user
        self.cache.save_user(user)
        await self.load_session()
        self._persist()
        logger.info(f"User {user.username} logged in as {user.role}")
        return True

    def logout(self) -> None:
        """Forget the current user. The cached snapshot is kept."""
        self._state.user = None
        self.cache.clear_user()

    async def connect(self, url: str, key: str) -> bool:
        """Point the engine at another remote project and reload from it.

        Returns:
            True if the new connection served a fresh snapshot
        """
        self.remote.reconfigure(url, key)
        if not self.is_online:
            return False
        remote_settings = await self.remote.fetch_settings()
        if remote_settings is not None:
            self._state.settings = remote_settings
            self._persist()
        if self._state.user is None:
            return remote_settings is not None
        return await self.refresh_data()

    # ========================================================================
    # CONFIRMATION
    # ========================================================================

    def confirm_action(
        self,
        message: str,
        title: str = "Confirm Delete",
        confirm_label: str = "Yes, Delete Data",
        variant: ConfirmVariant = "danger",
    ) -> asyncio.Future[bool]:
        """Ask the operator to confirm; await the result for True/False."""
        return self.confirmation.request(message, title, confirm_label, variant)

    def handle_confirm_modal_confirm(self) -> None:
        self.confirmation.confirm()

    def handle_confirm_modal_cancel(self) -> None:
        self.confirmation.cancel()

    # ========================================================================
    # CLASSES, STUDENTS, LEARNING OBJECTIVES
    # ========================================================================

    async def add_class(self, record: Record) -> RemoteResult | None:
        return await self._add("classes", record)

    async def update_class(self, record: Record) -> RemoteResult | None:
        return await self._update("classes", record)

    async def delete_class(self, class_id: str) -> RemoteResult | None:
        return await self._delete("classes", class_id)

    async def add_student(self, record: Record) -> RemoteResult | None:
        return await self._add("students", record)

    async def update_student(self, record: Record) -> RemoteResult | None:
        return await self._update("students", record)

    async def delete_student(self, student_id: str) -> RemoteResult | None:
        return await self._delete("students", student_id)

    async def add_learning_objective(self, record: Record) -> RemoteResult | None:
        return await self._add("learning_objectives", record)

    async def update_learning_objective(self, record: Record) -> RemoteResult | None:
        return await self._update("learning_objectives", record)

    async def delete_learning_objective(self, tp_id: str) -> RemoteResult | None:
        return await self._delete("learning_objectives", tp_id)

    # ========================================================================
    # P5 AND REFLECTIONS
    # ========================================================================

    async def add_p5_criteria(self, record: Record) -> RemoteResult | None:
        return await self._add("p5_criteria", record)

    async def update_p5_criteria(self, record: Record) -> RemoteResult | None:
        return await self._update("p5_criteria", record)

    async def delete_p5_criteria(self, criteria_id: str) -> RemoteResult | None:
        return await self._delete("p5_criteria", criteria_id)

    async def add_reflection(self, record: Record) -> RemoteResult | None:
        return await self._add("reflections", record)

    async def update_reflection(self, record: Record) -> RemoteResult | None:
        return await self._update("reflections", record)

    async def delete_reflection(self, reflection_id: str) -> RemoteResult | None:
        return await self._delete("reflections", reflection_id)

    async def add_reflection_question(self, record: Record) -> RemoteResult | None:
        return await self._add("reflection_questions", record)

    async def update_reflection_question(self, record: Record) -> RemoteResult | None:
        return await self._update("reflection_questions", record)

    async def delete_reflection_question(self, question_id: str) -> RemoteResult | None:
        return await self._delete("reflection_questions", question_id)

    # ========================================================================
    # NATURAL-KEY UPSERTS
    # ========================================================================

    async def upsert_assessment(
        self, record: Assessment | Mapping[str, Any]
    ) -> RemoteResult | None:
        """Keyed by (student_id, tp_id)."""
        return await self._upsert("assessments", record)

    async def upsert_category_result(
        self, record: CategoryResult | Mapping[str, Any]
    ) -> RemoteResult | None:
        """Keyed by (student_id, category)."""
        return await self._upsert("category_results", record)

    async def upsert_p5_assessment(
        self, record: P5Assessment | Mapping[str, Any]
    ) -> RemoteResult | None:
        """Keyed by (student_id, criteria_id)."""
        return await self._upsert("p5_assessments", record)

    async def upsert_reflection_answer(
        self, record: ReflectionAnswer | Mapping[str, Any]
    ) -> RemoteResult | None:
        """Keyed by (question_id, student_id)."""
        return await self._upsert("reflection_answers", record)

    async def upsert_note(self, record: StudentNote | Mapping[str, Any]) -> RemoteResult | None:
        """One note per student."""
        return await self._upsert("notes", record)

    async def upsert_attendance(
        self, record: AttendanceData | Mapping[str, Any]
    ) -> RemoteResult | None:
        """One attendance row per student."""
        return await self._upsert("attendance", record)

    # ========================================================================
    # SETTINGS
    # ========================================================================

    async def set_settings(
        self, settings: SchoolSettings | Mapping[str, Any]
    ) -> RemoteResult | None:
        """Replace the settings singleton and save it remotely.

        The in-memory settings are replaced whatever the remote outcome.
        """
        new_settings = (
            settings.model_copy(deep=True)
            if isinstance(settings, SchoolSettings)
            else SchoolSettings.model_validate(dict(settings))
        )
        self._state.settings = new_settings
        self._persist()
        return await self._push(lambda: self.remote.save_settings(new_settings))

    # ========================================================================
    # IMAGES
    # ========================================================================

    async def upload_image(
        self,
        data: bytes,
        folder: ImageFolder,
        file_name: str | None = None,
        content_type: str = "image/jpeg",
    ) -> str | None:
        """Store a student photo or school logo and return its public URL.

        Returns None offline; a failed upload is also reported.
        """
        if not self.is_online:
            return None
        url = await self.remote.upload_image(data, folder, file_name, content_type)
        if url is None:
            self.notifications.error("Image upload failed.")
        return url

    # ========================================================================
    # REFRESH AND BULK OPERATIONS
    # ========================================================================

    async def refresh_data(self) -> bool:
        """Replace the snapshot with a full remote fetch.

        No-op when offline. The current user is preserved.

        Returns:
            True if a fresh snapshot was applied
        """
        if not self.is_online:
            return False

        with self._loading_scope():
            data = await self.remote.fetch_all_data()
            if data is None:
                logger.warning("Remote fetch failed; keeping current snapshot")
                return False

            # Re-normalize: older rows may carry numeric references.
            fresh = AppState.from_document(data.to_document())
            fresh.user = self._state.user
            self._replace_state(fresh)
            logger.info("Snapshot refreshed from remote store")
            return True

    async def clear_class_intra_data(self, class_id: str, category: str) -> bool:
        """Delete the assessments and category results of one class and category.

        Args:
            class_id: Class whose students are affected
            category: Learning-objective category to clear

        Returns:
            True if every deletion succeeded
        """
        with self._loading_scope():
            student_ids = self._student_ids_in_class(class_id)
            tp_categories = {tp.id: tp.category for tp in self._state.learning_objectives}

            assessment_ids = [
                a.id
                for a in self._state.assessments
                if a.student_id in student_ids and tp_categories.get(a.tp_id) == category
            ]
            result_ids = [
                r.id
                for r in self._state.category_results
                if r.student_id in student_ids and r.category == category
            ]

            try:
                await self._delete_many(COLLECTIONS_BY_FIELD["assessments"], assessment_ids)
                await self._delete_many(COLLECTIONS_BY_FIELD["category_results"], result_ids)
            except SyncError as e:
                self.notifications.error(f"Failed to reset data: {e}")
                return False

            await self.refresh_data()
            return True

    async def clear_class_p5_data(self, class_id: str) -> bool:
        """Delete every P5 assessment of the students of one class."""
        with self._loading_scope():
            student_ids = self._student_ids_in_class(class_id)
            assessment_ids = [
                a.id for a in self._state.p5_assessments if a.student_id in student_ids
            ]

            try:
                await self._delete_many(COLLECTIONS_BY_FIELD["p5_assessments"], assessment_ids)
            except SyncError as e:
                self.notifications.error(f"Failed to reset data: {e}")
                return False

            await self.refresh_data()
            return True

    async def handle_reset_system(self, keep_learning_objectives: bool) -> bool:
        """Wipe all operational data; the user and settings are kept.

        Args:
            keep_learning_objectives: Keep learning objectives locally and remotely

        Returns:
            True if the reset went through
        """
        with self._loading_scope():
            if self.is_online:
                result = await self.remote.clear_database(keep_learning_objectives)
                if not result.ok:
                    self.notifications.error(f"Reset failed: {result.message}")
                    return False

            previous = self._state
            self._replace_state(
                AppState(
                    user=previous.user,
                    settings=previous.settings,
                    learning_objectives=(
                        previous.learning_objectives if keep_learning_objectives else []
                    ),
                )
            )
            self.notifications.info("System has been reset.")
            await self.refresh_data()
            return True

    async def cleanup_orphan_data(self) -> int:
        """Delete records whose references no longer resolve, after confirmation.

        Returns:
            Number of records deleted (0 when clean, cancelled or failed)
        """
        with self._loading_scope():
            orphans = compute_orphans(self._state)
            total = count_orphans(orphans)
            if total == 0:
                self.notifications.info("Database is already clean. No orphaned records found.")
                return 0

            confirmed = await self.confirm_action(
                f"Found {total} orphaned records (no valid reference). "
                "Delete them to clean up the database?",
                "Database Cleanup",
                "Yes, Clean Up",
            )
            if not confirmed:
                logger.info(f"Orphan cleanup of {total} records cancelled")
                return 0

            try:
                for key, ids in orphans.items():
                    await self._delete_many(COLLECTIONS_BY_KEY[key], ids)
            except SyncError as e:
                self.notifications.error(f"Cleanup failed: {e}")
                return 0

            self.notifications.info(f"Cleanup finished: {total} records removed.")
            await self.refresh_data()
            return total

    # ========================================================================
    # BACKUP AND RESTORE
    # ========================================================================

    def handle_backup(self) -> str:
        """Export the whole snapshot as a backup document."""
        return build_backup(self._state)

    async def handle_restore(self, document: str | bytes | dict[str, Any]) -> bool:
        """Replace all data with the contents of a backup document.

        Online, the remote tables are cleared and rewritten first. The current
        session's user is kept; the document's user is ignored. Settings are
        only replaced when the document has a settings entry.

        Returns:
            True if the restore completed
        """
        with self._loading_scope():
            try:
                data = read_backup(document)
                restored = parse_backup(data)
                has_settings = bool(data.get("settings"))
                if self.is_online:
                    result = await self.remote.restore_database(
                        restored, include_settings=has_settings
                    )
                    if not result.ok:
                        raise SyncError(result.message)
            except (BackupError, SyncError) as e:
                self.notifications.error(f"Restore failed: {e}")
                return False

            restored.user = self._state.user
            if not has_settings:
                restored.settings = self._state.settings
            self._replace_state(restored)
            self.notifications.info("Data restored.")
            await self.refresh_data()
            return True

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _persist(self) -> None:
        """Write the snapshot to the local cache while a session is active."""
        if self._state.user is not None:
            self.cache.save(self._state)

    def _replace_state(self, state: AppState) -> None:
        self._state = state
        self._natural_indexes.clear()
        self._persist()

    async def _push(
        self, call: Callable[[], Awaitable[RemoteResult]]
    ) -> RemoteResult | None:
        """Send a remote write if online and report a failure."""
        if not self.is_online:
            return None
        result = await call()
        if not result.ok:
            self.notifications.error(f"Error: {result.message}")
        return result

    async def _add(self, field: str, record: Record) -> RemoteResult | None:
        spec = COLLECTIONS_BY_FIELD[field]
        entity = _coerce(spec, record)
        self._state.collection(field).append(entity)
        self._natural_indexes.pop(field, None)
        self._persist()
        return await self._push(lambda: self.remote.create(spec.remote, _dump(entity)))

    async def _update(self, field: str, record: Record) -> RemoteResult | None:
        spec = COLLECTIONS_BY_FIELD[field]
        entity = _coerce(spec, record)
        items = self._state.collection(field)
        items[:] = [entity if item.id == entity.id else item for item in items]
        self._natural_indexes.pop(field, None)
        self._persist()
        return await self._push(lambda: self.remote.update(spec.remote, _dump(entity)))

    async def _delete(self, field: str, record_id: str) -> RemoteResult | None:
        spec = COLLECTIONS_BY_FIELD[field]
        record_id = str(record_id)
        items = self._state.collection(field)
        items[:] = [item for item in items if item.id != record_id]
        self._natural_indexes.pop(field, None)
        self._persist()
        return await self._push(lambda: self.remote.delete(spec.remote, record_id))

    async def _upsert(self, field: str, record: Record) -> RemoteResult | None:
        spec = COLLECTIONS_BY_FIELD[field]
        entity = _coerce(spec, record)
        items = self._state.collection(field)
        index = self._natural_index(spec)
        key = _natural_key(spec, entity)

        position = index.get(key)
        exists = position is not None
        if position is not None:
            existing_id = items[position].id
            if existing_id != entity.id:
                # The remote update is addressed by id, so keep the stored one.
                entity = entity.model_copy(update={"id": existing_id})
            items[position] = entity
        else:
            index[key] = len(items)
            items.append(entity)
        self._persist()

        if exists:
            return await self._push(lambda: self.remote.update(spec.remote, _dump(entity)))
        return await self._push(lambda: self.remote.create(spec.remote, _dump(entity)))

    def _natural_index(self, spec: CollectionSpec) -> dict[tuple[str, ...], int]:
        """Natural key -> list position; the first record wins on duplicates."""
        index = self._natural_indexes.get(spec.field)
        if index is None:
            index = {}
            for position, item in enumerate(self._state.collection(spec.field)):
                index.setdefault(_natural_key(spec, item), position)
            self._natural_indexes[spec.field] = index
        return index

    async def _delete_many(self, spec: CollectionSpec, ids: list[str]) -> None:
        """Batch-delete remotely, then drop the same records locally.

        Raises:
            SyncError: If the remote batch delete failed
        """
        if not ids:
            return
        result = await self.remote.batch_delete(spec.remote, ids)
        if not result.ok:
            raise SyncError(result.message)

        doomed = set(ids)
        items = self._state.collection(spec.field)
        items[:] = [item for item in items if item.id not in doomed]
        self._natural_indexes.pop(spec.field, None)
        self._persist()

    def _student_ids_in_class(self, class_id: str) -> set[str]:
        class_id = str(class_id)
        return {s.id for s in self._state.students if s.class_id == class_id}


def _coerce(spec: CollectionSpec, record: Record) -> EntityBase:
    """Validate a caller-supplied record with all identifiers as strings."""
    data = record.model_dump(by_alias=True) if isinstance(record, BaseModel) else dict(record)
    return spec.model.model_validate(normalize_ids(data))


def _dump(entity: EntityBase) -> dict[str, Any]:
    """Remote payload; unset optional fields are left out rather than sent as null."""
    return entity.model_dump(mode="json", by_alias=True, exclude_none=True)


def _natural_key(spec: CollectionSpec, entity: EntityBase) -> tuple[str, ...]:
    return tuple(str(getattr(entity, attr)) for attr in spec.natural_key)
