"""
Remote Store Client

Talks to the school's Supabase project: tables through the PostgREST API,
branding images through the Storage API.

Every operation returns a RemoteResult (or None for reads) instead of
raising, so callers can keep their optimistic local state and report the
message. Field names are translated camelCase <-> snake_case at this
boundary; the learning-objective collection ("TPs") lives in table "tps".
"""

from __future__ import annotations

import asyncio
import logging
import random
import string
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Literal

import httpx

from raporpaud.core.identifiers import normalize_ids
from raporpaud.core.schemas import COLLECTIONS, AppState, SchoolSettings

from .keys import map_keys, table_name, to_camel_case, to_snake_case
from .local_cache import REMOTE_KEY_KEY, REMOTE_URL_KEY, LocalCache
from .settings_codec import pack_settings, unpack_settings

logger = logging.getLogger(__name__)

CONNECT_ERROR_MESSAGE = "Failed to connect to the database."
NOT_CONFIGURED_MESSAGE = "Database connection is not configured."
DEFAULT_ERROR_MESSAGE = "Database error"

# Dependents first so that no row is left pointing at a deleted parent.
CLEAR_ORDER = (
    "assessments",
    "category_results",
    "p5_assessments",
    "reflections",
    "reflection_answers",
    "notes",
    "attendance",
    "students",
    "p5_criteria",
    "reflection_questions",
)

ImageFolder = Literal["students", "school"]


class RemoteStoreError(Exception):
    """The remote store rejected a request."""

    pass


@dataclass(frozen=True)
class RemoteResult:
    """Outcome of a remote write."""

    status: Literal["success", "error"]
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    @classmethod
    def success(cls) -> RemoteResult:
        return cls(status="success")

    @classmethod
    def error(cls, message: str) -> RemoteResult:
        return cls(status="error", message=message)


@dataclass(frozen=True)
class RemoteConfig:
    """Resolved connection settings."""

    url: str
    key: str

    @classmethod
    def resolve(cls, url: str | None, key: str | None) -> RemoteConfig:
        """Clean up a user-entered project URL and key.

        Examples:
            >>> RemoteConfig.resolve(" abc.supabase.co/ ", "k").url
            'https://abc.supabase.co'
        """
        url = (url or "").strip()
        if url:
            if not url.startswith("http"):
                url = f"https://{url}"
            url = url.removesuffix("/")
        return cls(url=url, key=(key or "").strip())

    @property
    def is_configured(self) -> bool:
        """Both values present and the URL is more than a bare scheme."""
        if self.url.rstrip("/") in ("", "http:", "https:"):
            return False
        return bool(self.key) and self.key != "undefined"


class RemoteStore:
    """Client for the Supabase tables and storage bucket."""

    def __init__(
        self,
        *,
        url: str = "",
        key: str = "",
        bucket: str = "images",
        timeout: float = 30.0,
        cache: LocalCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize remote store client.

        Args:
            url: Supabase project URL
            key: Supabase API key
            bucket: Storage bucket for uploaded images
            timeout: Transport timeout in seconds
            cache: Local cache holding runtime connection overrides
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.url = url
        self.key = key
        self.bucket = bucket
        self.timeout = timeout
        self.cache = cache
        self.transport = transport
        self._config: RemoteConfig | None = None

    @classmethod
    def from_settings(cls, cache: LocalCache | None = None) -> RemoteStore:
        """Create client from application settings.

        Returns:
            RemoteStore configured from settings, with cache overrides
        """
        from raporpaud.config import settings

        return cls(
            url=settings.SUPABASE_URL,
            key=settings.SUPABASE_KEY,
            bucket=settings.STORAGE_BUCKET,
            timeout=settings.REMOTE_TIMEOUT_SECONDS,
            cache=cache,
        )

    # ========================================================================
    # CONNECTION
    # ========================================================================

    @property
    def config(self) -> RemoteConfig:
        """Connection settings, preferring overrides saved in the local cache.

        Resolved once and kept until reconfigure().
        """
        if self._config is None:
            url, key = self.url, self.key
            if self.cache is not None:
                url = self.cache.get_item(REMOTE_URL_KEY) or url
                key = self.cache.get_item(REMOTE_KEY_KEY) or key
            self._config = RemoteConfig.resolve(url, key)
        return self._config

    def is_connected(self) -> bool:
        """Whether a remote connection is configured (not whether it is reachable)."""
        return self.config.is_configured

    def reconfigure(self, url: str, key: str) -> None:
        """Point the client at another project.

        With a cache the values are stored as overrides and survive restarts.
        """
        if self.cache is not None:
            self.cache.set_item(REMOTE_URL_KEY, url)
            self.cache.set_item(REMOTE_KEY_KEY, key)
        else:
            self.url, self.key = url, key
        self._config = None
        logger.info(f"Remote store reconfigured: {self.config.url or '<none>'}")

    def _client(self, config: RemoteConfig) -> httpx.AsyncClient:
        headers = {
            "apikey": config.key,
            "Authorization": f"Bearer {config.key}",
        }
        return httpx.AsyncClient(
            base_url=config.url,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    # ========================================================================
    # TABLE WRITES
    # ========================================================================

    async def create(self, collection: str, record: dict[str, Any]) -> RemoteResult:
        """Insert a record into a collection."""
        return await self._write("insert", collection, record)

    async def update(self, collection: str, record: dict[str, Any]) -> RemoteResult:
        """Update the record with the same ``id``."""
        return await self._write("update", collection, record)

    async def delete(self, collection: str, record_id: str) -> RemoteResult:
        """Delete a record by id."""
        return await self._write("delete", collection, {"id": record_id})

    async def upsert(
        self, collection: str, records: dict[str, Any] | list[dict[str, Any]]
    ) -> RemoteResult:
        """Insert or merge one record or a list of records by primary key."""
        return await self._write("upsert", collection, records)

    async def batch_delete(self, collection: str, ids: list[str]) -> RemoteResult:
        """Delete every row whose id is in ``ids`` with a single request.

        Returns success without a request when ``ids`` is empty or no
        connection is configured.
        """
        if not ids or not self.is_connected():
            return RemoteResult.success()

        table = table_name(collection)

        async def call(client: httpx.AsyncClient) -> None:
            await self._request(client, "DELETE", table, params={"id": _in_filter(ids)})

        logger.info(f"Batch deleting {len(ids)} rows from {table}")
        return await self._execute(f"batch delete {table}", call)

    async def save_settings(self, settings: SchoolSettings | dict[str, Any]) -> RemoteResult:
        """Upsert the settings singleton, packing the legacy logo column."""
        document = (
            settings.model_dump(mode="json", by_alias=True)
            if isinstance(settings, SchoolSettings)
            else dict(settings)
        )
        return await self.upsert("settings", pack_settings(document))

    async def _write(
        self,
        op: Literal["insert", "update", "delete", "upsert"],
        collection: str,
        data: dict[str, Any] | list[dict[str, Any]],
    ) -> RemoteResult:
        table = table_name(collection)
        payload = None if op == "delete" else map_keys(data, to_snake_case)

        async def call(client: httpx.AsyncClient) -> None:
            if op == "insert":
                await self._request(client, "POST", table, json=payload)
            elif op == "update":
                assert isinstance(data, dict)
                await self._request(
                    client, "PATCH", table, json=payload, params={"id": f"eq.{data['id']}"}
                )
            elif op == "upsert":
                await self._request(
                    client,
                    "POST",
                    table,
                    json=payload,
                    prefer="resolution=merge-duplicates,return=minimal",
                )
            else:
                assert isinstance(data, dict)
                await self._request(client, "DELETE", table, params={"id": f"eq.{data['id']}"})

        return await self._execute(f"{op} {table}", call)

    # ========================================================================
    # BULK ADMINISTRATION
    # ========================================================================

    async def clear_database(self, keep_learning_objectives: bool = False) -> RemoteResult:
        """Delete every row of every operational table (settings are kept).

        Tables are cleared one by one; the first failure stops the run and
        earlier deletions stay applied.

        Args:
            keep_learning_objectives: Leave the "tps" table untouched
        """
        tables = list(CLEAR_ORDER)
        if not keep_learning_objectives:
            tables.append("tps")
        tables.append("classes")

        async def call(client: httpx.AsyncClient) -> None:
            for table in tables:
                await self._request(client, "DELETE", table, params={"id": "neq.0"})

        logger.warning(f"Clearing remote tables: {', '.join(tables)}")
        return await self._execute("clear database", call)

    async def restore_database(
        self, snapshot: AppState, *, include_settings: bool = True
    ) -> RemoteResult:
        """Replace remote contents with a snapshot.

        Clears all operational tables, writes settings, then upserts every
        collection parent-first. Stops at the first failure without undoing
        the writes already issued.

        Args:
            snapshot: Contents to write
            include_settings: False leaves the remote settings row as it is
                (backups without a settings entry)
        """
        if not self.is_connected():
            return RemoteResult.error(NOT_CONFIGURED_MESSAGE)

        result = await self.clear_database(keep_learning_objectives=False)
        if not result.ok:
            return result

        if include_settings:
            result = await self.save_settings(snapshot.settings)
            if not result.ok:
                return result

        document = snapshot.model_dump(mode="json", by_alias=True, exclude_none=True)
        for spec in COLLECTIONS:
            rows = document.get(spec.key) or []
            if not rows:
                continue
            result = await self.upsert(spec.remote, rows)
            if not result.ok:
                logger.error(f"Restore stopped at {spec.remote}: {result.message}")
                return result

        logger.info("Remote restore completed")
        return RemoteResult.success()

    # ========================================================================
    # READS
    # ========================================================================

    async def fetch_settings(self) -> SchoolSettings | None:
        """Fetch the settings singleton, or None if unavailable."""
        config = self.config
        if not config.is_configured:
            return None
        try:
            async with self._client(config) as client:
                row = await self._fetch_settings_row(client)
            document = unpack_settings(row)
            return SchoolSettings.model_validate(document) if document else None
        except Exception as e:
            logger.error(f"Failed to fetch settings: {e}")
            return None

    async def fetch_all_data(self) -> AppState | None:
        """Fetch every collection concurrently and build a snapshot.

        Returns:
            Snapshot with all identifiers normalized, or None when no
            connection is configured or any read fails
        """
        config = self.config
        if not config.is_configured:
            return None

        try:
            async with self._client(config) as client:
                results = await asyncio.gather(
                    *(self._select_all(client, table_name(spec.remote)) for spec in COLLECTIONS),
                    self._fetch_settings_row(client),
                    return_exceptions=True,
                )
        except Exception as e:
            logger.error(f"Failed to fetch remote data: {e}")
            return None

        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            logger.error(f"Failed to fetch remote data: {failures[0]}")
            return None

        *tables, settings_row = results
        document: dict[str, Any] = {
            spec.key: normalize_ids(map_keys(rows or [], to_camel_case))
            for spec, rows in zip(COLLECTIONS, tables, strict=True)
        }
        document["settings"] = unpack_settings(settings_row)

        try:
            return AppState.from_document(document)
        except ValueError as e:
            logger.error(f"Remote data did not match the snapshot schema: {e}")
            return None

    async def _select_all(self, client: httpx.AsyncClient, table: str) -> list[dict[str, Any]]:
        response = await self._request(client, "GET", table, params={"select": "*"})
        rows = response.json()
        return rows if isinstance(rows, list) else []

    async def _fetch_settings_row(self, client: httpx.AsyncClient) -> dict[str, Any] | None:
        response = await self._request(
            client, "GET", "settings", params={"select": "*", "limit": "1"}
        )
        rows = response.json()
        if not rows:
            return None
        row: dict[str, Any] = map_keys(rows[0], to_camel_case)
        return row

    # ========================================================================
    # STORAGE
    # ========================================================================

    async def upload_image(
        self,
        data: bytes,
        folder: ImageFolder,
        file_name: str | None = None,
        content_type: str = "image/jpeg",
    ) -> str | None:
        """Upload an image and return its public URL.

        Args:
            data: Image bytes
            folder: "students" (photos) or "school" (logos)
            file_name: Object name; defaults to "<epoch-ms>_<random>.<ext>"
            content_type: MIME type of the image

        Returns:
            Public URL of the stored object, or None on failure
        """
        config = self.config
        if not config.is_configured:
            return None

        extension = content_type.split("/")[-1] or "jpg"
        name = file_name or f"{int(time.time() * 1000)}_{_random_token()}.{extension}"
        path = f"{folder}/{name}"

        try:
            async with self._client(config) as client:
                response = await client.post(
                    f"/storage/v1/object/{self.bucket}/{path}",
                    content=data,
                    headers={
                        "Content-Type": content_type,
                        "Cache-Control": "max-age=3600",
                        "x-upsert": "true",
                    },
                )
                if response.status_code >= 400:
                    raise RemoteStoreError(_error_message(response))
        except Exception as e:
            logger.error(f"Image upload failed for {path}: {e}")
            return None

        logger.info(f"Uploaded image {path}")
        return f"{config.url}/storage/v1/object/public/{self.bucket}/{path}"

    # ========================================================================
    # TRANSPORT
    # ========================================================================

    async def _execute(
        self, operation: str, call: Callable[[httpx.AsyncClient], Awaitable[None]]
    ) -> RemoteResult:
        """Run a write against a fresh client and fold every failure into a result."""
        config = self.config
        if not config.is_configured:
            return RemoteResult.error(NOT_CONFIGURED_MESSAGE)

        try:
            async with self._client(config) as client:
                await call(client)
        except httpx.TransportError as e:
            logger.error(f"Remote store unreachable during {operation}: {e}")
            return RemoteResult.error(CONNECT_ERROR_MESSAGE)
        except RemoteStoreError as e:
            logger.error(f"Remote store rejected {operation}: {e}")
            return RemoteResult.error(str(e))
        except Exception as e:
            logger.error(f"Unexpected error during {operation}: {e}")
            return RemoteResult.error(str(e) or DEFAULT_ERROR_MESSAGE)

        logger.debug(f"Remote {operation} succeeded")
        return RemoteResult.success()

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        table: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        prefer: str = "return=minimal",
    ) -> httpx.Response:
        """Send one PostgREST request.

        Raises:
            RemoteStoreError: If the store answered with an error status
            httpx.TransportError: If the store could not be reached
        """
        response = await client.request(
            method,
            f"/rest/v1/{table}",
            params=params,
            json=json,
            headers={"Prefer": prefer},
        )
        if response.status_code >= 400:
            raise RemoteStoreError(_error_message(response))
        return response


def _error_message(response: httpx.Response) -> str:
    """Extract the store's error message from a failed response."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"{DEFAULT_ERROR_MESSAGE} ({response.status_code})"
    if isinstance(body, dict):
        message = body.get("message") or body.get("error") or body.get("msg")
        if message:
            return str(message)
    return f"{DEFAULT_ERROR_MESSAGE} ({response.status_code})"


def _in_filter(ids: list[str]) -> str:
    """PostgREST ``in`` filter with every value quoted.

    Examples:
        >>> _in_filter(["a", "b"])
        'in.("a","b")'
    """
    quoted = ",".join('"' + str(i).replace("\\", "\\\\").replace('"', '\\"') + '"' for i in ids)
    return f"in.({quoted})"


def _random_token(length: int = 6) -> str:
    alphabet = string.ascii_lowercase + string.digits
    return "".join(random.choices(alphabet, k=length))
