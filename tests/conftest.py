"""
Pytest Configuration and Fixtures

Shared fixtures: an in-memory Supabase (PostgREST + Storage) served through
httpx.MockTransport, an in-memory SQLite cache, and ready-made engines.
"""

import json
import re
from collections import defaultdict
from typing import Any

import httpx
import pytest

from raporpaud.config import Settings
from raporpaud.store import LocalCache, RemoteStore
from raporpaud.sync import SyncEngine

SUPABASE_URL = "https://school.supabase.co"
SUPABASE_KEY = "test-anon-key"

_QUOTED = re.compile(r'"((?:[^"\\]|\\.)*)"')


class FakeSupabase:
    """Just enough of PostgREST and Storage for the remote store client.

    Tables hold snake_case rows keyed by id. Failures are injected per
    (method, table) pair; ``unreachable`` makes every request fail to connect.
    """

    def __init__(self) -> None:
        self.tables: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self.requests: list[httpx.Request] = []
        self.failures: dict[tuple[str, str], tuple[int, str]] = {}
        self.uploads: dict[str, bytes] = {}
        self.unreachable = False

    # Test helpers
    def seed(self, table: str, *rows: dict[str, Any]) -> None:
        for row in rows:
            self.tables[table][str(row["id"])] = dict(row)

    def rows(self, table: str) -> list[dict[str, Any]]:
        return list(self.tables[table].values())

    def fail(self, method: str, table: str, message: str, status: int = 400) -> None:
        self.failures[(method, table)] = (status, message)

    def calls(self, method: str | None = None, table: str | None = None) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if (method is None or r.method == method)
            and (table is None or r.url.path == f"/rest/v1/{table}")
        ]

    # Transport
    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.unreachable:
            raise httpx.ConnectError("Connection refused", request=request)

        path = request.url.path
        if path.startswith("/storage/v1/object/"):
            return self._storage(request, path.removeprefix("/storage/v1/object/"))

        table = path.removeprefix("/rest/v1/")
        failure = self.failures.get((request.method, table))
        if failure is not None:
            status, message = failure
            return httpx.Response(status, json={"message": message})

        rows = self.tables[table]
        params = request.url.params

        if request.method == "GET":
            data = list(rows.values())
            if "limit" in params:
                data = data[: int(params["limit"])]
            return httpx.Response(200, json=data)

        if request.method == "POST":
            payload = json.loads(request.content)
            items = payload if isinstance(payload, list) else [payload]
            merge = "merge-duplicates" in request.headers.get("Prefer", "")
            for item in items:
                row_id = str(item["id"])
                if row_id in rows and not merge:
                    return httpx.Response(
                        409, json={"message": "duplicate key value violates unique constraint"}
                    )
                rows[row_id] = {**rows.get(row_id, {}), **item}
            return httpx.Response(201)

        if request.method == "PATCH":
            payload = json.loads(request.content)
            for row_id in self._matching(rows, params["id"]):
                rows[row_id].update(payload)
            return httpx.Response(204)

        if request.method == "DELETE":
            for row_id in self._matching(rows, params["id"]):
                del rows[row_id]
            return httpx.Response(204)

        return httpx.Response(405, json={"message": "Method not allowed"})

    def _storage(self, request: httpx.Request, object_path: str) -> httpx.Response:
        failure = self.failures.get((request.method, "storage"))
        if failure is not None:
            status, message = failure
            return httpx.Response(status, json={"message": message})
        self.uploads[object_path] = request.content
        return httpx.Response(200, json={"Key": object_path})

    @staticmethod
    def _matching(rows: dict[str, dict[str, Any]], condition: str) -> list[str]:
        op, _, value = condition.partition(".")
        if op == "eq":
            return [value] if value in rows else []
        if op == "neq":
            return [row_id for row_id in rows if row_id != value]
        if op == "in":
            wanted = {m.replace('\\"', '"').replace("\\\\", "\\") for m in _QUOTED.findall(value)}
            return [row_id for row_id in rows if row_id in wanted]
        raise AssertionError(f"Unsupported filter {condition!r}")


@pytest.fixture
def fake_supabase() -> FakeSupabase:
    """Empty in-memory Supabase project."""
    return FakeSupabase()


@pytest.fixture
def cache():
    """In-memory local cache."""
    local_cache = LocalCache("sqlite://")
    yield local_cache
    local_cache.close()


@pytest.fixture
def remote_store(fake_supabase: FakeSupabase, cache: LocalCache) -> RemoteStore:
    """Remote store wired to the fake project."""
    return RemoteStore(
        url=SUPABASE_URL,
        key=SUPABASE_KEY,
        cache=cache,
        transport=httpx.MockTransport(fake_supabase.handler),
    )


@pytest.fixture
def app_settings() -> Settings:
    """Settings with defaults only (no .env, no remote connection)."""
    return Settings(_env_file=None, SUPABASE_URL="", SUPABASE_KEY="")


@pytest.fixture
def engine(remote_store: RemoteStore, cache: LocalCache, app_settings: Settings) -> SyncEngine:
    """Online engine backed by the fake project."""
    return SyncEngine(remote=remote_store, cache=cache, app_settings=app_settings)


@pytest.fixture
def offline_engine(cache: LocalCache, app_settings: Settings) -> SyncEngine:
    """Engine with no remote connection configured."""
    return SyncEngine(remote=RemoteStore(cache=cache), cache=cache, app_settings=app_settings)


@pytest.fixture
def school(fake_supabase: FakeSupabase) -> FakeSupabase:
    """Remote project with one class, two students and two learning objectives.

    Ids are numeric on purpose: older rows were written with integer keys.
    """
    fake_supabase.seed("classes", {"id": 1, "name": "Kelompok A", "teacher_name": "Bu Sari"})
    fake_supabase.seed(
        "students",
        {"id": 11, "name": "Aisyah", "class_id": 1},
        {"id": 12, "name": "Bima", "class_id": 1},
    )
    fake_supabase.seed(
        "tps",
        {"id": 21, "class_id": 1, "category": "Quran", "description": "Membaca Iqro 1"},
        {"id": 22, "class_id": 1, "category": "Hafalan", "description": "Surah Al-Fatihah"},
    )
    fake_supabase.seed(
        "settings",
        {"id": "global_settings", "name": "TK Harapan Bunda", "semester": "2"},
    )
    return fake_supabase
