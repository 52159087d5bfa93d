"""
Records API

The mutation contract used by every page: simple CRUD, natural-key upserts,
school settings, per-class data resets and image uploads.

Writes follow the engine's optimistic policy. A change is applied locally
and the response reports what the remote store made of it; a remote failure
is not an HTTP error and the local change stays.
"""

from enum import Enum
from typing import Any, Literal

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field, ValidationError

from raporpaud.api.deps import get_engine
from raporpaud.core.identifiers import make_timestamp_id, normalize_id
from raporpaud.store import RemoteResult
from raporpaud.sync import SyncEngine

router = APIRouter(tags=["records"])


class SimpleCollection(str, Enum):
    """Collections edited with add/update/delete."""

    CLASSES = "classes"
    STUDENTS = "students"
    TPS = "tps"
    P5_CRITERIA = "p5-criteria"
    REFLECTIONS = "reflections"
    REFLECTION_QUESTIONS = "reflection-questions"


class UpsertCollection(str, Enum):
    """Collections written by natural key."""

    ASSESSMENTS = "assessments"
    CATEGORY_RESULTS = "category-results"
    P5_ASSESSMENTS = "p5-assessments"
    REFLECTION_ANSWERS = "reflection-answers"
    NOTES = "notes"
    ATTENDANCE = "attendance"


class ImageFolderName(str, Enum):
    STUDENTS = "students"
    SCHOOL = "school"


# Path segment -> (snapshot field, engine method suffix)
SIMPLE_COLLECTIONS: dict[SimpleCollection, tuple[str, str]] = {
    SimpleCollection.CLASSES: ("classes", "class"),
    SimpleCollection.STUDENTS: ("students", "student"),
    SimpleCollection.TPS: ("learning_objectives", "learning_objective"),
    SimpleCollection.P5_CRITERIA: ("p5_criteria", "p5_criteria"),
    SimpleCollection.REFLECTIONS: ("reflections", "reflection"),
    SimpleCollection.REFLECTION_QUESTIONS: ("reflection_questions", "reflection_question"),
}

# Path segment -> (snapshot field, engine method)
UPSERT_COLLECTIONS: dict[UpsertCollection, tuple[str, str]] = {
    UpsertCollection.ASSESSMENTS: ("assessments", "upsert_assessment"),
    UpsertCollection.CATEGORY_RESULTS: ("category_results", "upsert_category_result"),
    UpsertCollection.P5_ASSESSMENTS: ("p5_assessments", "upsert_p5_assessment"),
    UpsertCollection.REFLECTION_ANSWERS: ("reflection_answers", "upsert_reflection_answer"),
    UpsertCollection.NOTES: ("notes", "upsert_note"),
    UpsertCollection.ATTENDANCE: ("attendance", "upsert_attendance"),
}


# Pydantic models
class WriteResponse(BaseModel):
    """Local write applied; remote outcome alongside."""

    id: str
    remote: Literal["success", "error", "skipped"]
    message: str | None = None


class ClearRequest(BaseModel):
    """Category whose intracurricular data is removed from a class."""

    category: str = Field(..., min_length=1, max_length=100)


class ClearResponse(BaseModel):
    """Outcome of a per-class reset."""

    cleared: bool


class ImageResponse(BaseModel):
    """Public URL of an uploaded image."""

    url: str


def _write_response(record_id: str, result: RemoteResult | None) -> WriteResponse:
    if result is None:
        return WriteResponse(id=record_id, remote="skipped")
    return WriteResponse(id=record_id, remote=result.status, message=result.message)


def _invalid(e: ValidationError) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail=e.errors(include_url=False, include_context=False, include_input=False),
    )


def _with_id(record: dict[str, Any]) -> dict[str, Any]:
    if record.get("id") in (None, ""):
        return {**record, "id": make_timestamp_id()}
    return record


def _last_error(engine: SyncEngine, default: str) -> str:
    errors = engine.notifications.errors
    return errors[-1].message if errors else default


@router.post("/records/{collection}", response_model=WriteResponse, status_code=201)
async def add_record(
    collection: SimpleCollection,
    record: dict[str, Any] = Body(...),  # noqa: B008
    engine: SyncEngine = Depends(get_engine),  # noqa: B008
) -> WriteResponse:
    """
    Add a record to a simple collection.

    A missing id is generated from the current time.
    """
    _, suffix = SIMPLE_COLLECTIONS[collection]
    record = _with_id(record)
    try:
        result = await getattr(engine, f"add_{suffix}")(record)
    except ValidationError as e:
        raise _invalid(e) from e
    return _write_response(normalize_id(record["id"]), result)


@router.put("/records/{collection}/{record_id}", response_model=WriteResponse)
async def update_record(
    collection: SimpleCollection,
    record_id: str,
    record: dict[str, Any] = Body(...),  # noqa: B008
    engine: SyncEngine = Depends(get_engine),  # noqa: B008
) -> WriteResponse:
    """Replace a record; the id in the path wins over the body."""
    field, suffix = SIMPLE_COLLECTIONS[collection]
    if engine.find_record(field, record_id) is None:
        raise HTTPException(status_code=404, detail=f"{collection.value} {record_id} not found")

    try:
        result = await getattr(engine, f"update_{suffix}")({**record, "id": record_id})
    except ValidationError as e:
        raise _invalid(e) from e
    return _write_response(record_id, result)


@router.delete("/records/{collection}/{record_id}", response_model=WriteResponse)
async def delete_record(
    collection: SimpleCollection,
    record_id: str,
    engine: SyncEngine = Depends(get_engine),  # noqa: B008
) -> WriteResponse:
    """Delete a record. Dependent records are left for the orphan cleanup."""
    field, suffix = SIMPLE_COLLECTIONS[collection]
    if engine.find_record(field, record_id) is None:
        raise HTTPException(status_code=404, detail=f"{collection.value} {record_id} not found")

    result = await getattr(engine, f"delete_{suffix}")(record_id)
    return _write_response(record_id, result)


@router.put("/records/{collection}", response_model=WriteResponse)
async def upsert_record(
    collection: UpsertCollection,
    record: dict[str, Any] = Body(...),  # noqa: B008
    engine: SyncEngine = Depends(get_engine),  # noqa: B008
) -> WriteResponse:
    """
    Create or replace a record by its natural key.

    When a record with the same key exists it keeps its id, which is the id
    returned here.
    """
    field, method = UPSERT_COLLECTIONS[collection]
    record = _with_id(record)
    try:
        record_id = engine.natural_key_id(field, record)
        result = await getattr(engine, method)(record)
    except ValidationError as e:
        raise _invalid(e) from e
    return _write_response(record_id, result)


@router.put("/settings", response_model=WriteResponse)
async def update_settings(
    settings: dict[str, Any] = Body(...),  # noqa: B008
    engine: SyncEngine = Depends(get_engine),  # noqa: B008
) -> WriteResponse:
    """Replace the school settings singleton."""
    try:
        result = await engine.set_settings(settings)
    except ValidationError as e:
        raise _invalid(e) from e
    return _write_response("global_settings", result)


@router.post("/classes/{class_id}/clear-intra", response_model=ClearResponse)
async def clear_intra(
    class_id: str,
    data: ClearRequest,
    engine: SyncEngine = Depends(get_engine),  # noqa: B008
) -> ClearResponse:
    """Remove one category's assessments and results for every student of a class."""
    if not await engine.clear_class_intra_data(class_id, data.category):
        raise HTTPException(status_code=502, detail=_last_error(engine, "Failed to reset data"))
    return ClearResponse(cleared=True)


@router.post("/classes/{class_id}/clear-p5", response_model=ClearResponse)
async def clear_p5(
    class_id: str,
    engine: SyncEngine = Depends(get_engine),  # noqa: B008
) -> ClearResponse:
    """Remove the P5 assessments of every student of a class."""
    if not await engine.clear_class_p5_data(class_id):
        raise HTTPException(status_code=502, detail=_last_error(engine, "Failed to reset data"))
    return ClearResponse(cleared=True)


@router.post("/images/{folder}", response_model=ImageResponse, status_code=201)
async def upload_image(
    folder: ImageFolderName,
    request: Request,
    file_name: str | None = Query(None, max_length=200),
    engine: SyncEngine = Depends(get_engine),  # noqa: B008
) -> ImageResponse:
    """
    Upload a student photo or school logo.

    The request body is the raw image; its Content-Type is kept.
    """
    data = await request.body()
    if not data:
        raise HTTPException(status_code=400, detail="Image data is empty")
    if not engine.is_online:
        raise HTTPException(status_code=503, detail="Database connection is not configured.")

    content_type = request.headers.get("content-type") or "image/jpeg"
    url = await engine.upload_image(data, folder.value, file_name, content_type)
    if url is None:
        raise HTTPException(status_code=502, detail="Image upload failed.")
    return ImageResponse(url=url)
