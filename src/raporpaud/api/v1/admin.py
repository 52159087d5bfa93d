"""
Administration API

Orphan audit and cleanup, backups, restore and the new-academic-year reset.

Destructive actions wait for the operator: POST /cleanup and POST /reset
answer "awaiting_confirmation" and keep running in the background until
POST /confirmation/confirm or /confirmation/cancel resolves them.
"""

import asyncio
from collections.abc import Coroutine
from typing import Any, Literal

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from fastapi.responses import Response
from pydantic import BaseModel

from raporpaud.api.deps import get_engine
from raporpaud.sync import SyncEngine, backup_filename, compute_orphans, count_orphans

router = APIRouter(prefix="/admin", tags=["admin"])

RESET_WARNING = (
    "DANGER!\n\nYou are about to delete ALL DATA to start a new academic year. Continue?"
)


# Pydantic models
class OrphanReport(BaseModel):
    """Orphaned record ids per collection."""

    orphans: dict[str, list[str]]
    total: int


class ConfirmationResponse(BaseModel):
    """State of the shared confirmation dialog."""

    open: bool
    message: str | None = None
    title: str | None = None
    confirm_label: str | None = None
    variant: str | None = None


class ActionResponse(BaseModel):
    """Outcome of a (possibly confirmation-guarded) administrative action."""

    status: Literal["awaiting_confirmation", "completed", "cancelled"]
    result: Any = None
    confirmation: ConfirmationResponse | None = None


class ResetRequest(BaseModel):
    """New-academic-year reset options."""

    keep_learning_objectives: bool = False


class RestoreResponse(BaseModel):
    """Outcome of a restore."""

    restored: bool


def _confirmation_view(engine: SyncEngine) -> ConfirmationResponse:
    current = engine.confirmation.current
    if current is None:
        return ConfirmationResponse(open=False)
    return ConfirmationResponse(
        open=True,
        message=current.message,
        title=current.title,
        confirm_label=current.confirm_label,
        variant=current.variant,
    )


async def _start_guarded(
    request: Request, engine: SyncEngine, action: Coroutine[Any, Any, Any]
) -> ActionResponse:
    """Run an action until it blocks on confirmation (or finishes)."""
    task = asyncio.create_task(action)
    # One loop turn is enough for the action to open its confirmation.
    await asyncio.sleep(0)
    if task.done():
        return ActionResponse(status="completed", result=task.result())

    request.app.state.pending_action = task
    return ActionResponse(status="awaiting_confirmation", confirmation=_confirmation_view(engine))


async def _reset_after_confirmation(engine: SyncEngine, keep_learning_objectives: bool) -> bool:
    if not await engine.confirm_action(RESET_WARNING):
        return False
    return await engine.handle_reset_system(keep_learning_objectives)


async def _resolve(request: Request, engine: SyncEngine, confirmed: bool) -> ActionResponse:
    if not engine.confirmation.is_open:
        raise HTTPException(status_code=409, detail="No confirmation is pending")

    if confirmed:
        engine.handle_confirm_modal_confirm()
    else:
        engine.handle_confirm_modal_cancel()

    task: asyncio.Task[Any] | None = getattr(request.app.state, "pending_action", None)
    request.app.state.pending_action = None
    result = await task if task is not None else None
    return ActionResponse(status="completed" if confirmed else "cancelled", result=result)


@router.get("/orphans", response_model=OrphanReport)
async def get_orphans(
    engine: SyncEngine = Depends(get_engine),  # noqa: B008
) -> OrphanReport:
    """Audit referential integrity of the current snapshot."""
    orphans = compute_orphans(engine.state)
    return OrphanReport(orphans=orphans, total=count_orphans(orphans))


@router.post("/cleanup", response_model=ActionResponse)
async def cleanup(
    request: Request,
    engine: SyncEngine = Depends(get_engine),  # noqa: B008
) -> ActionResponse:
    """
    Delete orphaned records.

    Completes immediately with result=0 when the snapshot is clean;
    otherwise waits for confirmation. The final result is the number of
    records deleted.
    """
    return await _start_guarded(request, engine, engine.cleanup_orphan_data())


@router.post("/reset", response_model=ActionResponse)
async def reset(
    request: Request,
    data: ResetRequest,
    engine: SyncEngine = Depends(get_engine),  # noqa: B008
) -> ActionResponse:
    """Wipe operational data for a new academic year, after confirmation."""
    return await _start_guarded(
        request, engine, _reset_after_confirmation(engine, data.keep_learning_objectives)
    )


@router.get("/confirmation", response_model=ConfirmationResponse)
async def get_confirmation(
    engine: SyncEngine = Depends(get_engine),  # noqa: B008
) -> ConfirmationResponse:
    """Return the pending confirmation, if any."""
    return _confirmation_view(engine)


@router.post("/confirmation/confirm", response_model=ActionResponse)
async def confirm(
    request: Request,
    engine: SyncEngine = Depends(get_engine),  # noqa: B008
) -> ActionResponse:
    """Confirm the pending action and wait for it to finish."""
    return await _resolve(request, engine, confirmed=True)


@router.post("/confirmation/cancel", response_model=ActionResponse)
async def cancel(
    request: Request,
    engine: SyncEngine = Depends(get_engine),  # noqa: B008
) -> ActionResponse:
    """Cancel the pending action."""
    return await _resolve(request, engine, confirmed=False)


@router.get("/backup")
async def download_backup(
    engine: SyncEngine = Depends(get_engine),  # noqa: B008
) -> Response:
    """Download the whole snapshot as a backup document."""
    return Response(
        content=engine.handle_backup(),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{backup_filename()}"'},
    )


@router.post("/restore", response_model=RestoreResponse)
async def restore(
    document: dict[str, Any] = Body(...),  # noqa: B008
    engine: SyncEngine = Depends(get_engine),  # noqa: B008
) -> RestoreResponse:
    """
    Replace all data with a backup document.

    Returns 400 with the failure message when the document is rejected or a
    remote step fails.
    """
    if not await engine.handle_restore(document):
        errors = engine.notifications.errors
        detail = errors[-1].message if errors else "Restore failed"
        raise HTTPException(status_code=400, detail=detail)
    return RestoreResponse(restored=True)
