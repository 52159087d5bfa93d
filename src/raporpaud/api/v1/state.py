"""
State and Session API

Read the snapshot, force a refresh, switch the remote connection and manage
the role session.
"""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from raporpaud.api.deps import get_engine
from raporpaud.core.schemas import User
from raporpaud.sync import SyncEngine

router = APIRouter(tags=["state"])


# Pydantic models
class StateResponse(BaseModel):
    """Current snapshot plus connection status."""

    is_online: bool
    is_loading: bool
    state: dict[str, Any]


class RefreshResponse(BaseModel):
    """Outcome of a forced refresh."""

    refreshed: bool
    is_online: bool


class ConnectionRequest(BaseModel):
    """Remote project to switch to."""

    url: str = Field(..., min_length=1, max_length=300)
    key: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    """Role account credentials."""

    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1, max_length=100)


class LoginResponse(BaseModel):
    """Logged-in user."""

    user: User


class NotificationResponse(BaseModel):
    """One operator notification."""

    level: str
    message: str
    created_at: datetime


@router.get("/state", response_model=StateResponse)
async def get_state(
    engine: SyncEngine = Depends(get_engine),  # noqa: B008
) -> StateResponse:
    """Return the whole in-memory snapshot (camelCase document)."""
    return StateResponse(
        is_online=engine.is_online,
        is_loading=engine.is_loading,
        state=engine.snapshot(),
    )


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(
    engine: SyncEngine = Depends(get_engine),  # noqa: B008
) -> RefreshResponse:
    """
    Reload every collection from the remote store.

    A no-op when offline; refreshed=False also covers a failed fetch, in
    which case the previous snapshot is kept.
    """
    refreshed = await engine.refresh_data()
    return RefreshResponse(refreshed=refreshed, is_online=engine.is_online)


@router.post("/connection", response_model=RefreshResponse)
async def connect(
    data: ConnectionRequest,
    engine: SyncEngine = Depends(get_engine),  # noqa: B008
) -> RefreshResponse:
    """Save a new remote URL/key and reload from that project."""
    refreshed = await engine.connect(data.url, data.key)
    return RefreshResponse(refreshed=refreshed, is_online=engine.is_online)


@router.post("/session/login", response_model=LoginResponse)
async def login(
    data: LoginRequest,
    engine: SyncEngine = Depends(get_engine),  # noqa: B008
) -> LoginResponse:
    """Log in with one of the fixed role accounts and load its session."""
    if not await engine.login(data.username, data.password):
        raise HTTPException(status_code=401, detail="Invalid username or password")

    user = engine.user
    assert user is not None
    return LoginResponse(user=user)


@router.post("/session/logout", status_code=204)
async def logout(
    engine: SyncEngine = Depends(get_engine),  # noqa: B008
) -> None:
    """Forget the current user (the cached snapshot stays)."""
    engine.logout()


@router.get("/notifications", response_model=list[NotificationResponse])
async def get_notifications(
    engine: SyncEngine = Depends(get_engine),  # noqa: B008
) -> list[NotificationResponse]:
    """Return and clear the pending notifications, oldest first."""
    return [
        NotificationResponse(level=n.level, message=n.message, created_at=n.created_at)
        for n in engine.notifications.drain()
    ]
