"""
API Dependencies

The engine is created once per application (see raporpaud.main) and shared
by every request through app.state.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from raporpaud.sync import SyncEngine


def get_engine(request: Request) -> SyncEngine:
    """Return the application's synchronization engine.

    Raises:
        HTTPException: 503 if the engine has not been started yet
    """
    engine: SyncEngine | None = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Engine not started")
    return engine
