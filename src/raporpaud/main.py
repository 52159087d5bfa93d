"""
Rapor PAUD Sync Service FastAPI Application

Report-card data service for early-childhood schools: one synchronization
engine per process, shared by every request.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from raporpaud.config import configure_logging, settings
from raporpaud.sync import SyncEngine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events.

    Startup:
    - Configure logging
    - Create the engine unless one was injected
    - Load user, settings and snapshot (remote or cached)

    Shutdown:
    - Release the local cache connection of an engine created here
    """
    configure_logging()
    logger.info("Rapor PAUD sync service starting...")

    engine: SyncEngine | None = getattr(app.state, "engine", None)
    owns_engine = engine is None
    if engine is None:
        engine = SyncEngine.from_settings()
        app.state.engine = engine

    await engine.start()
    logger.info("Rapor PAUD sync service ready")

    yield

    logger.info("Rapor PAUD sync service shutting down...")
    if owns_engine:
        engine.cache.close()
        app.state.engine = None


def create_app(engine: SyncEngine | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        engine: Pre-built engine (tests); created at startup when omitted

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="Rapor PAUD Sync Service",
        description="State synchronization for early-childhood report cards",
        version="0.1.0",
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.state.pending_action = None

    # Browser clients of the report-card UI
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.is_local else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health
    @app.get("/", tags=["Health"])
    async def root() -> dict[str, str]:
        """Service identity."""
        return {
            "service": "Rapor PAUD Sync Service",
            "status": "operational",
            "version": "0.1.0",
            "environment": settings.ENVIRONMENT,
        }

    @app.get("/health", tags=["Health"], response_model=None)
    async def health_check() -> JSONResponse:
        """Engine, local cache and remote store status.

        Offline mode counts as healthy: the local cache is the source of
        truth when no remote store is configured.

        Returns:
            200 with per-component checks, 503 when any check fails
        """
        checks: dict[str, dict[str, Any]] = {}
        current: SyncEngine | None = app.state.engine

        if current is None:
            checks["engine"] = {"status": "unhealthy", "error": "not started"}
        else:
            checks["engine"] = {"status": "healthy", "loading": current.is_loading}

            # Local cache health
            try:
                current.cache.ping()
                checks["local_cache"] = {"status": "healthy"}
            except Exception as e:
                checks["local_cache"] = {"status": "unhealthy", "error": str(e)}

            checks["remote_store"] = {
                "status": "healthy",
                "mode": "online" if current.is_online else "offline",
            }

        # Overall status
        all_healthy = all(check["status"] == "healthy" for check in checks.values())
        status_code = 200 if all_healthy else 503

        return JSONResponse(
            status_code=status_code,
            content={
                "status": "healthy" if all_healthy else "unhealthy",
                "environment": settings.ENVIRONMENT,
                "checks": checks,
            },
        )

    @app.get("/health/ready", tags=["Health"], response_model=None)
    async def readiness_check() -> dict[str, str] | JSONResponse:
        """Ready once the engine has started and the local cache answers."""
        current: SyncEngine | None = app.state.engine
        try:
            if current is None:
                raise RuntimeError("engine not started")
            current.cache.ping()
            return {"status": "ready"}
        except Exception:
            return JSONResponse(
                status_code=503,
                content={"status": "not_ready"},
            )

    @app.get("/health/live", tags=["Health"])
    async def liveness_check() -> dict[str, str]:
        """Process is up; says nothing about the engine."""
        return {"status": "alive"}

    # Register API routers
    from raporpaud.api.v1 import admin, records, state

    app.include_router(state.router, prefix="/api/v1")
    app.include_router(records.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "raporpaud.main:app",
        host="0.0.0.0",  # nosec B104 - Intentional for containerized deployment
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
