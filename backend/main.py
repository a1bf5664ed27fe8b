"""
FastAPI app factory for set-sync.

create_app() builds a fully wired application from a Settings instance, so
tests can run the API against their own configuration and dependency
overrides while uvicorn serves the module-level `app`.

When background draining is enabled, the app's lifespan owns a
DrainScheduler for the shared set queue.

Usage:
    from backend.main import create_app
    from backend.settings import Settings

    # Served app (settings from the environment)
    app = create_app()

    # Isolated app for tests
    test_app = create_app(settings=Settings(environment="test", _env_file=None))
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.settings import Settings, get_settings

logger = logging.getLogger(__name__)

# Always allowed, in addition to CORS_ALLOWED_ORIGINS.
LOCAL_ORIGINS = ("http://localhost:3000", "http://localhost:3001")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the set-sync FastAPI application.

    Args:
        settings: Settings to build from; get_settings() when omitted.

    Returns:
        FastAPI app with CORS, routers and (optionally) the drain lifespan.
    """
    settings = settings or get_settings()

    _init_sentry(settings)

    app = FastAPI(
        title="Set Sync API",
        description="Local-first synchronization of workout set edits",
        version="1.0.0",
        lifespan=_build_lifespan(settings),
    )

    _configure_cors(app)
    _include_routers(app)
    _log_feature_flags(settings)

    return app


def _build_lifespan(settings: Settings):
    """Start the background drain loop for the app's lifetime, if enabled."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if not settings.sync_background_drain_enabled:
            yield
            return

        from api.deps import get_set_operation_queue
        from backend.services import DrainScheduler

        queue = app.dependency_overrides.get(get_set_operation_queue, get_set_operation_queue)()
        async with DrainScheduler(queue, idle_interval_s=settings.sync_drain_idle_interval_s) as scheduler:
            app.state.drain_scheduler = scheduler
            yield

    return lifespan


def _init_sentry(settings: Settings) -> None:
    """Report errors to Sentry when a DSN is configured."""
    if not settings.sentry_dsn:
        return
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1,
    )
    logger.info(f"Sentry initialized for set-sync ({settings.environment})")


def _configure_cors(app: FastAPI) -> None:
    """Allow local dev origins plus any listed in CORS_ALLOWED_ORIGINS."""
    extra_origins = os.environ.get("CORS_ALLOWED_ORIGINS", "").split(",")
    origins = list(LOCAL_ORIGINS) + [origin.strip() for origin in extra_origins if origin.strip()]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def _include_routers(app: FastAPI) -> None:
    from api.routers import health_router, sets_router, sync_router

    # /health lives at the root
    app.include_router(health_router)
    app.include_router(sets_router)
    app.include_router(sync_router)


def _log_feature_flags(settings: Settings) -> None:
    """Log queue configuration at startup."""
    logger.info(
        f"Set queue store: {settings.set_queue_store} "
        f"(backoff {settings.set_queue_base_backoff_ms:.0f}-{settings.set_queue_max_backoff_ms:.0f}ms)"
    )
    if settings.sync_background_drain_enabled:
        logger.info("SYNC_BACKGROUND_DRAIN_ENABLED is active")
    if settings.set_queue_store == "memory" and settings.is_production:
        logger.warning("=== In-memory set queue in production: edits will not survive restarts ===")


# Served by `uvicorn backend.main:app` and `python -m backend`
app = create_app()
