"""
FastAPI dependency providers for set-sync.

Routers depend on ports (Protocols) and services from here, never on
concrete adapters, so tests can swap any of them out.

Lifetimes:
- Settings, the Supabase client, the operation store and the set queue are
  process-wide (lru_cache); every request shares one queue
- Services and use cases are cheap wrappers built per request

Usage in routers:
    @router.post("/sync/flush")
    async def flush(queue: SetOperationQueue = Depends(get_set_operation_queue)):
        await queue.flush_now()

Testing:
    app.dependency_overrides[get_set_operation_queue] = lambda: test_queue
"""

import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException
from supabase import Client, create_client

from application.ports import OperationStore, SessionRepository, SetWriter
from application.use_cases import HydrateSessionUseCase

from infrastructure import (
    InMemoryOperationStore,
    SqliteOperationStore,
    SupabaseSessionRepository,
    SupabaseSetWriter,
)

from backend.services import SetOperationQueue, SetPersistenceService
from backend.settings import Settings, get_settings as _get_settings
from domain.models import QueuedOperation, WriteResult

logger = logging.getLogger(__name__)


# =============================================================================
# Settings Provider
# =============================================================================


def get_settings() -> Settings:
    """Settings as a FastAPI dependency."""
    return _get_settings()


# =============================================================================
# Supabase Client Provider
# =============================================================================


@lru_cache
def get_supabase_client() -> Optional[Client]:
    """Shared Supabase client, or None while credentials are missing."""
    settings = _get_settings()

    if not settings.supabase_url or not settings.supabase_key:
        logger.warning("Supabase credentials not configured. Set sync will stay queued.")
        return None

    return create_client(settings.supabase_url, settings.supabase_key)


def get_supabase_client_required() -> Client:
    """Shared Supabase client for endpoints that cannot work without it (503 otherwise)."""
    client = get_supabase_client()
    if client is None:
        raise HTTPException(
            status_code=503,
            detail="Remote store unavailable: Supabase credentials are not configured.",
        )
    return client


# =============================================================================
# Set Queue Providers
# =============================================================================


async def _unconfigured_writer(operation: QueuedOperation) -> WriteResult:
    return WriteResult.failed("Supabase credentials not configured", retryable=True)


@lru_cache
def get_operation_store() -> OperationStore:
    """Get the process-wide operation store selected by settings."""
    settings = _get_settings()
    if settings.set_queue_store == "memory":
        logger.warning("Set queue uses in-memory storage; queued edits will not survive restarts")
        return InMemoryOperationStore()
    return SqliteOperationStore(settings.set_queue_db_path)


def get_set_writer() -> SetWriter:
    """Get the remote writer, or a stand-in that always asks for a retry."""
    client = get_supabase_client()
    if client is None:
        return _unconfigured_writer
    return SupabaseSetWriter(client, table=_get_settings().sets_table)


@lru_cache
def get_set_operation_queue() -> SetOperationQueue:
    """
    Get the process-wide set operation queue (cached).

    The queue reports itself offline while Supabase is not configured, so
    edits are queued durably but never attempted.
    """
    settings = _get_settings()
    return SetOperationQueue(
        get_operation_store(),
        get_set_writer(),
        is_online=lambda: get_supabase_client() is not None,
        base_backoff_ms=settings.set_queue_base_backoff_ms,
        max_backoff_ms=settings.set_queue_max_backoff_ms,
    )


def get_set_persistence_service(
    queue: SetOperationQueue = Depends(get_set_operation_queue),
) -> SetPersistenceService:
    """Get the set persistence service around the shared queue."""
    return SetPersistenceService(queue)


# =============================================================================
# Session Providers
# =============================================================================


def get_session_repo(
    client: Client = Depends(get_supabase_client_required),
) -> SessionRepository:
    """Remote session snapshot reader."""
    return SupabaseSessionRepository(client)


def get_hydrate_session_use_case(
    session_repo: SessionRepository = Depends(get_session_repo),
    queue: SetOperationQueue = Depends(get_set_operation_queue),
) -> HydrateSessionUseCase:
    """Get the session hydration use case."""
    return HydrateSessionUseCase(session_repo=session_repo, queue=queue)
