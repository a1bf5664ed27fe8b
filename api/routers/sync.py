"""
Sync router for the local-first set queue.

This router contains endpoints for:
- /sync/status - Queue-wide sync state
- /sync/sessions/{session_id}/status - Sync state for one session
- /sync/sessions/{session_id}/pending - Operations still waiting for the server
- /sync/flush - Drain the queue now
"""

import logging
from dataclasses import asdict
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from api.deps import get_set_operation_queue, get_set_persistence_service
from backend.services import (
    QueueSnapshot,
    SessionSyncStatus,
    SetOperationQueue,
    SetPersistenceService,
    SyncState,
)
from domain.models import QueuedOperation, SetPayload

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/sync",
    tags=["Set Sync"],
)


# =============================================================================
# Response Models
# =============================================================================


class SessionSyncStatusResponse(BaseModel):
    """Sync state for one session."""
    state: SyncState
    pending: int = 0
    error: int = 0


class QueueSnapshotResponse(BaseModel):
    """Queue-wide sync state."""
    state: SyncState
    pending: int = 0
    error: int = 0
    is_flushing: bool = False
    last_error: Optional[str] = None
    sessions: Dict[str, SessionSyncStatusResponse] = Field(default_factory=dict)

    @classmethod
    def from_snapshot(cls, snapshot: QueueSnapshot) -> "QueueSnapshotResponse":
        return cls.model_validate(asdict(snapshot))


class PendingOperationResponse(BaseModel):
    """A queued operation; parked operations carry next_retry_at=None."""
    set_id: str
    session_id: str
    session_exercise_id: str
    kind: str
    op_id: str
    payload: SetPayload
    attempts: int
    next_retry_at: Optional[float] = None
    parked: bool = False
    last_error: Optional[str] = None
    created_at: float
    updated_at: float

    @classmethod
    def from_operation(cls, operation: QueuedOperation) -> "PendingOperationResponse":
        return cls(
            set_id=operation.set_id,
            session_id=operation.session_id,
            session_exercise_id=operation.session_exercise_id,
            kind=operation.kind.value,
            op_id=operation.op_id,
            payload=operation.payload,
            attempts=operation.attempts,
            next_retry_at=None if operation.is_parked else operation.next_retry_at,
            parked=operation.is_parked,
            last_error=operation.last_error,
            created_at=operation.created_at,
            updated_at=operation.updated_at,
        )


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/status", response_model=QueueSnapshotResponse)
def get_sync_status(
    queue: SetOperationQueue = Depends(get_set_operation_queue),
):
    """Get the queue-wide sync state."""
    return QueueSnapshotResponse.from_snapshot(queue.get_snapshot())


@router.get("/sessions/{session_id}/status", response_model=SessionSyncStatusResponse)
def get_session_sync_status(
    session_id: str,
    service: SetPersistenceService = Depends(get_set_persistence_service),
):
    """
    Get the sync state for a session.

    Falls back to the queue-wide state when nothing is queued for the session.
    """
    status: SessionSyncStatus = service.get_session_sync_status(session_id)
    return SessionSyncStatusResponse.model_validate(asdict(status))


@router.get("/sessions/{session_id}/pending", response_model=List[PendingOperationResponse])
async def get_pending_operations(
    session_id: str,
    queue: SetOperationQueue = Depends(get_set_operation_queue),
):
    """List the operations for a session that have not reached the server."""
    operations = await queue.get_pending_operations_for_session(session_id)
    return [PendingOperationResponse.from_operation(op) for op in operations]


@router.post("/flush", response_model=QueueSnapshotResponse)
async def flush_queue(
    service: SetPersistenceService = Depends(get_set_persistence_service),
    queue: SetOperationQueue = Depends(get_set_operation_queue),
):
    """Drain every due operation now and return the resulting state."""
    await service.retry_sync()
    snapshot = queue.get_snapshot()
    logger.info(f"Manual flush finished: state={snapshot.state.value} pending={snapshot.pending}")
    return QueueSnapshotResponse.from_snapshot(snapshot)
