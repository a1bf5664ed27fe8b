"""
Sets router - queue set edits and read hydrated sessions.

This router contains endpoints for:
- POST /sessions/{session_id}/exercises/{exercise_id}/sets - Queue a set upsert
- DELETE /sets/{set_id} - Cancel a set's pending write
- GET /sessions/{session_id} - Session snapshot with pending edits replayed
"""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel

from api.deps import get_hydrate_session_use_case, get_set_persistence_service
from application.use_cases import HydrateSessionUseCase
from backend.services import SetPersistenceService
from domain.models import SessionExercise, WorkoutSession, WorkoutSet

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["Sets"],
)


class PersistSetResponse(BaseModel):
    """Response after queueing a set."""
    success: bool
    id: Optional[str] = None
    performed_at: Optional[str] = None
    error: Optional[str] = None


@router.post(
    "/sessions/{session_id}/exercises/{exercise_id}/sets",
    response_model=PersistSetResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def persist_set(
    session_id: str,
    exercise_id: str,
    workout_set: WorkoutSet,
    service: SetPersistenceService = Depends(get_set_persistence_service),
):
    """
    Queue the full state of a set for syncing.

    Sets without an id (or with a provisional temp- id) get a new UUID,
    returned in the response. The write is durable once this returns 202.
    """
    exercise = SessionExercise(id=exercise_id, session_id=session_id)
    result = await service.persist_set(exercise, workout_set)
    if not result.success:
        if result.invalid:
            raise HTTPException(status_code=422, detail=result.error or "Invalid set")
        raise HTTPException(status_code=500, detail=result.error or "Failed to queue set")
    return PersistSetResponse.model_validate(asdict(result))


@router.delete("/sets/{set_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_set(
    set_id: str,
    service: SetPersistenceService = Depends(get_set_persistence_service),
):
    """Drop a set's pending write. Nothing is deleted remotely."""
    result = await service.delete_set(set_id)
    if not result.success:
        raise HTTPException(status_code=500, detail=result.error or "Failed to cancel set")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/sessions/{session_id}", response_model=WorkoutSession)
async def get_session(
    session_id: str,
    use_case: HydrateSessionUseCase = Depends(get_hydrate_session_use_case),
):
    """Get a session with every queued set edit applied."""
    result = await use_case.execute(session_id)
    if not result.success:
        raise HTTPException(status_code=404, detail=result.error)
    if result.pending_count:
        logger.debug(f"Replayed {result.pending_count} pending op(s) onto session {session_id}")
    return result.session
