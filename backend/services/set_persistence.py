"""
Set persistence service - the editing surface's entry point to the set queue.

Turns WorkoutSet edits into queued upserts, assigns real ids to provisional
sets, and reports sync status per session.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError

from backend.services.set_operation_queue import (
    SessionSyncStatus,
    SetOperationQueue,
)
from domain.models import SessionExercise, SetPayload, WorkoutSet

logger = logging.getLogger(__name__)

# Client-side placeholder ids, never sent to the server.
PROVISIONAL_ID_PREFIX = "temp-"


@dataclass
class PersistSetResult:
    """Result of persisting or deleting a set."""
    success: bool
    id: Optional[str] = None
    performed_at: Optional[str] = None
    error: Optional[str] = None
    # True when the input was rejected, as opposed to a local store failure.
    invalid: bool = False


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def is_provisional_set_id(set_id: Optional[str]) -> bool:
    return not set_id or set_id.startswith(PROVISIONAL_ID_PREFIX)


def build_set_payload(exercise: SessionExercise, workout_set: WorkoutSet) -> SetPayload:
    """
    Build the full queued payload for a set.

    Args:
        exercise: Session exercise owning the set
        workout_set: Current state of the set

    Returns:
        SetPayload snapshot; performed_at defaults to now (UTC)
    """
    return SetPayload(
        session_exercise_id=exercise.id,
        set_number=workout_set.set_number,
        reps=workout_set.reps,
        weight=workout_set.weight,
        implement_count=workout_set.implement_count,
        load_type="per_implement" if workout_set.load_type == "per_implement" else "total",
        rpe=workout_set.rpe,
        rir=workout_set.rir,
        completed=workout_set.completed,
        performed_at=workout_set.performed_at or _utc_now_iso(),
        weight_unit=workout_set.weight_unit or "lb",
        duration_seconds=workout_set.duration_seconds,
        distance=workout_set.distance,
        distance_unit=workout_set.distance_unit,
        rest_seconds_actual=workout_set.rest_seconds_actual,
        extras=dict(workout_set.extras),
        extra_metrics=dict(workout_set.extra_metrics),
    )


class SetPersistenceService:
    """
    Persist workout sets through the local-first queue.

    Persisting only queues the write durably; the remote write happens when
    the queue is drained.
    """

    def __init__(self, queue: SetOperationQueue):
        self._queue = queue

    async def persist_set(
        self,
        exercise: SessionExercise,
        workout_set: WorkoutSet,
    ) -> PersistSetResult:
        """
        Queue the current state of a set.

        Args:
            exercise: Session exercise owning the set
            workout_set: Set to persist; provisional ids are replaced

        Returns:
            PersistSetResult with the (possibly newly assigned) set id
        """
        if not exercise.id:
            return PersistSetResult(success=False, error="Exercise ID is required", invalid=True)

        try:
            payload = build_set_payload(exercise, workout_set)
        except ValidationError as e:
            logger.warning(f"Rejected set payload for exercise {exercise.id}: {e}")
            return PersistSetResult(success=False, error=str(e), invalid=True)

        set_id = workout_set.id
        if is_provisional_set_id(set_id):
            set_id = str(uuid.uuid4())

        try:
            await self._queue.enqueue_upsert(
                set_id=set_id,
                session_id=exercise.session_id,
                session_exercise_id=exercise.id,
                payload=payload,
            )
        except Exception as e:
            logger.error(f"Failed to queue set {set_id}: {e}")
            return PersistSetResult(success=False, error=str(e) or "Unknown error persisting set")

        return PersistSetResult(success=True, id=set_id, performed_at=payload.performed_at)

    async def delete_set(self, set_id: str) -> PersistSetResult:
        """
        Drop a set's pending write.

        Only the queued operation is removed; no delete is sent to the
        remote store.
        """
        if not set_id:
            return PersistSetResult(success=True)

        try:
            await self._queue.cancel_set(set_id)
        except Exception as e:
            logger.error(f"Failed to cancel queued set {set_id}: {e}")
            return PersistSetResult(success=False, id=set_id, error=str(e) or "Unknown error deleting set")

        return PersistSetResult(success=True, id=set_id)

    async def retry_sync(self) -> None:
        await self._queue.flush_now()

    def get_session_sync_status(self, session_id: Optional[str] = None) -> SessionSyncStatus:
        """
        Sync status for a session, or the global status when the session
        has nothing queued.
        """
        snapshot = self._queue.get_snapshot()
        if session_id and session_id in snapshot.sessions:
            return snapshot.sessions[session_id]
        return SessionSyncStatus(
            state=snapshot.state,
            pending=snapshot.pending,
            error=snapshot.error,
        )
