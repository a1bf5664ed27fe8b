"""
Fake Implementations for Testing.

This package provides in-memory fakes of the application ports for fast,
isolated testing. No database, network or local files required.

Usage:
    from tests.fakes import ScriptedSetWriter, FakeSessionRepository, make_payload

    writer = ScriptedSetWriter()
    queue = SetOperationQueue(InMemoryOperationStore(), writer)
"""
from typing import Any, Optional

from domain.models import SessionExercise, SetPayload, WorkoutSession, WorkoutSet

from tests.fakes.operation_store import FailingOperationStore
from tests.fakes.session_repository import FakeSessionRepository
from tests.fakes.set_writer import ScriptedSetWriter


# =============================================================================
# Factory Functions
# =============================================================================


def make_payload(session_exercise_id: str = "exercise-1", **overrides: Any) -> SetPayload:
    """Build a complete set payload with realistic defaults."""
    fields = {
        "session_exercise_id": session_exercise_id,
        "set_number": 1,
        "reps": 8,
        "weight": 185,
        "implement_count": None,
        "load_type": "total",
        "rpe": 8,
        "rir": 2,
        "completed": True,
        "performed_at": "2026-02-20T10:00:00.000Z",
        "weight_unit": "lb",
        "duration_seconds": None,
        "distance": None,
        "distance_unit": None,
        "rest_seconds_actual": 120,
        "extras": {},
        "extra_metrics": {},
    }
    fields.update(overrides)
    return SetPayload(**fields)


def make_session(
    session_id: str = "session-1",
    exercise_id: str = "exercise-1",
    sets: Optional[list] = None,
) -> WorkoutSession:
    """Build a session with one exercise."""
    return WorkoutSession(
        id=session_id,
        user_id="user-1",
        name="Pull Day",
        started_at="2026-02-20T09:00:00.000Z",
        exercises=[
            SessionExercise(
                id=exercise_id,
                session_id=session_id,
                name="Row",
                primary_muscle="Back",
                order_index=0,
                sets=sets or [],
            )
        ],
    )


def make_set(set_id: str = "set-1", **overrides: Any) -> WorkoutSet:
    fields = {"id": set_id, "set_number": 1, "reps": 8, "weight": 135, "completed": True}
    fields.update(overrides)
    return WorkoutSet(**fields)


__all__ = [
    "FailingOperationStore",
    "FakeSessionRepository",
    "ScriptedSetWriter",
    "make_payload",
    "make_session",
    "make_set",
]
