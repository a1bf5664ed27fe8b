"""
Domain models for set-sync.

This package contains pure domain models that are independent of
infrastructure concerns (database, API, external services):
- QueuedOperation: one pending change for one set, with retry bookkeeping
- SetPayload: full desired-state snapshot of a set
- WriteResult: outcome of a single remote write
- WorkoutSession / SessionExercise / WorkoutSet: hydrated session aggregate

Usage:
    >>> from domain.models import SetPayload, QueuedOperation

    >>> payload = SetPayload(
    ...     session_exercise_id="ex-1",
    ...     set_number=1,
    ...     reps=8,
    ...     weight=185,
    ...     performed_at="2026-02-20T10:00:00.000Z",
    ... )
    >>> op = QueuedOperation(
    ...     set_id="set-1",
    ...     session_id="session-1",
    ...     session_exercise_id="ex-1",
    ...     op_id="op-1",
    ...     payload=payload,
    ... )
    >>> op.is_parked
    False
"""

from domain.models.set_operation import (
    PARKED,
    OperationKind,
    QueuedOperation,
    Scalar,
    SetPayload,
    WriteResult,
)
from domain.models.session import SessionExercise, WorkoutSession, WorkoutSet

__all__ = [
    # Queue records
    "PARKED",
    "OperationKind",
    "QueuedOperation",
    "Scalar",
    "SetPayload",
    "WriteResult",
    # Session aggregate
    "SessionExercise",
    "WorkoutSession",
    "WorkoutSet",
]
