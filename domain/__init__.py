"""
Domain layer for set-sync.

This package contains pure domain models and converters that are
independent of infrastructure concerns (database, API, external services).
"""

from domain.models import (
    OperationKind,
    QueuedOperation,
    SessionExercise,
    SetPayload,
    WorkoutSession,
    WorkoutSet,
    WriteResult,
)

__all__ = [
    "OperationKind",
    "QueuedOperation",
    "SessionExercise",
    "SetPayload",
    "WorkoutSession",
    "WorkoutSet",
    "WriteResult",
]
