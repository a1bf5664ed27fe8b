"""
Domain converters for session data and queued set operations.

- apply_queued_set_mutations: pending operations + fetched session -> hydrated session
- payload_to_workout_set: SetPayload -> WorkoutSet
- row_to_session: Database row (from Supabase) -> WorkoutSession
- operation_to_set_row: QueuedOperation -> sets table row

All converters are pure functions with no side effects.
"""

from domain.converters.db_converters import (
    operation_to_set_row,
    row_to_session,
    row_to_session_exercise,
    row_to_workout_set,
)
from domain.converters.set_mutations import apply_queued_set_mutations, payload_to_workout_set

__all__ = [
    "apply_queued_set_mutations",
    "payload_to_workout_set",
    "row_to_session",
    "row_to_session_exercise",
    "row_to_workout_set",
    "operation_to_set_row",
]
