"""
Converters: Database row format <-> domain session models.

Provides conversion between Supabase rows and the WorkoutSession aggregate,
and from a queued operation to the row written to the sets table.

Database schema (as consumed here):
- sessions: id, user_id, name, started_at
- session_exercises: id, session_id, exercise_name, primary_muscle,
  secondary_muscles, order_index
- sets: id, session_exercise_id, set_number, reps, weight, implement_count,
  load_type, rpe, rir, completed, performed_at, weight_unit,
  duration_seconds, distance, distance_unit, rest_seconds_actual,
  extras (JSONB), extra_metrics (JSONB), client_set_uuid, last_op_id
"""

from typing import Any, Dict, List

from domain.models import QueuedOperation, SessionExercise, WorkoutSession, WorkoutSet


def _as_dict(value: Any) -> Dict[str, Any]:
    """JSONB columns may come back as None."""
    return value if isinstance(value, dict) else {}


def row_to_workout_set(row: Dict[str, Any]) -> WorkoutSet:
    """Convert a sets row to a WorkoutSet."""
    return WorkoutSet(
        id=row["id"],
        set_number=row.get("set_number") or 1,
        reps=row.get("reps"),
        weight=row.get("weight"),
        implement_count=row.get("implement_count"),
        load_type=row.get("load_type") or "total",
        rpe=row.get("rpe"),
        rir=row.get("rir"),
        completed=bool(row.get("completed", False)),
        performed_at=row.get("performed_at"),
        weight_unit=row.get("weight_unit") or "lb",
        duration_seconds=row.get("duration_seconds"),
        distance=row.get("distance"),
        distance_unit=row.get("distance_unit"),
        rest_seconds_actual=row.get("rest_seconds_actual"),
        extras=_as_dict(row.get("extras")),
        extra_metrics=_as_dict(row.get("extra_metrics")),
    )


def row_to_session_exercise(row: Dict[str, Any]) -> SessionExercise:
    """Convert a session_exercises row (with nested sets) to a SessionExercise."""
    set_rows: List[Dict[str, Any]] = row.get("sets") or []
    sets = sorted((row_to_workout_set(s) for s in set_rows), key=lambda s: s.set_number)
    return SessionExercise(
        id=row["id"],
        session_id=row["session_id"],
        name=row.get("exercise_name") or row.get("name") or "",
        primary_muscle=row.get("primary_muscle"),
        secondary_muscles=row.get("secondary_muscles") or [],
        order_index=row.get("order_index") or 0,
        sets=sets,
    )


def row_to_session(row: Dict[str, Any]) -> WorkoutSession:
    """
    Convert a sessions row with nested session_exercises(sets) to a WorkoutSession.

    Examples:
        >>> row = {
        ...     "id": "session-1",
        ...     "user_id": "user-1",
        ...     "name": "Push Day",
        ...     "session_exercises": [
        ...         {"id": "ex-1", "session_id": "session-1", "exercise_name": "Press",
        ...          "order_index": 0, "sets": []},
        ...     ],
        ... }
        >>> row_to_session(row).exercises[0].name
        'Press'
    """
    exercise_rows: List[Dict[str, Any]] = row.get("session_exercises") or []
    exercises = sorted(
        (row_to_session_exercise(e) for e in exercise_rows),
        key=lambda e: e.order_index,
    )
    return WorkoutSession(
        id=row["id"],
        user_id=row.get("user_id"),
        name=row.get("name") or "",
        started_at=row.get("started_at"),
        exercises=exercises,
    )


def operation_to_set_row(operation: QueuedOperation) -> Dict[str, Any]:
    """
    Build the sets row upserted for a queued operation.

    client_set_uuid and last_op_id let the server side trace which client
    write produced the row.
    """
    return {
        "id": operation.set_id,
        **operation.payload.model_dump(mode="json"),
        "client_set_uuid": operation.set_id,
        "last_op_id": operation.op_id,
    }
