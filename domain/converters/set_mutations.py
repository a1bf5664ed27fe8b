"""
Converters: queued set operations -> hydrated WorkoutSession.

Overlays not-yet-synced local edits onto a freshly fetched session snapshot
so a reload never loses an edit that has not reached the server.

All functions here are pure: inputs are never mutated and no I/O happens.
"""

from typing import Dict, List, Optional, Sequence

from domain.models import (
    OperationKind,
    QueuedOperation,
    SessionExercise,
    SetPayload,
    WorkoutSession,
    WorkoutSet,
)


def payload_to_workout_set(
    payload: SetPayload,
    set_id: str,
    existing: Optional[WorkoutSet] = None,
) -> WorkoutSet:
    """
    Build a WorkoutSet from a queued payload.

    Every persisted field is replaced by the payload's value. When an
    existing set is given, fields the payload does not carry are kept.

    Examples:
        >>> payload = SetPayload(
        ...     session_exercise_id="ex-1",
        ...     set_number=2,
        ...     reps=10,
        ...     performed_at="2026-02-20T10:00:00.000Z",
        ... )
        >>> payload_to_workout_set(payload, "set-9").reps
        10
    """
    fields = payload.model_dump(exclude={"session_exercise_id"})
    fields["id"] = set_id
    base = existing if existing is not None else WorkoutSet(id=set_id, set_number=payload.set_number)
    return base.model_copy(update=fields, deep=True)


def _group_by_exercise(
    operations: Sequence[QueuedOperation],
) -> Dict[str, List[QueuedOperation]]:
    grouped: Dict[str, List[QueuedOperation]] = {}
    for operation in operations:
        grouped.setdefault(operation.session_exercise_id, []).append(operation)
    return grouped


def _apply_to_exercise(
    exercise: SessionExercise,
    operations: List[QueuedOperation],
) -> SessionExercise:
    sets = [workout_set.model_copy(deep=True) for workout_set in exercise.sets]
    index_by_id = {workout_set.id: i for i, workout_set in enumerate(sets)}

    # Oldest edit first so the newest payload for a set wins.
    for operation in sorted(operations, key=lambda op: op.updated_at):
        if operation.kind != OperationKind.UPSERT:
            continue
        position = index_by_id.get(operation.set_id)
        if position is None:
            index_by_id[operation.set_id] = len(sets)
            sets.append(payload_to_workout_set(operation.payload, operation.set_id))
        else:
            sets[position] = payload_to_workout_set(
                operation.payload, operation.set_id, sets[position]
            )

    return exercise.model_copy(update={"sets": sets})


def apply_queued_set_mutations(
    session: WorkoutSession,
    operations: Sequence[QueuedOperation],
) -> WorkoutSession:
    """
    Replay pending operations over a fetched session snapshot.

    For each operation, the set with the same id in the matching exercise is
    overwritten with the payload, or a new set is appended when the server
    has never seen it. Operations whose exercise is absent from the snapshot
    are skipped. Applying the same operations twice gives the same result as
    applying them once.

    Args:
        session: Freshly fetched session aggregate.
        operations: Pending operations for that session.

    Returns:
        A new WorkoutSession; the input is left untouched.
    """
    if not operations:
        return session

    grouped = _group_by_exercise(operations)
    exercises = [
        _apply_to_exercise(exercise, grouped[exercise.id]) if exercise.id in grouped else exercise
        for exercise in session.exercises
    ]
    return session.model_copy(update={"exercises": exercises})
