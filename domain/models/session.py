"""
Workout session aggregate as hydrated from the remote store.

Only the record shape matters to the set queue: sessions own exercises,
exercises own sets, and sets are matched by id.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from domain.models.set_operation import Scalar


class WorkoutSet(BaseModel):
    """A single recorded set within a session exercise."""

    id: str = ""
    set_number: int = Field(default=1, ge=1)
    reps: Optional[int] = None
    weight: Optional[float] = None
    implement_count: Optional[int] = None
    load_type: str = "total"
    rpe: Optional[float] = None
    rir: Optional[float] = None
    completed: bool = False
    performed_at: Optional[str] = None
    weight_unit: str = "lb"
    duration_seconds: Optional[float] = None
    distance: Optional[float] = None
    distance_unit: Optional[str] = None
    rest_seconds_actual: Optional[float] = None
    extras: Dict[str, Scalar] = Field(default_factory=dict)
    extra_metrics: Dict[str, Scalar] = Field(default_factory=dict)


class SessionExercise(BaseModel):
    """An exercise performed within a session, with its sets."""

    id: str
    session_id: str
    name: str = ""
    primary_muscle: Optional[str] = None
    secondary_muscles: List[str] = Field(default_factory=list)
    order_index: int = 0
    sets: List[WorkoutSet] = Field(default_factory=list)


class WorkoutSession(BaseModel):
    """
    Aggregate root for a logged workout session.

    Examples:
        >>> session = WorkoutSession(
        ...     id="session-1",
        ...     user_id="user-1",
        ...     name="Pull Day",
        ...     exercises=[SessionExercise(id="ex-1", session_id="session-1", name="Row")],
        ... )
        >>> session.get_exercise("ex-1").name
        'Row'
    """

    id: str
    user_id: Optional[str] = None
    name: str = ""
    started_at: Optional[str] = None
    exercises: List[SessionExercise] = Field(default_factory=list)

    def get_exercise(self, exercise_id: str) -> Optional[SessionExercise]:
        for exercise in self.exercises:
            if exercise.id == exercise_id:
                return exercise
        return None
