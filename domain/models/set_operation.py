"""
Queued set operations - the unit of work of the local-first set queue.

A QueuedOperation carries one full desired-state snapshot (SetPayload) for
exactly one set. Payloads are always complete replacements, never patches,
so coalescing two edits is a plain overwrite.
"""

import math
from enum import Enum
from typing import Dict, Optional, Union

from pydantic import BaseModel, Field

# Free-form per-set metadata values.
Scalar = Union[str, int, float, bool, None]

# Sentinel for operations that must never be retried automatically.
PARKED = math.inf


class OperationKind(str, Enum):
    """Kind of change carried by a queued operation."""

    UPSERT = "upsert"


class SetPayload(BaseModel):
    """Full snapshot of a set's persisted fields."""

    session_exercise_id: str = Field(..., min_length=1)
    set_number: int = Field(..., ge=1)
    reps: Optional[int] = None
    weight: Optional[float] = None
    implement_count: Optional[int] = None
    load_type: str = "total"
    rpe: Optional[float] = None
    rir: Optional[float] = None
    completed: bool = False
    performed_at: str
    weight_unit: str = "lb"
    duration_seconds: Optional[float] = None
    distance: Optional[float] = None
    distance_unit: Optional[str] = None
    rest_seconds_actual: Optional[float] = None
    extras: Dict[str, Scalar] = Field(default_factory=dict)
    extra_metrics: Dict[str, Scalar] = Field(default_factory=dict)


class QueuedOperation(BaseModel):
    """
    One pending change to be applied to exactly one set.

    Attributes:
        set_id: Target set (may be a client-generated provisional ID)
        session_id: Owning session, scopes replay and status
        session_exercise_id: Owning session exercise, scopes replay
        kind: Operation kind
        op_id: Unique per enqueue, distinguishes a stale in-flight write
            from a newer edit of the same set
        payload: Full desired state of the set
        attempts: Remote-write attempts made so far
        next_retry_at: Epoch ms before which the op is not retried;
            infinity marks a parked (non-retryable) operation
        last_error: Last remote-write error, for diagnostics
        created_at: Epoch ms of the first enqueue for this set
        updated_at: Epoch ms of the last change to this record
    """

    set_id: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1)
    session_exercise_id: str = Field(..., min_length=1)
    kind: OperationKind = OperationKind.UPSERT
    op_id: str = Field(..., min_length=1)
    payload: SetPayload
    attempts: int = Field(default=0, ge=0)
    next_retry_at: float = 0
    last_error: Optional[str] = None
    created_at: float = 0
    updated_at: float = 0

    @property
    def is_parked(self) -> bool:
        """True when the operation failed permanently and is excluded from draining."""
        return math.isinf(self.next_retry_at)

    def is_due(self, now: float) -> bool:
        return self.next_retry_at <= now


class WriteResult(BaseModel):
    """Outcome of one remote write."""

    success: bool
    retryable: bool = False
    error: Optional[str] = None

    @classmethod
    def ok(cls) -> "WriteResult":
        return cls(success=True)

    @classmethod
    def failed(cls, error: str, *, retryable: bool) -> "WriteResult":
        return cls(success=False, retryable=retryable, error=error)
