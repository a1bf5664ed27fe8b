"""
Operation Store Interface (Port).

This module defines the abstract interface for durable persistence of queued
set operations. The queue keeps at most one record per set, so records are
keyed by set_id.

Implementations:
- InMemoryOperationStore: reference implementation, process lifetime only
- SqliteOperationStore: durable across process restarts
"""
from typing import List, Protocol

from domain.models import QueuedOperation


class OperationStore(Protocol):
    """
    Abstract interface for queued operation persistence.

    Every field of QueuedOperation must round-trip losslessly, including
    next_retry_at set to infinity for parked operations. Failures are raised
    to the caller; the queue does not swallow them.
    """

    async def load_all(self) -> List[QueuedOperation]:
        """
        Load every persisted operation.

        Returns:
            All stored operations, oldest first.
        """
        ...

    async def save(self, operation: QueuedOperation) -> None:
        """
        Insert or replace the record for operation.set_id.

        Args:
            operation: Operation to persist
        """
        ...

    async def remove(self, set_id: str) -> None:
        """
        Delete the record for a set. Removing an absent set is a no-op.

        Args:
            set_id: Set whose queued operation should be dropped
        """
        ...
