"""Backend services for set-sync."""

from backend.services.set_operation_queue import (
    QueueSnapshot,
    SessionSyncStatus,
    SetOperationQueue,
    SyncState,
)
from backend.services.drain_scheduler import DrainScheduler
from backend.services.set_persistence import (
    PersistSetResult,
    SetPersistenceService,
    build_set_payload,
)

__all__ = [
    "QueueSnapshot",
    "SessionSyncStatus",
    "SetOperationQueue",
    "SyncState",
    "DrainScheduler",
    "PersistSetResult",
    "SetPersistenceService",
    "build_set_payload",
]
