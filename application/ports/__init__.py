"""
Repository Interfaces (Ports) for set-sync.

This package defines abstract interfaces that decouple the set queue from
infrastructure (local storage, remote database). Implementations are provided
in the infrastructure layer.

Architecture follows the Ports & Adapters (Hexagonal) pattern:
- Ports: Abstract interfaces defined here (what the queue needs)
- Adapters: Concrete implementations in infrastructure/ (how it's provided)

Usage:
    from application.ports import OperationStore, SetWriter

    class SetOperationQueue:
        def __init__(self, store: OperationStore, writer: SetWriter):
            self._store = store
            self._writer = writer
"""

# Local durable queue storage
from application.ports.operation_store import OperationStore

# Remote write seam
from application.ports.set_writer import SetWriter

# Remote session snapshots
from application.ports.session_repository import SessionRepository

__all__ = [
    "OperationStore",
    "SetWriter",
    "SessionRepository",
]
