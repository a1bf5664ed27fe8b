"""
Hydrate Session Use Case.

Loads a session snapshot from the remote store and replays the set edits
still waiting in the local queue on top of it, so a reload shows every edit
whether or not it has reached the server yet.
"""
from dataclasses import dataclass
from typing import List, Optional, Protocol

from application.ports import SessionRepository
from domain.converters import apply_queued_set_mutations
from domain.models import QueuedOperation, WorkoutSession


class PendingOperationSource(Protocol):
    """Anything that can list queued operations for a session."""

    async def get_pending_operations_for_session(self, session_id: str) -> List[QueuedOperation]:
        ...


@dataclass
class HydrateSessionResult:
    """Result of hydrating a session."""
    success: bool
    session: Optional[WorkoutSession] = None
    pending_count: int = 0
    error: Optional[str] = None


class HydrateSessionUseCase:
    """
    Use case for loading a session with pending local edits applied.
    """

    def __init__(self, session_repo: SessionRepository, queue: PendingOperationSource):
        """
        Initialize with required dependencies.

        Args:
            session_repo: Remote session snapshots
            queue: Source of pending set operations
        """
        self._session_repo = session_repo
        self._queue = queue

    async def execute(self, session_id: str) -> HydrateSessionResult:
        """
        Fetch and hydrate a session.

        Args:
            session_id: Session to load

        Returns:
            HydrateSessionResult with the hydrated session, or an error if the
            session does not exist
        """
        snapshot = await self._session_repo.get_session(session_id)
        if snapshot is None:
            return HydrateSessionResult(success=False, error=f"Session {session_id} not found")

        pending = await self._queue.get_pending_operations_for_session(session_id)
        return HydrateSessionResult(
            success=True,
            session=apply_queued_set_mutations(snapshot, pending),
            pending_count=len(pending),
        )
