"""
Session Repository Interface (Port).

This module defines the abstract interface for fetching a full workout
session aggregate (exercises and their sets) from the remote store.
"""
from typing import Optional, Protocol

from domain.models import WorkoutSession


class SessionRepository(Protocol):
    """Read access to remote session snapshots."""

    async def get_session(self, session_id: str) -> Optional[WorkoutSession]:
        """
        Fetch a session with its exercises and sets.

        Args:
            session_id: Session UUID

        Returns:
            WorkoutSession, or None if the session does not exist
        """
        ...
