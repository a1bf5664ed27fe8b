"""
Supabase Session Repository Implementation.

This module implements the SessionRepository protocol, fetching a session
with its exercises and sets in a single PostgREST query.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional

from supabase import Client

from domain.converters import row_to_session
from domain.models import WorkoutSession

logger = logging.getLogger(__name__)

SESSION_SELECT = (
    "id, user_id, name, started_at, "
    "session_exercises(id, session_id, exercise_name, primary_muscle, "
    "secondary_muscles, order_index, sets(*))"
)


class SupabaseSessionRepository:
    """
    Supabase-backed session snapshot reader.

    Usage:
        repo = SupabaseSessionRepository(client)
        session = await repo.get_session("session-1")
    """

    def __init__(self, client: Client):
        """
        Initialize with Supabase client.

        Args:
            client: Supabase client instance
        """
        self._client = client

    def _fetch(self, session_id: str) -> List[Dict[str, Any]]:
        result = (
            self._client.table("sessions")
            .select(SESSION_SELECT)
            .eq("id", session_id)
            .limit(1)
            .execute()
        )
        return result.data or []

    async def get_session(self, session_id: str) -> Optional[WorkoutSession]:
        rows = await asyncio.to_thread(self._fetch, session_id)
        if not rows:
            logger.info(f"Session {session_id} not found")
            return None
        return row_to_session(rows[0])
