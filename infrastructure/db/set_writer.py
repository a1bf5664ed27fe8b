"""
Supabase Set Writer Implementation.

This module implements the SetWriter protocol by upserting one row per queued
operation into the sets table. Errors are classified into retryable and
non-retryable failures and returned, never raised.
"""
import asyncio
import logging

from supabase import Client

from backend.sync.retry import is_retryable_error
from domain.converters import operation_to_set_row
from domain.models import QueuedOperation, WriteResult

logger = logging.getLogger(__name__)


class SupabaseSetWriter:
    """
    Supabase-backed remote writer for the set queue.

    Usage:
        writer = SupabaseSetWriter(client)
        result = await writer(operation)
    """

    def __init__(self, client: Client, table: str = "sets"):
        """
        Initialize with Supabase client.

        Args:
            client: Supabase client instance
            table: Table receiving set rows
        """
        self._client = client
        self._table = table

    def _upsert(self, operation: QueuedOperation) -> None:
        row = operation_to_set_row(operation)
        self._client.table(self._table).upsert(row, on_conflict="id").execute()

    async def __call__(self, operation: QueuedOperation) -> WriteResult:
        try:
            # supabase-py's sync client blocks; keep it off the event loop.
            await asyncio.to_thread(self._upsert, operation)
        except Exception as e:
            message = getattr(e, "message", None) or str(e) or "Unknown set sync error"
            retryable = is_retryable_error(e)
            logger.warning(
                f"Upsert of set {operation.set_id} failed "
                f"({'retryable' if retryable else 'non-retryable'}): {message}"
            )
            return WriteResult.failed(str(message), retryable=retryable)

        return WriteResult.ok()
