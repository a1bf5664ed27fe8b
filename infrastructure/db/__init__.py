"""
Infrastructure Database Layer.

This package provides implementations of the interfaces defined in
application.ports:
- Operation stores for the local set queue (in-memory and SQLite)
- Supabase-backed remote set writer and session reader

Usage:
    from supabase import create_client
    from infrastructure.db import (
        SqliteOperationStore,
        SupabaseSetWriter,
        SupabaseSessionRepository,
    )

    client = create_client(SUPABASE_URL, SUPABASE_KEY)

    store = SqliteOperationStore("set_queue.db")
    writer = SupabaseSetWriter(client)
    session_repo = SupabaseSessionRepository(client)
"""

from infrastructure.db.operation_store import InMemoryOperationStore, SqliteOperationStore
from infrastructure.db.set_writer import SupabaseSetWriter
from infrastructure.db.session_repository import SupabaseSessionRepository

__all__ = [
    # Local queue storage
    "InMemoryOperationStore",
    "SqliteOperationStore",

    # Remote store
    "SupabaseSetWriter",
    "SupabaseSessionRepository",
]
