"""
Infrastructure Layer for set-sync.

This package contains concrete implementations of the application ports:
- db/: operation stores and Supabase adapters
"""

from infrastructure.db import (
    InMemoryOperationStore,
    SqliteOperationStore,
    SupabaseSetWriter,
    SupabaseSessionRepository,
)

__all__ = [
    "InMemoryOperationStore",
    "SqliteOperationStore",
    "SupabaseSetWriter",
    "SupabaseSessionRepository",
]
