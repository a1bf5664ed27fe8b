"""
Operation Store Implementations.

This module implements the OperationStore protocol twice:
- InMemoryOperationStore: reference implementation, lives as long as the process
- SqliteOperationStore: aiosqlite-backed, survives process restarts
"""
import json
import logging
from typing import Any, Dict, List, Optional

import aiosqlite

from domain.models import PARKED, QueuedOperation, SetPayload

logger = logging.getLogger(__name__)


class InMemoryOperationStore:
    """
    In-memory implementation of OperationStore.

    Records are copied on the way in and out, so callers can never mutate
    what is stored.

    Usage:
        store = InMemoryOperationStore()
        await store.save(operation)
        operations = await store.load_all()
    """

    def __init__(self):
        self._records: Dict[str, QueuedOperation] = {}

    def reset(self) -> None:
        """Clear all stored operations."""
        self._records.clear()

    def get_all(self) -> List[QueuedOperation]:
        """Get all stored operations without awaiting (test helper)."""
        return [op.model_copy(deep=True) for op in self._records.values()]

    async def load_all(self) -> List[QueuedOperation]:
        return self.get_all()

    async def save(self, operation: QueuedOperation) -> None:
        self._records[operation.set_id] = operation.model_copy(deep=True)

    async def remove(self, set_id: str) -> None:
        self._records.pop(set_id, None)


# ============================================================================
# SQLite
# ============================================================================

_TABLE_DEFINITION = """
CREATE TABLE IF NOT EXISTS set_operations (
    set_id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL,
    session_exercise_id TEXT NOT NULL,
    kind TEXT NOT NULL,
    op_id TEXT NOT NULL,
    payload TEXT NOT NULL,
    attempts INTEGER NOT NULL DEFAULT 0,
    next_retry_at REAL,
    last_error TEXT,
    created_at REAL NOT NULL,
    updated_at REAL NOT NULL
)
"""

_INDEX_DEFINITIONS = (
    "CREATE INDEX IF NOT EXISTS idx_set_operations_session ON set_operations(session_id)",
    "CREATE INDEX IF NOT EXISTS idx_set_operations_next_retry ON set_operations(next_retry_at)",
)

_COLUMNS = (
    "set_id",
    "session_id",
    "session_exercise_id",
    "kind",
    "op_id",
    "payload",
    "attempts",
    "next_retry_at",
    "last_error",
    "created_at",
    "updated_at",
)


def operation_to_row(operation: QueuedOperation) -> Dict[str, Any]:
    """
    Serialize an operation to a set_operations row.

    Parked operations are stored with next_retry_at NULL so the column only
    ever holds finite values.
    """
    return {
        "set_id": operation.set_id,
        "session_id": operation.session_id,
        "session_exercise_id": operation.session_exercise_id,
        "kind": operation.kind.value,
        "op_id": operation.op_id,
        "payload": json.dumps(operation.payload.model_dump(mode="json")),
        "attempts": operation.attempts,
        "next_retry_at": None if operation.is_parked else operation.next_retry_at,
        "last_error": operation.last_error,
        "created_at": operation.created_at,
        "updated_at": operation.updated_at,
    }


def row_to_operation(row: Dict[str, Any]) -> QueuedOperation:
    """Deserialize a set_operations row."""
    next_retry_at: Optional[float] = row["next_retry_at"]
    return QueuedOperation(
        set_id=row["set_id"],
        session_id=row["session_id"],
        session_exercise_id=row["session_exercise_id"],
        kind=row["kind"],
        op_id=row["op_id"],
        payload=SetPayload.model_validate(json.loads(row["payload"])),
        attempts=row["attempts"],
        next_retry_at=PARKED if next_retry_at is None else next_retry_at,
        last_error=row["last_error"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class SqliteOperationStore:
    """
    Durable OperationStore backed by a local SQLite file.

    Each call opens its own connection, so the store holds no open handles
    between calls and can be shared by several queue instances. The schema
    is created on first use.

    Usage:
        store = SqliteOperationStore("set_queue.db")
        await store.save(operation)
    """

    def __init__(self, path: str):
        self._path = path
        self._initialized = False

    @property
    def path(self) -> str:
        return self._path

    async def _ensure_schema(self, conn: aiosqlite.Connection) -> None:
        if self._initialized:
            return
        await conn.execute(_TABLE_DEFINITION)
        for statement in _INDEX_DEFINITIONS:
            await conn.execute(statement)
        await conn.commit()
        self._initialized = True
        logger.info(f"Set operation store ready at {self._path}")

    async def load_all(self) -> List[QueuedOperation]:
        async with aiosqlite.connect(self._path) as conn:
            await self._ensure_schema(conn)
            conn.row_factory = aiosqlite.Row
            query = f"SELECT {', '.join(_COLUMNS)} FROM set_operations ORDER BY updated_at, rowid"
            async with conn.execute(query) as cursor:
                rows = await cursor.fetchall()
        return [row_to_operation(dict(row)) for row in rows]

    async def save(self, operation: QueuedOperation) -> None:
        row = operation_to_row(operation)
        placeholders = ", ".join(f":{column}" for column in _COLUMNS)
        async with aiosqlite.connect(self._path) as conn:
            await self._ensure_schema(conn)
            await conn.execute(
                f"INSERT OR REPLACE INTO set_operations ({', '.join(_COLUMNS)}) "
                f"VALUES ({placeholders})",
                row,
            )
            await conn.commit()

    async def remove(self, set_id: str) -> None:
        async with aiosqlite.connect(self._path) as conn:
            await self._ensure_schema(conn)
            await conn.execute("DELETE FROM set_operations WHERE set_id = ?", (set_id,))
            await conn.commit()
