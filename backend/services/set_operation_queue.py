"""
Set Operation Queue - local-first synchronization of workout set edits.

This module provides a durable queue between the set editing surface and the
remote store:
- Edits are coalesced per set and persisted before enqueue returns
- flush_now() drains due operations through an injected remote writer
- Retryable failures back off exponentially; non-retryable ones are parked
- An edit made while an older write for the same set is in flight gets a new
  op_id, so the late result of the older write cannot clobber it

Scheduling is left to the caller: nothing here starts a network call on its
own (see backend.services.drain_scheduler for a background loop).

Usage:
    queue = SetOperationQueue(
        store=InMemoryOperationStore(),
        writer=SupabaseSetWriter(client),
        is_online=lambda: True,
    )
    await queue.enqueue_upsert(
        set_id="set-1",
        session_id="session-1",
        session_exercise_id="ex-1",
        payload=payload,
    )
    await queue.flush_now()
    queue.get_snapshot().state  # SyncState.SYNCED
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Union

from application.ports import OperationStore, SetWriter
from backend.sync.retry import (
    DEFAULT_BASE_BACKOFF_MS,
    DEFAULT_MAX_BACKOFF_MS,
    compute_backoff_ms,
    validate_backoff_params,
)
from domain.models import PARKED, QueuedOperation, SetPayload, WriteResult

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    """Derived lifecycle state of the queue."""

    IDLE = "idle"
    PENDING = "pending"
    SYNCING = "syncing"
    SYNCED = "synced"
    ERROR = "error"


@dataclass
class SessionSyncStatus:
    """Queue status restricted to one session."""

    state: SyncState
    pending: int = 0
    error: int = 0


@dataclass
class QueueSnapshot:
    """
    Point-in-time view of the queue.

    Attributes:
        state: Derived lifecycle state
        pending: Number of queued operations (parked ones included)
        error: Number of parked operations
        is_flushing: True while a drain pass is running
        last_error: Most recent error among queued operations
        sessions: Per-session status, keyed by session_id
    """

    state: SyncState
    pending: int = 0
    error: int = 0
    is_flushing: bool = False
    last_error: Optional[str] = None
    sessions: Dict[str, SessionSyncStatus] = field(default_factory=dict)


SnapshotListener = Callable[[QueueSnapshot], Any]


def _wall_clock_ms() -> float:
    return time.time() * 1000


def _new_op_id() -> str:
    return str(uuid.uuid4())


class SetOperationQueue:
    """
    Durable, coalescing queue of set upserts.

    Holds at most one operation per set_id. The in-memory map mirrors the
    store and is loaded from it on first use, so a queue built over a store
    written by an earlier instance picks up where that one stopped.
    """

    def __init__(
        self,
        store: OperationStore,
        writer: SetWriter,
        *,
        is_online: Optional[Callable[[], bool]] = None,
        now: Optional[Callable[[], float]] = None,
        base_backoff_ms: float = DEFAULT_BASE_BACKOFF_MS,
        max_backoff_ms: float = DEFAULT_MAX_BACKOFF_MS,
    ):
        """
        Args:
            store: Durable storage for queued operations
            writer: Remote-write function, one call per operation
            is_online: Connectivity check (defaults to always online)
            now: Clock returning epoch milliseconds
            base_backoff_ms: Delay after the first retryable failure
            max_backoff_ms: Backoff ceiling

        Raises:
            ValueError: If the backoff parameters are invalid
        """
        validate_backoff_params(base_backoff_ms, max_backoff_ms)
        self._store = store
        self._writer = writer
        self._is_online = is_online or (lambda: True)
        self._now = now or _wall_clock_ms
        self._base_backoff_ms = base_backoff_ms
        self._max_backoff_ms = max_backoff_ms

        self._operations: Dict[str, QueuedOperation] = {}
        self._listeners: List[SnapshotListener] = []
        self._loaded = False
        self._draining = False
        # Outcome of the most recent online pass; None until one has run.
        self._last_drain_ok: Optional[bool] = None

        self._load_lock = asyncio.Lock()
        # Serializes drain passes.
        self._drain_lock = asyncio.Lock()
        # Guards store + map changes; never held across a remote write.
        self._state_lock = asyncio.Lock()

    # =========================================================================
    # Loading
    # =========================================================================

    async def load(self) -> None:
        """Load persisted operations from the store (once)."""
        if self._loaded:
            return
        async with self._load_lock:
            if self._loaded:
                return
            for operation in await self._store.load_all():
                self._operations[operation.set_id] = operation
            self._loaded = True

        parked = sum(1 for op in self._operations.values() if op.is_parked)
        logger.info(
            f"Set queue loaded {len(self._operations)} operation(s), {parked} parked"
        )
        self._emit()

    # =========================================================================
    # Intents
    # =========================================================================

    async def enqueue_upsert(
        self,
        *,
        set_id: str,
        session_id: str,
        session_exercise_id: str,
        payload: Union[SetPayload, Mapping[str, Any]],
    ) -> QueuedOperation:
        """
        Queue the full desired state of a set.

        An existing operation for the set is replaced (coalesced) and made
        immediately eligible again. The record is persisted before this
        returns; no network call is made.

        Args:
            set_id: Target set
            session_id: Owning session
            session_exercise_id: Owning session exercise
            payload: Full set snapshot (SetPayload or a mapping of its fields)

        Returns:
            The queued operation

        Raises:
            pydantic.ValidationError: If the payload is malformed
            Exception: Whatever the store raises on write failure
        """
        if not isinstance(payload, SetPayload):
            payload = SetPayload.model_validate(payload)

        await self.load()
        async with self._state_lock:
            timestamp = self._now()
            existing = self._operations.get(set_id)
            record = QueuedOperation(
                set_id=set_id,
                session_id=session_id,
                session_exercise_id=session_exercise_id,
                op_id=_new_op_id(),
                payload=payload,
                attempts=0,
                next_retry_at=timestamp,
                last_error=None,
                created_at=existing.created_at if existing else timestamp,
                updated_at=timestamp,
            )
            await self._store.save(record)
            self._operations[set_id] = record

        if existing:
            logger.debug(f"Coalesced set {set_id} into op {record.op_id}")
        else:
            logger.debug(f"Queued set {set_id} as op {record.op_id}")
        self._emit()
        return record.model_copy(deep=True)

    async def cancel_set(self, set_id: str) -> bool:
        """
        Drop any queued operation for a set without touching the remote store.

        A write already in flight may still land; its result is ignored.

        Args:
            set_id: Set to cancel

        Returns:
            True if an operation was queued for the set
        """
        await self.load()
        async with self._state_lock:
            await self._store.remove(set_id)
            removed = self._operations.pop(set_id, None)

        if removed:
            logger.debug(f"Cancelled queued op {removed.op_id} for set {set_id}")
        self._emit()
        return removed is not None

    # =========================================================================
    # Draining
    # =========================================================================

    async def flush_now(self) -> None:
        """
        Drain every due operation once.

        Does nothing while offline. Remote-write failures never escape; store
        failures do. Concurrent calls run one after the other, and a pass never
        sends the same op_id twice. Any failure recorded during the pass keeps
        an emptied queue from reading as synced until a later pass succeeds.
        """
        await self.load()
        async with self._drain_lock:
            if not self._is_online():
                logger.debug("Set queue offline, skipping flush")
                return

            self._draining = True
            self._emit()
            dispatched: Set[str] = set()
            succeeded = True
            try:
                while self._is_online():
                    operation = self._next_due(self._now(), dispatched)
                    if operation is None:
                        break
                    dispatched.add(operation.op_id)
                    if not await self._dispatch(operation):
                        succeeded = False
            except Exception:
                succeeded = False
                raise
            finally:
                self._last_drain_ok = succeeded
                self._draining = False
                self._emit()

    def _next_due(self, now: float, dispatched: Set[str]) -> Optional[QueuedOperation]:
        candidates = [
            op
            for op in self._operations.values()
            if op.op_id not in dispatched and op.is_due(now)
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda op: op.updated_at)

    async def _dispatch(self, operation: QueuedOperation) -> bool:
        """Send one operation; False if a failure was recorded against it."""
        set_id = operation.set_id
        try:
            result = await self._writer(operation.model_copy(deep=True))
        except Exception as e:
            logger.warning(f"Remote write for set {set_id} raised: {e}")
            result = WriteResult.failed(str(e) or type(e).__name__, retryable=True)

        async with self._state_lock:
            latest = self._operations.get(set_id)
            if latest is None or latest.op_id != operation.op_id:
                # Cancelled or superseded while in flight.
                logger.debug(f"Ignoring stale result for op {operation.op_id} (set {set_id})")
                return True

            if result.success:
                await self._store.remove(set_id)
                del self._operations[set_id]
                logger.debug(f"Synced set {set_id} (op {operation.op_id})")
            else:
                self._operations[set_id] = await self._record_failure(operation, result)

        self._emit()
        return result.success

    async def _record_failure(
        self,
        operation: QueuedOperation,
        result: WriteResult,
    ) -> QueuedOperation:
        attempts = operation.attempts + 1
        timestamp = self._now()
        error = result.error or "Unknown set sync error"

        if result.retryable:
            delay = compute_backoff_ms(attempts, self._base_backoff_ms, self._max_backoff_ms)
            next_retry_at = timestamp + delay
            logger.warning(
                f"Set {operation.set_id} write failed (attempt {attempts}): {error}. "
                f"Retrying in {delay:.0f}ms"
            )
        else:
            next_retry_at = PARKED
            logger.error(f"Set {operation.set_id} write rejected, parking op {operation.op_id}: {error}")

        failed = operation.model_copy(
            update={
                "attempts": attempts,
                "last_error": error,
                "next_retry_at": next_retry_at,
                "updated_at": timestamp,
            }
        )
        await self._store.save(failed)
        return failed

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_pending_operations_for_session(self, session_id: str) -> List[QueuedOperation]:
        """
        Get queued operations for a session, oldest first.

        Args:
            session_id: Session to scope to

        Returns:
            Copies of the queued operations, parked ones included
        """
        await self.load()
        operations = [op for op in self._operations.values() if op.session_id == session_id]
        operations.sort(key=lambda op: op.updated_at)
        return [op.model_copy(deep=True) for op in operations]

    def get_operation(self, set_id: str) -> Optional[QueuedOperation]:
        operation = self._operations.get(set_id)
        return operation.model_copy(deep=True) if operation else None

    def next_retry_at(self) -> Optional[float]:
        """Earliest finite next_retry_at among queued operations, or None."""
        scheduled = [op.next_retry_at for op in self._operations.values() if not op.is_parked]
        return min(scheduled) if scheduled else None

    def now(self) -> float:
        return self._now()

    # =========================================================================
    # Snapshot / subscription
    # =========================================================================

    def get_snapshot(self) -> QueueSnapshot:
        """Build the derived queue state."""
        sessions: Dict[str, SessionSyncStatus] = {}
        pending = 0
        errors = 0
        last_error: Optional[str] = None
        last_error_at = float("-inf")

        for operation in self._operations.values():
            pending += 1
            status = sessions.setdefault(
                operation.session_id, SessionSyncStatus(state=SyncState.PENDING)
            )
            status.pending += 1
            if operation.is_parked:
                errors += 1
                status.error += 1
                status.state = SyncState.ERROR
            if operation.last_error and operation.updated_at >= last_error_at:
                last_error = operation.last_error
                last_error_at = operation.updated_at

        if errors:
            state = SyncState.ERROR
        elif self._draining:
            state = SyncState.SYNCING
        elif pending:
            state = SyncState.PENDING
        elif self._last_drain_ok:
            state = SyncState.SYNCED
        else:
            state = SyncState.IDLE

        return QueueSnapshot(
            state=state,
            pending=pending,
            error=errors,
            is_flushing=self._draining,
            last_error=last_error,
            sessions=sessions,
        )

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """
        Register a snapshot listener.

        The listener is called right away and after every state change.

        Returns:
            Callable that unregisters the listener
        """
        self._listeners.append(listener)
        self._notify(listener, self.get_snapshot())

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self) -> None:
        if not self._listeners:
            return
        snapshot = self.get_snapshot()
        for listener in list(self._listeners):
            self._notify(listener, snapshot)

    @staticmethod
    def _notify(listener: SnapshotListener, snapshot: QueueSnapshot) -> None:
        try:
            listener(snapshot)
        except Exception:
            logger.exception("Set queue snapshot listener failed")
