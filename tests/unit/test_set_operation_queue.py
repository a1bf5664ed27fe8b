"""
Unit tests for SetOperationQueue.

Covers coalescing, draining, retry/backoff, parking, cancellation, the
in-flight race between a stale write and a newer edit, durability across
queue instances, and the derived snapshot.
"""
import asyncio
import math

import pytest
from pydantic import ValidationError

from backend.services import SetOperationQueue, SyncState
from domain.models import PARKED, WriteResult
from infrastructure.db import InMemoryOperationStore
from tests.fakes import FailingOperationStore, ScriptedSetWriter, make_payload

pytestmark = pytest.mark.unit


class FakeClock:
    """Manually advanced epoch-ms clock."""

    def __init__(self, start: float = 1_000_000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, ms: float) -> None:
        self.value += ms


class Connectivity:
    def __init__(self, online: bool = True):
        self.online = online

    def __call__(self) -> bool:
        return self.online


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Yield to the event loop until predicate() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0)


def make_queue(
    store=None,
    writer=None,
    clock=None,
    connectivity=None,
    base_backoff_ms: float = 10,
    max_backoff_ms: float = 50,
):
    store = store if store is not None else InMemoryOperationStore()
    writer = writer if writer is not None else ScriptedSetWriter()
    clock = clock or FakeClock()
    queue = SetOperationQueue(
        store,
        writer,
        is_online=connectivity or Connectivity(),
        now=clock,
        base_backoff_ms=base_backoff_ms,
        max_backoff_ms=max_backoff_ms,
    )
    return queue, store, writer, clock


async def enqueue(queue, set_id: str = "set-a", session_id: str = "session-1", **payload_fields):
    return await queue.enqueue_upsert(
        set_id=set_id,
        session_id=session_id,
        session_exercise_id="exercise-1",
        payload=make_payload("exercise-1", **payload_fields),
    )


# =============================================================================
# Construction
# =============================================================================


class TestConstruction:
    """Tests for constructor validation."""

    def test_rejects_non_positive_base_backoff(self):
        with pytest.raises(ValueError):
            SetOperationQueue(InMemoryOperationStore(), ScriptedSetWriter(), base_backoff_ms=0)

    def test_rejects_base_above_max(self):
        with pytest.raises(ValueError):
            SetOperationQueue(
                InMemoryOperationStore(),
                ScriptedSetWriter(),
                base_backoff_ms=100,
                max_backoff_ms=50,
            )

    def test_initial_snapshot_is_idle(self):
        queue, *_ = make_queue()
        snapshot = queue.get_snapshot()
        assert snapshot.state == SyncState.IDLE
        assert snapshot.pending == 0
        assert snapshot.error == 0
        assert snapshot.is_flushing is False


# =============================================================================
# Enqueue / coalescing
# =============================================================================


class TestEnqueue:
    """Tests for enqueue_upsert."""

    @pytest.mark.asyncio
    async def test_enqueue_persists_before_returning(self):
        queue, store, writer, clock = make_queue()
        operation = await enqueue(queue, reps=8)

        stored = store.get_all()
        assert len(stored) == 1
        assert stored[0].op_id == operation.op_id
        assert stored[0].next_retry_at == clock.value
        assert stored[0].attempts == 0
        assert writer.calls == []

    @pytest.mark.asyncio
    async def test_coalesces_to_latest_payload(self):
        queue, store, _, clock = make_queue()
        first = await enqueue(queue, reps=8)
        clock.advance(5)
        second = await enqueue(queue, reps=10)

        stored = store.get_all()
        assert len(stored) == 1
        assert stored[0].payload.reps == 10
        assert stored[0].op_id == second.op_id
        assert second.op_id != first.op_id
        assert stored[0].created_at == first.created_at
        assert stored[0].updated_at == clock.value

    @pytest.mark.asyncio
    async def test_coalescing_resets_retry_state(self):
        writer = ScriptedSetWriter([WriteResult.failed("constraint", retryable=False)])
        queue, store, _, clock = make_queue(writer=writer)
        await enqueue(queue, reps=8)
        await queue.flush_now()
        assert store.get_all()[0].is_parked

        await enqueue(queue, reps=9)

        stored = store.get_all()[0]
        assert stored.attempts == 0
        assert stored.last_error is None
        assert stored.next_retry_at == clock.value

    @pytest.mark.asyncio
    async def test_accepts_mapping_payload(self):
        queue, store, *_ = make_queue()
        await queue.enqueue_upsert(
            set_id="set-a",
            session_id="session-1",
            session_exercise_id="exercise-1",
            payload=make_payload(reps=5).model_dump(),
        )
        assert store.get_all()[0].payload.reps == 5

    @pytest.mark.asyncio
    async def test_rejects_malformed_payload(self):
        queue, store, *_ = make_queue()
        with pytest.raises(ValidationError):
            await queue.enqueue_upsert(
                set_id="set-a",
                session_id="session-1",
                session_exercise_id="exercise-1",
                payload={"session_exercise_id": "exercise-1", "set_number": 0},
            )
        assert store.get_all() == []

    @pytest.mark.asyncio
    async def test_returned_operation_is_a_copy(self):
        queue, *_ = make_queue()
        operation = await enqueue(queue, reps=8)
        operation.payload.reps = 99
        assert queue.get_operation("set-a").payload.reps == 8

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self):
        store = FailingOperationStore()
        queue, *_ = make_queue(store=store)
        store.fail_writes = True

        with pytest.raises(OSError):
            await enqueue(queue)
        assert queue.get_operation("set-a") is None


# =============================================================================
# Cancellation
# =============================================================================


class TestCancelSet:
    """Tests for cancel_set."""

    @pytest.mark.asyncio
    async def test_cancel_preempts_send(self):
        queue, store, writer, _ = make_queue()
        await enqueue(queue)

        assert await queue.cancel_set("set-a") is True
        await queue.flush_now()

        assert writer.calls == []
        assert store.get_all() == []

    @pytest.mark.asyncio
    async def test_cancel_unknown_set_is_a_noop(self):
        queue, *_ = make_queue()
        assert await queue.cancel_set("missing") is False

    @pytest.mark.asyncio
    async def test_cancel_store_failure_propagates(self):
        store = FailingOperationStore()
        queue, *_ = make_queue(store=store)
        await enqueue(queue)
        store.fail_writes = True

        with pytest.raises(OSError):
            await queue.cancel_set("set-a")

    @pytest.mark.asyncio
    async def test_result_of_cancelled_in_flight_write_is_ignored(self):
        writer = ScriptedSetWriter([WriteResult.failed("boom", retryable=False)])
        gate = writer.hold_call(1)
        queue, store, *_ = make_queue(writer=writer)
        await enqueue(queue)

        flush = asyncio.create_task(queue.flush_now())
        await wait_until(lambda: len(writer.calls) == 1)
        await queue.cancel_set("set-a")
        gate.set()
        await flush

        assert store.get_all() == []
        assert queue.get_snapshot().state == SyncState.SYNCED


# =============================================================================
# Draining
# =============================================================================


class TestFlushNow:
    """Tests for flush_now."""

    @pytest.mark.asyncio
    async def test_success_removes_operation(self):
        queue, store, writer, _ = make_queue()
        await enqueue(queue, reps=8)
        await queue.flush_now()

        assert writer.payload_reps == [8]
        assert store.get_all() == []
        assert queue.get_snapshot().state == SyncState.SYNCED

    @pytest.mark.asyncio
    async def test_offline_flush_does_nothing(self):
        connectivity = Connectivity(online=False)
        queue, store, writer, _ = make_queue(connectivity=connectivity)
        await enqueue(queue)

        await queue.flush_now()
        assert writer.calls == []
        assert len(store.get_all()) == 1

        connectivity.online = True
        await queue.flush_now()
        assert len(writer.calls) == 1
        assert store.get_all() == []

    @pytest.mark.asyncio
    async def test_drains_oldest_first(self):
        queue, _, writer, clock = make_queue()
        await enqueue(queue, set_id="set-b", reps=2)
        clock.advance(1)
        await enqueue(queue, set_id="set-a", reps=1)
        await queue.flush_now()

        assert [op.set_id for op in writer.calls] == ["set-b", "set-a"]

    @pytest.mark.asyncio
    async def test_retry_then_success(self):
        writer = ScriptedSetWriter([WriteResult.failed("timeout", retryable=True)])
        queue, store, _, clock = make_queue(writer=writer)
        await enqueue(queue)

        await queue.flush_now()
        stored = store.get_all()
        assert len(stored) == 1
        assert stored[0].attempts == 1
        assert stored[0].last_error == "timeout"
        assert stored[0].next_retry_at == clock.value + 10

        clock.advance(10)
        await queue.flush_now()

        assert len(writer.calls) == 2
        assert store.get_all() == []

    @pytest.mark.asyncio
    async def test_operation_not_retried_before_backoff_elapses(self):
        writer = ScriptedSetWriter([WriteResult.failed("timeout", retryable=True)])
        queue, _, _, clock = make_queue(writer=writer)
        await enqueue(queue)

        await queue.flush_now()
        clock.advance(9)
        await queue.flush_now()

        assert len(writer.calls) == 1

    @pytest.mark.asyncio
    async def test_backoff_grows_and_caps(self):
        writer = ScriptedSetWriter(default=WriteResult.failed("down", retryable=True))
        queue, store, _, clock = make_queue(writer=writer)
        await enqueue(queue)

        delays = []
        for _ in range(5):
            await queue.flush_now()
            stored = store.get_all()[0]
            delays.append(stored.next_retry_at - clock.value)
            clock.advance(stored.next_retry_at - clock.value)

        assert delays == [10, 20, 40, 50, 50]
        assert store.get_all()[0].attempts == 5

    @pytest.mark.asyncio
    async def test_non_retryable_failure_parks_operation(self):
        writer = ScriptedSetWriter([WriteResult.failed("23503 foreign key", retryable=False)])
        queue, store, _, clock = make_queue(writer=writer)
        await enqueue(queue)

        for _ in range(3):
            await queue.flush_now()
            clock.advance(1_000_000)

        stored = store.get_all()
        assert len(stored) == 1
        assert stored[0].next_retry_at == PARKED
        assert math.isinf(stored[0].next_retry_at)
        assert stored[0].is_parked
        assert len(writer.calls) == 1
        assert queue.get_snapshot().state == SyncState.ERROR

    @pytest.mark.asyncio
    async def test_writer_exception_is_retryable_failure(self):
        writer = ScriptedSetWriter([RuntimeError("socket closed")])
        queue, store, *_ = make_queue(writer=writer)
        await enqueue(queue)

        await queue.flush_now()

        stored = store.get_all()[0]
        assert stored.attempts == 1
        assert stored.last_error == "socket closed"
        assert not stored.is_parked

    @pytest.mark.asyncio
    async def test_one_failure_does_not_block_others(self):
        writer = ScriptedSetWriter([
            WriteResult.failed("bad row", retryable=False),
            WriteResult.ok(),
        ])
        queue, store, _, clock = make_queue(writer=writer)
        await enqueue(queue, set_id="set-a")
        clock.advance(1)
        await enqueue(queue, set_id="set-b")

        await queue.flush_now()

        assert [op.set_id for op in store.get_all()] == ["set-a"]
        assert len(writer.calls) == 2

    @pytest.mark.asyncio
    async def test_store_failure_escapes_flush(self):
        store = FailingOperationStore()
        queue, *_ = make_queue(store=store)
        await enqueue(queue)
        store.fail_writes = True

        with pytest.raises(OSError):
            await queue.flush_now()
        assert queue.get_snapshot().is_flushing is False


# =============================================================================
# In-flight race
# =============================================================================


class TestInFlightRace:
    """A newer edit made while an older write is in flight must win."""

    @pytest.mark.asyncio
    async def test_newer_edit_wins_over_stale_success(self):
        writer = ScriptedSetWriter()
        gate = writer.hold_call(1)
        queue, store, _, clock = make_queue(writer=writer)
        await enqueue(queue, reps=8)

        flush = asyncio.create_task(queue.flush_now())
        await wait_until(lambda: len(writer.calls) == 1)

        clock.advance(1)
        await enqueue(queue, reps=12)
        stored = store.get_all()
        assert len(stored) == 1
        assert stored[0].payload.reps == 12
        assert stored[0].op_id != writer.calls[0].op_id

        gate.set()
        await flush

        assert writer.payload_reps == [8, 12]
        assert store.get_all() == []

    @pytest.mark.asyncio
    async def test_concurrent_flushes_never_double_send(self):
        writer = ScriptedSetWriter()
        gate = writer.hold_call(1)
        queue, store, *_ = make_queue(writer=writer)
        await enqueue(queue)

        first = asyncio.create_task(queue.flush_now())
        await wait_until(lambda: len(writer.calls) == 1)
        second = asyncio.create_task(queue.flush_now())
        await asyncio.sleep(0)
        gate.set()
        await asyncio.gather(first, second)

        assert len(writer.calls) == 1
        assert store.get_all() == []


# =============================================================================
# Durability
# =============================================================================


class TestDurability:
    """Operations survive the queue instance that queued them."""

    @pytest.mark.asyncio
    async def test_second_instance_sees_and_flushes_operations(self):
        store = InMemoryOperationStore()
        first, *_ = make_queue(store=store, connectivity=Connectivity(online=False))
        await enqueue(first, reps=8)
        await first.flush_now()

        writer = ScriptedSetWriter()
        second, *_ = make_queue(store=store, writer=writer)
        pending = await second.get_pending_operations_for_session("session-1")
        assert [op.payload.reps for op in pending] == [8]

        await second.flush_now()
        assert writer.payload_reps == [8]
        assert store.get_all() == []

    @pytest.mark.asyncio
    async def test_load_is_idempotent(self):
        store = InMemoryOperationStore()
        first, *_ = make_queue(store=store)
        await enqueue(first)

        second, *_ = make_queue(store=store)
        await second.load()
        await second.load()
        assert second.get_snapshot().pending == 1


# =============================================================================
# Queries
# =============================================================================


class TestQueries:
    """Tests for read-side helpers."""

    @pytest.mark.asyncio
    async def test_pending_operations_scoped_to_session(self):
        queue, _, _, clock = make_queue()
        await enqueue(queue, set_id="set-a", session_id="session-1")
        clock.advance(1)
        await enqueue(queue, set_id="set-b", session_id="session-2")
        clock.advance(1)
        await enqueue(queue, set_id="set-c", session_id="session-1")

        pending = await queue.get_pending_operations_for_session("session-1")
        assert [op.set_id for op in pending] == ["set-a", "set-c"]

    @pytest.mark.asyncio
    async def test_next_retry_at_ignores_parked(self):
        writer = ScriptedSetWriter([WriteResult.failed("rejected", retryable=False)])
        queue, *_ = make_queue(writer=writer)
        assert queue.next_retry_at() is None

        await enqueue(queue)
        await queue.flush_now()
        assert queue.next_retry_at() is None

    @pytest.mark.asyncio
    async def test_next_retry_at_is_earliest_scheduled(self):
        writer = ScriptedSetWriter([WriteResult.failed("timeout", retryable=True)])
        queue, _, _, clock = make_queue(writer=writer)
        await enqueue(queue)
        await queue.flush_now()

        assert queue.next_retry_at() == clock.value + 10


# =============================================================================
# Snapshot / subscription
# =============================================================================


class TestSnapshot:
    """Tests for get_snapshot and subscribe."""

    @pytest.mark.asyncio
    async def test_pending_state_after_enqueue(self):
        queue, *_ = make_queue()
        await enqueue(queue, set_id="set-a", session_id="session-1")
        await enqueue(queue, set_id="set-b", session_id="session-2")

        snapshot = queue.get_snapshot()
        assert snapshot.state == SyncState.PENDING
        assert snapshot.pending == 2
        assert snapshot.sessions["session-1"].pending == 1
        assert snapshot.sessions["session-2"].state == SyncState.PENDING

    @pytest.mark.asyncio
    async def test_error_state_reports_last_error_per_session(self):
        writer = ScriptedSetWriter([WriteResult.failed("check violation", retryable=False)])
        queue, *_ = make_queue(writer=writer)
        await enqueue(queue, set_id="set-a", session_id="session-1")
        await queue.flush_now()
        await enqueue(queue, set_id="set-b", session_id="session-2", reps=3)

        snapshot = queue.get_snapshot()
        assert snapshot.state == SyncState.ERROR
        assert snapshot.error == 1
        assert snapshot.pending == 2
        assert snapshot.last_error == "check violation"
        assert snapshot.sessions["session-1"].state == SyncState.ERROR
        assert snapshot.sessions["session-2"].state == SyncState.PENDING

    @pytest.mark.asyncio
    async def test_subscriber_sees_syncing_then_synced(self):
        queue, *_ = make_queue()
        await enqueue(queue)
        states = []
        unsubscribe = queue.subscribe(lambda snapshot: states.append(snapshot.state))

        await queue.flush_now()

        assert states[0] == SyncState.PENDING
        assert SyncState.SYNCING in states
        assert states[-1] == SyncState.SYNCED

        unsubscribe()
        count = len(states)
        await enqueue(queue)
        assert len(states) == count

    @pytest.mark.asyncio
    async def test_emptied_queue_after_failed_pass_is_idle_not_synced(self):
        writer = ScriptedSetWriter([WriteResult.failed("timeout", retryable=True)])
        queue, *_ = make_queue(writer=writer)
        await enqueue(queue, set_id="s1")
        await queue.flush_now()

        await queue.cancel_set("s1")
        assert queue.get_snapshot().state == SyncState.IDLE

        await queue.flush_now()
        assert queue.get_snapshot().state == SyncState.SYNCED

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_queue(self):
        queue, store, *_ = make_queue()

        def broken(snapshot):
            raise RuntimeError("listener bug")

        queue.subscribe(broken)
        await enqueue(queue)
        await queue.flush_now()

        assert store.get_all() == []
