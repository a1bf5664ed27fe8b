"""
Background drain loop for the set operation queue.

The queue never schedules itself; this scheduler is the piece a caller wires
in to drain it continuously. It flushes, then sleeps until the earliest
retry is due, the idle interval elapses, or wake() is called (for example on
a connectivity-restored or app-foregrounded event). While it sleeps it also
watches the queue, so a new edit due before the planned wake-up starts a
pass right away.

Usage:
    async with DrainScheduler(queue, idle_interval_s=30) as scheduler:
        ...
        scheduler.wake()
"""

import asyncio
import logging
from typing import Callable, Optional

from backend.services.set_operation_queue import QueueSnapshot, SetOperationQueue

logger = logging.getLogger(__name__)


class DrainScheduler:
    """Owns an asyncio task that keeps draining a SetOperationQueue."""

    def __init__(self, queue: SetOperationQueue, idle_interval_s: float = 30.0):
        if idle_interval_s <= 0:
            raise ValueError(f"idle_interval_s must be positive, got {idle_interval_s}")
        self._queue = queue
        self._idle_interval_s = idle_interval_s
        self._wake_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        # Queue-clock time (ms) the loop is sleeping until; None during a pass.
        self._sleep_until_ms: Optional[float] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the drain loop on the running event loop."""
        if self.running:
            return
        self._wake_event.clear()
        self._unsubscribe = self._queue.subscribe(self._on_queue_change)
        self._task = asyncio.create_task(self._run(), name="set-queue-drain")
        logger.info("Set queue drain scheduler started")

    async def stop(self) -> None:
        """Cancel the drain loop and wait for it to finish."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Set queue drain scheduler stopped")

    def wake(self) -> None:
        """Request an immediate drain pass."""
        self._wake_event.set()

    def _on_queue_change(self, snapshot: QueueSnapshot) -> None:
        sleep_until = self._sleep_until_ms
        if sleep_until is None:
            return
        next_retry_at = self._queue.next_retry_at()
        if next_retry_at is not None and next_retry_at < sleep_until:
            self.wake()

    def seconds_until_next_drain(self) -> float:
        """
        Delay before the next pass, from the queue's earliest retry.

        Operations still due right after a pass could not be sent (offline),
        so they wait for the idle interval or a wake() instead of spinning.
        """
        next_retry_at = self._queue.next_retry_at()
        if next_retry_at is None:
            return self._idle_interval_s
        delay_s = (next_retry_at - self._queue.now()) / 1000
        if delay_s <= 0:
            return self._idle_interval_s
        return min(delay_s, self._idle_interval_s)

    async def _run(self) -> None:
        while True:
            self._wake_event.clear()
            try:
                await self._queue.flush_now()
                delay = self.seconds_until_next_drain()
            except Exception:
                logger.exception("Set queue drain pass failed")
                delay = self._idle_interval_s

            self._sleep_until_ms = self._queue.now() + delay * 1000
            try:
                await asyncio.wait_for(self._wake_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
            finally:
                self._sleep_until_ms = None

    async def __aenter__(self) -> "DrainScheduler":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
