"""
Job Queue: unbounded FIFO hand-off between producers and one consumer loop.

Producers call enqueue() from request handlers, on the event loop or from worker
threads; it never blocks. The consumer awaits dequeue(), which suspends on a
counting semaphore whose value mirrors the number of queued items.

    producer ─┐
    producer ─┼─ enqueue() ──▶ deque + signal ──▶ dequeue() ──▶ dispatcher
    producer ─┘
"""
from __future__ import annotations

import asyncio
import threading
import structlog
from collections import deque
from typing import Deque, Generic, Optional, TypeVar

logger = structlog.get_logger()

T = TypeVar("T")


class QueueWaitCancelled(asyncio.CancelledError):
    """Raised by dequeue() when the stop event fires before an item arrives."""


class JobQueue(Generic[T]):
    """
    Thread-safe job queue with an async "item available" signal.

    Ordering is FIFO per producer. There is no capacity limit and no
    persistence: anything still queued when the process exits is lost.
    """

    def __init__(self, name: str):
        self.name = name
        self._items: Deque[T] = deque()
        self._signal = asyncio.Semaphore(0)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._release_lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._items)

    @property
    def depth(self) -> int:
        """Number of jobs enqueued but not yet dequeued."""
        return len(self._items)

    def bind(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Attach the queue to the event loop its consumer runs on."""
        loop = loop or asyncio.get_running_loop()
        with self._release_lock:
            self._loop = loop

    # ── Producer side ─────────────────────────────────────────

    def enqueue(self, item: T) -> None:
        if item is None:
            raise ValueError(f"Cannot enqueue None on queue '{self.name}'")

        self._items.append(item)
        self._notify()

    def _notify(self) -> None:
        with self._release_lock:
            loop = self._loop
            if loop is None or loop.is_closed():
                # unbound: no consumer can be waiting until bind() takes the lock
                self._signal.release()
                return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            self._signal.release()
        else:
            loop.call_soon_threadsafe(self._signal.release)

    # ── Consumer side ─────────────────────────────────────────

    async def dequeue(self, stop_event: Optional[asyncio.Event] = None) -> Optional[T]:
        """
        Wait for the next job and pop it.

        Raises QueueWaitCancelled if stop_event is (or becomes) set before an
        item is available; nothing is consumed in that case. Returns None if
        woken with an empty queue.
        """
        if stop_event is not None and stop_event.is_set():
            raise QueueWaitCancelled(f"Queue '{self.name}' wait cancelled")

        if self._loop is None:
            self.bind()

        if stop_event is None:
            await self._signal.acquire()
            return self._pop()

        acquire = asyncio.ensure_future(self._signal.acquire())
        stopped = asyncio.ensure_future(stop_event.wait())
        try:
            await asyncio.wait({acquire, stopped}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopped.cancel()
            if not acquire.done():
                acquire.cancel()

        if acquire.done() and not acquire.cancelled():
            return self._pop()

        raise QueueWaitCancelled(f"Queue '{self.name}' wait cancelled")

    def _pop(self) -> Optional[T]:
        try:
            return self._items.popleft()
        except IndexError:
            logger.debug("queue_spurious_wake", queue=self.name)
            return None
