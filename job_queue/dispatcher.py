"""
Background Dispatcher: long-lived loop that drains one JobQueue.

Lifecycle:
  starting ──▶ running ──▶ draining ──▶ stopped
                  │                        ▲
                  └──── (idle stop) ───────┘

One dispatcher per queue. Handler failures are isolated: an exception from a
handler is logged and the loop moves on to the next job. Shutdown is
cooperative: an idle dispatcher stops at its wait, a busy one finishes the
current job first. Jobs still queued at stop are dropped.
"""
from __future__ import annotations

import asyncio
import time
import structlog
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from job_queue.job_queue import JobQueue
from job_queue.results import JobResult

logger = structlog.get_logger()

T = TypeVar("T")

JobHandler = Callable[[T], Awaitable[Any]]


class DispatcherState(str, Enum):
    STARTING = "starting"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class BackgroundDispatcher(Generic[T]):
    """
    Pulls jobs from a queue one at a time and hands each to a handler.

    Usage:
        dispatcher = BackgroundDispatcher("email", queue, handler.handle)
        await dispatcher.start()     # returns immediately, loop runs as a task
        ...
        await dispatcher.stop()      # waits for the in-flight job, then stops
    """

    def __init__(self, name: str, queue: JobQueue[T], handler: JobHandler):
        self.name = name
        self.queue = queue
        self.handler = handler
        self.state = DispatcherState.STOPPED
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None
        self._busy = False
        self.processed = 0
        self.failed = 0
        self.crashed = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> asyncio.Task:
        """Start the dispatch loop in a background task. Returns the task handle."""
        if self.is_running:
            return self._task

        self.state = DispatcherState.STARTING
        self.queue.bind(asyncio.get_running_loop())
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name=f"dispatcher:{self.name}")
        return self._task

    async def stop(self) -> None:
        """Signal shutdown and wait for the loop to exit."""
        if self._task is None:
            self.state = DispatcherState.STOPPED
            return

        if self._busy:
            self.state = DispatcherState.DRAINING
        self._stop_event.set()

        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.state = DispatcherState.STOPPED

        dropped = self.queue.depth
        if dropped:
            logger.warning("dispatcher_dropped_jobs", dispatcher=self.name, dropped=dropped)
        logger.info("dispatcher_stopped", dispatcher=self.name,
                    processed=self.processed, failed=self.failed, crashed=self.crashed)

    async def _run(self) -> None:
        self.state = DispatcherState.RUNNING
        logger.info("dispatcher_started", dispatcher=self.name, queue=self.queue.name)

        try:
            while not self._stop_event.is_set():
                try:
                    job = await self.queue.dequeue(self._stop_event)
                except asyncio.CancelledError:
                    break

                if job is None:
                    continue

                await self._dispatch(job)
        finally:
            self.state = DispatcherState.STOPPED

    def _shutting_down(self) -> bool:
        task = asyncio.current_task()
        return self._stop_event.is_set() or bool(task and task.cancelling())

    async def _dispatch(self, job: T) -> None:
        self._busy = True
        start = time.monotonic()
        try:
            result = await self.handler(job)
        except asyncio.CancelledError as e:
            if self._shutting_down():
                raise
            # a handler cancelled its own work; the loop itself was not cancelled
            self._record_crash(e)
            return
        except Exception as e:
            self._record_crash(e)
            return
        finally:
            self._busy = False
            if self._stop_event.is_set():
                self.state = DispatcherState.DRAINING

        latency_ms = round((time.monotonic() - start) * 1000, 1)
        if isinstance(result, JobResult) and not result.is_success:
            self.failed += 1
            logger.warning("job_failed",
                           dispatcher=self.name,
                           reason=result.message,
                           latency_ms=latency_ms)
        else:
            self.processed += 1
            logger.debug("job_processed", dispatcher=self.name, latency_ms=latency_ms)

    def _record_crash(self, error: BaseException) -> None:
        self.crashed += 1
        logger.error("job_handler_crashed",
                     dispatcher=self.name,
                     error=str(error) or type(error).__name__,
                     exc_info=error)

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "queue_depth": self.queue.depth,
            "processed": self.processed,
            "failed": self.failed,
            "crashed": self.crashed,
        }
