"""
Tests for BackgroundDispatcher.

Covers:
  - Sequential FIFO dispatch
  - Handler failure isolation (exceptions and failed JobResults)
  - Cooperative shutdown: idle stop, draining the in-flight job, dropped backlog
  - Lifecycle state and stats
"""
import asyncio
import pytest

from job_queue.dispatcher import BackgroundDispatcher, DispatcherState
from job_queue.job_queue import JobQueue
from job_queue.results import JobResult


async def wait_until(predicate, timeout: float = 2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.001)


class TestDispatch:
    @pytest.mark.asyncio
    async def test_crashing_job_does_not_stop_the_loop(self):
        handled = []

        async def handler(job):
            handled.append(job)
            if job == 3:
                raise RuntimeError("boom")
            return JobResult.success()

        queue = JobQueue("test")
        dispatcher = BackgroundDispatcher("test", queue, handler)
        for i in range(1, 11):
            queue.enqueue(i)

        await dispatcher.start()
        await wait_until(lambda: len(handled) == 10)
        assert dispatcher.is_running
        assert dispatcher.state == DispatcherState.RUNNING
        await dispatcher.stop()

        assert handled == list(range(1, 11))
        assert dispatcher.crashed == 1
        assert dispatcher.processed == 9
        assert dispatcher.failed == 0

    @pytest.mark.asyncio
    async def test_handler_cancellation_does_not_stop_the_loop(self):
        handled = []

        async def handler(job):
            handled.append(job)
            if job == 3:
                raise asyncio.CancelledError()
            return JobResult.success()

        queue = JobQueue("test")
        dispatcher = BackgroundDispatcher("test", queue, handler)
        for i in range(1, 6):
            queue.enqueue(i)

        await dispatcher.start()
        await wait_until(lambda: dispatcher.processed == 4)

        assert handled == [1, 2, 3, 4, 5]
        assert dispatcher.crashed == 1
        assert dispatcher.is_running
        assert dispatcher.state == DispatcherState.RUNNING
        assert queue.depth == 0

        await dispatcher.stop()
        assert dispatcher.state == DispatcherState.STOPPED

    @pytest.mark.asyncio
    async def test_cancelled_loop_reports_stopped(self):
        started = asyncio.Event()

        async def handler(job):
            started.set()
            await asyncio.Event().wait()

        queue = JobQueue("test")
        dispatcher = BackgroundDispatcher("test", queue, handler)
        queue.enqueue("stuck")
        task = await dispatcher.start()
        await asyncio.wait_for(started.wait(), timeout=1)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert dispatcher.state == DispatcherState.STOPPED
        assert dispatcher.crashed == 0

    @pytest.mark.asyncio
    async def test_failed_result_counted_separately(self):
        async def handler(job):
            if job == "bad":
                return JobResult.failure("Email subject is required")
            return JobResult.success()

        queue = JobQueue("test")
        dispatcher = BackgroundDispatcher("test", queue, handler)
        await dispatcher.start()
        for job in ("ok", "bad", "ok"):
            queue.enqueue(job)

        await wait_until(lambda: dispatcher.processed + dispatcher.failed == 3)
        await dispatcher.stop()

        assert dispatcher.processed == 2
        assert dispatcher.failed == 1

    @pytest.mark.asyncio
    async def test_jobs_handled_one_at_a_time(self):
        active = 0
        peak = 0

        async def handler(job):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.001)
            active -= 1

        queue = JobQueue("test")
        dispatcher = BackgroundDispatcher("test", queue, handler)
        await dispatcher.start()
        for i in range(20):
            queue.enqueue(i)

        await wait_until(lambda: dispatcher.processed == 20)
        await dispatcher.stop()
        assert peak == 1


class TestShutdown:
    @pytest.mark.asyncio
    async def test_stop_while_idle(self):
        async def handler(job):
            return None

        dispatcher = BackgroundDispatcher("idle", JobQueue("idle"), handler)
        await dispatcher.start()
        await asyncio.sleep(0)
        assert dispatcher.state == DispatcherState.RUNNING

        await asyncio.wait_for(dispatcher.stop(), timeout=1)
        assert dispatcher.state == DispatcherState.STOPPED
        assert not dispatcher.is_running

    @pytest.mark.asyncio
    async def test_stop_before_start_is_noop(self):
        async def handler(job):
            return None

        dispatcher = BackgroundDispatcher("never", JobQueue("never"), handler)
        await dispatcher.stop()
        assert dispatcher.state == DispatcherState.STOPPED

    @pytest.mark.asyncio
    async def test_in_flight_job_completes_and_backlog_dropped(self):
        started = asyncio.Event()
        release = asyncio.Event()
        completed = []

        async def handler(job):
            started.set()
            await release.wait()
            completed.append(job)

        queue = JobQueue("slow")
        dispatcher = BackgroundDispatcher("slow", queue, handler)
        for job in ("first", "second", "third"):
            queue.enqueue(job)

        await dispatcher.start()
        await asyncio.wait_for(started.wait(), timeout=1)

        stopping = asyncio.create_task(dispatcher.stop())
        await asyncio.sleep(0)
        assert dispatcher.state == DispatcherState.DRAINING
        assert not stopping.done()

        release.set()
        await asyncio.wait_for(stopping, timeout=1)

        assert completed == ["first"]
        assert queue.depth == 2
        assert dispatcher.state == DispatcherState.STOPPED

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        async def handler(job):
            return None

        dispatcher = BackgroundDispatcher("twice", JobQueue("twice"), handler)
        first = await dispatcher.start()
        second = await dispatcher.start()
        assert first is second
        await dispatcher.stop()


class TestStats:
    @pytest.mark.asyncio
    async def test_stats_snapshot(self):
        async def handler(job):
            return JobResult.success()

        queue = JobQueue("email")
        dispatcher = BackgroundDispatcher("email", queue, handler)
        queue.enqueue("pending")

        stats = dispatcher.stats
        assert stats["name"] == "email"
        assert stats["state"] == "stopped"
        assert stats["queue_depth"] == 1
        assert stats["processed"] == 0
