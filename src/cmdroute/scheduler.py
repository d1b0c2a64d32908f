"""Execution contexts used by executors: run now, run later, run periodically."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Protocol

from cmdroute.background_tasks import BackgroundTaskManager

logger = logging.getLogger(__name__)

Work = Callable[[], Any]


class PeriodicHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """What an executor needs from its host's scheduler."""

    async def run_now(self, work: Work) -> Any: ...

    def run_later(self, name: str, work: Work, description: str = "") -> str: ...

    def run_periodically(self, interval: float, work: Callable[[], None]) -> PeriodicHandle: ...

    async def aclose(self) -> None: ...


async def _call(work: Work, *, offload: bool) -> Any:
    """Run ``work``; plain callables go to a worker thread when ``offload``."""
    if inspect.iscoroutinefunction(work):
        return await work()
    if offload:
        result = await asyncio.to_thread(work)
    else:
        result = work()
    if inspect.isawaitable(result):
        return await result
    return result


class PeriodicTask:
    """Calls ``work`` every ``interval`` seconds until cancelled."""

    def __init__(self, interval: float, work: Callable[[], None]) -> None:
        self.interval = interval
        self._work = work
        self._task = asyncio.create_task(self._loop())

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self._work()
            except Exception:
                logger.exception("Periodic task %r failed", self._work)

    def cancel(self) -> None:
        self._task.cancel()

    @property
    def task(self) -> asyncio.Task:
        return self._task


class AsyncioScheduler:
    """Scheduler backed by the running asyncio loop.

    The primary context is the event loop itself: ``run_now`` awaits the work
    in place. ``run_later`` hands it to a :class:`BackgroundTaskManager`;
    blocking callables there run on the default thread pool.
    """

    def __init__(self, task_manager: BackgroundTaskManager | None = None) -> None:
        self.task_manager = task_manager or BackgroundTaskManager()
        self._periodic: set[PeriodicTask] = set()

    async def run_now(self, work: Work) -> Any:
        return await _call(work, offload=False)

    def run_later(self, name: str, work: Work, description: str = "") -> str:
        task_id = self.task_manager.generate_id(name)

        async def runner() -> Any:
            return await _call(work, offload=True)

        self.task_manager.launch(task_id, runner, description=description)
        return task_id

    def run_periodically(self, interval: float, work: Callable[[], None]) -> PeriodicTask:
        handle = PeriodicTask(interval, work)
        self._periodic.add(handle)
        handle.task.add_done_callback(lambda _: self._periodic.discard(handle))
        return handle

    async def wait(self, task_id: str) -> dict[str, Any]:
        return await self.task_manager.wait(task_id)

    async def aclose(self) -> None:
        pending: list[Awaitable[Any]] = []
        for handle in list(self._periodic):
            handle.cancel()
            pending.append(handle.task)
        self._periodic.clear()
        pending.extend(self.task_manager.cleanup())
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
