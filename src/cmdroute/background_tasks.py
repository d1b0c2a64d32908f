"""Background execution for asynchronous command handlers."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

LaunchCallback = Callable[[str], Any]
CompleteCallback = Callable[[str, dict[str, Any]], Any]


@dataclass
class TaskRecord:
    """Bookkeeping for one background invocation."""

    task_id: str
    description: str = ""
    started: float = field(default_factory=time.monotonic)
    status: str = "running"
    result: Any = None
    error: str | None = None
    duration: float | None = None

    def finish(self, status: str, *, result: Any = None, error: str | None = None) -> None:
        self.status = status
        self.result = result
        self.error = error
        self.duration = round(time.monotonic() - self.started, 3)

    def as_dict(self) -> dict[str, Any]:
        if self.status == "running":
            return {"status": "running", "elapsed": round(time.monotonic() - self.started, 3)}
        info: dict[str, Any] = {"status": self.status, "duration": self.duration}
        if self.status == "completed":
            info["result"] = self.result
        else:
            info["error"] = self.error
        return info


def _unknown(task_id: str) -> dict[str, Any]:
    return {"status": "unknown", "error": f"No task with id '{task_id}'."}


class BackgroundTaskManager:
    """Runs handler invocations as asyncio tasks and tracks their outcome.

    Status is one of running, completed, failed or cancelled. Tasks are never
    cancelled one by one; :meth:`cleanup` cancels whatever is still running
    at shutdown. Only the latest ``history`` finished records are kept.
    """

    def __init__(self, history: int = 100) -> None:
        self.history = history
        self._records: dict[str, TaskRecord] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._sequence: dict[str, int] = {}
        self._launch_callbacks: list[LaunchCallback] = []
        self._complete_callbacks: list[CompleteCallback] = []

    def generate_id(self, handler_name: str) -> str:
        """``<handler>-<n>``, numbered per handler."""
        self._sequence[handler_name] = self._sequence.get(handler_name, 0) + 1
        return f"{handler_name}-{self._sequence[handler_name]}"

    def launch(
        self,
        task_id: str,
        work: Callable[[], Awaitable[Any]],
        description: str = "",
    ) -> asyncio.Task:
        """Start ``work`` (a zero-argument coroutine function) as task ``task_id``."""
        record = TaskRecord(task_id=task_id, description=description)
        self._records[task_id] = record
        task = asyncio.create_task(self._run(record, work), name=task_id)
        task.add_done_callback(lambda done: self._finished(record, done))
        self._tasks[task_id] = task
        for callback in self._launch_callbacks:
            try:
                callback(task_id)
            except Exception:
                logger.exception("Launch callback failed for %s", task_id)
        return task

    async def _run(self, record: TaskRecord, work: Callable[[], Awaitable[Any]]) -> None:
        try:
            record.finish("completed", result=await work())
        except asyncio.CancelledError:
            record.finish("cancelled", error="Task was cancelled.")
            raise
        except Exception as exc:
            record.finish("failed", error=str(exc) or type(exc).__name__)
            logger.debug("Background task %s failed: %r", record.task_id, exc)

        info = record.as_dict()
        for callback in self._complete_callbacks:
            try:
                outcome = callback(record.task_id, info)
                if asyncio.iscoroutine(outcome):
                    await outcome
            except Exception:
                logger.exception("Completion callback failed for %s", record.task_id)

    def _finished(self, record: TaskRecord, task: asyncio.Task) -> None:
        # A task cancelled before its first step never enters _run
        if record.status == "running" and task.cancelled():
            record.finish("cancelled", error="Task was cancelled.")
        if self._tasks.get(record.task_id) is task:
            del self._tasks[record.task_id]
        finished = [task_id for task_id, kept in self._records.items() if kept.status != "running"]
        for task_id in finished[: max(0, len(finished) - self.history)]:
            del self._records[task_id]

    def check(self, task_id: str) -> dict[str, Any]:
        """Status of ``task_id`` without waiting for it."""
        record = self._records.get(task_id)
        return record.as_dict() if record else _unknown(task_id)

    async def wait(self, task_id: str) -> dict[str, Any]:
        """Wait for ``task_id`` to finish and return its final status."""
        task = self._tasks.get(task_id)
        if task is None:
            return self.check(task_id)
        await asyncio.gather(task, return_exceptions=True)
        return self.check(task_id)

    def list_tasks(self) -> list[dict[str, Any]]:
        return [
            {**record.as_dict(), "task_id": task_id, "description": record.description}
            for task_id, record in sorted(self._records.items())
        ]

    def on_launch(self, callback: LaunchCallback) -> None:
        """Call ``callback(task_id)`` whenever a task starts."""
        self._launch_callbacks.append(callback)

    def on_complete(self, callback: CompleteCallback) -> None:
        """Call ``callback(task_id, info)`` whenever a task finishes; may be async."""
        self._complete_callbacks.append(callback)

    @property
    def running_count(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    def cleanup(self) -> list[asyncio.Task]:
        """Cancel every running task and return them."""
        running = [task for task in self._tasks.values() if not task.done()]
        for task in running:
            task.cancel()
        return running
