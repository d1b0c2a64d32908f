"""Background task manager and asyncio scheduler."""

from __future__ import annotations

import asyncio
import threading

from cmdroute.background_tasks import BackgroundTaskManager
from cmdroute.scheduler import AsyncioScheduler


async def test_task_lifecycle_and_callbacks():
    """Launch, complete and fail tasks; callbacks see every transition."""
    manager = BackgroundTaskManager()
    launched: list[str] = []
    completed: list[tuple[str, str]] = []
    manager.on_launch(launched.append)
    manager.on_complete(lambda task_id, info: completed.append((task_id, info["status"])))

    async def ok():
        return 42

    async def bad():
        raise RuntimeError("nope")

    ok_id, bad_id = manager.generate_id("job"), manager.generate_id("job")
    assert (ok_id, bad_id) == ("job-1", "job-2")
    manager.launch(ok_id, ok, description="fine")
    manager.launch(bad_id, bad)

    assert (await manager.wait(ok_id))["result"] == 42
    failed = await manager.wait(bad_id)
    assert failed["status"] == "failed"
    assert failed["error"] == "nope"
    assert launched == ["job-1", "job-2"]
    assert sorted(completed) == [("job-1", "completed"), ("job-2", "failed")]
    assert [t["description"] for t in manager.list_tasks()] == ["fine", ""]
    assert manager.check("missing")["status"] == "unknown"


async def test_cleanup_cancels_running_tasks():
    manager = BackgroundTaskManager()
    manager.launch("sleep-1", lambda: asyncio.sleep(10))
    assert manager.running_count == 1
    cancelled = manager.cleanup()
    await asyncio.gather(*cancelled, return_exceptions=True)
    assert manager.check("sleep-1")["status"] == "cancelled"


async def test_run_now_stays_on_loop_thread():
    scheduler = AsyncioScheduler()
    loop_thread = threading.get_ident()
    assert await scheduler.run_now(threading.get_ident) == loop_thread


async def test_run_later_offloads_blocking_work():
    scheduler = AsyncioScheduler()
    loop_thread = threading.get_ident()
    task_id = scheduler.run_later("blocking", threading.get_ident)
    result = await scheduler.wait(task_id)
    assert result["status"] == "completed"
    assert result["result"] != loop_thread
    await scheduler.aclose()


async def test_periodic_work_runs_until_closed():
    scheduler = AsyncioScheduler()
    ticks: list[int] = []
    scheduler.run_periodically(0.01, lambda: ticks.append(1))
    await asyncio.sleep(0.1)
    await scheduler.aclose()
    count = len(ticks)
    assert count >= 2
    await asyncio.sleep(0.05)
    assert len(ticks) == count


async def test_finished_tasks_are_pruned_to_history():
    manager = BackgroundTaskManager(history=3)

    async def job():
        return "done"

    task_ids = [manager.generate_id("job") for _ in range(10)]
    tasks = [manager.launch(task_id, job) for task_id in task_ids]
    await asyncio.gather(*tasks)
    await asyncio.sleep(0)

    assert sorted(t["task_id"] for t in manager.list_tasks()) == ["job-10", "job-8", "job-9"]
    assert manager.check("job-1")["status"] == "unknown"
    assert (await manager.wait("job-10"))["result"] == "done"
    assert manager.running_count == 0
    assert not manager._tasks


async def test_repeated_background_dispatches_stay_bounded():
    scheduler = AsyncioScheduler(BackgroundTaskManager(history=5))
    for _ in range(50):
        await scheduler.wait(scheduler.run_later("echo", lambda: None))
    assert len(scheduler.task_manager.list_tasks()) == 5
    assert not scheduler.task_manager._tasks
    await scheduler.aclose()
