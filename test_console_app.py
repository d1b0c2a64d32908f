"""Console host integration with the Textual pilot."""

from __future__ import annotations

import asyncio

from textual.widgets import Input, RichLog

from cmdroute.app import CommandConsoleApp
from cmdroute.commands import CommandManager
from conftest import DemoExecutor


def record_writes(app: CommandConsoleApp) -> list[str]:
    transcript = app.query_one("#transcript", RichLog)
    written: list[str] = []
    original = transcript.write

    def write(content, *args, **kwargs):
        written.append(str(content))
        return original(content, *args, **kwargs)

    transcript.write = write
    return written


async def test_submitted_line_is_dispatched(settings):
    manager = CommandManager(prefix="/")
    manager.register(DemoExecutor(settings=settings))
    executor = manager.get("demo").executor
    app = CommandConsoleApp(manager)

    async with app.run_test(size=(100, 30)) as pilot:
        command_input = app.query_one("#command-input", Input)
        written = record_writes(app)

        command_input.value = "/demo show bob"
        await pilot.press("enter")
        await pilot.pause()

        assert executor.calls == [("show", "bob")]
        assert app.actor.messages == ["showing bob"]
        assert command_input.value == ""
        assert written == ["[dim]> /demo show bob[/dim]", "showing bob"]

    await manager.unregister_all()


async def test_unknown_command_is_reported(settings):
    manager = CommandManager(prefix="/")
    manager.register(DemoExecutor(settings=settings))
    app = CommandConsoleApp(manager, permissions=())

    async with app.run_test(size=(100, 30)) as pilot:
        written = record_writes(app)
        app.query_one("#command-input", Input).value = "/nope"
        await pilot.press("enter")
        await pilot.pause()
        assert written[-1] == "[red]Unknown command: /nope[/red]"

    await manager.unregister_all()


async def test_messages_from_worker_threads_reach_transcript():
    app = CommandConsoleApp(CommandManager(prefix="/"))

    async with app.run_test(size=(100, 30)) as pilot:
        written = record_writes(app)
        await asyncio.to_thread(app.post_line, "from worker")
        app.post_line("from app")
        await pilot.pause()
        assert written == ["from worker", "from app"]
