"""Shared fixtures and test executors."""

from __future__ import annotations

import asyncio
import io
from typing import Annotated, ClassVar

import pytest
from rich.console import Console

from cmdroute.actors import Actor, ConsoleActor, LocalUser
from cmdroute.commands import (
    Arg,
    CommandExecutor,
    ExecutorSpec,
    LockScope,
    Sender,
    Target,
    UsageLimit,
    command,
)
from cmdroute.config import Settings


class ColorProvider:
    def colors(self, actor: Actor, args: list[str]) -> list[str]:
        if actor.name == "mono":
            return ["black"]
        return ["red", "green", "blue"] if len(args) < 4 else ["red"]

    def broken(self):
        raise RuntimeError("provider exploded")


class DemoExecutor(CommandExecutor):
    executor_spec: ClassVar[ExecutorSpec] = ExecutorSpec(
        aliases=("demo", "dm"),
        description="Test command",
        suggest_providers=(ColorProvider,),
    )

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.calls: list[tuple] = []
        self.help_shown = 0
        self.gate = asyncio.Event()

    def names(self) -> list[str]:
        return ["alice", "bob"]

    @command("", description="Root")
    def root(self) -> None:
        self.calls.append(("root",))

    @command("set <x> <y...>", description="Set values")
    def set_values(
        self,
        x: Annotated[int, Arg("x")],
        y: Annotated[list[str], Arg("y", suggest="colors()")],
    ) -> None:
        self.calls.append(("set", x, y))

    @command("show <name>")
    def show(
        self,
        actor: Annotated[Actor, Sender()],
        name: Annotated[str, Arg("name", suggest="names")],
    ) -> None:
        self.calls.append(("show", name))
        actor.send_message(f"showing {name}")

    @command("show all")
    def show_all(self) -> None:
        self.calls.append(("show all",))

    @command("echo <words...>")
    async def echo(
        self,
        actor: Annotated[Actor, Sender()],
        words: Annotated[list[str], Arg("words", suggest="broken")],
    ) -> None:
        actor.send_message(" ".join(words))

    @command("rename <new>")
    def rename(self, new: Annotated[str, Arg("new", suggest="<new name>")]) -> None:
        self.calls.append(("rename", new))

    @command("boom")
    def boom(self) -> None:
        raise RuntimeError("boom")

    @command("admin reset", permission="demo.admin")
    def admin_reset(self) -> None:
        self.calls.append(("admin reset",))

    @command("op only", require_op=True)
    def op_only(self) -> None:
        self.calls.append(("op only",))

    @command("console only", target=Target.CONSOLE)
    def console_only(self) -> None:
        self.calls.append(("console only",))

    @command("slow", run_async=True, usage_limit=UsageLimit(scope=LockScope.SENDER))
    async def slow(self, actor: Annotated[Actor, Sender()]) -> None:
        await self.gate.wait()
        actor.send_message("slow done")

    @command("global", run_async=True, usage_limit=UsageLimit(scope=LockScope.GLOBAL))
    async def global_job(self) -> None:
        await self.gate.wait()

    @command("crash", run_async=True, usage_limit=UsageLimit(scope=LockScope.SENDER))
    async def crash(self) -> None:
        raise ValueError("background failure")

    @command("wait", cooldown=5)
    def wait(self) -> None:
        self.calls.append(("wait",))

    @command("cplx <v>")
    def cplx(self, v: Annotated[complex, Arg("v")]) -> None:
        self.calls.append(("cplx", v))

    def handle_help(self, actor: Actor) -> None:
        self.help_shown += 1


@pytest.fixture
def settings() -> Settings:
    return Settings(cooldown_tick=1.0)


@pytest.fixture
def user() -> LocalUser:
    return LocalUser("steve", permissions=["*"], identity="steve")


@pytest.fixture
def guest() -> LocalUser:
    return LocalUser("guest", identity="guest")


@pytest.fixture
def console_actor() -> ConsoleActor:
    return ConsoleActor(Console(file=io.StringIO(), force_terminal=False))


@pytest.fixture
async def executor(settings):
    demo = DemoExecutor(settings=settings)
    yield demo
    demo.gate.set()
    await demo.aclose()
