"""A small in-memory ``todo`` command, loaded when no executors are configured."""

from __future__ import annotations

import asyncio
from enum import StrEnum
from typing import Annotated, ClassVar

from rich.markup import escape

from cmdroute.actors import Actor
from cmdroute.commands import (
    Arg,
    CommandExecutor,
    ExecutorSpec,
    LockScope,
    Sender,
    UsageLimit,
    command,
)


class Priority(StrEnum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class PriorityProvider:
    """Suggestion provider shared by executors that take a priority."""

    def priorities(self) -> list[str]:
        return [p.value for p in Priority]


class TodoCommand(CommandExecutor):
    executor_spec: ClassVar[ExecutorSpec] = ExecutorSpec(
        aliases=("todo", "td"),
        permission="todo.use",
        description="Keep a per-user todo list",
        suggest_providers=(PriorityProvider,),
    )

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.items: dict[str, list[tuple[Priority, str]]] = {}

    def _items(self, actor: Actor) -> list[tuple[Priority, str]]:
        return self.items.setdefault(actor.identity, [])

    def item_numbers(self, actor: Actor) -> list[str]:
        return [str(i) for i in range(1, len(self._items(actor)) + 1)]

    @command("add <priority> <text...>", description="Add an item", cooldown=1)
    def add(
        self,
        actor: Annotated[Actor, Sender()],
        priority: Annotated[Priority, Arg("priority", suggest="priorities()")],
        text: Annotated[list[str], Arg("text")],
    ) -> None:
        self._items(actor).append((priority, " ".join(text)))
        actor.send_message(f"Added #{len(self._items(actor))}")

    @command("list", description="Show your items")
    def list_items(self, actor: Annotated[Actor, Sender()]) -> None:
        items = self._items(actor)
        if not items:
            actor.send_message("[dim]Nothing to do.[/dim]")
            return
        for number, (priority, text) in enumerate(items, start=1):
            actor.send_message(f"{number}. [bold]{priority.value}[/bold] {escape(text)}")

    @command("done <number>", description="Remove an item")
    def done(
        self,
        actor: Annotated[Actor, Sender()],
        number: Annotated[int, Arg("number", suggest="item_numbers")],
    ) -> None:
        items = self._items(actor)
        if not 1 <= number <= len(items):
            actor.send_message(f"[red]No item #{number}[/red]")
            return
        _, text = items.pop(number - 1)
        actor.send_message(f"Done: {escape(text)}")

    @command(
        "export",
        description="Export your list in the background",
        run_async=True,
        usage_limit=UsageLimit(scope=LockScope.SENDER),
    )
    async def export(self, actor: Annotated[Actor, Sender()]) -> None:
        await asyncio.sleep(0.5)
        actor.send_message(f"Exported {len(self._items(actor))} item(s)")

    @command("clear", require_op=True, description="Clear every list")
    def clear(self, actor: Annotated[Actor, Sender()]) -> None:
        self.items.clear()
        actor.send_message("All lists cleared")

    def handle_help(self, actor: Actor) -> None:
        actor.send_message("[bold]todo[/bold] commands:")
        for line in self.usage(actor, "/todo"):
            actor.send_message(f"  {escape(line)}")
