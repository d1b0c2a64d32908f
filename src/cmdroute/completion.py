"""Inline completion for the console host.

Provides the candidates shown while a command line is typed, and a Textual
``Suggester`` that turns the first of them into ghost text on the input.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from textual.suggester import Suggester

if TYPE_CHECKING:
    from cmdroute.actors import Actor
    from cmdroute.commands.manager import CommandManager

MAX_SUGGESTIONS = 10


def split_partial(value: str, prefix: str) -> tuple[str, str]:
    """``"/todo ad"`` -> ``("/todo ", "ad")``; the command prefix stays in the head."""
    if " " in value:
        head, partial = value.rsplit(" ", 1)
        return f"{head} ", partial
    head = prefix if prefix and value.startswith(prefix) else ""
    return head, value[len(head) :]


def completions_for(manager: CommandManager, actor: Actor, value: str) -> list[str]:
    """Full-line completions of ``value``, best first."""
    head, partial = split_partial(value, manager.prefix)
    wanted = partial.lower()
    lines = []
    for candidate in manager.complete(actor, value):
        if candidate.lower().startswith(wanted) and candidate != partial:
            lines.append(f"{head}{candidate}")
        if len(lines) >= MAX_SUGGESTIONS:
            break
    return lines


class CommandSuggester(Suggester):
    """Suggests the first completion of the command line being typed."""

    def __init__(self, manager: CommandManager, actor: Actor) -> None:
        super().__init__(use_cache=False, case_sensitive=True)
        self._manager = manager
        self._actor = actor

    async def get_suggestion(self, value: str) -> str | None:
        if not value.strip():
            return None
        lines = completions_for(self._manager, self._actor, value)
        return lines[0] if lines else None
