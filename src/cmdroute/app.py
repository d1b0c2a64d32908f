"""Textual console host for command executors."""

from __future__ import annotations

import logging
from typing import ClassVar, Iterable

from rich.markup import escape
from textual.app import App, ComposeResult
from textual.binding import Binding, BindingType
from textual.widgets import Footer, Input, RichLog

from cmdroute.actors import Actor, LocalUser
from cmdroute.commands.manager import CommandManager
from cmdroute.completion import CommandSuggester

logger = logging.getLogger(__name__)


class CommandConsoleApp(App):
    """Single-screen console: a transcript above a command input."""

    TITLE = "cmdroute"
    CSS_PATH = "app.tcss"
    ENABLE_COMMAND_PALETTE = False

    BINDINGS: ClassVar[list[BindingType]] = [
        Binding("ctrl+d", "quit", "Quit", show=True, priority=True),
        Binding("ctrl+l", "clear_transcript", "Clear", show=True),
    ]

    def __init__(
        self,
        manager: CommandManager,
        *,
        actor: Actor | None = None,
        permissions: Iterable[str] = ("*",),
        operator: bool = False,
        **kwargs,
    ) -> None:
        """Initialize the console.

        Args:
            manager: Command table that input lines are dispatched to
            actor: Actor issuing the lines (defaults to a local user whose
                messages are written to the transcript)
            permissions: Permission nodes of the default local user
            operator: Whether the default local user is an operator
            **kwargs: Additional arguments passed to parent
        """
        super().__init__(**kwargs)
        self._manager = manager
        self.actor = actor or LocalUser(
            "you", permissions=permissions, operator=operator, sink=self.post_line
        )

    def compose(self) -> ComposeResult:
        yield RichLog(id="transcript", markup=True, wrap=True)
        yield Input(
            placeholder=f"{self._manager.prefix}command ...  (Tab accepts a suggestion)",
            suggester=CommandSuggester(self._manager, self.actor),
            id="command-input",
        )
        yield Footer()

    def on_mount(self) -> None:
        labels = ", ".join(self._manager.labels_for(self.actor)) or "none"
        self.transcript.write(f"[bold]cmdroute[/bold] - commands: [cyan]{labels}[/cyan]")
        self.query_one("#command-input", Input).focus()

    @property
    def transcript(self) -> RichLog:
        return self.query_one("#transcript", RichLog)

    def post_line(self, message: str) -> None:
        """Append ``message`` to the transcript from any thread."""
        try:
            self.call_from_thread(self.write_line, message)
        except RuntimeError:
            # Already on the app's thread
            self.write_line(message)

    def write_line(self, message: str) -> None:
        self.transcript.write(message)

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        line = event.value.strip()
        event.input.clear()
        if not line:
            return
        self.transcript.write(f"[dim]> {escape(line)}[/dim]")
        if not await self._manager.dispatch(self.actor, line):
            self.transcript.write(f"[red]Unknown command: {escape(line.split()[0])}[/red]")

    def action_clear_transcript(self) -> None:
        self.transcript.clear()


async def run_console_app(
    manager: CommandManager, *, permissions: Iterable[str] = ("*",), operator: bool = False
) -> None:
    """Run the Textual console until the user quits."""
    app = CommandConsoleApp(manager, permissions=permissions, operator=operator)
    try:
        await app.run_async()
    finally:
        await manager.unregister_all()
