"""Main entry point and console loop for cmdroute."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from rich.logging import RichHandler
from rich.markup import escape

from cmdroute._version import __version__
from cmdroute.actors import Actor, ConsoleActor, LocalUser
from cmdroute.commands.manager import CommandManager
from cmdroute.config import console, settings
from cmdroute.loader import load_executors

DEMO_EXECUTOR = "cmdroute.demo:TodoCommand"

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="cmdroute - interactive console for pattern-routed commands",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"cmdroute {__version__}")
    parser.add_argument(
        "--executor",
        action="append",
        dest="executors",
        default=[],
        metavar="MODULE:CLASS",
        help="Executor class to register (repeatable). Defaults to the demo todo command.",
    )
    parser.add_argument(
        "--plain",
        action="store_true",
        help="Use a plain line-based prompt instead of the full-screen console",
    )
    parser.add_argument(
        "--console",
        action="store_true",
        help="Issue commands as the console actor instead of an interactive user",
    )
    parser.add_argument("--operator", action="store_true", help="Make the local user an operator")
    parser.add_argument(
        "--grant",
        action="append",
        default=[],
        metavar="NODE",
        help="Grant a permission node to the local user (repeatable, supports 'a.b.*')",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def setup_logging(*, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
    )


def build_manager(entries: list[str]) -> CommandManager:
    manager = CommandManager(prefix=settings.command_prefix)
    for executor in load_executors(entries or [DEMO_EXECUTOR], settings=settings):
        manager.register(executor)
    return manager


def build_actor(args: argparse.Namespace) -> Actor:
    if args.console:
        return ConsoleActor(console)
    return LocalUser(
        "you",
        permissions=args.grant or ["*"],
        operator=args.operator,
        sink=console.print,
    )


async def run_plain(manager: CommandManager, actor: Actor) -> None:
    """Read lines from stdin until EOF or ``exit``."""
    labels = ", ".join(manager.labels_for(actor)) or "none"
    console.print(f"[bold]cmdroute[/bold] {__version__} - commands: [cyan]{labels}[/cyan]")
    console.print("[dim]Type 'exit' or press Ctrl+D to quit.[/dim]")
    try:
        while True:
            try:
                line = await asyncio.to_thread(console.input, "[bold green]> [/bold green]")
            except EOFError:
                break
            line = line.strip()
            if not line:
                continue
            if line in ("exit", "quit"):
                break
            if not await manager.dispatch(actor, line):
                console.print(f"[red]Unknown command: {escape(line.split()[0])}[/red]")
    finally:
        await manager.unregister_all()


async def run(args: argparse.Namespace) -> None:
    manager = build_manager([*args.executors, *settings.executors])
    if not manager.commands:
        console.print("[red]No executors could be loaded.[/red]")
        sys.exit(1)
    logger.debug("Registered commands: %s", ", ".join(info.name for info in manager.commands))

    if args.plain or args.console:
        await run_plain(manager, build_actor(args))
        return

    from cmdroute.app import run_console_app

    await run_console_app(manager, permissions=args.grant or ["*"], operator=args.operator)


def main(argv: list[str] | None = None) -> None:
    """Entry point for console script."""
    args = parse_args(argv)
    setup_logging(verbose=args.verbose)
    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")


if __name__ == "__main__":
    main()
