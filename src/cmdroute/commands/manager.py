"""Host-side command table: routes whole lines to registered executors."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from cmdroute.actors import Actor
from cmdroute.commands.executor import CommandExecutor
from cmdroute.commands.types import CommandInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegisteredCommand:
    """Command object + executor pair."""

    info: CommandInfo
    executor: CommandExecutor


class CommandManager:
    """Maps command names and aliases to executors."""

    def __init__(self, prefix: str = "/") -> None:
        self.prefix = prefix
        self._commands: dict[str, RegisteredCommand] = {}
        self._labels: dict[str, str] = {}  # alias -> command name

    def register(self, executor: CommandExecutor) -> CommandInfo | None:
        """Register ``executor`` under every alias of its executor spec."""
        spec = executor.executor_spec
        if spec is None or not spec.aliases:
            logger.warning(
                "%s has no command aliases; not registered", type(executor).__name__
            )
            return None
        name = spec.aliases[0].lower()
        if name in self._commands:
            logger.warning("Command '%s' is already registered; replacing it", name)
            self.unregister(name)

        info = CommandInfo(
            name=name,
            aliases=tuple(alias.lower() for alias in spec.aliases[1:]),
            permission=spec.permission,
            description=spec.description,
        )
        self._commands[name] = RegisteredCommand(info=info, executor=executor)
        for label in (name, *info.aliases):
            if self._labels.get(label, name) != name:
                logger.warning("Alias '%s' now points to '%s'", label, name)
            self._labels[label] = name
        logger.debug("Registered command '%s' (%s)", name, type(executor).__name__)
        return info

    def unregister(self, name: str) -> CommandExecutor | None:
        """Remove command ``name`` (or the command an alias points to)."""
        target = self._labels.get(name.lower())
        if target is None:
            return None
        registered = self._commands.pop(target)
        for label in [label for label, owner in self._labels.items() if owner == target]:
            del self._labels[label]
        return registered.executor

    async def unregister_all(self) -> None:
        """Remove every command and close its executor."""
        executors = [registered.executor for registered in self._commands.values()]
        self._commands.clear()
        self._labels.clear()
        for executor in executors:
            await executor.aclose()

    def get(self, label: str) -> RegisteredCommand | None:
        target = self._labels.get(label.lower())
        return self._commands.get(target) if target else None

    @property
    def commands(self) -> list[CommandInfo]:
        return [registered.info for registered in self._commands.values()]

    def labels_for(self, actor: Actor) -> list[str]:
        """Every name and alias whose command ``actor`` may use."""
        return sorted(
            label
            for label, owner in self._labels.items()
            if _may_use(actor, self._commands[owner].info)
        )

    def _strip_prefix(self, line: str) -> str:
        line = line.lstrip()
        if self.prefix and line.startswith(self.prefix):
            return line[len(self.prefix) :]
        return line

    async def dispatch(self, actor: Actor, line: str) -> bool:
        """Run ``line``. Returns ``False`` when no command has its first word."""
        words = self._strip_prefix(line).split()
        if not words:
            return False
        registered = self.get(words[0])
        if registered is None:
            return False
        return await registered.executor.on_command(
            actor, registered.info, words[0], words[1:]
        )

    def complete(self, actor: Actor, line: str) -> list[str]:
        """Candidates for the word being typed at the end of ``line``."""
        text = self._strip_prefix(line)
        if " " not in text:
            partial = text.lower()
            return [label for label in self.labels_for(actor) if label.startswith(partial)]

        label, _, rest = text.partition(" ")
        registered = self.get(label)
        if registered is None or not _may_use(actor, registered.info):
            return []
        tokens = rest.split()
        if not rest or rest[-1].isspace():
            tokens.append("")
        candidates = registered.executor.on_tab_complete(actor, registered.info, label, tokens)
        return candidates or []


def _may_use(actor: Actor, info: CommandInfo) -> bool:
    return not info.permission or actor.has_permission(info.permission)
