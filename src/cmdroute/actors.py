"""Actors: whoever types a command line."""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from enum import StrEnum
from typing import TYPE_CHECKING, Callable, Iterable

if TYPE_CHECKING:
    from rich.console import Console


class ActorKind(StrEnum):
    """Kind of actor issuing a command line."""

    INTERACTIVE = "interactive"
    CONSOLE = "console"


class Actor(ABC):
    """Issuer of a command line.

    The engine only needs identity, kind, operator status, permission checks
    and a way to deliver rich-markup messages.
    """

    kind: ActorKind

    @property
    @abstractmethod
    def identity(self) -> str: ...

    @property
    @abstractmethod
    def name(self) -> str: ...

    @property
    def is_operator(self) -> bool:
        return False

    @abstractmethod
    def has_permission(self, node: str) -> bool: ...

    @abstractmethod
    def send_message(self, message: str) -> None: ...

    @property
    def is_interactive(self) -> bool:
        return self.kind is ActorKind.INTERACTIVE

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, kind={self.kind.value})"


def permission_matches(granted: str, node: str) -> bool:
    """``a.b.*`` grants ``a.b.c``; ``*`` grants everything."""
    if granted == "*" or granted == node:
        return True
    if granted.endswith(".*"):
        return node.startswith(granted[:-1])
    return False


class ConsoleActor(Actor):
    """The process console: operator with every permission."""

    kind = ActorKind.CONSOLE

    def __init__(self, console: Console | None = None) -> None:
        if console is None:
            from cmdroute.config import console as default_console

            console = default_console
        self._console = console

    @property
    def identity(self) -> str:
        return "console"

    @property
    def name(self) -> str:
        return "CONSOLE"

    @property
    def is_operator(self) -> bool:
        return True

    def has_permission(self, node: str) -> bool:  # noqa: ARG002
        return True

    def send_message(self, message: str) -> None:
        self._console.print(message)


class LocalUser(Actor):
    """Interactive user held in memory.

    Messages are recorded in :attr:`messages` and forwarded to ``sink`` when
    one is given.
    """

    kind = ActorKind.INTERACTIVE

    def __init__(
        self,
        name: str,
        *,
        permissions: Iterable[str] = (),
        operator: bool = False,
        identity: str | None = None,
        sink: Callable[[str], None] | None = None,
    ) -> None:
        self._name = name
        self._identity = identity or uuid.uuid4().hex
        self._operator = operator
        self.permissions: set[str] = set(permissions)
        self.messages: list[str] = []
        self._sink = sink

    @property
    def identity(self) -> str:
        return self._identity

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_operator(self) -> bool:
        return self._operator

    def has_permission(self, node: str) -> bool:
        return any(permission_matches(granted, node) for granted in self.permissions)

    def send_message(self, message: str) -> None:
        self.messages.append(message)
        if self._sink is not None:
            self._sink(message)
