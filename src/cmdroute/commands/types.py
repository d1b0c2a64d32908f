"""Shared command-dispatch types and declaration helpers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Callable, TypeVar

F = TypeVar("F", bound=Callable[..., Any])

COMMAND_SPEC_ATTR = "__command_spec__"


class Target(StrEnum):
    """Actor kinds a handler (or a whole executor) accepts."""

    INTERACTIVE = "interactive"
    CONSOLE = "console"
    ANY = "any"


class LockScope(StrEnum):
    """Scope of a single-flight policy."""

    NONE = "none"
    SENDER = "sender"  # one running invocation per actor
    GLOBAL = "global"  # one running invocation of the handler overall


@dataclass(frozen=True)
class UsageLimit:
    """Single-flight policy for a handler.

    Console actors bypass the policy unless ``include_console`` is set.
    """

    scope: LockScope = LockScope.SENDER
    include_console: bool = False


@dataclass(frozen=True)
class CommandSpec:
    """Routing metadata attached to one handler method."""

    pattern: str
    permission: str | None = None
    require_op: bool | None = None
    target: Target | None = None
    run_async: bool = False
    cooldown: int = 0
    usage_limit: UsageLimit | None = None
    description: str = ""


@dataclass(frozen=True)
class ExecutorSpec:
    """Class-level metadata for an executor.

    ``aliases[0]`` is the command name registered with the host table.
    """

    aliases: tuple[str, ...]
    permission: str | None = None
    description: str = ""
    require_op: bool | None = None
    target: Target | None = None
    suggest_providers: tuple[Any, ...] = ()


@dataclass(frozen=True)
class Arg:
    """Bind a parameter to the placeholder called ``name``.

    ``suggest`` is either a literal hint, the name of a suggestion provider
    method, or a callable provider.
    """

    name: str
    suggest: str | Callable[..., Any] | None = None


@dataclass(frozen=True)
class Sender:
    """Inject the invoking actor into the annotated parameter."""


@dataclass(frozen=True)
class CommandInfo:
    """Host-side command object handed to executors and suggestion providers."""

    name: str
    aliases: tuple[str, ...] = ()
    permission: str | None = None
    description: str = ""


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one admission check."""

    admitted: bool
    message: str = ""


ADMITTED = CheckResult(admitted=True)


def denied(message: str) -> CheckResult:
    return CheckResult(admitted=False, message=message)


def command(
    pattern: str,
    *,
    permission: str | None = None,
    require_op: bool | None = None,
    target: Target | None = None,
    run_async: bool = False,
    cooldown: int = 0,
    usage_limit: UsageLimit | None = None,
    description: str = "",
) -> Callable[[F], F]:
    """Declare a method as the handler for ``pattern``.

    Example::

        @command("set <x> <y...>", permission="demo.set", cooldown=5)
        def set_values(self, x: Annotated[int, Arg("x")], y: Annotated[list[str], Arg("y")]):
            ...
    """
    if cooldown < 0:
        raise ValueError("cooldown must be >= 0")
    spec = CommandSpec(
        pattern=" ".join(pattern.split()),
        permission=permission or None,
        require_op=require_op,
        target=target,
        run_async=run_async,
        cooldown=cooldown,
        usage_limit=usage_limit,
        description=description,
    )

    def decorator(func: F) -> F:
        setattr(func, COMMAND_SPEC_ATTR, spec)
        return func

    return decorator


@dataclass(frozen=True)
class ParamSlot:
    """How one declared handler parameter is filled at bind time."""

    name: str
    annotation: Any = None
    arg: Arg | None = None
    sender: bool = False
    default: Any = None
    has_default: bool = False
