"""Admission checks run between matching and binding.

Each check returns a :class:`CheckResult`; the pipeline stops at the first
denial. Lock and cooldown state lives in per-executor, in-memory tables that
are safe to touch from the event loop and from worker threads.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Callable, Iterable, Sequence

from rich.markup import escape

from cmdroute.actors import Actor, ActorKind
from cmdroute.commands.types import ADMITTED, CheckResult, LockScope, Target, UsageLimit, denied

if TYPE_CHECKING:
    from cmdroute.commands.executor import CommandHandler
    from cmdroute.scheduler import PeriodicHandle

logger = logging.getLogger(__name__)

CheckFn = Callable[[Actor, "CommandHandler"], CheckResult]
DenyFn = Callable[[Actor, str], None]


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------


def check_target(actor: Actor, target: Target | None, messages: dict[str, str]) -> CheckResult:
    if target is None or target is Target.ANY:
        return ADMITTED
    if target is Target.INTERACTIVE and not actor.is_interactive:
        return denied(messages["sender_interactive_only"])
    if target is Target.CONSOLE and actor.kind is not ActorKind.CONSOLE:
        return denied(messages["sender_console_only"])
    return ADMITTED


def check_permission(actor: Actor, permission: str | None, messages: dict[str, str]) -> CheckResult:
    if not permission or actor.has_permission(permission):
        return ADMITTED
    return denied(messages["permission"].format(permission=escape(permission)))


def check_operator(actor: Actor, required: bool, messages: dict[str, str]) -> CheckResult:
    if not required or actor.is_operator:
        return ADMITTED
    return denied(messages["operator"])


def lock_applies(actor: Actor, limit: UsageLimit | None) -> bool:
    if limit is None or limit.scope is LockScope.NONE:
        return False
    return actor.is_interactive or limit.include_console


def cooldown_applies(actor: Actor) -> bool:
    return actor.is_interactive


# ---------------------------------------------------------------------------
# State tables
# ---------------------------------------------------------------------------


class LockTable:
    """Handlers currently executing, per actor or globally."""

    def __init__(self) -> None:
        self._mutex = threading.Lock()
        self._by_actor: dict[str, str] = {}
        self._global: dict[str, str] = {}  # handler -> holding actor

    def is_locked(self, scope: LockScope, actor_id: str, handler: str) -> bool:
        with self._mutex:
            if scope is LockScope.SENDER:
                return actor_id in self._by_actor
            if scope is LockScope.GLOBAL:
                return handler in self._global
            return False

    def acquire(self, scope: LockScope, actor_id: str, handler: str) -> None:
        with self._mutex:
            if scope is LockScope.SENDER:
                self._by_actor[actor_id] = handler
            elif scope is LockScope.GLOBAL:
                self._global[handler] = actor_id

    def release(self, scope: LockScope, actor_id: str, handler: str) -> None:
        with self._mutex:
            if scope is LockScope.SENDER:
                if self._by_actor.get(actor_id) == handler:
                    del self._by_actor[actor_id]
            elif scope is LockScope.GLOBAL:
                self._global.pop(handler, None)

    def holder(self, handler: str) -> str | None:
        with self._mutex:
            return self._global.get(handler)

    def running_for(self, actor_id: str) -> str | None:
        with self._mutex:
            return self._by_actor.get(actor_id)

    def __len__(self) -> int:
        with self._mutex:
            return len(self._by_actor) + len(self._global)


@dataclass(eq=False)
class Cooldown:
    handler: str
    remaining: int
    countdown: PeriodicHandle | None = None

    def stop(self) -> None:
        if self.countdown is not None:
            self.countdown.cancel()
            self.countdown = None


class CooldownTable:
    """Per-actor cooldown countdowns.

    Each armed entry counts down on its own schedule, started when it is
    armed, so it lasts its full number of ticks. An active entry blocks every
    cooldown-checked handler for that actor, not only the handler that armed
    it.
    """

    def __init__(self) -> None:
        self._mutex = threading.Lock()
        self._entries: dict[str, Cooldown] = {}

    def arm(self, actor_id: str, handler: str, ticks: int) -> Cooldown | None:
        if ticks <= 0:
            return None
        entry = Cooldown(handler=handler, remaining=ticks)
        with self._mutex:
            previous = self._entries.get(actor_id)
            self._entries[actor_id] = entry
        if previous is not None:
            previous.stop()
        return entry

    def is_active(self, actor_id: str) -> bool:
        with self._mutex:
            return actor_id in self._entries

    def remaining(self, actor_id: str) -> int:
        with self._mutex:
            entry = self._entries.get(actor_id)
            return entry.remaining if entry else 0

    def count_down(self, actor_id: str, entry: Cooldown) -> None:
        """One tick of ``entry``; a no-op once it has been replaced or cleared."""
        with self._mutex:
            if self._entries.get(actor_id) is not entry:
                expired = True
            else:
                entry.remaining -= 1
                expired = entry.remaining <= 0
                if expired:
                    del self._entries[actor_id]
        if expired:
            entry.stop()

    def tick(self) -> None:
        """Advance every entry by one tick."""
        with self._mutex:
            entries = list(self._entries.items())
        for actor_id, entry in entries:
            self.count_down(actor_id, entry)

    def clear(self) -> None:
        with self._mutex:
            entries = list(self._entries.values())
            self._entries.clear()
        for entry in entries:
            entry.stop()

    def __len__(self) -> int:
        with self._mutex:
            return len(self._entries)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Guard:
    """One named admission check and the handler for its denial."""

    name: str
    check: CheckFn
    on_denied: DenyFn


class GuardPipeline:
    """Ordered, short-circuiting sequence of guards."""

    def __init__(self, guards: Iterable[Guard]) -> None:
        self._guards = list(guards)

    @property
    def names(self) -> list[str]:
        return [guard.name for guard in self._guards]

    def replace(self, name: str, *, check: CheckFn | None = None, on_denied: DenyFn | None = None) -> None:
        """Swap the check and/or denial handler of guard ``name``."""
        for index, guard in enumerate(self._guards):
            if guard.name != name:
                continue
            self._guards[index] = replace(
                guard,
                check=check or guard.check,
                on_denied=on_denied or guard.on_denied,
            )
            return
        raise KeyError(name)

    def evaluate(
        self, actor: Actor, handler: CommandHandler, *, only: Sequence[str] | None = None
    ) -> tuple[Guard, CheckResult] | None:
        """Return the first denying guard and its result, or ``None``."""
        for guard in self._guards:
            if only is not None and guard.name not in only:
                continue
            result = guard.check(actor, handler)
            if not result.admitted:
                logger.debug("Guard %s denied %s for %r", guard.name, handler.name, actor)
                return guard, result
        return None

    def admits(self, actor: Actor, handler: CommandHandler, *, only: Sequence[str] | None = None) -> bool:
        return self.evaluate(actor, handler, only=only) is None

    def run(self, actor: Actor, handler: CommandHandler) -> bool:
        """Evaluate every guard and report a denial to the actor."""
        failure = self.evaluate(actor, handler)
        if failure is None:
            return True
        guard, result = failure
        guard.on_denied(actor, result.message)
        return False
