"""Pattern-routed command executors.

An executor is one top-level command (``/todo``) whose sub-commands are the
methods decorated with :func:`~cmdroute.commands.types.command`. A dispatch
goes: match -> arity check -> guards -> bind -> schedule -> invoke.
"""

from __future__ import annotations

import functools
import inspect
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Sequence

from cmdroute.actors import Actor
from cmdroute.commands.binder import bind_parameters, describe_parameters
from cmdroute.commands.errors import BindError, NoParserError
from cmdroute.commands.guards import (
    Guard,
    GuardPipeline,
    CooldownTable,
    LockTable,
    check_operator,
    check_permission,
    check_target,
    cooldown_applies,
    lock_applies,
)
from cmdroute.commands.parsers import ParserRegistry
from cmdroute.commands.patterns import (
    CommandPattern,
    PatternTable,
    check_arity,
    is_placeholder,
    matches_token,
    placeholder_name,
)
from cmdroute.commands.suggestions import SuggestionRegistry
from cmdroute.commands.types import (
    ADMITTED,
    COMMAND_SPEC_ATTR,
    Arg,
    CheckResult,
    CommandInfo,
    CommandSpec,
    ExecutorSpec,
    LockScope,
    ParamSlot,
    Target,
    UsageLimit,
    denied,
)
from cmdroute.config import DEFAULT_MESSAGES, Settings
from cmdroute.scheduler import AsyncioScheduler, Scheduler

logger = logging.getLogger(__name__)

# Guards that decide whether an actor may see a handler in suggestions.
VISIBILITY_GUARDS = ("permission", "operator")


@dataclass(frozen=True)
class CommandHandler:
    """A decorated method, resolved once at executor construction."""

    name: str
    pattern: CommandPattern
    spec: CommandSpec
    params: tuple[ParamSlot, ...]
    is_coroutine: bool

    def arg_for(self, placeholder: str) -> Arg | None:
        for slot in self.params:
            if slot.arg is not None and slot.arg.name == placeholder:
                return slot.arg
        return None


def _dedupe(values: Sequence[str]) -> list[str]:
    return list(dict.fromkeys(values))


class CommandExecutor(ABC):
    """Base class for a pattern-routed command.

    Subclasses set :attr:`executor_spec`, decorate handler methods with
    ``@command(...)`` and implement :meth:`handle_help`. Rejections are
    reported through the ``handle_*_error`` hooks, which subclasses may
    override to change wording or delivery.
    """

    executor_spec: ClassVar[ExecutorSpec | None] = None

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        scheduler: Scheduler | None = None,
        parsers: ParserRegistry | None = None,
    ) -> None:
        if settings is None:
            from cmdroute.config import settings as default_settings

            settings = default_settings
        self.settings = settings
        self.messages = {**DEFAULT_MESSAGES, **settings.messages}
        self.scheduler: Scheduler = scheduler or AsyncioScheduler()
        self.parsers = parsers or ParserRegistry.with_defaults()
        self.locks = LockTable()
        self.cooldowns = CooldownTable()

        self.handlers: PatternTable[CommandHandler] = PatternTable(self._collect_handlers())
        self.guards = GuardPipeline(self.default_guards())
        self.suggestions = self._build_suggestions()
        self.init_parsers(self.parsers)
        logger.debug(
            "Executor %s ready with %d handler(s)", type(self).__name__, len(self.handlers)
        )

    # -- construction -------------------------------------------------------

    def _collect_handlers(self) -> list[tuple[CommandPattern, CommandHandler]]:
        """Decorated methods in definition order, base classes first.

        A subclass attribute of the same name replaces (or, when undecorated,
        removes) an inherited handler.
        """
        found: dict[str, tuple[Callable[..., Any], CommandSpec]] = {}
        for klass in reversed(type(self).__mro__):
            for attr, value in vars(klass).items():
                spec = getattr(value, COMMAND_SPEC_ATTR, None)
                if not isinstance(spec, CommandSpec):
                    found.pop(attr, None)
                    continue
                found[attr] = (value, spec)

        entries = []
        for attr, (func, spec) in found.items():
            pattern = CommandPattern.parse(spec.pattern)
            handler = CommandHandler(
                name=attr,
                pattern=pattern,
                spec=spec,
                params=describe_parameters(func, pattern),
                is_coroutine=inspect.iscoroutinefunction(func),
            )
            entries.append((pattern, handler))
        return entries

    def _build_suggestions(self) -> SuggestionRegistry:
        registry = SuggestionRegistry([self], skip=(CommandExecutor,))
        spec = self.executor_spec
        for provider in spec.suggest_providers if spec else ():
            registry.add_source(provider() if isinstance(provider, type) else provider)
        return registry

    def default_guards(self) -> list[Guard]:
        """Admission guards in evaluation order."""
        return [
            Guard("sender", self.check_sender, self.handle_sender_error),
            Guard("permission", self.check_permission, self.handle_permission_error),
            Guard("operator", self.check_operator, self.handle_op_error),
            Guard("lock", self.check_lock, self.handle_lock_error),
            Guard("cooldown", self.check_cooldown, self.handle_cooldown_error),
        ]

    def init_parsers(self, parsers: ParserRegistry) -> None:
        """Hook for registering extra parameter parsers."""

    # -- effective handler settings ---------------------------------------

    def target_for(self, handler: CommandHandler) -> Target | None:
        if handler.spec.target is not None:
            return handler.spec.target
        return self.executor_spec.target if self.executor_spec else None

    def permission_for(self, handler: CommandHandler) -> str | None:
        if handler.spec.permission:
            return handler.spec.permission
        return (self.executor_spec.permission if self.executor_spec else None) or None

    def requires_op(self, handler: CommandHandler) -> bool:
        if handler.spec.require_op is not None:
            return handler.spec.require_op
        return bool(self.executor_spec and self.executor_spec.require_op)

    def usage_limit_for(self, handler: CommandHandler) -> UsageLimit | None:
        return handler.spec.usage_limit

    # -- guards -------------------------------------------------------------

    def check_sender(self, actor: Actor, handler: CommandHandler) -> CheckResult:
        return check_target(actor, self.target_for(handler), self.messages)

    def check_permission(self, actor: Actor, handler: CommandHandler) -> CheckResult:
        return check_permission(actor, self.permission_for(handler), self.messages)

    def check_operator(self, actor: Actor, handler: CommandHandler) -> CheckResult:
        return check_operator(actor, self.requires_op(handler), self.messages)

    def check_lock(self, actor: Actor, handler: CommandHandler) -> CheckResult:
        limit = self.usage_limit_for(handler)
        if not lock_applies(actor, limit):
            return ADMITTED
        if not self.locks.is_locked(limit.scope, actor.identity, handler.name):
            return ADMITTED
        key = "lock_sender" if limit.scope is LockScope.SENDER else "lock_global"
        return denied(self.messages[key])

    def check_cooldown(self, actor: Actor, handler: CommandHandler) -> CheckResult:  # noqa: ARG002
        if cooldown_applies(actor) and self.cooldowns.is_active(actor.identity):
            return denied(self.messages["cooldown"])
        return ADMITTED

    # -- dispatch -----------------------------------------------------------

    async def on_command(
        self, actor: Actor, command: CommandInfo, label: str, tokens: Sequence[str]
    ) -> bool:
        """Route one tokenized command line. Always reports the line as handled."""
        tokens = list(tokens)
        if len(tokens) == 1 and tokens[0].lower() == self.settings.help_command.lower():
            await self._call_hook(self.handle_help, actor)
            return True

        handler = self.handlers.match(tokens)
        if handler is None:
            logger.debug("No pattern of %s matched %s", label, tokens)
            await self._call_hook(self.handle_help, actor)
            return True

        arity = check_arity(handler.pattern, tokens, label=label, templates=self.messages)
        if not arity.admitted:
            self.handle_parameter_error(actor, arity.message)
            return True

        if not self.guards.run(actor, handler):
            return True

        try:
            args = bind_parameters(
                handler.params, handler.pattern.extract(tokens), actor, self.parsers
            )
        except NoParserError as exc:
            logger.error("Handler %s.%s: %s", type(self).__name__, handler.name, exc.message)
            self.handle_parameter_error(actor, exc.message)
            return True
        except BindError as exc:
            self.handle_parameter_error(actor, exc.message)
            return True

        await self._schedule(actor, handler, args)
        return True

    async def _schedule(self, actor: Actor, handler: CommandHandler, args: list[Any]) -> None:
        limit = self.usage_limit_for(handler)
        lock = limit if lock_applies(actor, limit) else None
        if lock is not None:
            self.locks.acquire(lock.scope, actor.identity, handler.name)
        self._arm_cooldown(actor, handler)

        work = self._make_work(actor, handler, args, lock)
        if not handler.spec.run_async:
            await self.scheduler.run_now(work)
            return

        try:
            task_id = self.scheduler.run_later(
                handler.name, work, description=f"{handler.pattern.text} ({actor.name})"
            )
        except BaseException:
            if lock is not None:
                self.locks.release(lock.scope, actor.identity, handler.name)
            raise
        logger.debug("Scheduled %s as %s", handler.name, task_id)

    def _make_work(
        self, actor: Actor, handler: CommandHandler, args: list[Any], lock: UsageLimit | None
    ) -> Callable[[], Any]:
        """Wrap the handler call with error reporting and lock release.

        Background failures are re-raised after reporting so the task
        manager records them as failed.
        """
        func = getattr(self, handler.name)
        background = handler.spec.run_async

        def release() -> None:
            if lock is not None:
                self.locks.release(lock.scope, actor.identity, handler.name)

        def failed(exc: Exception) -> None:
            logger.exception("Handler %s.%s failed", type(self).__name__, handler.name)
            self.handle_execution_error(actor, exc)

        if handler.is_coroutine:

            async def work() -> Any:
                try:
                    return await func(*args)
                except Exception as exc:
                    failed(exc)
                    if background:
                        raise
                finally:
                    release()

            return work

        def run() -> Any:
            try:
                return func(*args)
            except Exception as exc:
                failed(exc)
                if background:
                    raise
            finally:
                release()

        return run

    def _arm_cooldown(self, actor: Actor, handler: CommandHandler) -> None:
        if handler.spec.cooldown <= 0 or not cooldown_applies(actor):
            return
        ticks = max(1, math.ceil(handler.spec.cooldown / self.settings.cooldown_tick))
        entry = self.cooldowns.arm(actor.identity, handler.name, ticks)
        if entry is not None:
            entry.countdown = self.scheduler.run_periodically(
                self.settings.cooldown_tick,
                functools.partial(self.cooldowns.count_down, actor.identity, entry),
            )

    @staticmethod
    async def _call_hook(hook: Callable[..., Any], *args: Any) -> None:
        result = hook(*args)
        if inspect.isawaitable(result):
            await result

    # -- suggestions --------------------------------------------------------

    def on_tab_complete(
        self, actor: Actor, command: CommandInfo, label: str, tokens: Sequence[str]  # noqa: ARG002
    ) -> list[str] | None:
        """Completion candidates, or ``None`` when this executor does not complete for ``actor``."""
        if not actor.is_interactive:
            return None
        if self.executor_spec and self.executor_spec.target is Target.CONSOLE:
            return None
        return self.suggest(actor, command, tokens)

    def suggest(self, actor: Actor, command: CommandInfo | None, tokens: Sequence[str]) -> list[str]:
        """Candidates for the last (possibly empty) token of ``tokens``."""
        tokens = list(tokens) or [""]
        position = len(tokens) - 1
        completions: list[str] = []

        if position == 0:
            for entry in self.handlers:
                if entry.pattern.is_empty or not self._visible(actor, entry.handler):
                    continue
                first = entry.pattern.tokens[0]
                if is_placeholder(first):
                    completions.extend(
                        self._placeholder_candidates(actor, command, tokens, entry.handler, first)
                    )
                else:
                    completions.append(first)
            return _dedupe(completions)

        for handler in self._candidates(actor, tokens):
            token = handler.pattern.token_at(position)
            if is_placeholder(token):
                completions.extend(
                    self._placeholder_candidates(actor, command, tokens, handler, token)
                )
                continue
            for entry in self.handlers:
                literal = entry.pattern.token_at(position) if position < len(entry.pattern.tokens) else ""
                if literal and not is_placeholder(literal):
                    completions.append(literal)
        return _dedupe(completions)

    def _visible(self, actor: Actor, handler: CommandHandler) -> bool:
        return self.guards.admits(actor, handler, only=VISIBILITY_GUARDS)

    def _candidates(self, actor: Actor, tokens: Sequence[str]) -> list[CommandHandler]:
        """Handlers that can continue ``tokens[:-1]``.

        Handlers whose leading tokens are all literals equal to the typed
        ones win; otherwise any handler the typed tokens match is used.
        """
        typed = tokens[:-1]
        position = len(typed)
        perfect: list[CommandHandler] = []
        relaxed: list[CommandHandler] = []
        for entry in self.handlers:
            pattern = entry.pattern
            if len(pattern.tokens) <= position and not pattern.variadic:
                continue
            window = [pattern.token_at(i) for i in range(position)]
            if not all(matches_token(p, t) for p, t in zip(window, typed)):
                continue
            if not self._visible(actor, entry.handler):
                continue
            if all(not is_placeholder(p) for p in window):
                perfect.append(entry.handler)
            else:
                relaxed.append(entry.handler)
        return perfect or relaxed

    def _placeholder_candidates(
        self,
        actor: Actor,
        command: CommandInfo | None,
        tokens: Sequence[str],
        handler: CommandHandler,
        token: str,
    ) -> list[str]:
        arg = handler.arg_for(placeholder_name(token))
        if arg is None or not arg.suggest:
            return []
        return self.suggestions.suggest(arg.suggest, actor=actor, command=command, tokens=tokens)

    # -- help and rejection hooks -------------------------------------------

    @abstractmethod
    def handle_help(self, actor: Actor) -> Any:
        """Show usage to ``actor``. May be a coroutine function."""

    def usage(self, actor: Actor, label: str | None = None) -> list[str]:
        """``label pattern - description`` lines for handlers visible to ``actor``."""
        if label is None:
            label = self.executor_spec.aliases[0] if self.executor_spec else ""
        lines = []
        for entry in self.handlers:
            if not self._visible(actor, entry.handler):
                continue
            line = f"{label} {entry.pattern.text}".strip()
            if entry.handler.spec.description:
                line = f"{line} - {entry.handler.spec.description}"
            lines.append(line)
        return lines

    def handle_parameter_error(self, actor: Actor, message: str) -> None:
        actor.send_message(f"[red]{message}[/red]")

    def handle_sender_error(self, actor: Actor, message: str) -> None:
        actor.send_message(f"[red]{message}[/red]")

    def handle_permission_error(self, actor: Actor, message: str) -> None:
        actor.send_message(message)

    def handle_op_error(self, actor: Actor, message: str) -> None:
        actor.send_message(f"[red]{message}[/red]")

    def handle_lock_error(self, actor: Actor, message: str) -> None:
        actor.send_message(f"[yellow]{message}[/yellow]")

    def handle_cooldown_error(self, actor: Actor, message: str) -> None:
        actor.send_message(f"[yellow]{message}[/yellow]")

    def handle_execution_error(self, actor: Actor, exc: Exception) -> None:  # noqa: ARG002
        actor.send_message(f"[red]{self.messages['execution_error']}[/red]")

    # -- lifecycle ----------------------------------------------------------

    async def aclose(self) -> None:
        """Stop cooldown countdowns and cancel background invocations."""
        self.cooldowns.clear()
        await self.scheduler.aclose()
