"""Suggestion providers for placeholder autocompletion.

A placeholder names its provider with ``Arg(name, suggest=...)``. The value
is looked up, in order, among explicitly registered callbacks, the executor's
own methods, and the methods of each configured provider object. Providers
ask for any of the invoking actor, the command object and the raw tokens by
annotating their parameters; they are supplied by type, not by position.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Iterable, Sequence, get_type_hints

from cmdroute.commands.binder import is_actor_type
from cmdroute.commands.parsers import sequence_item_type, unwrap_optional
from cmdroute.commands.types import CommandInfo

logger = logging.getLogger(__name__)

_ACTOR_NAMES = {"actor", "sender", "player"}
_COMMAND_NAMES = {"command", "cmd"}
_TOKEN_NAMES = {"args", "tokens", "strings"}


def _normalize_name(name: str) -> str:
    name = name.strip()
    if name.endswith("()"):
        name = name[:-2]
    return name


def _find_method(source: Any, name: str, skip: tuple[type, ...]) -> Callable[..., Any] | None:
    """Look up ``name`` among methods declared on ``source``'s own classes."""
    for klass in type(source).__mro__:
        if klass in skip or klass is object:
            continue
        if name in vars(klass):
            member = getattr(source, name)
            return member if callable(member) else None
    return None


def _is_command_type(annotation: Any) -> bool:
    annotation = unwrap_optional(annotation)
    return isinstance(annotation, type) and issubclass(annotation, CommandInfo)


def _is_token_type(annotation: Any) -> bool:
    container, item = sequence_item_type(annotation)
    return container is not None and item is str


def invoke_provider(
    provider: Callable[..., Any],
    *,
    actor: Any,
    command: CommandInfo | None,
    tokens: Sequence[str],
) -> list[str]:
    """Call ``provider`` with the context it asks for and stringify the result."""
    try:
        hints = get_type_hints(provider)
    except Exception:
        hints = {}

    kwargs: dict[str, Any] = {}
    for parameter in inspect.signature(provider).parameters.values():
        if parameter.kind in (parameter.VAR_POSITIONAL, parameter.VAR_KEYWORD):
            continue
        hint = hints.get(parameter.name)
        if is_actor_type(hint) or (hint is None and parameter.name in _ACTOR_NAMES):
            kwargs[parameter.name] = actor
        elif _is_command_type(hint) or (hint is None and parameter.name in _COMMAND_NAMES):
            kwargs[parameter.name] = command
        elif _is_token_type(hint) or (hint is None and parameter.name in _TOKEN_NAMES):
            kwargs[parameter.name] = list(tokens)
        elif parameter.default is inspect.Parameter.empty:
            kwargs[parameter.name] = None

    result = provider(**kwargs)
    if result is None:
        return []
    if isinstance(result, str):
        return [result]
    return [str(item) for item in result]


class SuggestionRegistry:
    """Name -> provider lookup shared by every placeholder of an executor."""

    def __init__(self, sources: Iterable[Any] = (), *, skip: tuple[type, ...] = ()) -> None:
        self._sources = list(sources)
        self._skip = skip
        self._callbacks: dict[str, Callable[..., Any]] = {}

    def add_source(self, source: Any) -> None:
        self._sources.append(source)

    def register(self, name: str, callback: Callable[..., Any]) -> None:
        """Register ``callback`` under ``name``, ahead of method lookup."""
        self._callbacks[_normalize_name(name)] = callback

    def resolve(self, name: str) -> Callable[..., Any] | None:
        name = _normalize_name(name)
        if not name:
            return None
        if name in self._callbacks:
            return self._callbacks[name]
        for source in self._sources:
            method = _find_method(source, name, self._skip)
            if method is not None:
                self._callbacks[name] = method
                return method
        return None

    def suggest(
        self,
        source: str | Callable[..., Any],
        *,
        actor: Any,
        command: CommandInfo | None,
        tokens: Sequence[str],
    ) -> list[str]:
        """Candidates for one placeholder.

        A string that names no provider is returned as the sole candidate; a
        provider that raises falls back the same way.
        """
        if callable(source):
            provider, label = source, getattr(source, "__name__", repr(source))
        else:
            label = source
            provider = self.resolve(source)
            if provider is None:
                return [source] if source.strip() else []
        try:
            return invoke_provider(provider, actor=actor, command=command, tokens=tokens)
        except Exception:
            logger.warning("Suggestion provider %s failed", label, exc_info=True)
            return [label]
