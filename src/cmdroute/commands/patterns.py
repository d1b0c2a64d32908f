"""Command pattern parsing, matching and argument extraction.

A pattern is a space separated template such as ``"set <x> <values...>"``.
Literal tokens match case-insensitively, ``<name>`` captures one token and a
trailing ``<name...>`` captures every remaining token.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Generic, Iterable, Sequence, TypeVar

from rich.markup import escape

from cmdroute.commands.errors import CommandDefinitionError
from cmdroute.commands.types import ADMITTED, CheckResult, denied

logger = logging.getLogger(__name__)

H = TypeVar("H")

VARIADIC_SUFFIX = "...>"


def is_placeholder(token: str) -> bool:
    return token.startswith("<") and token.endswith(">")


def is_variadic(token: str) -> bool:
    return token.startswith("<") and token.endswith(VARIADIC_SUFFIX)


def placeholder_name(token: str) -> str:
    if is_variadic(token):
        return token[1 : -len(VARIADIC_SUFFIX)]
    return token[1:-1]


def matches_token(pattern_token: str, actual: str) -> bool:
    """Placeholders match anything; literals match case-insensitively."""
    return is_placeholder(pattern_token) or pattern_token.lower() == actual.lower()


def matches_last_token(pattern_token: str, actual: str) -> bool:
    if is_variadic(pattern_token):
        return True
    return matches_token(pattern_token, actual)


@dataclass(frozen=True)
class CommandPattern:
    """Parsed form of a pattern string."""

    text: str
    tokens: tuple[str, ...]

    @classmethod
    def parse(cls, text: str) -> CommandPattern:
        normalized = " ".join(text.split())
        tokens = tuple(normalized.split(" ")) if normalized else ()
        seen: set[str] = set()
        for index, token in enumerate(tokens):
            if not is_placeholder(token):
                continue
            name = placeholder_name(token)
            if not name:
                raise CommandDefinitionError(f"Empty placeholder in pattern '{normalized}'")
            if name in seen:
                raise CommandDefinitionError(
                    f"Placeholder '{name}' appears twice in pattern '{normalized}'"
                )
            seen.add(name)
            if is_variadic(token) and index != len(tokens) - 1:
                raise CommandDefinitionError(
                    f"Variadic placeholder '{token}' must be the last token of '{normalized}'"
                )
        return cls(text=normalized, tokens=tokens)

    @property
    def is_empty(self) -> bool:
        return not self.tokens

    @property
    def variadic(self) -> bool:
        return bool(self.tokens) and is_variadic(self.tokens[-1])

    @property
    def placeholders(self) -> tuple[str, ...]:
        return tuple(placeholder_name(t) for t in self.tokens if is_placeholder(t))

    @property
    def literal_count(self) -> int:
        return sum(1 for t in self.tokens if not is_placeholder(t))

    def token_at(self, index: int) -> str:
        """Pattern token covering position ``index`` ("" when out of range)."""
        if index < len(self.tokens):
            return self.tokens[index]
        if self.variadic:
            return self.tokens[-1]
        return ""

    def matches_exactly(self, tokens: Sequence[str]) -> bool:
        """Equal token counts; the last position uses the relaxed variadic rule."""
        if len(tokens) != len(self.tokens) or not tokens:
            return False
        last = len(tokens) - 1
        if not all(matches_token(self.tokens[i], tokens[i]) for i in range(last)):
            return False
        return matches_last_token(self.tokens[last], tokens[last])

    def matches_prefix(self, tokens: Sequence[str]) -> bool:
        """Unequal token counts; every position of the shorter side matches."""
        if len(tokens) == len(self.tokens) or not tokens or not self.tokens:
            return False
        window = min(len(tokens), len(self.tokens))
        return all(matches_token(self.tokens[i], tokens[i]) for i in range(window))

    def extract(self, tokens: Sequence[str]) -> dict[str, list[str]]:
        """Split ``tokens`` into named argument groups."""
        groups: dict[str, list[str]] = {}
        for index, token in enumerate(self.tokens):
            if not is_placeholder(token):
                continue
            name = placeholder_name(token)
            if is_variadic(token):
                groups[name] = list(tokens[index:])
            elif index < len(tokens):
                groups[name] = [tokens[index]]
        return groups


@dataclass(frozen=True)
class PatternEntry(Generic[H]):
    pattern: CommandPattern
    handler: H
    order: int


class PatternTable(Generic[H]):
    """Immutable pattern -> handler table built once per executor.

    Resolution order when several patterns accept the same tokens:
    exact-length matches before prefix matches, then the pattern with more
    literal tokens, then registration order.
    """

    def __init__(self, entries: Iterable[tuple[CommandPattern, H]]) -> None:
        self._entries: list[PatternEntry[H]] = []
        self._by_text: dict[str, PatternEntry[H]] = {}
        for order, (pattern, handler) in enumerate(entries):
            if pattern.text in self._by_text:
                raise CommandDefinitionError(f"Duplicate command pattern '{pattern.text}'")
            entry = PatternEntry(pattern=pattern, handler=handler, order=order)
            self._entries.append(entry)
            self._by_text[pattern.text] = entry

    def __iter__(self):
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, text: str) -> H | None:
        entry = self._by_text.get(" ".join(text.split()))
        return entry.handler if entry else None

    def match(self, tokens: Sequence[str]) -> H | None:
        """Select the handler for ``tokens`` or ``None``."""
        if not tokens:
            return self.get("")

        exact = [e for e in self._entries if e.pattern.matches_exactly(tokens)]
        if exact:
            best = min(exact, key=lambda e: (-e.pattern.literal_count, e.order))
            logger.debug("Exact match for %s: '%s'", list(tokens), best.pattern.text)
            return best.handler

        prefix = [e for e in self._entries if e.pattern.matches_prefix(tokens)]
        if prefix:
            best = min(prefix, key=lambda e: (-e.pattern.literal_count, e.order))
            logger.debug("Prefix match for %s: '%s'", list(tokens), best.pattern.text)
            return best.handler
        return None


def check_arity(
    pattern: CommandPattern,
    tokens: Sequence[str],
    *,
    label: str,
    templates: dict[str, str],
) -> CheckResult:
    """Validate token count against ``pattern``.

    A variadic tail accepts any count. Too many tokens, or a wrong literal in
    the shared prefix, produce an argument error pointing at the offending
    token. Too few tokens produce a missing-parameters error listing the
    remaining pattern tokens.
    """
    if pattern.variadic or len(pattern.tokens) == len(tokens):
        return ADMITTED

    window = min(len(pattern.tokens), len(tokens))
    bad_index = next(
        (i for i in range(window) if not matches_token(pattern.tokens[i], tokens[i])),
        None,
    )
    if bad_index is None and len(tokens) > len(pattern.tokens):
        bad_index = len(pattern.tokens)

    if bad_index is not None:
        return denied(
            templates["argument_error"].format(
                command=escape(label),
                typed=_typed(tokens[:bad_index]),
                offending=escape(tokens[bad_index]),
                usage=escape(_usage(label, pattern)),
            )
        )

    missing = " ".join(pattern.tokens[len(tokens) :])
    return denied(
        templates["missing_parameters"].format(
            command=escape(label),
            typed=_typed(tokens),
            missing=escape(missing),
            usage=escape(_usage(label, pattern)),
        )
    )


def _typed(tokens: Sequence[str]) -> str:
    return "".join(f"{escape(token)} " for token in tokens)


def _usage(label: str, pattern: CommandPattern) -> str:
    return f"{label} {pattern.text}".strip()
