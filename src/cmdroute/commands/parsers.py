"""String -> value parsers used when binding handler parameters."""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from types import NoneType, UnionType
from typing import Any, Callable, Union, get_args, get_origin

Parser = Callable[[str], Any]

_TRUE_WORDS = {"true", "yes", "on", "1"}
_FALSE_WORDS = {"false", "no", "off", "0"}

SEQUENCE_ORIGINS = (list, tuple, Sequence)


@dataclass(frozen=True)
class ParserEntry:
    types: frozenset[type]
    parser: Parser


def _parse_bool(value: str) -> bool:
    text = value.strip().lower()
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise ValueError(f"'{value}' is not a valid boolean (use true/false)")


def _parse_int(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"'{value}' is not a valid integer") from None


def _parse_float(value: str) -> float:
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"'{value}' is not a valid number") from None


def _parse_decimal(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise ValueError(f"'{value}' is not a valid decimal") from None


def _parse_uuid(value: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        raise ValueError(f"'{value}' is not a valid UUID") from None


def _enum_parser(enum_type: type[Enum]) -> Parser:
    def parse(value: str) -> Enum:
        wanted = value.strip().lower()
        for member in enum_type:
            if member.name.lower() == wanted or str(member.value).lower() == wanted:
                return member
        choices = ", ".join(member.name.lower() for member in enum_type)
        raise ValueError(f"Unknown {enum_type.__name__} '{value}' (expected one of: {choices})")

    return parse


def unwrap_optional(annotation: Any) -> Any:
    """``T | None`` -> ``T``; anything else unchanged."""
    if get_origin(annotation) in (Union, UnionType):
        members = [a for a in get_args(annotation) if a is not NoneType]
        if len(members) == 1:
            return members[0]
    return annotation


def sequence_item_type(annotation: Any) -> tuple[type | None, Any]:
    """Return ``(container, item_type)`` for sequence annotations.

    ``container`` is ``None`` for scalars. Bare ``list``/``tuple`` carry ``str``
    items.
    """
    annotation = unwrap_optional(annotation)
    if annotation in (list, tuple):
        return annotation, str
    origin = get_origin(annotation)
    if origin not in SEQUENCE_ORIGINS:
        return None, annotation
    args = [a for a in get_args(annotation) if a is not Ellipsis]
    item = args[0] if args else str
    container = tuple if origin is tuple else list
    return container, unwrap_optional(item)


class ParserRegistry:
    """Maps target types to conversion functions.

    Lookup prefers an entry listing the exact type, then the first entry (in
    registration order) listing a base class of it. Enum subclasses without
    an explicit entry are parsed by member name or value.
    """

    def __init__(self) -> None:
        self._entries: list[ParserEntry] = []

    @classmethod
    def with_defaults(cls) -> ParserRegistry:
        registry = cls()
        registry.register(lambda s: s, str)
        registry.register(_parse_bool, bool)
        registry.register(_parse_int, int)
        registry.register(_parse_float, float)
        registry.register(_parse_decimal, Decimal)
        registry.register(_parse_uuid, uuid.UUID)
        registry.register(Path, Path)
        return registry

    def register(self, parser: Parser, *types: type) -> None:
        """Register ``parser`` for ``types``, replacing earlier claims on them."""
        if not types:
            raise ValueError("register() needs at least one target type")
        claimed = frozenset(types)
        kept: list[ParserEntry] = []
        for entry in self._entries:
            remaining = entry.types - claimed
            if remaining:
                kept.append(ParserEntry(types=remaining, parser=entry.parser))
        kept.append(ParserEntry(types=claimed, parser=parser))
        self._entries = kept

    def get(self, target: Any) -> Parser | None:
        target = unwrap_optional(target)
        if target is Any:
            target = str
        if not isinstance(target, type):
            return None
        for entry in self._entries:
            if target in entry.types:
                return entry.parser
        # bool is an int subclass, so exact matches above must win first
        for entry in self._entries:
            if any(issubclass(target, t) for t in entry.types if t is not object):
                if issubclass(target, Enum) and not any(issubclass(t, Enum) for t in entry.types):
                    continue
                return entry.parser
        if issubclass(target, Enum):
            return _enum_parser(target)
        return None

    def __contains__(self, target: Any) -> bool:
        return self.get(target) is not None
