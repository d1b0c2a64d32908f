"""Resolve handler parameters from captured argument groups."""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Annotated, Any, Callable, Mapping, Sequence, get_args, get_origin, get_type_hints

from cmdroute.actors import Actor
from cmdroute.commands.errors import CommandDefinitionError, ConversionError, NoParserError
from cmdroute.commands.parsers import ParserRegistry, sequence_item_type, unwrap_optional
from cmdroute.commands.types import Arg, ParamSlot, Sender

if TYPE_CHECKING:
    from cmdroute.commands.patterns import CommandPattern

logger = logging.getLogger(__name__)


def split_annotated(annotation: Any) -> tuple[Any, tuple[Any, ...]]:
    """``Annotated[T, *meta]`` -> ``(T, meta)``."""
    if get_origin(annotation) is Annotated:
        base, *extras = get_args(annotation)
        return base, tuple(extras)
    return annotation, ()


def is_actor_type(annotation: Any) -> bool:
    annotation = unwrap_optional(annotation)
    return isinstance(annotation, type) and issubclass(annotation, Actor)


def describe_parameters(func: Callable[..., Any], pattern: CommandPattern) -> tuple[ParamSlot, ...]:
    """Read the binding metadata of ``func`` once, at executor construction."""
    try:
        hints = get_type_hints(func, include_extras=True)
    except (NameError, TypeError) as exc:
        raise CommandDefinitionError(
            f"Cannot resolve annotations of handler '{func.__qualname__}': {exc}"
        ) from exc

    placeholders = set(pattern.placeholders)
    slots: list[ParamSlot] = []
    parameters = list(inspect.signature(func).parameters.values())
    for parameter in parameters[1:]:  # skip self
        if parameter.kind in (parameter.VAR_POSITIONAL, parameter.VAR_KEYWORD):
            raise CommandDefinitionError(
                f"Handler '{func.__qualname__}' may not declare *args or **kwargs"
            )
        base, extras = split_annotated(hints.get(parameter.name, Any))
        arg = next((e for e in extras if isinstance(e, Arg)), None)
        sender = any(isinstance(e, Sender) for e in extras)
        if arg is not None and arg.name not in placeholders:
            raise CommandDefinitionError(
                f"Parameter '{parameter.name}' of '{func.__qualname__}' binds unknown "
                f"placeholder '{arg.name}' (pattern: '{pattern.text}')"
            )
        has_default = parameter.default is not inspect.Parameter.empty
        slots.append(
            ParamSlot(
                name=parameter.name,
                annotation=base,
                arg=arg,
                sender=sender,
                default=parameter.default if has_default else None,
                has_default=has_default,
            )
        )
    return tuple(slots)


def bind_parameters(
    slots: Sequence[ParamSlot],
    groups: Mapping[str, list[str]],
    actor: Actor,
    parsers: ParserRegistry,
) -> list[Any]:
    """Build the positional argument list for a handler call.

    All-or-nothing: the first failing parameter raises and nothing is returned.

    Raises:
        NoParserError: no parser accepts a parameter's declared type.
        ConversionError: a parser raised while converting a captured token.
    """
    values: list[Any] = []
    for slot in slots:
        if is_actor_type(slot.annotation) or slot.sender:
            values.append(_bind_sender(slot, actor))
            continue
        if slot.arg is None:
            values.append(slot.default if slot.has_default else None)
            continue
        values.append(_bind_argument(slot, groups.get(slot.arg.name), parsers))
    return values


def _bind_sender(slot: ParamSlot, actor: Actor) -> Any:
    if not slot.sender:
        return None
    wanted = unwrap_optional(slot.annotation)
    if isinstance(wanted, type) and issubclass(wanted, Actor) and not isinstance(actor, wanted):
        return None
    return actor


def _bind_argument(slot: ParamSlot, captured: list[str] | None, parsers: ParserRegistry) -> Any:
    container, item_type = sequence_item_type(slot.annotation)
    parser = parsers.get(item_type)
    if parser is None:
        raise NoParserError(slot.name, item_type)

    if captured is None:
        if slot.has_default:
            return slot.default
        return container() if container else None

    if container is None:
        if not captured:
            return slot.default if slot.has_default else None
        return _convert(slot.name, parser, captured[0])
    return container(_convert(slot.name, parser, token) for token in captured)


def _convert(name: str, parser: Callable[[str], Any], token: str) -> Any:
    try:
        return parser(token)
    except Exception as exc:
        logger.debug("Parser rejected %r for parameter %s: %s", token, name, exc)
        raise ConversionError(name, token, str(exc) or f"Invalid value '{token}'") from exc
