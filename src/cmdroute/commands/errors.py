"""Exceptions raised while declaring and binding commands."""

from __future__ import annotations

from typing import Any


class CommandError(Exception):
    """Base class for command-engine errors."""


class CommandDefinitionError(CommandError):
    """Raised at executor construction when a handler declaration is invalid."""


class BindError(CommandError):
    """Raised when a matched handler's parameters cannot be bound."""

    def __init__(self, parameter: str, message: str) -> None:
        super().__init__(message)
        self.parameter = parameter
        self.message = message


class NoParserError(BindError):
    """No registered parser accepts the parameter's declared type."""

    def __init__(self, parameter: str, target_type: Any) -> None:
        type_name = getattr(target_type, "__name__", repr(target_type))
        super().__init__(parameter, f"No parser registered for type '{type_name}'")
        self.target_type = target_type


class ConversionError(BindError):
    """A parser rejected the token captured for a parameter."""

    def __init__(self, parameter: str, value: str, message: str) -> None:
        super().__init__(parameter, message)
        self.value = value
