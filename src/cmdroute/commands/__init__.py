"""Pattern-routed commands: declarations, executors and the host command table."""

from cmdroute.commands.errors import (
    BindError,
    CommandDefinitionError,
    CommandError,
    ConversionError,
    NoParserError,
)
from cmdroute.commands.executor import CommandExecutor, CommandHandler
from cmdroute.commands.manager import CommandManager
from cmdroute.commands.parsers import ParserRegistry
from cmdroute.commands.types import (
    Arg,
    CommandInfo,
    CommandSpec,
    ExecutorSpec,
    LockScope,
    Sender,
    Target,
    UsageLimit,
    command,
)

__all__ = [
    "Arg",
    "BindError",
    "CommandDefinitionError",
    "CommandError",
    "CommandExecutor",
    "CommandHandler",
    "CommandInfo",
    "CommandManager",
    "CommandSpec",
    "ConversionError",
    "ExecutorSpec",
    "LockScope",
    "NoParserError",
    "ParserRegistry",
    "Sender",
    "Target",
    "UsageLimit",
    "command",
]
