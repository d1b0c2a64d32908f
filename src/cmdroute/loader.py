"""Load executor classes from ``module:Class`` entries."""

from __future__ import annotations

import importlib
import logging
import sys
from pathlib import Path
from typing import Any

from cmdroute.commands.executor import CommandExecutor

logger = logging.getLogger(__name__)


class ExecutorLoadError(Exception):
    """Raised when an executor entry cannot be imported or instantiated."""


def _ensure_on_syspath(path: Path) -> None:
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))


def load_executor_class(entry: str, *, base_dir: Path | None = None) -> type[CommandExecutor]:
    """Import ``pkg.module:ClassName`` and check it is an executor class."""
    if ":" not in entry:
        raise ExecutorLoadError(f"Invalid executor entry '{entry}' (expected module:Class)")
    module_name, class_name = (part.strip() for part in entry.split(":", 1))
    _ensure_on_syspath(base_dir or Path.cwd())
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ExecutorLoadError(f"Cannot import '{module_name}': {exc}") from exc

    cls = getattr(module, class_name, None)
    if not isinstance(cls, type) or not issubclass(cls, CommandExecutor):
        raise ExecutorLoadError(f"'{entry}' is not a CommandExecutor subclass")
    return cls


def load_executors(entries: list[str], **kwargs: Any) -> list[CommandExecutor]:
    """Instantiate every entry; bad entries are logged and skipped."""
    executors = []
    for entry in dict.fromkeys(entries):
        try:
            executors.append(load_executor_class(entry)(**kwargs))
        except Exception as exc:
            logger.warning("Failed to load executor '%s': %s", entry, exc)
    return executors
