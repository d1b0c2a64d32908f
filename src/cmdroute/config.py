"""Configuration, constants, and message templates for cmdroute."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import dotenv
from rich.console import Console

from cmdroute.settings_store import SettingsStore

logger = logging.getLogger(__name__)

_cmdroute_env = Path.home() / ".cmdroute" / ".env"
if _cmdroute_env.exists():
    dotenv.load_dotenv(dotenv_path=_cmdroute_env, override=False)
dotenv.load_dotenv()

DEFAULT_HELP_COMMAND = "help"
DEFAULT_COOLDOWN_TICK = 1.0
DEFAULT_COMMAND_PREFIX = "/"

# Rich markup templates, one per rejection category. Placeholders are filled
# with str.format; user supplied tokens are escaped before substitution.
DEFAULT_MESSAGES: dict[str, str] = {
    "sender_interactive_only": "This command can only be executed by a player.",
    "sender_console_only": "This command can only be executed by the console.",
    "permission": "[grey70]Executing this command requires [white]{permission}[/white] permission[/grey70]",
    "operator": "You do not have permission to execute this command.",
    "lock_sender": "Please wait for the previous command to finish executing first!",
    "lock_global": "Please wait for the other players' commands to be executed first!",
    "cooldown": "Too many operations. Please try again later.",
    "argument_error": (
        "Argument Error: [grey70]{command} {typed}[/grey70][underline]{offending}[/underline] "
        "<--[italic]\\[Error Here][/italic]\n"
        "[yellow]Correct Usage: [grey70]{usage}[/grey70][/yellow]"
    ),
    "missing_parameters": (
        "Missing Parameters: [grey70]{command} {typed}[/grey70][underline]{missing}[/underline] "
        "<--[italic]\\[Missing Part][/italic]\n"
        "[yellow]Correct Usage: [grey70]{usage}[/grey70][/yellow]"
    ),
    "execution_error": "An internal error occurred while executing this command.",
}

# Rich console instance
console = Console(highlight=False)


def _find_project_root(start_path: Path | None = None) -> Path | None:
    """Find the project root by looking for a .git directory.

    Args:
        start_path: Directory to start searching from. Defaults to current working directory.

    Returns:
        Path to the project root if found, None otherwise.
    """
    current = Path(start_path or Path.cwd()).resolve()
    for parent in [current, *list(current.parents)]:
        if (parent / ".git").exists():
            return parent
    return None


def _env_float(name: str) -> float | None:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number", name, raw)
        return None
    if value <= 0:
        logger.warning("Ignoring %s=%r: must be positive", name, raw)
        return None
    return value


@dataclass
class Settings:
    """Engine-wide settings.

    Attributes:
        help_command: Sole token that routes a command line to ``handle_help``.
        cooldown_tick: Seconds between two cooldown countdown steps.
        command_prefix: Optional prefix stripped from lines given to the host table.
        messages: Rejection message templates (defaults merged with overrides).
        executors: ``module:Class`` executor entries loaded by the CLI.
        project_root: Current project root directory (if in a git project).
    """

    help_command: str = DEFAULT_HELP_COMMAND
    cooldown_tick: float = DEFAULT_COOLDOWN_TICK
    command_prefix: str = DEFAULT_COMMAND_PREFIX
    messages: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_MESSAGES))
    executors: list[str] = field(default_factory=list)
    project_root: Path | None = None

    @classmethod
    def from_environment(
        cls, *, start_path: Path | None = None, home: Path | None = None
    ) -> "Settings":
        """Create settings from settings files and the environment.

        Precedence, lowest first: built-in defaults, ``~/.cmdroute/settings.json``,
        ``<project>/.cmdroute/settings.json``, ``CMDROUTE_*`` environment variables.

        Args:
            start_path: Directory to start project detection from (defaults to cwd)
            home: Home directory override (defaults to ``Path.home()``)

        Returns:
            Settings instance with detected configuration
        """
        project_root = _find_project_root(start_path)
        store = SettingsStore(project_root=project_root, home=home)

        help_command = (
            os.environ.get("CMDROUTE_HELP_COMMAND", "").strip()
            or store.get_help_command()
            or DEFAULT_HELP_COMMAND
        )
        cooldown_tick = (
            _env_float("CMDROUTE_COOLDOWN_TICK")
            or store.get_cooldown_tick()
            or DEFAULT_COOLDOWN_TICK
        )
        prefix = os.environ.get("CMDROUTE_PREFIX")
        if prefix is None:
            prefix = store.get_command_prefix()
        if prefix is None:
            prefix = DEFAULT_COMMAND_PREFIX

        messages = dict(DEFAULT_MESSAGES)
        for key, value in store.get_messages().items():
            if key not in DEFAULT_MESSAGES:
                logger.warning("Ignoring unknown message template '%s'", key)
                continue
            messages[key] = value

        return cls(
            help_command=help_command,
            cooldown_tick=cooldown_tick,
            command_prefix=prefix,
            messages=messages,
            executors=store.get_executors(),
            project_root=project_root,
        )


settings = Settings.from_environment()
