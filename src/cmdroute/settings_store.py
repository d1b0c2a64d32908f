"""User and project settings storage for cmdroute."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            # Arrays and scalars fully override
            result[key] = value
    return result


@dataclass
class SettingsStore:
    """Loads and writes cmdroute settings with project overrides."""

    project_root: Path | None
    home: Path | None = None

    @property
    def global_path(self) -> Path:
        return (self.home or Path.home()) / ".cmdroute" / "settings.json"

    @property
    def project_path(self) -> Path | None:
        if not self.project_root:
            return None
        return self.project_root / ".cmdroute" / "settings.json"

    def load(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for path in [self.global_path, self.project_path]:
            content = self._load_path(path)
            if content:
                data = _deep_merge(data, content)
        return data

    def _load_path(self, path: Path | None) -> dict[str, Any]:
        if not path or not path.exists():
            return {}
        try:
            content = json.loads(path.read_text())
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable settings file %s: %s", path, exc)
            return {}
        if isinstance(content, dict):
            return content
        logger.warning("Ignoring settings file %s: top level is not an object", path)
        return {}

    def save(self, data: dict[str, Any], *, scope: str = "global") -> None:
        if scope == "project" and self.project_path is not None:
            path = self.project_path
        else:
            path = self.global_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2))

    def get_messages(self) -> dict[str, str]:
        messages = self.load().get("messages")
        if not isinstance(messages, dict):
            return {}
        return {str(key): str(value) for key, value in messages.items() if isinstance(value, str)}

    def get_executors(self) -> list[str]:
        entries = self.load().get("executors")
        if not isinstance(entries, list):
            return []
        return [entry.strip() for entry in entries if isinstance(entry, str) and entry.strip()]

    def get_help_command(self) -> str | None:
        value = self.load().get("helpCommand")
        if isinstance(value, str):
            return value.strip() or None
        return None

    def get_cooldown_tick(self) -> float | None:
        value = self.load().get("cooldownTick")
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
            return float(value)
        return None

    def get_command_prefix(self) -> str | None:
        value = self.load().get("commandPrefix")
        if isinstance(value, str):
            return value
        return None
