from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from rask.core.model import DEFAULT_PHASE, Priority


CONFIG_FILE = "config.yaml"

DEFAULT_AI_MODEL = "gpt-4.1-mini"

_KNOWN_KEYS = {"default_priority", "default_phase", "auto_sync_markdown", "log_level", "ai_model"}


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class UserConfig:
    default_priority: Priority = Priority.MEDIUM
    default_phase: str = DEFAULT_PHASE.name
    auto_sync_markdown: bool = True
    log_level: Optional[str] = None
    ai_model: str = DEFAULT_AI_MODEL


def load_user_config(path: str | Path) -> UserConfig:
    """Load preferences from a YAML file. A missing file yields the defaults.

    Format:
      default_priority: High
      default_phase: Beta
      auto_sync_markdown: true
      log_level: INFO
      ai_model: gpt-4.1-mini
    """
    p = Path(path)
    if not p.exists():
        return UserConfig()

    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"{p}: invalid YAML: {e}") from e
    if raw is None:
        return UserConfig()
    if not isinstance(raw, dict):
        raise ConfigError(f"{p}: config file must be a mapping")

    unknown = sorted(set(raw) - _KNOWN_KEYS, key=str)
    if unknown:
        raise ConfigError(f"{p}: unknown config keys: {', '.join(map(str, unknown))}")

    return UserConfig(
        default_priority=_priority(raw),
        default_phase=_non_empty_str(raw, "default_phase", DEFAULT_PHASE.name),
        auto_sync_markdown=_bool(raw, "auto_sync_markdown", True),
        log_level=_log_level(raw),
        ai_model=_non_empty_str(raw, "ai_model", DEFAULT_AI_MODEL),
    )


def _priority(raw: dict[str, Any]) -> Priority:
    value = raw.get("default_priority")
    if value is None:
        return Priority.MEDIUM
    if not isinstance(value, str):
        raise ConfigError("default_priority must be a string")
    try:
        return Priority.parse(value)
    except ValueError as e:
        raise ConfigError(f"default_priority: {e}") from e


def _non_empty_str(raw: dict[str, Any], key: str, default: str) -> str:
    value = raw.get(key)
    if value is None:
        return default
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{key} must be a non-empty string")
    return value.strip()


def _bool(raw: dict[str, Any], key: str, default: bool) -> bool:
    value = raw.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigError(f"{key} must be true or false")
    return value


def _log_level(raw: dict[str, Any]) -> Optional[str]:
    value = raw.get("log_level")
    if value is None:
        return None
    if not isinstance(value, str) or not isinstance(logging.getLevelName(value.upper()), int):
        raise ConfigError(f"log_level must be a logging level name, got {value!r}")
    return value.upper()
