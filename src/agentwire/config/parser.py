"""Load, validate, and resolve agentwire.yaml configuration."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from agentwire.config.models import AgentWireConfig
from agentwire.constants import TIMEOUT_ENV_VAR
from agentwire.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "agentwire.yaml"

#: pydantic message fragments and their user-facing replacements.
_FRIENDLY_MESSAGES = (
    ("field required", "This field is required"),
    ("extra inputs are not permitted", "Unknown field"),
)


def load_config(path: Path | None = None) -> AgentWireConfig:
    """Load and validate an agentwire.yaml file.

    Args:
        path: Explicit config file path. If None, looks for
              agentwire.yaml in the current directory and falls back
              to defaults when there is none.

    Returns:
        A validated AgentWireConfig instance.

    Raises:
        ConfigError: On missing file, bad YAML, or validation failure.
    """
    config_path = _resolve_path(path)
    raw = _read_yaml(config_path) if config_path is not None else {}

    # .env sits beside the config file, or in the cwd when running on defaults.
    env_file = (config_path.parent if config_path is not None else Path.cwd()) / ".env"
    if env_file.is_file():
        load_dotenv(env_file)

    try:
        config = AgentWireConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(_describe_validation_error(exc)) from exc
    _apply_env_overrides(config)
    return config


def _resolve_path(path: Path | None) -> Path | None:
    if path is not None:
        resolved = Path(path)
        if not resolved.is_file():
            msg = f"Config file not found: {resolved}"
            raise ConfigError(msg)
        return resolved

    default = Path.cwd() / DEFAULT_CONFIG_NAME
    if not default.is_file():
        logger.debug("no %s in %s, using defaults", DEFAULT_CONFIG_NAME, Path.cwd())
        return None
    return default


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        msg = f"Cannot read config file: {exc}"
        raise ConfigError(msg) from exc
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        where = f" (line {mark.line + 1}, column {mark.column + 1})" if mark is not None else ""
        msg = f"Invalid YAML in {path.name}{where}"
        raise ConfigError(msg) from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping in {path.name}, got {type(data).__name__}"
        raise ConfigError(msg)
    return data


def _apply_env_overrides(config: AgentWireConfig) -> None:
    raw_ms = os.environ.get(TIMEOUT_ENV_VAR)
    if not raw_ms:
        return
    try:
        timeout_ms = int(raw_ms)
    except ValueError as exc:
        msg = f"{TIMEOUT_ENV_VAR} must be an integer number of milliseconds, got '{raw_ms}'"
        raise ConfigError(msg) from exc
    if timeout_ms <= 0:
        msg = f"{TIMEOUT_ENV_VAR} must be positive, got {timeout_ms}"
        raise ConfigError(msg)
    config.agent.timeout_seconds = timeout_ms / 1000


def _describe_validation_error(exc: ValidationError) -> str:
    lines = ["Config validation failed:"]
    for err in exc.errors():
        loc = " → ".join(str(s) for s in err["loc"])
        lines.append(f"  {loc}: {_friendly_message(err['msg'])}")
    return "\n".join(lines)


def _friendly_message(msg: str) -> str:
    lowered = msg.lower()
    for fragment, replacement in _FRIENDLY_MESSAGES:
        if fragment in lowered:
            return replacement
    if "input should be" in lowered:
        return f"Invalid value: {msg}"
    return msg
