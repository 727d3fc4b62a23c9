"""Settings for the CLI and the query editor session.

Sources, later wins: defaults, an optional YAML file, environment
variables, then explicit overrides (CLI flags).
"""

from __future__ import annotations

import os
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from json_query_tools.errors import ConfigError
from json_query_tools.history import HISTORY_LIMIT

ENV_STATE = "JSON_QUERY_TOOLS_STATE"
ENV_LOG_DIR = "JSON_QUERY_TOOLS_LOG_DIR"
ENV_LANGUAGE = "JSON_QUERY_TOOLS_LANGUAGE"


def default_state_path(env: Mapping[str, str] | None = None) -> Path:
    env = os.environ if env is None else env
    if sys.platform == "win32":
        base = Path(env.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    else:
        base = Path(env.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return base / "json-query-tools" / "state.json"


class Settings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    state_path: Path = Field(default_factory=default_state_path)
    history_limit: int = Field(default=HISTORY_LIMIT, ge=1)
    language: Literal["python", "jsonata"] = "python"
    log_dir: Path | None = None


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config YAML must be a mapping, got {type(raw).__name__}")
    return raw


def load_settings(
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    **overrides: Any,
) -> Settings:
    """Merge all configuration sources into a validated Settings.

    ``None`` overrides are ignored so unset CLI flags don't mask other
    sources.

    Raises:
        ConfigError: If the file is unreadable or a value is invalid.
    """
    env = os.environ if env is None else env
    values: dict[str, Any] = {"state_path": default_state_path(env)}

    if config_path is not None:
        values.update(_read_config_file(Path(config_path)))

    if env.get(ENV_STATE):
        values["state_path"] = env[ENV_STATE]
    if env.get(ENV_LOG_DIR):
        values["log_dir"] = env[ENV_LOG_DIR]
    if env.get(ENV_LANGUAGE):
        values["language"] = env[ENV_LANGUAGE]

    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return Settings.model_validate(values)
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
