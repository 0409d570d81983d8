"""Top-level configuration for multibuffer.

Sources are merged in increasing priority:
    defaults < JSON config file < MULTIBUFFER_* environment < CLI arguments

The config file accepts snake_case or camelCase keys, so both
``{"incrementalUpdates": {"debounceDelay": 1}}`` and
``{"incremental_updates": {"debounce_delay": 1}}`` work. Context keys may
also appear at the top level (``contextLines``, ``contextBefore``,
``contextAfter``) and are folded into the ``search`` section.
"""

import json
import re
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import BaseModel, Field

from multibuffer.core.constants import CONFIG_FILE_NAME

from .incremental_config import IncrementalUpdatesConfig
from .logging_config import LoggingConfig
from .search_config import SearchConfig

_TOP_LEVEL_SEARCH_KEYS = {"context_lines", "context_before", "context_after", "max_results"}


def _snake(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def _normalize_keys(data: Any) -> Any:
    if isinstance(data, dict):
        return {_snake(k): _normalize_keys(v) for k, v in data.items()}
    return data


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config(BaseModel):
    """Complete multibuffer configuration."""

    search: SearchConfig = Field(default_factory=SearchConfig)
    incremental_updates: IncrementalUpdatesConfig = Field(
        default_factory=IncrementalUpdatesConfig
    )
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def load_file(cls, path: Path) -> dict[str, Any]:
        """Read a JSON config file into a normalized override dict.

        Raises:
            ValueError: If the file is not a JSON object
        """
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in config file {path}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a JSON object")

        data = _normalize_keys(data)
        lifted = {k: data.pop(k) for k in list(data) if k in _TOP_LEVEL_SEARCH_KEYS}
        if lifted:
            data["search"] = _deep_merge(lifted, data.get("search", {}))
        return data

    @classmethod
    def load(
        cls,
        workspace_root: Path | None = None,
        config_file: Path | None = None,
        args: Any = None,
    ) -> "Config":
        """Build a Config from file, environment and CLI sources.

        Args:
            workspace_root: Directory searched for the default config file
            config_file: Explicit config file (must exist)
            args: Parsed CLI arguments, if any

        Raises:
            FileNotFoundError: If an explicit config file does not exist
            pydantic.ValidationError: If any merged value is invalid
        """
        data: dict[str, Any] = {}

        if config_file is not None:
            if not config_file.is_file():
                raise FileNotFoundError(f"Config file not found: {config_file}")
            data = cls.load_file(config_file)
            logger.debug(f"Loaded config file {config_file}")
        elif workspace_root is not None:
            default_file = workspace_root / CONFIG_FILE_NAME
            if default_file.is_file():
                data = cls.load_file(default_file)
                logger.debug(f"Loaded config file {default_file}")

        env_data = {
            "search": SearchConfig.load_from_env(),
            "incremental_updates": IncrementalUpdatesConfig.load_from_env(),
            "logging": LoggingConfig.load_from_env(),
        }
        data = _deep_merge(data, {k: v for k, v in env_data.items() if v})

        if args is not None:
            cli_data: dict[str, Any] = {}
            if search_overrides := SearchConfig.extract_cli_overrides(args):
                cli_data["search"] = search_overrides
            if logging_overrides := LoggingConfig.extract_cli_overrides(args):
                cli_data["logging"] = logging_overrides
            if getattr(args, "incremental", False):
                cli_data["incremental_updates"] = {"enabled": True}
            data = _deep_merge(data, cli_data)

        return cls.model_validate(data)
