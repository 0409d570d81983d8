"""Search configuration for multibuffer.

Configuration can be provided via:
- Environment variables (MULTIBUFFER_SEARCH__*)
- The JSON configuration file
- CLI arguments
- Default values
"""

import argparse
import os
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from multibuffer.core.constants import DEFAULT_CONTEXT_LINES, DEFAULT_INCLUDE_PATTERN


class SearchConfig(BaseModel):
    """Defaults applied to every search invocation."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    context_lines: int = Field(
        default=DEFAULT_CONTEXT_LINES,
        ge=0,
        description="Context lines above and below each match (legacy fallback)",
    )
    context_before: int | None = Field(
        default=None,
        ge=0,
        description="Context lines above each match (overrides context_lines)",
    )
    context_after: int | None = Field(
        default=None,
        ge=0,
        description="Context lines below each match (overrides context_lines)",
    )
    max_results: int | None = Field(
        default=None,
        ge=1,
        description="Maximum number of matches across the whole search (None = no limit)",
    )
    include: str = Field(
        default=DEFAULT_INCLUDE_PATTERN,
        description="Glob of files to search",
    )
    exclude: str | None = Field(
        default=None,
        description="Glob of files to skip",
    )
    use_ignore_files: bool = Field(
        default=True,
        description="Honor .gitignore rules when enumerating files",
    )

    @field_validator("include")
    @classmethod
    def validate_include(cls, v: str) -> str:
        """Validate include glob."""
        if not v.strip():
            raise ValueError("Include pattern cannot be empty")
        return v

    def context_values(self) -> tuple[int, int]:
        """Return effective (before, after) context lines."""
        before = self.context_before if self.context_before is not None else self.context_lines
        after = self.context_after if self.context_after is not None else self.context_lines
        return before, after

    @classmethod
    def add_cli_arguments(cls, parser: argparse.ArgumentParser) -> None:
        """Add search-related CLI arguments."""
        parser.add_argument(
            "--context-lines",
            type=int,
            help="Context lines above and below each match (default: 2)",
        )
        parser.add_argument(
            "--context-before",
            type=int,
            help="Context lines above each match (overrides --context-lines)",
        )
        parser.add_argument(
            "--context-after",
            type=int,
            help="Context lines below each match (overrides --context-lines)",
        )
        parser.add_argument(
            "--max-results",
            type=int,
            help="Stop after this many matches across all files",
        )
        parser.add_argument(
            "--include",
            type=str,
            help="Glob of files to search (default: **/*)",
        )
        parser.add_argument(
            "--exclude",
            type=str,
            help="Glob of files to skip",
        )
        parser.add_argument(
            "--no-ignore",
            action="store_true",
            help="Do not honor .gitignore rules",
        )

    @classmethod
    def load_from_env(cls) -> dict[str, Any]:
        """Load search config from environment variables."""
        config: dict[str, Any] = {}
        for name in ("context_lines", "context_before", "context_after", "max_results"):
            if value := os.getenv(f"MULTIBUFFER_SEARCH__{name.upper()}"):
                try:
                    config[name] = int(value)
                except ValueError:
                    # Leave the default in place; pydantic would reject it anyway
                    pass
        if include := os.getenv("MULTIBUFFER_SEARCH__INCLUDE"):
            config["include"] = include
        if exclude := os.getenv("MULTIBUFFER_SEARCH__EXCLUDE"):
            config["exclude"] = exclude
        if use_ignore := os.getenv("MULTIBUFFER_SEARCH__USE_IGNORE_FILES"):
            config["use_ignore_files"] = use_ignore.lower() in ("true", "1", "yes")
        return config

    @classmethod
    def extract_cli_overrides(cls, args: Any) -> dict[str, Any]:
        """Extract search config overrides from CLI arguments."""
        overrides: dict[str, Any] = {}
        for name in ("context_lines", "context_before", "context_after", "max_results"):
            value = getattr(args, name, None)
            if value is not None:
                overrides[name] = value
        if getattr(args, "include", None):
            overrides["include"] = args.include
        if getattr(args, "exclude", None):
            overrides["exclude"] = args.exclude
        if getattr(args, "no_ignore", False):
            overrides["use_ignore_files"] = False
        return overrides
