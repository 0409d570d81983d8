"""Incremental update configuration for multibuffer."""

import os
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from multibuffer.core.constants import DEFAULT_DEBOUNCE_DELAY


class IncrementalUpdatesConfig(BaseModel):
    """Controls the cached, file-watching search wrapper."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    enabled: bool = Field(
        default=False,
        description="Serve repeated searches from a per-file cache refreshed by file events",
    )
    debounce_delay: float = Field(
        default=DEFAULT_DEBOUNCE_DELAY,
        ge=0.0,
        le=60.0,
        description="Seconds a burst of file events must stay quiet before it is processed",
    )

    @classmethod
    def load_from_env(cls) -> dict[str, Any]:
        """Load incremental update config from environment variables."""
        config: dict[str, Any] = {}
        if enabled := os.getenv("MULTIBUFFER_INCREMENTAL_UPDATES__ENABLED"):
            config["enabled"] = enabled.lower() in ("true", "1", "yes")
        if delay := os.getenv("MULTIBUFFER_INCREMENTAL_UPDATES__DEBOUNCE_DELAY"):
            try:
                config["debounce_delay"] = float(delay)
            except ValueError:
                pass
        return config
