"""Configuration models for multibuffer."""

from .config import Config
from .incremental_config import IncrementalUpdatesConfig
from .logging_config import FileLoggingConfig, LoggingConfig
from .search_config import SearchConfig

__all__ = [
    "Config",
    "FileLoggingConfig",
    "IncrementalUpdatesConfig",
    "LoggingConfig",
    "SearchConfig",
]
