"""Service construction shared by CLI commands."""

import argparse
import asyncio
import signal
from collections.abc import Callable
from pathlib import Path

from loguru import logger

from multibuffer.core.cancellation import CancellationToken
from multibuffer.core.config import Config
from multibuffer.core.models import ReplaceOptions, SearchOptions
from multibuffer.providers import FilesystemWorkspace
from multibuffer.services.change_tracker import ChangeSet
from multibuffer.services.incremental_search_service import IncrementalSearchService
from multibuffer.services.multibuffer_service import MultiBufferService
from multibuffer.services.search_service import SearchService


def create_service(config: Config, root: Path) -> MultiBufferService:
    """Build the service stack for one workspace.

    Args:
        config: Validated configuration
        root: Workspace root directory

    Raises:
        ValueError: If root is not a directory
    """
    workspace = FilesystemWorkspace(root, use_ignore_files=config.search.use_ignore_files)
    search_service: SearchService
    if config.incremental_updates.enabled:
        search_service = IncrementalSearchService(
            workspace, debounce_delay=config.incremental_updates.debounce_delay
        )
    else:
        search_service = SearchService(workspace)
    return MultiBufferService(search_service)


def search_options_from_args(args: argparse.Namespace, config: Config) -> SearchOptions:
    """Combine the query flags with the configured search defaults."""
    search = config.search
    return SearchOptions(
        query=args.query,
        is_regex=getattr(args, "regex", False),
        is_case_sensitive=getattr(args, "case_sensitive", False),
        match_whole_word=getattr(args, "whole_word", False),
        include_pattern=search.include,
        exclude_pattern=search.exclude,
        context_lines=search.context_lines,
        context_before=search.context_before,
        context_after=search.context_after,
        max_results=search.max_results,
    )


def replace_options_from_args(args: argparse.Namespace, config: Config) -> ReplaceOptions:
    return ReplaceOptions.from_search(search_options_from_args(args, config), args.replacement)


def install_cancel_handler(token: CancellationToken) -> Callable[[], None]:
    """Route SIGINT to the token; returns a callable that restores the default."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel)
    except (NotImplementedError, RuntimeError):
        logger.debug("SIGINT handler not supported on this platform")
        return lambda: None

    def restore() -> None:
        loop.remove_signal_handler(signal.SIGINT)

    return restore


def change_rows(change_set: ChangeSet, display_path: Callable[[Path], str]) -> list[tuple[str, int, str, str]]:
    """Flatten a change set into (file, 1-based line, before, after) rows."""
    rows = []
    for path, file_change in change_set.files.items():
        for change in file_change.changes:
            rows.append(
                (display_path(path), change.source_line + 1, change.original_text, change.new_text)
            )
    return rows
