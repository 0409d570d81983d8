"""Common CLI argument patterns shared across parsers."""

import argparse
from pathlib import Path


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """Add arguments common to all commands.

    Args:
        parser: Argument parser to add common arguments to
    """
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Configuration file path (default: .multibuffer.json in the workspace)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        help="Enable file logging to specified path",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set file logging level (default: INFO)",
    )


def add_query_arguments(parser: argparse.ArgumentParser) -> None:
    """Add the query and matching-mode arguments.

    Args:
        parser: Argument parser to add query arguments to
    """
    parser.add_argument(
        "query",
        type=str,
        help="Text (or regular expression with --regex) to search for",
    )
    parser.add_argument(
        "--path",
        "-p",
        type=Path,
        default=Path("."),
        help="Workspace root to search (default: current directory)",
    )
    parser.add_argument(
        "--regex",
        "-e",
        action="store_true",
        help="Treat the query as a regular expression",
    )
    parser.add_argument(
        "--case-sensitive",
        "-s",
        action="store_true",
        help="Match case exactly",
    )
    parser.add_argument(
        "--whole-word",
        "-w",
        action="store_true",
        help="Only match whole words",
    )
    parser.add_argument(
        "--incremental",
        action="store_true",
        help="Use the incremental search cache",
    )


def add_config_arguments(parser: argparse.ArgumentParser, configs: list[str]) -> None:
    """Add CLI arguments for specified config sections.

    Args:
        parser: Argument parser to add config arguments to
        configs: List of config section names to include
    """
    if "search" in configs:
        from multibuffer.core.config.search_config import SearchConfig

        SearchConfig.add_cli_arguments(parser)
