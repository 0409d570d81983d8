"""Main argument parser for multibuffer CLI."""

import argparse
from typing import Any

from multibuffer import __version__

from .search_parser import add_edit_subparser, add_replace_subparser, add_search_subparser


def create_main_parser() -> argparse.ArgumentParser:
    """Create and configure the main argument parser.

    Returns:
        Configured main argument parser
    """
    parser = argparse.ArgumentParser(
        prog="multibuffer",
        description="Search a workspace into one editable aggregate document",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  multibuffer search TODO
  multibuffer search "def \\w+_test" --regex --context-lines 0
  multibuffer replace foo bar --whole-word --include "**/*.py"
  multibuffer edit "config.load" --case-sensitive
        """,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"multibuffer {__version__}",
    )
    return parser


def setup_subparsers(parser: argparse.ArgumentParser) -> Any:
    """Set up subparsers for the main parser.

    Args:
        parser: Main argument parser

    Returns:
        Subparsers object for adding command parsers
    """
    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    add_search_subparser(subparsers)
    add_replace_subparser(subparsers)
    add_edit_subparser(subparsers)
    return subparsers
