"""Search, replace and edit command argument parsers for multibuffer CLI."""

import argparse
from typing import Any

from .common_arguments import add_common_arguments, add_config_arguments, add_query_arguments


def add_search_subparser(subparsers: Any) -> argparse.ArgumentParser:
    """Add search command subparser to the main parser.

    Args:
        subparsers: Subparsers object from the main argument parser

    Returns:
        The configured search subparser
    """
    search_parser = subparsers.add_parser(
        "search",
        help="Search the workspace and print the aggregate document",
        description=(
            "Search every file in the workspace and print all matches, with "
            "surrounding context, as one aggregate document."
        ),
    )
    add_query_arguments(search_parser)
    add_config_arguments(search_parser, ["search"])
    add_common_arguments(search_parser)
    return search_parser


def add_replace_subparser(subparsers: Any) -> argparse.ArgumentParser:
    """Add replace command subparser to the main parser.

    Args:
        subparsers: Subparsers object from the main argument parser

    Returns:
        The configured replace subparser
    """
    replace_parser = subparsers.add_parser(
        "replace",
        help="Preview and apply a replacement across the workspace",
        description=(
            "Render a replacement preview of every match, then write the "
            "replaced lines back to their files after confirmation."
        ),
    )
    add_query_arguments(replace_parser)
    replace_parser.add_argument(
        "replacement",
        type=str,
        help="Replacement text (group references like \\1 allowed with --regex)",
    )
    replace_parser.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Apply without asking for confirmation",
    )
    replace_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show the preview and pending changes without writing files",
    )
    add_config_arguments(replace_parser, ["search"])
    add_common_arguments(replace_parser)
    return replace_parser


def add_edit_subparser(subparsers: Any) -> argparse.ArgumentParser:
    """Add edit command subparser to the main parser.

    Args:
        subparsers: Subparsers object from the main argument parser

    Returns:
        The configured edit subparser
    """
    edit_parser = subparsers.add_parser(
        "edit",
        help="Edit all matches in $EDITOR and write the edits back",
        description=(
            "Open the aggregate document in $EDITOR. Edited match lines are "
            "written back to their source files; adding or removing lines is "
            "not supported."
        ),
    )
    add_query_arguments(edit_parser)
    edit_parser.add_argument(
        "--editor",
        type=str,
        help="Editor command (default: $VISUAL, $EDITOR, then vi)",
    )
    edit_parser.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Apply without asking for confirmation",
    )
    add_config_arguments(edit_parser, ["search"])
    add_common_arguments(edit_parser)
    return edit_parser
