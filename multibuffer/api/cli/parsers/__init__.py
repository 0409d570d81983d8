"""Argument parser utilities for multibuffer CLI commands."""

from .main_parser import create_main_parser, setup_subparsers
from .search_parser import add_edit_subparser, add_replace_subparser, add_search_subparser

__all__ = [
    "create_main_parser",
    "setup_subparsers",
    "add_search_subparser",
    "add_replace_subparser",
    "add_edit_subparser",
]
