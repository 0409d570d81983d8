"""Rich-based output formatting utilities for multibuffer CLI commands."""

import os
import sys
from typing import Any

import rich.box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table
from rich.text import Text

from multibuffer.core.constants import CONTENT_START_INDEX, FILE_HEADER_PREFIX
from multibuffer.core.models import AggregateMapping


# Constants for fallback message prefixes
class MessagePrefixes:
    """Constants for consistent message prefixes in fallback mode."""

    INFO = "[INFO]"
    SUCCESS = "[SUCCESS]"
    WARN = "[WARN]"
    ERROR = "[ERROR]"
    DEBUG = "[DEBUG]"


class RichOutputFormatter:
    """Terminal UI formatter using Rich library."""

    def __init__(self, verbose: bool = False):
        """Initialize Rich output formatter.

        Args:
            verbose: Whether to enable verbose output
        """
        self.verbose = verbose
        self._terminal_compatible = self._check_terminal_compatibility()
        self.console = Console() if self._terminal_compatible else None

    def _check_terminal_compatibility(self) -> bool:
        """Check if terminal supports Rich formatting."""
        if os.environ.get("MULTIBUFFER_NO_RICH"):
            return False
        if not sys.stdout.isatty():
            return False
        return os.environ.get("TERM", "") not in ("dumb", "unknown")

    def _safe_print(self, message: str, fallback_prefix: str = "", plain: str | None = None) -> None:
        """Print with Rich, or plain text when the terminal is not compatible."""
        if self.console is not None:
            self.console.print(message)
            return

        text = plain if plain is not None else message
        if fallback_prefix:
            print(f"{fallback_prefix} {text}")
        else:
            print(text)

    def info(self, message: str) -> None:
        """Print an info message."""
        self._safe_print(f"[blue][INFO][/blue] {escape(message)}", MessagePrefixes.INFO, message)

    def success(self, message: str) -> None:
        """Print a success message."""
        self._safe_print(
            f"[green][SUCCESS][/green] {escape(message)}", MessagePrefixes.SUCCESS, message
        )

    def warning(self, message: str) -> None:
        """Print a warning message."""
        self._safe_print(
            f"[yellow][WARN][/yellow] {escape(message)}", MessagePrefixes.WARN, message
        )

    def error(self, message: str) -> None:
        """Print an error message."""
        self._safe_print(f"[red][ERROR][/red] {escape(message)}", MessagePrefixes.ERROR, message)

    def verbose_info(self, message: str) -> None:
        """Print a verbose info message if verbose mode is enabled."""
        if self.verbose:
            self._safe_print(
                f"[cyan][DEBUG][/cyan] {escape(message)}", MessagePrefixes.DEBUG, message
            )

    def bullet_list(self, items: list[str], indent: int = 2) -> None:
        """Print a clean bullet list."""
        for item in items:
            self._safe_print(f"{'  ' * indent}- {escape(item)}", plain=f"{'  ' * indent}- {item}")

    def aggregate(self, content: str, mapping: AggregateMapping) -> None:
        """Print an aggregate document, highlighting match lines and file headers."""
        if self.console is None:
            print(content)
            return

        for line_number, line in enumerate(content.split("\n")):
            if line_number in mapping.line_to_excerpt:
                text = Text(line[:CONTENT_START_INDEX], style="dim")
                text.append(line[CONTENT_START_INDEX:], style="bold")
            elif line.startswith(FILE_HEADER_PREFIX):
                text = Text(line, style="bold cyan")
            elif line_number == 0:
                text = Text(line, style="bold magenta")
            else:
                text = Text(line, style="dim")
            self.console.print(text, highlight=False, soft_wrap=True)

    def summary_panel(self, title: str, rows: list[tuple[str, str]], style: str = "green") -> None:
        """Display key/value rows in a bordered panel."""
        if self.console is None:
            print(title)
            for key, value in rows:
                print(f"  {key} {value}")
            return

        table = Table.grid(padding=(0, 2))
        table.add_column(style="cyan")
        table.add_column()
        for key, value in rows:
            table.add_row(key, value)
        self.console.print(
            Panel(
                table,
                title=f"[bold {style}]{escape(title)}[/bold {style}]",
                border_style=style,
                box=rich.box.ROUNDED,
                padding=(0, 2),
            )
        )

    def search_summary(self, stats: dict[str, Any]) -> None:
        """Display match/excerpt/file counts for a search."""
        rows = [
            ("Matches:", f"{stats.get('matches', 0)}"),
            ("Excerpts:", f"{stats.get('excerpts', 0)}"),
            ("Files:", f"{stats.get('files', 0)}"),
        ]
        if stats.get("skipped", 0):
            rows.append(("Skipped:", f"{stats['skipped']} files"))
        if stats.get("truncated"):
            rows.append(("Truncated:", "max results reached"))
        self.summary_panel("Search Complete", rows)

    def change_table(self, rows: list[tuple[str, int, str, str]]) -> None:
        """List pending line edits as (file, line, before, after)."""
        if self.console is None:
            for path, line, before, after in rows:
                print(f"{path}:{line}: {before!r} -> {after!r}")
            return

        table = Table(box=rich.box.SIMPLE_HEAD)
        table.add_column("File", style="cyan", no_wrap=True)
        table.add_column("Line", justify="right")
        table.add_column("Before", style="red")
        table.add_column("After", style="green")
        for path, line, before, after in rows:
            table.add_row(path, str(line), before, after)
        self.console.print(table)

    def confirm(self, question: str, default: bool = False) -> bool:
        """Ask a yes/no question on the terminal."""
        if self.console is not None:
            return Confirm.ask(question, console=self.console, default=default)
        answer = input(f"{question} [y/N]: ").strip().lower()
        return answer in ("y", "yes")
