"""WorkspaceProvider protocol - the host collaborator the search engine runs against."""

from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

from multibuffer.core.models import TextDocument


class WorkspaceProvider(Protocol):
    """Abstract protocol for workspace access.

    Defines file enumeration, content reads and line-level writes. All I/O
    methods are coroutines so enumeration, reads and saves are suspension
    points for the event loop.
    """

    @property
    def root(self) -> Path:
        """Workspace root directory."""
        ...

    async def find_files(
        self, include: str | None = None, exclude: str | None = None
    ) -> list[Path]:
        """Return absolute paths of files matching include and not exclude.

        Ignore-file rules are honored. The order is stable between calls.
        """
        ...

    def is_included(
        self, path: Path, include: str | None = None, exclude: str | None = None
    ) -> bool:
        """Check whether a single path would be returned by find_files()."""
        ...

    async def read_document(self, path: Path) -> TextDocument:
        """Read a file as line-addressable text.

        Raises:
            WorkspaceReadError: If the file is missing, binary or undecodable
        """
        ...

    async def write_lines(
        self,
        path: Path,
        replacements: Mapping[int, str],
        expected_line_count: int | None = None,
    ) -> None:
        """Replace whole lines as one edit set and persist the file.

        Args:
            path: File to edit
            replacements: 0-based line number -> full new line text
            expected_line_count: Abort if the file's line count differs

        Raises:
            ApplyError: If the file cannot be read, edited or saved
        """
        ...

    def display_path(self, path: Path) -> str:
        """Path shown to users for a workspace file."""
        ...
