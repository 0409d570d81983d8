"""Local filesystem implementation of WorkspaceProvider.

Enumeration walks the workspace root, skipping noise directories and paths
matched by .gitignore files (root and nested). Include/exclude globs use
gitignore semantics via pathspec.GitIgnoreSpec. Reads and writes run in
worker threads through asyncio.to_thread; writes are atomic per file (temp
file + rename).
"""

import asyncio
import os
import shutil
import tempfile
from collections.abc import Mapping
from pathlib import Path

import pathspec
from loguru import logger

from multibuffer.core.constants import DEFAULT_INCLUDE_PATTERN
from multibuffer.core.exceptions import ApplyError, WorkspaceReadError
from multibuffer.core.models import TextDocument
from multibuffer.core.utils import display_path

SKIP_DIRS = {
    ".git",
    ".hg",
    ".svn",
    "node_modules",
    "__pycache__",
    ".mypy_cache",
    ".pytest_cache",
    "venv",
    ".venv",
}

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB


class FilesystemWorkspace:
    """Workspace rooted at a directory on the local filesystem."""

    def __init__(
        self,
        root: Path,
        use_ignore_files: bool = True,
        max_file_size: int = MAX_FILE_SIZE,
        encoding: str = "utf-8",
    ):
        """Initialize filesystem workspace.

        Args:
            root: Workspace root directory
            use_ignore_files: Honor .gitignore files found while walking
            max_file_size: Files larger than this are treated as unreadable
            encoding: Text encoding for reads and writes
        """
        self._root = root.resolve()
        if not self._root.is_dir():
            raise ValueError(f"Workspace root must be a directory: {root}")
        self.use_ignore_files = use_ignore_files
        self.max_file_size = max_file_size
        self.encoding = encoding

    @property
    def root(self) -> Path:
        return self._root

    def display_path(self, path: Path) -> str:
        return display_path(path, self._root)

    # Enumeration

    @staticmethod
    def _compile(pattern: str | None) -> pathspec.PathSpec | None:
        if not pattern:
            return None
        lines = [p.strip() for p in pattern.split(",") if p.strip()]
        return pathspec.GitIgnoreSpec.from_lines(lines)

    def _load_ignore_spec(self, directory: Path) -> pathspec.PathSpec | None:
        gitignore = directory / ".gitignore"
        if not gitignore.is_file():
            return None
        try:
            patterns = gitignore.read_text(encoding="utf-8").splitlines()
            return pathspec.GitIgnoreSpec.from_lines(patterns)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring unreadable {gitignore}: {e}")
            return None

    def _is_ignored(
        self,
        path: Path,
        specs: list[tuple[Path, pathspec.PathSpec]],
        is_dir: bool = False,
    ) -> bool:
        for base, spec in specs:
            try:
                rel = path.relative_to(base).as_posix()
            except ValueError:
                continue
            if is_dir:
                rel += "/"
            if spec.match_file(rel):
                return True
        return False

    def _walk(self, include: str | None, exclude: str | None) -> list[Path]:
        include_spec = self._compile(include or DEFAULT_INCLUDE_PATTERN)
        exclude_spec = self._compile(exclude)
        specs_by_dir: dict[Path, list[tuple[Path, pathspec.PathSpec]]] = {}
        results: list[Path] = []

        for dirpath, dirnames, filenames in os.walk(self._root):
            current = Path(dirpath)
            inherited = specs_by_dir.get(current.parent, []) if current != self._root else []
            specs = list(inherited)
            if self.use_ignore_files:
                spec = self._load_ignore_spec(current)
                if spec is not None:
                    specs.append((current, spec))
            specs_by_dir[current] = specs

            # Prune in place so os.walk skips these subtrees
            dirnames[:] = sorted(
                d
                for d in dirnames
                if d not in SKIP_DIRS
                and not self._is_ignored(current / d, specs, is_dir=True)
            )

            for name in sorted(filenames):
                file_path = current / name
                if self._is_ignored(file_path, specs):
                    continue
                rel = file_path.relative_to(self._root).as_posix()
                if include_spec is not None and not include_spec.match_file(rel):
                    continue
                if exclude_spec is not None and exclude_spec.match_file(rel):
                    continue
                results.append(file_path)

        return results

    async def find_files(
        self, include: str | None = None, exclude: str | None = None
    ) -> list[Path]:
        files = await asyncio.to_thread(self._walk, include, exclude)
        logger.debug(f"Enumerated {len(files)} files under {self._root}")
        return files

    def is_included(
        self, path: Path, include: str | None = None, exclude: str | None = None
    ) -> bool:
        path = path.resolve()
        try:
            rel_path = path.relative_to(self._root)
        except ValueError:
            return False
        if any(part in SKIP_DIRS for part in rel_path.parts):
            return False

        rel = rel_path.as_posix()
        include_spec = self._compile(include or DEFAULT_INCLUDE_PATTERN)
        if include_spec is not None and not include_spec.match_file(rel):
            return False
        exclude_spec = self._compile(exclude)
        if exclude_spec is not None and exclude_spec.match_file(rel):
            return False

        if self.use_ignore_files:
            specs = []
            directory = self._root
            for part in rel_path.parts[:-1]:
                spec = self._load_ignore_spec(directory)
                if spec is not None:
                    specs.append((directory, spec))
                directory = directory / part
                if self._is_ignored(directory, specs, is_dir=True):
                    return False
            spec = self._load_ignore_spec(directory)
            if spec is not None:
                specs.append((directory, spec))
            if self._is_ignored(path, specs):
                return False
        return True

    # Reads

    def _read_sync(self, path: Path) -> TextDocument:
        try:
            size = path.stat().st_size
            if size > self.max_file_size:
                raise WorkspaceReadError(
                    path, f"file is larger than {self.max_file_size} bytes"
                )
            raw = path.read_bytes()
        except OSError as e:
            raise WorkspaceReadError(path, str(e)) from e

        if b"\x00" in raw:
            raise WorkspaceReadError(path, "binary file")
        try:
            text = raw.decode(self.encoding)
        except UnicodeDecodeError as e:
            raise WorkspaceReadError(path, f"not valid {self.encoding}: {e}") from e
        return TextDocument.from_text(path, text)

    async def read_document(self, path: Path) -> TextDocument:
        return await asyncio.to_thread(self._read_sync, path)

    # Writes

    def _write_sync(
        self,
        path: Path,
        replacements: Mapping[int, str],
        expected_line_count: int | None,
    ) -> None:
        try:
            document = self._read_sync(path)
        except WorkspaceReadError as e:
            raise ApplyError(path, e.reason) from e

        if expected_line_count is not None and document.line_count != expected_line_count:
            raise ApplyError(
                path,
                f"file changed on disk ({document.line_count} lines, "
                f"expected {expected_line_count})",
            )

        lines = list(document.lines)
        for line, text in replacements.items():
            if line < 0 or line >= len(lines):
                raise ApplyError(
                    path, f"line {line + 1} is out of bounds (1-{len(lines)})"
                )
            lines[line] = text

        try:
            content = document.render(lines).encode(self.encoding)
        except UnicodeEncodeError as e:
            raise ApplyError(path, f"cannot encode as {self.encoding}: {e}") from e

        # Atomic write pattern: temp file + rename
        temp_path: str | None = None
        try:
            fd, temp_path = tempfile.mkstemp(
                dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "wb") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            shutil.copymode(path, temp_path)
            os.replace(temp_path, path)
        except OSError as e:
            if temp_path is not None:
                try:
                    os.unlink(temp_path)
                except OSError:
                    pass  # Best effort cleanup
            raise ApplyError(path, str(e)) from e

    async def write_lines(
        self,
        path: Path,
        replacements: Mapping[int, str],
        expected_line_count: int | None = None,
    ) -> None:
        await asyncio.to_thread(
            self._write_sync, path, dict(replacements), expected_line_count
        )
        logger.debug(f"Saved {len(replacements)} line edit(s) to {path}")
