"""Incremental search: serve repeated searches from a per-file excerpt cache.

The cache is keyed by the search options. A search with different options
clears it and runs a full scan. Otherwise only files marked pending by
change notifications are re-matched, and the result reports how each
re-matched file moved: added, modified, removed or unchanged.

Pending files are processed only at the start of a query, never while a
scan is in progress.
"""

import hashlib
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from threading import RLock
from typing import Any

from loguru import logger

from multibuffer.core.cancellation import CancellationToken
from multibuffer.core.constants import DEFAULT_DEBOUNCE_DELAY
from multibuffer.core.exceptions import (
    ExcerptConstructionError,
    OperationCancelledError,
    WorkspaceReadError,
)
from multibuffer.core.models import Excerpt, SearchOptions, TextDocument
from multibuffer.interfaces.workspace_provider import WorkspaceProvider

from .file_watcher import FileWatcher
from .matcher import MatchBudget, Matcher
from .search_service import FileIssue, SearchResult, SearchService


def compute_excerpt_hash(excerpts: Iterable[Excerpt]) -> str:
    """sha256 over the original text of each excerpt, in order."""
    digest = hashlib.sha256()
    for excerpt in excerpts:
        digest.update(excerpt.original_text.encode("utf-8"))
    return digest.hexdigest()


@dataclass
class CachedExcerpts:
    """Cached scan result for one file."""

    excerpts: list[Excerpt]
    document: TextDocument
    file_hash: str
    last_modified: float
    match_count: int


@dataclass
class IncrementalSearchResult:
    """Delta between the previous and current result sets.

    Attributes:
        added: Files matching now that were not in the previous result
        modified: Re-matched files whose excerpt content changed
        removed: Files that no longer match, were deleted or became unreadable
        unchanged: Files served from cache (or re-matched with identical content)
        all: Every file in the current result
        full_rescan: True when the cache was rebuilt from a full scan
    """

    added: dict[Path, list[Excerpt]] = field(default_factory=dict)
    modified: dict[Path, list[Excerpt]] = field(default_factory=dict)
    removed: set[Path] = field(default_factory=set)
    unchanged: dict[Path, list[Excerpt]] = field(default_factory=dict)
    all: dict[Path, list[Excerpt]] = field(default_factory=dict)
    documents: dict[Path, TextDocument] = field(default_factory=dict)
    match_counts: dict[Path, int] = field(default_factory=dict)
    issues: list[FileIssue] = field(default_factory=list)
    truncated: bool = False
    full_rescan: bool = False

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.modified or self.removed)

    def to_search_result(self) -> SearchResult:
        """View the current result set as a plain SearchResult for formatting."""
        return SearchResult(
            excerpts_by_file=dict(self.all),
            documents={path: self.documents[path] for path in self.all},
            match_counts={path: self.match_counts.get(path, 0) for path in self.all},
            issues=list(self.issues),
            truncated=self.truncated,
        )


class IncrementalSearchService(SearchService):
    """SearchService with a per-file cache and change tracking.

    Change notifications may arrive from watchdog threads; the pending set is
    guarded by an RLock. The cache itself is only touched by the query path.
    """

    def __init__(
        self,
        workspace: WorkspaceProvider,
        debounce_delay: float = DEFAULT_DEBOUNCE_DELAY,
        watch: bool = False,
    ):
        """Initialize incremental search service.

        Args:
            workspace: Provider used for enumeration and reads
            debounce_delay: Quiet period before watched events are delivered
            watch: Start a filesystem watcher after each full scan
        """
        super().__init__(workspace)
        self._debounce_delay = debounce_delay
        self._watch = watch

        self._cache: dict[Path, CachedExcerpts] = {}
        self._cache_key: tuple[Any, ...] | None = None
        self._last_options: SearchOptions | None = None

        # file_path -> last event type
        self._pending: dict[Path, str] = {}
        self._pending_lock = RLock()

        self._watcher: FileWatcher | None = None

    @property
    def has_cache(self) -> bool:
        return self._cache_key is not None

    @property
    def watcher(self) -> FileWatcher | None:
        return self._watcher

    def cached_files(self) -> list[Path]:
        return list(self._cache)

    def pending_files(self) -> list[Path]:
        with self._pending_lock:
            return list(self._pending)

    def mark_pending(self, path: Path, event_type: str = "modified") -> None:
        """Record a change notification; ignored while no search is cached."""
        if self._cache_key is None:
            return
        with self._pending_lock:
            self._pending[path] = event_type
        logger.debug(f"Marked {event_type} file pending: {path}")

    def clear_cache(self) -> None:
        self._cache.clear()
        self._cache_key = None
        self._last_options = None
        with self._pending_lock:
            self._pending.clear()

    async def search_workspace_incremental(
        self,
        options: SearchOptions,
        cancel_token: CancellationToken | None = None,
    ) -> IncrementalSearchResult:
        """Search, re-matching only pending files when the options are unchanged.

        Raises:
            EmptyQueryError: If the query is empty
            InvalidPatternError: If a regex query is malformed
            OperationCancelledError: If cancel_token fires; the cache keeps its
                previous state and pending files stay pending
        """
        if self._watcher is not None:
            self._watcher.flush_pending()

        if self._cache_key != options.cache_key():
            return await self._full_rescan(options, cancel_token)
        return await self._incremental_update(options, cancel_token)

    async def _full_rescan(
        self, options: SearchOptions, cancel_token: CancellationToken | None
    ) -> IncrementalSearchResult:
        if self._cache_key is not None:
            logger.info("Search options changed, rebuilding search cache")
        self.clear_cache()

        search_result = await self.search_workspace(options, cancel_token)

        now = time.time()
        for path, excerpts in search_result.excerpts_by_file.items():
            self._cache[path] = CachedExcerpts(
                excerpts=excerpts,
                document=search_result.documents[path],
                file_hash=compute_excerpt_hash(excerpts),
                last_modified=now,
                match_count=search_result.match_counts.get(path, 0),
            )
        self._cache_key = options.cache_key()
        self._last_options = options

        if self._watch:
            await self.start_watching(options)

        return IncrementalSearchResult(
            added=dict(search_result.excerpts_by_file),
            all=dict(search_result.excerpts_by_file),
            documents=dict(search_result.documents),
            match_counts=dict(search_result.match_counts),
            issues=list(search_result.issues),
            truncated=search_result.truncated,
            full_rescan=True,
        )

    async def _incremental_update(
        self, options: SearchOptions, cancel_token: CancellationToken | None
    ) -> IncrementalSearchResult:
        with self._pending_lock:
            pending = dict(self._pending)
            self._pending.clear()

        matcher = Matcher(options)
        result = IncrementalSearchResult()
        cached_matches = sum(
            entry.match_count for path, entry in self._cache.items() if path not in pending
        )
        budget = MatchBudget(
            None
            if options.max_results is None
            else max(0, options.max_results - cached_matches)
        )
        updates: dict[Path, CachedExcerpts | None] = {}

        try:
            for path, event_type in pending.items():
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled("Search")
                updates[path] = await self._rescan_file(
                    path, event_type, matcher, options, budget, result
                )
        except OperationCancelledError:
            with self._pending_lock:
                for path, event_type in pending.items():
                    self._pending.setdefault(path, event_type)
            raise

        now = time.time()
        for path, entry in updates.items():
            cached = self._cache.get(path)
            if entry is None:
                if cached is not None:
                    result.removed.add(path)
                    del self._cache[path]
                continue
            if cached is None:
                result.added[path] = entry.excerpts
            elif cached.file_hash != entry.file_hash:
                result.modified[path] = entry.excerpts
            else:
                result.unchanged[path] = entry.excerpts
            entry.last_modified = now
            self._cache[path] = entry

        for path, entry in self._cache.items():
            if path not in updates:
                result.unchanged[path] = entry.excerpts
            result.all[path] = entry.excerpts
            result.documents[path] = entry.document
            result.match_counts[path] = entry.match_count
        result.truncated = budget.exhausted

        logger.info(
            f"Incremental search for {options.query!r}: {len(pending)} files re-scanned, "
            f"{len(result.added)} added, {len(result.modified)} modified, "
            f"{len(result.removed)} removed, {len(result.unchanged)} unchanged"
        )
        return result

    async def _rescan_file(
        self,
        path: Path,
        event_type: str,
        matcher: Matcher,
        options: SearchOptions,
        budget: MatchBudget,
        result: IncrementalSearchResult,
    ) -> CachedExcerpts | None:
        if event_type == "deleted" and not path.exists():
            return None
        if path not in self._cache and not self.workspace.is_included(
            path, options.include_pattern, options.exclude_pattern
        ):
            return None

        try:
            file_result = await self.search_file(path, matcher, options, budget)
        except WorkspaceReadError as e:
            logger.warning(f"Dropping unreadable file {path}: {e.reason}")
            result.issues.append(FileIssue(path, "read", e.reason))
            return None
        except ExcerptConstructionError as e:
            logger.warning(f"Omitting excerpts for {path}: {e}")
            result.issues.append(FileIssue(path, "construction", str(e)))
            return None

        if not file_result.excerpts:
            return None
        return CachedExcerpts(
            excerpts=file_result.excerpts,
            document=file_result.document,
            file_hash=compute_excerpt_hash(file_result.excerpts),
            last_modified=time.time(),
            match_count=file_result.match_count,
        )

    async def start_watching(self, options: SearchOptions) -> FileWatcher:
        """(Re)start the filesystem watcher for the options' include/exclude scope."""
        await self.stop_watching()
        watcher = FileWatcher(
            self.workspace.root,
            sink=self.mark_pending,
            should_track=lambda path: self.workspace.is_included(
                path, options.include_pattern, options.exclude_pattern
            ),
            debounce_delay=self._debounce_delay,
        )
        watcher.start()
        self._watcher = watcher
        return watcher

    async def stop_watching(self) -> None:
        if self._watcher is not None:
            await self._watcher.stop()
            self._watcher = None

    async def close(self) -> None:
        await self.stop_watching()
        self.clear_cache()
