"""Multi-buffer service - orchestrates search, replace preview and apply.

Owns the DocumentRegistry. Every search or replace produces an independent
AggregateDocument with its own mapping and change tracker; nothing is
shared between documents.
"""

from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from multibuffer.core.cancellation import CancellationToken
from multibuffer.core.constants import CONTENT_START_INDEX
from multibuffer.core.exceptions import DocumentNotFoundError, WorkspaceReadError
from multibuffer.core.models import (
    AggregateDocument,
    ReplaceOptions,
    SearchOptions,
)
from multibuffer.core.models.document import make_document_uri

from .change_tracker import ApplyReport, ChangeSet, ChangeTracker, TrackerState
from .document_registry import DocumentRegistry
from .incremental_search_service import IncrementalSearchResult, IncrementalSearchService
from .result_formatter import ResultFormatter
from .search_service import SearchResult, SearchService


@dataclass(frozen=True)
class SourceLocation:
    """Position in a workspace file that an aggregate position maps to."""

    path: Path
    line: int
    column: int


@dataclass
class OpenedDocument:
    """A registered aggregate document plus the search that produced it."""

    document: AggregateDocument
    result: SearchResult
    delta: IncrementalSearchResult | None = None

    @property
    def uri(self) -> str:
        return self.document.uri


class MultiBufferService:
    """Entry point for search/replace/apply over one workspace.

    Usage:
        service = MultiBufferService(SearchService(workspace))
        opened = await service.open_search(SearchOptions(query="foo"))
        changes = service.compute_changes(opened.uri, edited_text)
        report = await service.apply_changes(opened.uri, changes)
    """

    def __init__(
        self,
        search_service: SearchService,
        registry: DocumentRegistry | None = None,
        formatter: ResultFormatter | None = None,
    ):
        """Initialize multi-buffer service.

        Args:
            search_service: Plain or incremental search service
            registry: Registry for opened documents (a new one by default)
            formatter: Aggregate formatter (display paths from the workspace by default)
        """
        self._search_service = search_service
        self._registry = registry or DocumentRegistry()
        self._formatter = formatter or ResultFormatter(
            display_path=search_service.workspace.display_path
        )

    @property
    def registry(self) -> DocumentRegistry:
        return self._registry

    @property
    def search_service(self) -> SearchService:
        return self._search_service

    async def _run_search(
        self, options: SearchOptions, cancel_token: CancellationToken | None
    ) -> tuple[SearchResult, IncrementalSearchResult | None]:
        if isinstance(self._search_service, IncrementalSearchService):
            delta = await self._search_service.search_workspace_incremental(
                options, cancel_token
            )
            return delta.to_search_result(), delta
        return await self._search_service.search_workspace(options, cancel_token), None

    async def _open(
        self,
        options: SearchOptions,
        replace_options: ReplaceOptions | None,
        cancel_token: CancellationToken | None,
    ) -> OpenedDocument:
        result, delta = await self._run_search(options, cancel_token)
        if cancel_token is not None:
            cancel_token.raise_if_cancelled("Search")

        formatted = self._formatter.format_search_results(
            result.excerpts_by_file, result.documents, options, replace_options
        )
        kind = "replace" if replace_options is not None else "search"
        document = AggregateDocument(
            content=formatted.content,
            mapping=formatted.mapping,
            search_options=options,
            uri=make_document_uri(kind),
            replace_options=replace_options,
        )

        tracker = ChangeTracker()
        tracker.initialize(
            document.content,
            document.mapping,
            source_baseline=document.is_replace,
            format_version=document.format_version,
        )
        self._registry.add(document, tracker)
        logger.info(
            f"Opened {document.uri}: {result.excerpt_count} excerpts "
            f"in {result.file_count} files"
        )
        return OpenedDocument(document=document, result=result, delta=delta)

    async def open_search(
        self, options: SearchOptions, cancel_token: CancellationToken | None = None
    ) -> OpenedDocument:
        """Search the workspace and register the aggregate document.

        Raises:
            EmptyQueryError: If the query is empty
            InvalidPatternError: If a regex query is malformed
            OperationCancelledError: If cancelled; nothing is registered
        """
        return await self._open(options, None, cancel_token)

    async def open_replace(
        self, options: ReplaceOptions, cancel_token: CancellationToken | None = None
    ) -> OpenedDocument:
        """Search and render a replacement preview.

        The preview's match lines are pending edits from the start, so applying
        an unedited preview commits the substitution.
        """
        return await self._open(options, options, cancel_token)

    def get_document(self, uri: str) -> AggregateDocument:
        return self._registry.get(uri)

    def _tracker(self, uri: str) -> ChangeTracker:
        tracker = self._registry.get_tracker(uri)
        if tracker is None:
            raise DocumentNotFoundError(f"No change tracker for {uri}")
        return tracker

    def compute_changes(self, uri: str, content: str | None = None) -> ChangeSet:
        """Diff the current text of a document against its baseline.

        Args:
            uri: Document identity
            content: Current text; the rendered text when omitted

        Raises:
            DocumentNotFoundError: If the document is not registered
            StructuralEditError: If lines were added or removed
        """
        document = self._registry.get(uri)
        return self._tracker(uri).compute_changes(
            document.content if content is None else content,
            document.mapping,
            document.format_version,
        )

    async def apply_changes(
        self,
        uri: str,
        change_set: ChangeSet,
        cancel_token: CancellationToken | None = None,
    ) -> ApplyReport:
        """Commit a change set computed for a document.

        The document is closed afterwards; its mapping no longer matches the files.
        """
        tracker = self._tracker(uri)
        report = await tracker.apply_changes(
            change_set, self._search_service.workspace, cancel_token
        )

        if isinstance(self._search_service, IncrementalSearchService):
            for path in report.succeeded:
                self._search_service.mark_pending(path, "modified")

        self.close(uri)
        return report

    def close(self, uri: str) -> None:
        """Unregister a document and discard its tracker."""
        tracker = self._registry.get_tracker(uri) if uri in self._registry else None
        if tracker is not None and tracker.state not in (
            TrackerState.APPLIED,
            TrackerState.DISCARDED,
        ):
            tracker.discard()
        self._registry.remove(uri)

    async def resolve_source_location(
        self, uri: str, aggregate_line: int, column: int = 0
    ) -> SourceLocation | None:
        """Map a position in an aggregate document to its source file.

        Returns None for header and separator lines, and for lines that no
        longer exist in the file.
        """
        document = self._registry.get(uri)
        excerpt = document.mapping.excerpt_at(aggregate_line)
        if excerpt is None:
            return None

        source_line = excerpt.source_line_for(aggregate_line)
        try:
            current = await self._search_service.workspace.read_document(excerpt.file_path)
        except WorkspaceReadError as e:
            logger.warning(f"Cannot open {excerpt.file_path}: {e.reason}")
            return None
        if source_line >= current.line_count:
            logger.warning(
                f"Line {source_line + 1} is out of bounds in {excerpt.file_path} "
                f"({current.line_count} lines)"
            )
            return None

        source_column = max(0, column - CONTENT_START_INDEX)
        return SourceLocation(path=excerpt.file_path, line=source_line, column=source_column)

    async def close_all(self) -> None:
        for uri in self._registry.list_uris():
            self.close(uri)
        if isinstance(self._search_service, IncrementalSearchService):
            await self._search_service.close()
