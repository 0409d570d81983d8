"""Search service: enumerate workspace files, match them and build excerpts.

Per-file failures never abort the search. Unreadable files and files whose
excerpts violate construction invariants are skipped and reported as
FileIssue entries; only input errors (empty query, malformed pattern) fail
the whole operation, and they fail before enumeration starts.
"""

from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from multibuffer.core.cancellation import CancellationToken
from multibuffer.core.exceptions import ExcerptConstructionError, WorkspaceReadError
from multibuffer.core.models import Excerpt, SearchOptions, TextDocument
from multibuffer.interfaces.workspace_provider import WorkspaceProvider

from .excerpt_builder import build_excerpts
from .matcher import MatchBudget, Matcher


@dataclass
class FileIssue:
    """A file left out of a search result.

    Attributes:
        path: File that was skipped
        kind: "read" for I/O failures, "construction" for excerpt invariant failures
        message: Human-readable reason
    """

    path: Path
    kind: str
    message: str


@dataclass
class FileSearchResult:
    """Excerpts and snapshot for one scanned file."""

    document: TextDocument
    excerpts: list[Excerpt]
    match_count: int


@dataclass
class SearchResult:
    """Outcome of a workspace search.

    Attributes:
        excerpts_by_file: File -> excerpts, in enumeration order
        documents: Snapshot of every file that produced excerpts
        match_counts: File -> number of raw match spans found
        issues: Files skipped because of read or construction failures
        truncated: True when max_results stopped the scan early
    """

    excerpts_by_file: dict[Path, list[Excerpt]] = field(default_factory=dict)
    documents: dict[Path, TextDocument] = field(default_factory=dict)
    match_counts: dict[Path, int] = field(default_factory=dict)
    issues: list[FileIssue] = field(default_factory=list)
    truncated: bool = False

    @property
    def file_count(self) -> int:
        return len(self.excerpts_by_file)

    @property
    def excerpt_count(self) -> int:
        return sum(len(excerpts) for excerpts in self.excerpts_by_file.values())

    @property
    def match_count(self) -> int:
        return sum(self.match_counts.values())

    @property
    def is_empty(self) -> bool:
        return not self.excerpts_by_file

    def add(self, path: Path, file_result: FileSearchResult) -> None:
        self.excerpts_by_file[path] = file_result.excerpts
        self.documents[path] = file_result.document
        self.match_counts[path] = file_result.match_count


class SearchService:
    """Runs Matcher + ExcerptBuilder over a workspace."""

    def __init__(self, workspace: WorkspaceProvider):
        """Initialize search service.

        Args:
            workspace: Provider used for enumeration and reads
        """
        self._workspace = workspace

    @property
    def workspace(self) -> WorkspaceProvider:
        return self._workspace

    async def search_file(
        self,
        path: Path,
        matcher: Matcher,
        options: SearchOptions,
        budget: MatchBudget | None = None,
    ) -> FileSearchResult:
        """Match and excerpt a single file.

        Raises:
            WorkspaceReadError: If the file cannot be read
            ExcerptConstructionError: If excerpts for the file are invalid
        """
        document = await self._workspace.read_document(path)
        spans = matcher.find_in_lines(document.lines, budget)
        if not spans:
            return FileSearchResult(document=document, excerpts=[], match_count=0)

        context_before, context_after = options.context_values()
        excerpts = build_excerpts(document, spans, context_before, context_after)
        return FileSearchResult(document=document, excerpts=excerpts, match_count=len(spans))

    async def search_workspace(
        self,
        options: SearchOptions,
        cancel_token: CancellationToken | None = None,
    ) -> SearchResult:
        """Search every enumerated file in order.

        Raises:
            EmptyQueryError: If the query is empty
            InvalidPatternError: If a regex query is malformed
            OperationCancelledError: If cancel_token fires; nothing is returned
        """
        matcher = Matcher(options)
        files = await self._workspace.find_files(
            options.include_pattern, options.exclude_pattern
        )
        budget = MatchBudget(options.max_results)
        result = SearchResult()

        for path in files:
            if budget.exhausted:
                result.truncated = True
                logger.info(f"Stopping search: max results ({budget.limit}) reached")
                break
            if cancel_token is not None:
                cancel_token.raise_if_cancelled("Search")

            try:
                file_result = await self.search_file(path, matcher, options, budget)
            except WorkspaceReadError as e:
                logger.warning(f"Skipping unreadable file {path}: {e.reason}")
                result.issues.append(FileIssue(path, "read", e.reason))
                continue
            except ExcerptConstructionError as e:
                logger.warning(f"Omitting excerpts for {path}: {e}")
                result.issues.append(FileIssue(path, "construction", str(e)))
                continue

            if file_result.excerpts:
                result.add(path, file_result)

        if budget.exhausted:
            result.truncated = True
        if cancel_token is not None:
            cancel_token.raise_if_cancelled("Search")

        logger.info(
            f"Search for {options.query!r}: {result.match_count} matches, "
            f"{result.excerpt_count} excerpts in {result.file_count} files "
            f"({len(result.issues)} skipped)"
        )
        return result
