"""Change tracker: diff an edited aggregate document back into per-file line edits.

Lifecycle::

    UNINITIALIZED -> INITIALIZED -> DIFFED -> APPLIED | DISCARDED

Only match lines (lines registered in ``AggregateMapping.line_to_excerpt``)
are tracked. Content is located by the fixed CONTENT_START_INDEX column, so
the tracker refuses documents rendered with another layout version and
documents whose line count changed.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from loguru import logger

from multibuffer.core.cancellation import CancellationToken
from multibuffer.core.constants import CONTENT_START_INDEX, FORMAT_VERSION
from multibuffer.core.exceptions import (
    ApplyError,
    ChangeTrackerStateError,
    FormatVersionError,
    PartialApplyError,
    StructuralEditError,
    WorkspaceReadError,
)
from multibuffer.core.models import AggregateMapping
from multibuffer.interfaces.workspace_provider import WorkspaceProvider


class TrackerState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    DIFFED = "diffed"
    APPLIED = "applied"
    DISCARDED = "discarded"


def extract_content(line: str) -> str:
    """Strip the gutter columns and incidental whitespace from an aggregate line."""
    return line[CONTENT_START_INDEX:].strip()


def leading_whitespace(text: str) -> str:
    return text[: len(text) - len(text.lstrip())]


@dataclass(frozen=True)
class TextChange:
    """One edited match line.

    Attributes:
        source_line: 0-based line in the owning file
        new_text: Edited content, without indentation
        original_text: Baseline content, without indentation
        aggregate_line: 0-based line in the aggregate document
    """

    source_line: int
    new_text: str
    original_text: str
    aggregate_line: int


@dataclass
class FileChange:
    """All edits for one file plus the line count its excerpts were built against."""

    path: Path
    changes: list[TextChange] = field(default_factory=list)
    expected_line_count: int | None = None


@dataclass
class ChangeSet:
    """Pending edits grouped by file, in aggregate order."""

    files: dict[Path, FileChange] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not any(fc.changes for fc in self.files.values())

    @property
    def file_count(self) -> int:
        return sum(1 for fc in self.files.values() if fc.changes)

    @property
    def change_count(self) -> int:
        return sum(len(fc.changes) for fc in self.files.values())

    def add(self, path: Path, change: TextChange, expected_line_count: int) -> None:
        file_change = self.files.setdefault(
            path, FileChange(path=path, expected_line_count=expected_line_count)
        )
        file_change.changes.append(change)


@dataclass
class ApplyReport:
    """Outcome of committing a change set.

    Attributes:
        succeeded: Files saved, in commit order
        failed: File -> failure reason
        skipped: Files not attempted because the operation was cancelled
        cancelled: True if cancellation stopped the commit early
        change_count: Line edits contained in the succeeded files
    """

    succeeded: list[Path] = field(default_factory=list)
    failed: dict[Path, str] = field(default_factory=dict)
    skipped: list[Path] = field(default_factory=list)
    cancelled: bool = False
    change_count: int = 0

    @property
    def is_partial(self) -> bool:
        return bool(self.succeeded) and bool(self.failed or self.skipped)

    @property
    def is_success(self) -> bool:
        return not self.failed and not self.skipped and not self.cancelled

    def raise_for_failures(self) -> None:
        """Raise PartialApplyError if any file failed."""
        if self.failed:
            raise PartialApplyError(list(self.succeeded), dict(self.failed))


class ChangeTracker:
    """Tracks edits to one aggregate document."""

    def __init__(self, format_version: int = FORMAT_VERSION):
        self._format_version = format_version
        self._state = TrackerState.UNINITIALIZED
        self._baseline: dict[int, str] = {}
        self._line_count = 0
        self._mapping: AggregateMapping | None = None

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def baseline(self) -> dict[int, str]:
        return dict(self._baseline)

    def _require(self, *states: TrackerState) -> None:
        if self._state not in states:
            allowed = ", ".join(s.value for s in states)
            raise ChangeTrackerStateError(
                f"Change tracker is {self._state.value}; expected one of: {allowed}"
            )

    def _check_version(self, format_version: int) -> None:
        if format_version != self._format_version:
            raise FormatVersionError(
                f"Document layout version {format_version} does not match "
                f"tracker version {self._format_version}"
            )

    def initialize(
        self,
        content: str,
        mapping: AggregateMapping,
        source_baseline: bool = False,
        format_version: int = FORMAT_VERSION,
    ) -> None:
        """Snapshot the editable content of every match line.

        Args:
            content: Aggregate text as rendered
            mapping: Mapping built with the content
            source_baseline: Use the original source text of each match line as
                the baseline instead of the rendered text (replace documents)
            format_version: Layout version the content was rendered with
        """
        self._require(TrackerState.UNINITIALIZED)
        self._check_version(format_version)

        lines = content.split("\n")
        baseline: dict[int, str] = {}
        for line_number in mapping.line_to_excerpt:
            if line_number >= len(lines):
                raise StructuralEditError(
                    f"Mapped line {line_number} is beyond the document ({len(lines)} lines)"
                )
            if source_baseline and line_number in mapping.source_text_by_line:
                baseline[line_number] = mapping.source_text_by_line[line_number].strip()
            else:
                baseline[line_number] = extract_content(lines[line_number])

        self._baseline = baseline
        self._line_count = len(lines)
        self._mapping = mapping
        self._state = TrackerState.INITIALIZED
        logger.debug(f"Change tracker initialized with {len(baseline)} tracked lines")

    def compute_changes(
        self,
        content: str,
        mapping: AggregateMapping | None = None,
        format_version: int = FORMAT_VERSION,
    ) -> ChangeSet:
        """Diff current content against the baseline.

        May be called repeatedly until the change set is applied or discarded.

        Raises:
            ChangeTrackerStateError: If not initialized
            StructuralEditError: If lines were added or removed
            FormatVersionError: If the layout version differs
        """
        self._require(TrackerState.INITIALIZED, TrackerState.DIFFED)
        self._check_version(format_version)
        mapping = mapping or self._mapping
        if mapping is None:
            raise ChangeTrackerStateError("Change tracker has no aggregate mapping")

        lines = content.split("\n")
        if len(lines) != self._line_count:
            raise StructuralEditError(
                f"Aggregate document changed from {self._line_count} to {len(lines)} lines; "
                f"line edits only are supported"
            )

        change_set = ChangeSet()
        for line_number in sorted(mapping.line_to_excerpt):
            original = self._baseline.get(line_number)
            if original is None:
                continue
            current = extract_content(lines[line_number])
            if current == original:
                continue
            excerpt = mapping.line_to_excerpt[line_number]
            change_set.add(
                excerpt.file_path,
                TextChange(
                    source_line=excerpt.source_line_for(line_number),
                    new_text=current,
                    original_text=original,
                    aggregate_line=line_number,
                ),
                excerpt.file_line_count,
            )

        self._state = TrackerState.DIFFED
        logger.debug(
            f"Computed {change_set.change_count} changes in {change_set.file_count} files"
        )
        return change_set

    async def apply_changes(
        self,
        change_set: ChangeSet,
        workspace: WorkspaceProvider,
        cancel_token: CancellationToken | None = None,
    ) -> ApplyReport:
        """Commit a change set file by file.

        Indentation of each target line is taken from the file on disk at apply
        time. A failing file is recorded and the remaining files are still
        attempted. Cancellation is checked before each file; the file being
        written always completes and files already saved stay saved.
        """
        self._require(TrackerState.DIFFED)
        report = ApplyReport()
        pending = [fc for fc in change_set.files.values() if fc.changes]

        for index, file_change in enumerate(pending):
            if cancel_token is not None and cancel_token.is_cancelled:
                report.cancelled = True
                report.skipped = [fc.path for fc in pending[index:]]
                logger.warning(
                    f"Apply cancelled: {len(report.succeeded)} files saved, "
                    f"{len(report.skipped)} not touched"
                )
                break

            try:
                await self._apply_file(file_change, workspace)
            except ApplyError as e:
                logger.error(f"Failed to apply changes to {file_change.path}: {e.reason}")
                report.failed[file_change.path] = e.reason
                continue
            except (OSError, UnicodeError) as e:
                # Providers other than the filesystem one may surface raw I/O errors
                logger.error(f"Failed to apply changes to {file_change.path}: {e}")
                report.failed[file_change.path] = str(e)
                continue

            report.succeeded.append(file_change.path)
            report.change_count += len(file_change.changes)

        self._state = TrackerState.APPLIED
        logger.info(
            f"Applied {report.change_count} changes to {len(report.succeeded)} files "
            f"({len(report.failed)} failed)"
        )
        return report

    async def _apply_file(
        self, file_change: FileChange, workspace: WorkspaceProvider
    ) -> None:
        try:
            document = await workspace.read_document(file_change.path)
        except WorkspaceReadError as e:
            raise ApplyError(file_change.path, e.reason) from e

        replacements: dict[int, str] = {}
        for change in file_change.changes:
            if change.source_line >= document.line_count:
                raise ApplyError(
                    file_change.path,
                    f"line {change.source_line + 1} no longer exists "
                    f"(file has {document.line_count} lines)",
                )
            indent = leading_whitespace(document.line_at(change.source_line))
            replacements[change.source_line] = indent + change.new_text

        await workspace.write_lines(
            file_change.path, replacements, file_change.expected_line_count
        )

    def discard(self) -> None:
        """Drop the baseline; the tracker cannot be used afterwards."""
        if self._state in (TrackerState.APPLIED, TrackerState.DISCARDED):
            raise ChangeTrackerStateError(f"Change tracker is already {self._state.value}")
        self._baseline = {}
        self._mapping = None
        self._state = TrackerState.DISCARDED
