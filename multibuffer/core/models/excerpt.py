"""Excerpt model: one context-padded block of a file in the aggregate document.

Excerpts are built in two phases. The excerpt builder creates them from
source coordinates only; the formatter then derives a placed copy carrying
the aggregate range via ``Excerpt.placed()``. Neither copy is ever mutated.
"""

import itertools
import secrets
import threading
import time
from dataclasses import dataclass, field, replace
from pathlib import Path

from multibuffer.core.constants import MAX_GUTTER_LINE_NUMBER
from multibuffer.core.exceptions import ExcerptConstructionError

from .ranges import LineRange

_id_counter = itertools.count(1)
_id_lock = threading.Lock()


def generate_excerpt_id() -> str:
    """Return a process-unique excerpt id.

    Ids are zero-padded so that lexical order follows creation order.
    """
    with _id_lock:
        sequence = next(_id_counter)
        timestamp = time.time_ns()
    return f"excerpt_{timestamp:020d}_{sequence:08d}_{secrets.token_hex(6)}"


def _is_non_negative_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


@dataclass(frozen=True)
class Excerpt:
    """A contiguous, context-padded region of one file.

    Attributes:
        id: Process-unique identity (see generate_excerpt_id)
        file_path: Owning file; used for lookup and re-reading only
        source_range: Lines from the first merged match to the last, before context
        match_ranges: Line range of every match merged into this excerpt
        context_before: Context lines requested above source_range
        context_after: Context lines requested below source_range
        file_line_count: Line count of the file when the excerpt was built
        original_text: Snapshot of the source_range text (diagnostic only)
        is_match: True for match-derived excerpts
        aggregate_range: Lines occupied in the aggregate document, set on placed copies
    """

    id: str
    file_path: Path
    source_range: LineRange
    match_ranges: tuple[LineRange, ...]
    context_before: int
    context_after: int
    file_line_count: int
    original_text: str
    is_match: bool = True
    aggregate_range: LineRange | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise ExcerptConstructionError("Excerpt id must be a non-empty string")
        if not _is_non_negative_int(self.context_before):
            raise ExcerptConstructionError(
                f"Excerpt contextBefore must be a non-negative integer, got {self.context_before!r}"
            )
        if not _is_non_negative_int(self.context_after):
            raise ExcerptConstructionError(
                f"Excerpt contextAfter must be a non-negative integer, got {self.context_after!r}"
            )
        if self.file_line_count < 1:
            raise ExcerptConstructionError(
                f"Excerpt file {self.file_path} has no addressable lines"
            )
        if self.source_range.end >= self.file_line_count:
            raise ExcerptConstructionError(
                f"Excerpt sourceRange ({self.source_range}) is out of document bounds "
                f"(0-{self.file_line_count - 1}) for {self.file_path}"
            )
        if not self.match_ranges:
            raise ExcerptConstructionError("Excerpt must hold at least one match range")
        for match_range in self.match_ranges:
            if (
                match_range.start < self.source_range.start
                or match_range.end > self.source_range.end
            ):
                raise ExcerptConstructionError(
                    f"Match range {match_range} lies outside sourceRange {self.source_range}"
                )
        if self.context_range.end + 1 > MAX_GUTTER_LINE_NUMBER:
            raise ExcerptConstructionError(
                f"Line {self.context_range.end + 1} of {self.file_path} does not fit "
                f"the line number gutter"
            )
        if (
            self.aggregate_range is not None
            and self.aggregate_range.line_count != self.context_range.line_count
        ):
            raise ExcerptConstructionError(
                f"Aggregate range {self.aggregate_range} is not line-contiguous with "
                f"context range {self.context_range}"
            )

    @property
    def context_range(self) -> LineRange:
        """Source lines shown in the aggregate document, clamped to the file."""
        start = max(0, self.source_range.start - self.context_before)
        end = min(self.file_line_count - 1, self.source_range.end + self.context_after)
        return LineRange(start, end)

    def is_match_line(self, source_line: int) -> bool:
        """Whether a source line belongs to one of the merged matches."""
        return any(r.contains(source_line) for r in self.match_ranges)

    def placed(self, aggregate_range: LineRange) -> "Excerpt":
        """Return a copy positioned at aggregate_range."""
        return replace(self, aggregate_range=aggregate_range)

    def source_line_for(self, aggregate_line: int) -> int:
        """Translate an aggregate line into a source line of this excerpt.

        The offset from the excerpt's first emitted line is preserved.

        Raises:
            ValueError: If the excerpt has not been placed or the line is outside it
        """
        if self.aggregate_range is None:
            raise ValueError(f"Excerpt {self.id} has no aggregate range")
        if not self.aggregate_range.contains(aggregate_line):
            raise ValueError(
                f"Aggregate line {aggregate_line} is outside excerpt {self.id} "
                f"({self.aggregate_range})"
            )
        return self.context_range.start + (aggregate_line - self.aggregate_range.start)
