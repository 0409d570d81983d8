"""ExcerptBuilder: merge a file's match spans into context-padded excerpts."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from multibuffer.core.exceptions import ExcerptConstructionError
from multibuffer.core.models import (
    Excerpt,
    LineRange,
    MatchSpan,
    TextDocument,
    generate_excerpt_id,
    normalize_host_match,
)


@dataclass
class _ExcerptGroup:
    """Matches merged so far plus their expanded context window."""

    window: LineRange
    match_ranges: list[LineRange] = field(default_factory=list)


def expand_range(
    line_range: LineRange, context_before: int, context_after: int, line_count: int
) -> LineRange:
    """Pad a range with context, clamped to [0, line_count - 1]."""
    start = max(0, line_range.start - context_before)
    end = min(line_count - 1, line_range.end + context_after)
    return LineRange(start, max(start, end))


def merge_match_ranges(
    match_ranges: Iterable[LineRange],
    context_before: int,
    context_after: int,
    line_count: int,
) -> list[_ExcerptGroup]:
    """Group match ranges whose expanded windows touch, overlap or sit one line apart.

    Input must be sorted by start line.
    """
    groups: list[_ExcerptGroup] = []
    for match_range in match_ranges:
        window = expand_range(match_range, context_before, context_after, line_count)
        if groups and groups[-1].window.end >= window.start - 1:
            current = groups[-1]
            current.window = LineRange(
                current.window.start, max(current.window.end, window.end)
            )
            current.match_ranges.append(match_range)
        else:
            groups.append(_ExcerptGroup(window=window, match_ranges=[match_range]))
    return groups


def build_excerpts(
    document: TextDocument,
    spans: Iterable[MatchSpan],
    context_before: int,
    context_after: int,
) -> list[Excerpt]:
    """Build ordered, non-overlapping excerpts for one file.

    Only primary spans seed excerpts. Each excerpt's source_range runs from its
    first match's start line to its last match's end line; the individual match
    line ranges stay recoverable through ``Excerpt.match_ranges``.

    Raises:
        ExcerptConstructionError: If context values are invalid or a span lies
            outside the document
    """
    for name, value in (("contextBefore", context_before), ("contextAfter", context_after)):
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise ExcerptConstructionError(
                f"Excerpt {name} must be a non-negative integer, got {value!r}"
            )

    line_count = document.line_count
    match_ranges: list[LineRange] = []
    for span in spans:
        if not span.is_primary:
            continue
        line_range = span.line_range
        if line_range.end >= line_count:
            raise ExcerptConstructionError(
                f"Match at lines {line_range} is out of document bounds "
                f"(0-{line_count - 1}) for {document.path}"
            )
        match_ranges.append(line_range)

    if not match_ranges:
        return []

    match_ranges.sort(key=lambda r: r.start)
    excerpts: list[Excerpt] = []
    for group in merge_match_ranges(match_ranges, context_before, context_after, line_count):
        ranges = sorted(set(group.match_ranges))
        source_range = LineRange(ranges[0].start, max(r.end for r in ranges))
        excerpts.append(
            Excerpt(
                id=generate_excerpt_id(),
                file_path=document.path,
                source_range=source_range,
                match_ranges=tuple(ranges),
                context_before=context_before,
                context_after=context_after,
                file_line_count=line_count,
                original_text=document.get_text(source_range),
            )
        )
    return excerpts


def build_excerpts_from_host_results(
    document: TextDocument,
    results: Iterable[Any],
    context_before: int,
    context_after: int,
) -> list[Excerpt]:
    """Build excerpts from match results reported by a host search API.

    Each result is normalized into MatchSpans first; results of unknown shape
    raise ValueError before any excerpt is built.
    """
    spans: list[MatchSpan] = []
    for result in results:
        spans.extend(normalize_host_match(result))
    spans.sort()
    return build_excerpts(document, spans, context_before, context_after)
