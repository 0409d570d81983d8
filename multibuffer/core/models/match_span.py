"""Match spans and normalization of host-supplied match results.

Hosts report matches in several shapes (a ``ranges`` list, a single
``range``, or a ``matches`` list of objects carrying a ``range``). Each
result is classified once at the boundary and converted into canonical
``MatchSpan`` values before it reaches the excerpt pipeline.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .ranges import LineRange


@dataclass(frozen=True, order=True)
class MatchSpan:
    """Half-open region [start_line:start_col, end_line:end_col) in one file."""

    start_line: int
    start_col: int
    end_line: int
    end_col: int
    is_primary: bool = True

    def __post_init__(self) -> None:
        if self.start_line < 0 or self.start_col < 0:
            raise ValueError("Match span coordinates must be non-negative")
        if (self.end_line, self.end_col) < (self.start_line, self.start_col):
            raise ValueError("Match span end precedes its start")

    @property
    def line_range(self) -> LineRange:
        """Lines touched by the span (a span ending at column 0 stops on the line above)."""
        end = self.end_line
        if end > self.start_line and self.end_col == 0:
            end -= 1
        return LineRange(self.start_line, end)

    @property
    def is_empty(self) -> bool:
        return self.start_line == self.end_line and self.start_col == self.end_col


class HostMatchShape(Enum):
    """Result shapes accepted from a host search API."""

    RANGES = "ranges"
    RANGE = "range"
    MATCHES = "matches"


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def classify_host_match(result: Any) -> HostMatchShape:
    """Decide which shape a host result has.

    Raises:
        ValueError: If the result carries none of the known range fields
    """
    ranges = _field(result, "ranges")
    if isinstance(ranges, (list, tuple)) and ranges:
        return HostMatchShape.RANGES
    if _field(result, "range") is not None:
        return HostMatchShape.RANGE
    matches = _field(result, "matches")
    if isinstance(matches, (list, tuple)) and matches:
        return HostMatchShape.MATCHES
    raise ValueError(f"Unrecognized match result shape: {result!r}")


def _position(pos: Any) -> tuple[int, int]:
    if isinstance(pos, (list, tuple)):
        return int(pos[0]), int(pos[1])
    line = _field(pos, "line")
    column = _field(pos, "character")
    if column is None:
        column = _field(pos, "column")
    if line is None or column is None:
        raise ValueError(f"Unrecognized position: {pos!r}")
    return int(line), int(column)


def _span_from_range(range_obj: Any, is_primary: bool) -> MatchSpan:
    if isinstance(range_obj, (list, tuple)) and len(range_obj) == 4:
        start_line, start_col, end_line, end_col = (int(v) for v in range_obj)
    else:
        start_line, start_col = _position(_field(range_obj, "start"))
        end_line, end_col = _position(_field(range_obj, "end"))
    return MatchSpan(start_line, start_col, end_line, end_col, is_primary)


def normalize_host_match(result: Any) -> list[MatchSpan]:
    """Convert one host match result into canonical spans.

    For ``ranges`` results the first range is primary and any further ranges
    are secondary. Every entry of a ``matches`` result is its own primary match.
    Ranges may be 4-tuples ``(start_line, start_col, end_line, end_col)`` or
    objects/mappings with ``start``/``end`` positions exposing ``line`` and
    ``character`` (or ``column``).
    """
    shape = classify_host_match(result)
    if shape is HostMatchShape.RANGES:
        raw_ranges = list(_field(result, "ranges"))
    elif shape is HostMatchShape.RANGE:
        raw_ranges = [_field(result, "range")]
    else:
        raw_ranges = [_field(m, "range") for m in _field(result, "matches")]

    all_primary = shape is HostMatchShape.MATCHES
    return [
        _span_from_range(raw, is_primary=all_primary or index == 0)
        for index, raw in enumerate(raw_ranges)
        if raw is not None
    ]
