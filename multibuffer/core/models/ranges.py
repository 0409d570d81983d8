"""Inclusive line ranges used for excerpt and aggregate coordinates."""

from dataclasses import dataclass


@dataclass(frozen=True, order=True)
class LineRange:
    """Inclusive range of 0-based line numbers."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError(f"Line range start must be non-negative, got {self.start}")
        if self.end < self.start:
            raise ValueError(
                f"Line range end ({self.end}) precedes start ({self.start})"
            )

    @property
    def line_count(self) -> int:
        return self.end - self.start + 1

    def contains(self, line: int) -> bool:
        return self.start <= line <= self.end

    def lines(self) -> range:
        return range(self.start, self.end + 1)

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"
