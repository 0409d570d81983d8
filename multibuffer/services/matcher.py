"""Matcher: locate query occurrences in a document, line by line.

Literal queries are escaped and compiled like patterns so literal and
pattern mode share one scanning loop. Case-insensitive matching relies on
Python's Unicode-aware IGNORECASE, so non-ASCII text folds correctly.
"""

import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from loguru import logger

from multibuffer.core.exceptions import EmptyQueryError, InvalidPatternError
from multibuffer.core.models import MatchSpan, ReplaceOptions, SearchOptions


def is_word_char(ch: str) -> bool:
    """Letters, digits and underscore count as word characters."""
    return ch.isalnum() or ch == "_"


def is_whole_word(text: str, start: int, end: int) -> bool:
    """Whether text[start:end] is bounded by non-word characters or string edges."""
    before_ok = start == 0 or not is_word_char(text[start - 1])
    after_ok = end >= len(text) or not is_word_char(text[end])
    return before_ok and after_ok


class MatchBudget:
    """Global cap on match spans shared by every file of one search."""

    def __init__(self, limit: int | None = None):
        self.limit = limit
        self.used = 0

    @property
    def exhausted(self) -> bool:
        return self.limit is not None and self.used >= self.limit

    @property
    def remaining(self) -> int | None:
        if self.limit is None:
            return None
        return max(0, self.limit - self.used)

    def consume(self, count: int = 1) -> None:
        self.used += count


@dataclass(frozen=True)
class CompiledQuery:
    """A validated query ready for scanning."""

    pattern: re.Pattern[str]
    whole_word: bool
    is_regex: bool


def compile_query(options: SearchOptions) -> CompiledQuery:
    """Validate and compile a query before any scanning starts.

    Raises:
        EmptyQueryError: If the query is empty
        InvalidPatternError: If a regex query (or regex replacement template) is malformed
    """
    if not options.query:
        raise EmptyQueryError()

    flags = 0 if options.is_case_sensitive else re.IGNORECASE
    source = options.query if options.is_regex else re.escape(options.query)
    try:
        pattern = re.compile(source, flags)
    except re.error as e:
        raise InvalidPatternError(options.query, e.msg, e.pos) from e

    if options.is_regex and isinstance(options, ReplaceOptions):
        # Parse the replacement template now so bad group references fail fast
        try:
            pattern.sub(options.replacement, "")
        except (re.error, IndexError) as e:
            raise InvalidPatternError(
                options.replacement, f"invalid replacement template: {e}"
            ) from e

    return CompiledQuery(
        pattern=pattern,
        whole_word=options.match_whole_word,
        is_regex=options.is_regex,
    )


class Matcher:
    """Finds match spans for one compiled query."""

    def __init__(self, options: SearchOptions):
        self.options = options
        self.query = compile_query(options)

    def iter_line_matches(self, text: str) -> Iterator[re.Match[str]]:
        """Yield retained matches in one line, left to right.

        After a zero-length match the scan position advances by one character.
        """
        pattern = self.query.pattern
        pos = 0
        length = len(text)
        while pos <= length:
            match = pattern.search(text, pos)
            if match is None:
                return
            start, end = match.span()
            if not self.query.whole_word or is_whole_word(text, start, end):
                yield match
            pos = end if end > start else end + 1

    def find_in_lines(
        self, lines: Sequence[str], budget: MatchBudget | None = None
    ) -> list[MatchSpan]:
        """Scan lines in order and return spans ordered by (line, column).

        Scanning stops as soon as the budget is exhausted.
        """
        spans: list[MatchSpan] = []
        if budget is not None and budget.exhausted:
            return spans

        for line_number, text in enumerate(lines):
            for match in self.iter_line_matches(text):
                spans.append(
                    MatchSpan(line_number, match.start(), line_number, match.end())
                )
                if budget is not None:
                    budget.consume()
                    if budget.exhausted:
                        logger.debug(
                            f"Match budget of {budget.limit} reached at line {line_number}"
                        )
                        return spans
        return spans

    def replace_line(self, text: str, replacement: str) -> str:
        """Replace every retained match in a line.

        Pattern queries expand group references in the replacement; literal
        queries insert the replacement verbatim, whatever the matched case.
        """
        parts: list[str] = []
        last = 0
        for match in self.iter_line_matches(text):
            parts.append(text[last : match.start()])
            parts.append(match.expand(replacement) if self.query.is_regex else replacement)
            last = match.end()
        if not parts:
            return text
        parts.append(text[last:])
        return "".join(parts)
