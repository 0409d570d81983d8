"""Search and replace request options."""

from dataclasses import asdict, dataclass
from typing import Any

from multibuffer.core.constants import DEFAULT_CONTEXT_LINES


@dataclass(frozen=True)
class SearchOptions:
    """Options for one search invocation.

    Attributes:
        query: Literal text or regular expression to search for
        is_regex: Compile the query as a regular expression
        is_case_sensitive: Match case exactly
        match_whole_word: Keep only matches bounded by non-word characters
        include_pattern: Glob of files to search (None = everything)
        exclude_pattern: Glob of files to skip
        context_lines: Legacy symmetric context, used when before/after unset
        context_before: Lines of context shown above each match
        context_after: Lines of context shown below each match
        max_results: Global cap on match spans across the whole search
    """

    query: str
    is_regex: bool = False
    is_case_sensitive: bool = False
    match_whole_word: bool = False
    include_pattern: str | None = None
    exclude_pattern: str | None = None
    context_lines: int = DEFAULT_CONTEXT_LINES
    context_before: int | None = None
    context_after: int | None = None
    max_results: int | None = None

    def context_values(self) -> tuple[int, int]:
        """Return effective (before, after) context, falling back to context_lines."""
        before = self.context_before if self.context_before is not None else self.context_lines
        after = self.context_after if self.context_after is not None else self.context_lines
        return before, after

    def cache_key(self) -> tuple[Any, ...]:
        """Key identifying searches that produce interchangeable excerpts."""
        return (
            self.query,
            self.is_regex,
            self.is_case_sensitive,
            self.match_whole_word,
            self.include_pattern,
            self.exclude_pattern,
            self.context_values(),
            self.max_results,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ReplaceOptions(SearchOptions):
    """Search options plus the replacement text.

    For regular expressions the replacement uses Python template syntax
    (``\\1``, ``\\g<name>``); literal replacements are inserted verbatim.
    """

    replacement: str = ""

    @classmethod
    def from_search(cls, options: SearchOptions, replacement: str) -> "ReplaceOptions":
        return cls(**options.to_dict(), replacement=replacement)
