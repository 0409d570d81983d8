"""Aggregate formatter: render excerpts into one document plus its mapping.

Layout (0-based aggregate lines, counted while emitting):

    Multi-Buffer Search: "query"
    <blank>
    === path/to/file.py
    <blank>
        12   context line
        13   match line
        14   context line
    <blank>
    ...

Every excerpt line is ``{number:>LINE_NUMBER_WIDTH} `` + CONTENT_PREFIX + text,
so content always starts at CONTENT_START_INDEX.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from multibuffer.core.constants import (
    CONTENT_PREFIX,
    FILE_HEADER_PREFIX,
    LINE_NUMBER_SEPARATOR,
    LINE_NUMBER_WIDTH,
    REPLACE_HEADER,
    SEARCH_HEADER,
)
from multibuffer.core.models import (
    AggregateMapping,
    Excerpt,
    LineRange,
    ReplaceOptions,
    SearchOptions,
    TextDocument,
)

from .matcher import Matcher


def format_line_number(line_number: int) -> str:
    """Right-justify a 1-based line number in the fixed gutter."""
    return f"{line_number:>{LINE_NUMBER_WIDTH}}{LINE_NUMBER_SEPARATOR}"


def format_content_line(line_number: int, text: str) -> str:
    return f"{format_line_number(line_number)}{CONTENT_PREFIX}{text}"


@dataclass
class FormattedAggregate:
    """Rendered aggregate text and the mapping built while rendering."""

    content: str
    mapping: AggregateMapping


class ResultFormatter:
    """Serializes grouped excerpts into aggregate text."""

    def __init__(self, display_path: Callable[[Path], str] | None = None):
        """Initialize formatter.

        Args:
            display_path: Maps a file to the path shown in its header
        """
        self._display_path = display_path or (lambda path: path.as_posix())

    def format_header(
        self, options: SearchOptions, replace_options: ReplaceOptions | None = None
    ) -> str:
        if replace_options is not None:
            return f'{REPLACE_HEADER}: "{options.query}" → "{replace_options.replacement}"'
        return f'{SEARCH_HEADER}: "{options.query}"'

    def format_file_header(self, path: Path) -> str:
        return f"{FILE_HEADER_PREFIX}{self._display_path(path)}"

    def format_search_results(
        self,
        excerpts_by_file: Mapping[Path, list[Excerpt]],
        documents: Mapping[Path, TextDocument],
        options: SearchOptions,
        replace_options: ReplaceOptions | None = None,
    ) -> FormattedAggregate:
        """Render all excerpts and build the aggregate mapping.

        Excerpts are placed (given their aggregate range) during rendering; the
        mapping only ever holds placed copies. The mapping is validated before
        it is returned.

        Raises:
            InvalidPatternError: If replace_options carries a malformed pattern
            MappingConsistencyError: If the built mapping fails validation
        """
        replacer = Matcher(replace_options) if replace_options is not None else None
        lines: list[str] = [self.format_header(options, replace_options), ""]
        mapping = AggregateMapping()

        for path, excerpts in excerpts_by_file.items():
            if not excerpts:
                continue
            document = documents[path]
            lines.append(self.format_file_header(path))
            lines.append("")

            for excerpt in excerpts:
                start_line = len(lines)
                context = excerpt.context_range
                match_lines: list[tuple[int, str]] = []

                for source_line in context.lines():
                    text = document.line_at(source_line)
                    is_match_line = excerpt.is_match_line(source_line)
                    if is_match_line:
                        match_lines.append((len(lines), text))
                        if replacer is not None:
                            text = replacer.replace_line(text, replace_options.replacement)
                    lines.append(format_content_line(source_line + 1, text))

                placed = excerpt.placed(LineRange(start_line, len(lines) - 1))
                lines.append("")

                for aggregate_line, source_text in match_lines:
                    mapping.line_to_excerpt[aggregate_line] = placed
                    mapping.source_text_by_line[aggregate_line] = source_text
                mapping.excerpts_by_id[placed.id] = placed
                mapping.excerpts_by_file.setdefault(path, []).append(placed)

        mapping.assert_valid()
        logger.debug(
            f"Formatted {mapping.excerpt_count} excerpts from {mapping.file_count} files "
            f"into {len(lines)} aggregate lines"
        )
        return FormattedAggregate(content="\n".join(lines), mapping=mapping)
