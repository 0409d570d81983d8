"""Line-addressable snapshot of a workspace file."""

import re
from dataclasses import dataclass
from pathlib import Path

from .ranges import LineRange

# Only CR, LF and CRLF end a line; str.splitlines() also splits on form feeds,
# U+2028 and other separators that belong to line content.
_LINE_BREAK = re.compile(r"(\r\n|\r|\n)")


@dataclass(frozen=True)
class TextDocument:
    """Text content of one file split into lines.

    Attributes:
        path: Absolute path of the file
        lines: Line texts without line terminators
        newline: Dominant line terminator (first one found)
        trailing_newline: Whether the file ended with a terminator
        terminators: Per-line terminators as read, so unedited bytes are
            written back unchanged ("" for a final line without one)
    """

    path: Path
    lines: tuple[str, ...]
    newline: str = "\n"
    trailing_newline: bool = True
    terminators: tuple[str, ...] | None = None

    @classmethod
    def from_text(cls, path: Path, text: str) -> "TextDocument":
        """Split raw file text into lines, remembering each line's terminator."""
        parts = _LINE_BREAK.split(text)
        lines = parts[0::2]
        terminators = parts[1::2]

        trailing = bool(terminators) and lines[-1] == ""
        if trailing:
            lines.pop()
        else:
            # Last line has no terminator (also covers an empty file's one line)
            terminators.append("")

        return cls(
            path=path,
            lines=tuple(lines),
            newline=terminators[0] or "\n",
            trailing_newline=trailing,
            terminators=tuple(terminators),
        )

    @property
    def line_count(self) -> int:
        return len(self.lines)

    def line_at(self, line: int) -> str:
        if line < 0 or line >= len(self.lines):
            raise IndexError(
                f"Line {line} is out of bounds for {self.path} "
                f"(0-{len(self.lines) - 1})"
            )
        return self.lines[line]

    def get_text(self, line_range: LineRange) -> str:
        return "\n".join(self.lines[line_range.start : line_range.end + 1])

    def render(self, lines: list[str] | None = None) -> str:
        """Join lines back into file text using the terminators that were read."""
        lines = list(self.lines) if lines is None else lines
        if self.terminators is not None and len(self.terminators) == len(lines):
            return "".join(
                text + terminator for text, terminator in zip(lines, self.terminators)
            )

        body = self.newline.join(lines)
        if self.trailing_newline:
            body += self.newline
        return body
