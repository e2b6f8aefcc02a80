"""Line-indexed text buffer and the edit deltas it produces.

The engine only needs offset/line conversion, line slices and a description
of each edit as ordered copy/insert operations against the previous state.
``TextBuffer`` keeps the whole text plus a table of line start offsets.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field

from .errors import LineConversionError


@dataclass(frozen=True)
class Copy:
    """Keep ``[start, end)`` of the previous buffer."""

    start: int
    end: int

    def __len__(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class Insert:
    """Insert new text at the current position."""

    text: str

    def __len__(self) -> int:
        return len(self.text)


DeltaOp = Copy | Insert


@dataclass(frozen=True)
class Delta:
    """One edit expressed against a buffer of ``base_len`` characters."""

    ops: tuple[DeltaOp, ...] = field(default_factory=tuple)
    base_len: int = 0

    def new_len(self) -> int:
        return sum(len(op) for op in self.ops)


def _line_starts(text: str) -> list[int]:
    starts = [0]
    index = text.find("\n")
    while index != -1:
        starts.append(index + 1)
        index = text.find("\n", index + 1)
    return starts


class TextBuffer:
    """Mutable text with O(log n) offset/line conversion.

    A line ends after each ``\\n`` and owns its line ending, so a buffer that
    ends with a newline has an empty last line.
    """

    def __init__(self, text: str = "") -> None:
        self._text = text
        self._starts = _line_starts(text)
        self.rev = 0

    def __copy__(self) -> TextBuffer:
        clone = TextBuffer.__new__(TextBuffer)
        clone._text = self._text
        clone._starts = self._starts
        clone.rev = self.rev
        return clone

    def text(self) -> str:
        return self._text

    def len(self) -> int:
        return len(self._text)

    def __len__(self) -> int:
        return len(self._text)

    def num_lines(self) -> int:
        return len(self._starts)

    def last_line(self) -> int:
        return len(self._starts) - 1

    def offset_of_line(self, line: int) -> int:
        """Return the start offset of ``line``; one past the last line maps to ``len``."""
        if line < 0 or line > len(self._starts):
            raise LineConversionError(
                f"line {line} out of range 0..={len(self._starts)}",
                line=line,
                limit=len(self._starts),
            )
        if line == len(self._starts):
            return len(self._text)
        return self._starts[line]

    def line_of_offset(self, offset: int) -> int:
        if offset < 0 or offset > len(self._text):
            raise LineConversionError(
                f"offset {offset} out of range 0..={len(self._text)}",
                offset=offset,
                limit=len(self._text),
            )
        return bisect_right(self._starts, offset) - 1

    def line_content(self, line: int) -> str:
        """Return the text of ``line`` including its line ending."""
        start = self.offset_of_line(line)
        end = self.offset_of_line(line + 1)
        return self._text[start:end]

    def line_ending_len(self, line: int) -> int:
        content = self.line_content(line)
        if content.endswith("\r\n"):
            return 2
        if content.endswith("\n"):
            return 1
        return 0

    def char_at_offset(self, offset: int) -> str | None:
        if 0 <= offset < len(self._text):
            return self._text[offset]
        return None

    def offset_to_line_col(self, offset: int) -> tuple[int, int]:
        line = self.line_of_offset(offset)
        return line, offset - self._starts[line]

    def offset_of_line_col(self, line: int, col: int) -> int:
        start = self.offset_of_line(line)
        end = self.offset_of_line(line + 1)
        if col < 0 or start + col > end:
            raise LineConversionError(
                f"column {col} out of range for line {line}",
                line=line,
                offset=start + col,
                limit=end,
            )
        return start + col

    def slice(self, start: int, end: int) -> str:
        return self._text[start:end]

    def edit(self, start: int, end: int, text: str) -> Delta:
        """Replace ``[start, end)`` with ``text`` and return the edit delta."""
        length = len(self._text)
        if not 0 <= start <= end <= length:
            raise LineConversionError(
                f"edit range [{start}, {end}) outside buffer of length {length}",
                offset=end,
                limit=length,
            )
        ops: list[DeltaOp] = []
        if start > 0:
            ops.append(Copy(0, start))
        if text:
            ops.append(Insert(text))
        if end < length:
            ops.append(Copy(end, length))
        self._text = self._text[:start] + text + self._text[end:]
        self._starts = _line_starts(self._text)
        self.rev += 1
        return Delta(tuple(ops), length)

    def reload(self, text: str) -> Delta:
        """Replace the whole content."""
        return self.edit(0, len(self._text), text)
