from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from functools import cached_property
from typing import TYPE_CHECKING, Iterable, List, Sequence

if TYPE_CHECKING:
    from .fences import MarkerTable


class PositionOutOfRange(IndexError):
    """Raised when an offset, line or column lies outside the document."""


@dataclass(frozen=True)
class Line:
    number: int
    start: int
    end: int
    text: str

    def column_of(self, offset: int) -> int:
        return offset - self.start


class Document:
    """Immutable snapshot of the edited text, addressed by offset or (line, column)."""

    def __init__(self, text: str) -> None:
        self._text = text
        self._lines: List[str] = text.split("\n")
        starts: List[int] = []
        offset = 0
        for line in self._lines:
            starts.append(offset)
            offset += len(line) + 1
        self._starts = starts

    @classmethod
    def from_text(cls, text: str) -> "Document":
        return cls(text)

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> "Document":
        return cls("\n".join(lines))

    @property
    def text(self) -> str:
        return self._text

    @property
    def line_count(self) -> int:
        return len(self._lines)

    @property
    def lines(self) -> Sequence[str]:
        return tuple(self._lines)

    def __len__(self) -> int:
        return len(self._text)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Document):
            return NotImplemented
        return self._text == other._text

    def __hash__(self) -> int:
        return hash(self._text)

    def __repr__(self) -> str:
        return f"Document(lines={self.line_count}, length={len(self._text)})"

    def check_offset(self, offset: int) -> None:
        if not 0 <= offset <= len(self._text):
            raise PositionOutOfRange(f"Offset {offset} outside document of length {len(self._text)}")

    def line(self, number: int) -> Line:
        if not 1 <= number <= len(self._lines):
            raise PositionOutOfRange(f"Line {number} outside document with {len(self._lines)} lines")
        start = self._starts[number - 1]
        text = self._lines[number - 1]
        return Line(number=number, start=start, end=start + len(text), text=text)

    def line_at(self, offset: int) -> Line:
        self.check_offset(offset)
        return self.line(bisect_right(self._starts, offset))

    def offset_to_position(self, offset: int) -> tuple[int, int]:
        line = self.line_at(offset)
        return line.number, line.column_of(offset)

    def position_to_offset(self, number: int, column: int) -> int:
        line = self.line(number)
        if not 0 <= column <= len(line.text):
            raise PositionOutOfRange(f"Column {column} outside line {number} of length {len(line.text)}")
        return line.start + column

    @cached_property
    def markers(self) -> "MarkerTable":
        """Fence-marker table for this snapshot, built on first use."""
        from .fences import MarkerTable

        return MarkerTable.build(self._lines)
