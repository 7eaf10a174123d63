from __future__ import annotations

import re
from bisect import bisect_right
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .document import Document

FENCE_MARKER = "```"
# ```python, ``` python and a bare ``` (checked after stripping the line)
FENCE_MARKER_PATTERN = re.compile(
    r"^```(?:(?P<tag>\w[\w+#.-]*)|\s+(?P<spaced>\w[\w+#.-]*))?$"
)


@dataclass(frozen=True)
class Fence:
    start_line: int
    open_marker_end: int
    end_line: Optional[int]
    language_tag: Optional[str]
    close_marker_start: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.end_line is None

    def body(self, document: Document) -> str:
        """Text between the marker lines (to end of document when unterminated)."""
        start = min(self.open_marker_end + 1, len(document))
        if self.close_marker_start is None:
            return document.text[start:]
        return document.text[start : max(start, self.close_marker_start - 1)]


@dataclass(frozen=True)
class Marker:
    line: int
    tag: Optional[str]
    opens: bool

    @property
    def bare(self) -> bool:
        return self.tag is None


def classify_marker(text: str) -> tuple[bool, Optional[str]]:
    """Return (is_marker, language_tag) for one line of text."""
    match = FENCE_MARKER_PATTERN.match(text.strip())
    if not match:
        return False, None
    tag = match.group("tag") or match.group("spaced")
    return True, tag or None


@dataclass
class MarkerTable:
    """Every fence marker line of one snapshot, classified as opener or closer.

    A tagged marker always opens. A bare marker closes whatever is open and
    opens a plain fence otherwise.
    """

    markers: List[Marker] = field(default_factory=list)
    closers: dict[int, int] = field(default_factory=dict)

    @classmethod
    def build(cls, lines: Sequence[str]) -> "MarkerTable":
        markers: List[Marker] = []
        closers: dict[int, int] = {}
        pending: List[int] = []
        for number, text in enumerate(lines, start=1):
            if FENCE_MARKER not in text:
                continue
            is_marker, tag = classify_marker(text)
            if not is_marker:
                continue
            index = len(markers)
            if tag is None and pending:
                markers.append(Marker(line=number, tag=None, opens=False))
                for opener in pending:
                    closers[opener] = index
                pending = []
                continue
            markers.append(Marker(line=number, tag=tag, opens=True))
            pending.append(index)
        return cls(markers=markers, closers=closers)

    def __post_init__(self) -> None:
        self._lines = [marker.line for marker in self.markers]

    def nearest_index(self, line_number: int) -> Optional[int]:
        """Index of the last marker at or above ``line_number``."""
        idx = bisect_right(self._lines, line_number) - 1
        return idx if idx >= 0 else None

    def closer_for(self, index: int) -> Optional[Marker]:
        closer = self.closers.get(index)
        return self.markers[closer] if closer is not None else None


def locate_fence(document: Document, position: int) -> Optional[Fence]:
    """Return the fence whose body contains ``position``, or None for prose.

    The nearest marker at or above the cursor line decides: a closer means the
    cursor is past any fence opened earlier, an opener is the candidate. The
    cursor must then sit strictly inside the body of a closed fence, or at or
    after the opening marker of an unterminated one.
    """
    current = document.line_at(position)
    table = document.markers
    index = table.nearest_index(current.number)
    if index is None:
        return None
    opener = table.markers[index]
    if not opener.opens:
        return None
    open_marker_end = document.line(opener.line).end
    closer = table.closer_for(index)
    if closer is not None:
        close_start = document.line(closer.line).start
        if open_marker_end < position < close_start:
            return Fence(
                start_line=opener.line,
                open_marker_end=open_marker_end,
                end_line=closer.line,
                language_tag=opener.tag,
                close_marker_start=close_start,
            )
        return None
    if position >= open_marker_end:
        return Fence(
            start_line=opener.line,
            open_marker_end=open_marker_end,
            end_line=None,
            language_tag=opener.tag,
        )
    return None
