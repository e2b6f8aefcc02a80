"""Screen line index: the folded lines a viewport shows, and what a click hits.

``compute_screen_lines`` picks the rows that intersect the viewport and
records each one's top ``folded_line_y`` relative to the viewport origin.
Click resolution and selection rectangles work on the same rows, through the
shaped layout of the folded line under the point.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
import logging
import math

from .coords import CursorAffinity, Position
from .errors import LayoutError
from .folding import FoldingDisplayItem, UpdateByPhantom
from .geometry import Point, Rect
from .hints import Location, location_of_hint_part
from .lines import DocLines, OriginFoldedLine
from .phantom import OriginText, PhantomKind, PhantomText

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OriginTextLine:
    """A row showing one folded line."""

    folded_line_y: float
    folded_line: OriginFoldedLine
    is_diff: bool = False


@dataclass(frozen=True)
class DiffEmptyLine:
    """A blank row a diff view inserts before ``change_line_start``."""

    folded_line_y: float
    change_line_start: int


VisualLineInfo = OriginTextLine | DiffEmptyLine


@dataclass(frozen=True)
class DiffEmptyRange:
    """``count`` blank rows shown above origin line ``line``."""

    line: int
    count: int


@dataclass
class ScreenLines:
    visual_lines: list[VisualLineInfo] = field(default_factory=list)
    base: Rect = field(default_factory=lambda: Rect(0.0, 0.0, 0.0, 0.0))
    line_height: float = 20.0

    def is_empty(self) -> bool:
        return not self.visual_lines

    def text_lines(self) -> list[OriginTextLine]:
        return [info for info in self.visual_lines if isinstance(info, OriginTextLine)]

    def visual_line_of_y(self, y: float) -> VisualLineInfo:
        """Return the row under document ``y``; below every row, the last one."""
        if not self.visual_lines:
            raise LayoutError("screen lines are empty")
        y -= self.base.y0
        for info in self.visual_lines:
            if info.folded_line_y <= y < info.folded_line_y + self.line_height:
                return info
        return self.visual_lines[-1]

    def visual_line_info_for_origin_line(self, origin_line: int) -> OriginTextLine | None:
        """Return the row whose folded line starts at ``origin_line``.

        ``None`` when that line is hidden inside a fold or off screen.
        """
        for info in self.text_lines():
            start = info.folded_line.origin_line_start
            if origin_line < start:
                return None
            if origin_line == start:
                return info
        return None

    def line_interval(self) -> tuple[int, int]:
        """Return the first and last origin lines on screen."""
        lines = self.text_lines()
        if not lines:
            raise LayoutError("screen lines are empty")
        return lines[0].folded_line.origin_line_start, lines[-1].folded_line.origin_line_end

    def offset_interval(self) -> tuple[int, int]:
        lines = self.text_lines()
        if not lines:
            raise LayoutError("screen lines are empty")
        return lines[0].folded_line.origin_interval.start, lines[-1].folded_line.origin_interval.end

    def intersection_with_lines(
        self, start_index: int, end_index: int
    ) -> tuple[OriginTextLine, OriginTextLine] | None:
        """Clip folded lines ``start_index..=end_index`` to the rows on screen."""
        inside = [
            info for info in self.text_lines() if start_index <= info.folded_line.line_index <= end_index
        ]
        if not inside:
            return None
        return inside[0], inside[-1]


def _row_range(y0: float, y1: float, line_height: float, last_row: int) -> range:
    first = min(max(math.floor(y0 / line_height), 0), last_row)
    last = min(max(math.floor(y1 / line_height), 0), last_row)
    return range(first, last + 1)


def _diff_rows(doc: DocLines, diff_empty: Iterable[DiffEmptyRange]) -> list[tuple[int, bool]]:
    """Return ``(origin_line, is_empty)`` per row of a diff view."""
    empty_before: dict[int, int] = {}
    for item in diff_empty:
        if item.count > 0:
            empty_before[item.line] = empty_before.get(item.line, 0) + item.count
    rows: list[tuple[int, bool]] = []
    num_lines = doc.buffer.num_lines()
    for line in range(num_lines):
        rows.extend((line, True) for _ in range(empty_before.get(line, 0)))
        rows.append((line, False))
    rows.extend((num_lines, True) for _ in range(empty_before.get(num_lines, 0)))
    return rows


def compute_screen_lines(
    doc: DocLines,
    viewport: Rect,
    diff_empty: Iterable[DiffEmptyRange] | None = None,
) -> tuple[ScreenLines, list[FoldingDisplayItem]]:
    """Select the rows ``viewport`` shows.

    With ``diff_empty`` the rows come from a diff view: every origin line on
    its own row, folding ignored, blank rows inserted where asked.
    """
    line_height = float(doc.line_height)
    visual_lines: list[VisualLineInfo] = []
    if diff_empty is None:
        folded_lines = doc.origin_folded_lines
        for row in _row_range(viewport.y0, viewport.y1, line_height, len(folded_lines) - 1):
            visual_lines.append(OriginTextLine(row * line_height - viewport.y0, folded_lines[row]))
        screen_lines = ScreenLines(visual_lines, viewport, line_height)
        display_items = doc.folding_ranges.to_display_items(screen_lines)
    else:
        rows = _diff_rows(doc, diff_empty)
        for row in _row_range(viewport.y0, viewport.y1, line_height, len(rows) - 1):
            line, is_empty = rows[row]
            folded_line_y = row * line_height - viewport.y0
            if is_empty:
                visual_lines.append(DiffEmptyLine(folded_line_y, line))
            else:
                visual_lines.append(OriginTextLine(folded_line_y, doc.unfolded_line(line, line), is_diff=True))
        screen_lines = ScreenLines(visual_lines, viewport, line_height)
        display_items = []
    logger.debug("screen lines for %s: %d rows", viewport, len(visual_lines))
    return screen_lines, display_items


def _end_of_line_offset(folded: OriginFoldedLine) -> tuple[int, bool, CursorAffinity]:
    last = folded.text()[-1]
    if isinstance(last, PhantomText):
        return folded.origin_interval.start + last.origin_merge_col, False, CursorAffinity.FORWARD
    if isinstance(last, OriginText):
        if folded.len_without_rn() == 0:
            return folded.offset_of_line(), False, CursorAffinity.BACKWARD
        line_ending_len = folded.len() - folded.len_without_rn()
        return folded.origin_interval.end - line_ending_len, False, CursorAffinity.BACKWARD
    return last.offset_of_line, False, CursorAffinity.BACKWARD


def buffer_offset_of_click(doc: DocLines, point: Point) -> tuple[int, bool, CursorAffinity]:
    """Resolve a document point to ``(offset, is_inside, affinity)``.

    Points above the document land on the first line, points below it on the
    end of the last line with ``is_inside`` false.
    """
    is_inside = True
    folded = doc.origin_folded_line_of_point(max(point.y, 0.0))
    if folded is None:
        is_inside = False
        folded = doc.origin_folded_lines[-1]
    hit = folded.hit_point(Point(point.x, 0.0))
    index = hit.index
    start = folded.origin_interval.start
    if not (hit.is_inside and is_inside):
        return _end_of_line_offset(folded)

    for text in folded.text():
        if isinstance(text, PhantomText):
            if text.final_col <= index < text.next_final_col():
                # Past the middle of the fragment the caret goes after it.
                if index > text.final_col + len(text.text) // 2:
                    return start + text.origin_merge_col, True, CursorAffinity.FORWARD
                return start + text.origin_merge_col, True, CursorAffinity.BACKWARD
            if index == text.next_final_col():
                return start + text.origin_merge_col, True, CursorAffinity.FORWARD
        elif isinstance(text, OriginText):
            if text.final_col.contains(index) or (folded.last_line and text.final_col.end == index):
                offset = index - text.final_col.start + text.origin_merge_col.start + start
                return offset, True, CursorAffinity.BACKWARD
    logger.error("click %s at final col %d matched no segment of folded line %d", point, index, folded.line_index)
    return _end_of_line_offset(folded)


class ClickKind(Enum):
    MATCH_FOLDED = "match_folded"
    MATCH_HINT = "match_hint"
    MATCH_WITHOUT_LOCATION = "match_without_location"
    NO_HINT_OR_NOTHING = "no_hint_or_nothing"


@dataclass(frozen=True)
class ClickResult:
    kind: ClickKind
    location: Location | None = None


def result_of_left_click(doc: DocLines, point: Point) -> ClickResult:
    """Classify a left click on phantom text.

    Clicking a fold placeholder unfolds it, which rebuilds ``doc``.
    """
    folded = doc.origin_folded_line_of_point(point.y)
    if folded is None:
        return ClickResult(ClickKind.NO_HINT_OR_NOTHING)
    index = folded.layout.glyph_index(Point(point.x, 0.0))
    if index is None:
        return ClickResult(ClickKind.NO_HINT_OR_NOTHING)
    text = folded.text_of_final_col(index)
    if not isinstance(text, PhantomText):
        return ClickResult(ClickKind.NO_HINT_OR_NOTHING)

    if text.kind is PhantomKind.INLAY_HINT:
        position = Position(text.line, text.col)
        for item in doc.inlay_hints:
            if item.hint.position != position:
                continue
            location = location_of_hint_part(item.hint, index - text.final_col)
            if location is not None:
                return ClickResult(ClickKind.MATCH_HINT, location)
    elif text.fold is not None:
        doc.update_folding_ranges(UpdateByPhantom(text.fold.start_position))
        return ClickResult(ClickKind.MATCH_FOLDED)
    return ClickResult(ClickKind.MATCH_WITHOUT_LOCATION)


def normal_selection(doc: DocLines, start_offset: int, end_offset: int, screen_lines: ScreenLines) -> list[Rect]:
    """Return the rectangles covering ``[start_offset, end_offset)`` on screen."""
    if end_offset < start_offset:
        start_offset, end_offset = end_offset, start_offset
    first, col_start = doc.folded_line_and_final_col_of_offset(start_offset, CursorAffinity.FORWARD)
    last, col_end = doc.folded_line_and_final_col_of_offset(end_offset, CursorAffinity.FORWARD)
    if screen_lines.intersection_with_lines(first.line_index, last.line_index) is None:
        return []

    base = screen_lines.base.origin()
    line_height = screen_lines.line_height
    rects: list[Rect] = []
    for info in screen_lines.text_lines():
        folded = info.folded_line
        if not first.line_index <= folded.line_index <= last.line_index:
            continue
        left = col_start if folded.line_index == first.line_index else 0
        if folded.line_index == last.line_index:
            right = col_end
        elif folded.line_index == first.line_index:
            right = folded.len_without_rn()
        else:
            right = folded.len()
        rects.append(folded.line_scope(left, right, line_height, info.folded_line_y, base))
    return rects
