"""Folding-range state and its translation into fold phantoms.

Ranges arrive LSP-shaped and unfolded. Folding one turns it into two
``LINE_FOLDED_RANGE`` fragments: a placeholder on the start line that hides
the rest of that line, and an empty fragment on the end line that hides the
text before ``end.character``. Lines strictly between are absorbed by the
folded line and produce nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Protocol

from .buffer import Delta, TextBuffer
from .coords import Position
from .delta import transform_offset
from .errors import LineConversionError
from .phantom import FoldedSpan, PhantomKind, PhantomText

logger = logging.getLogger(__name__)


class FoldingRangeStatus(Enum):
    FOLD = "fold"
    UNFOLD = "unfold"

    def click(self) -> FoldingRangeStatus:
        """Return the toggled status."""
        return FoldingRangeStatus.UNFOLD if self is FoldingRangeStatus.FOLD else FoldingRangeStatus.FOLD

    def is_folded(self) -> bool:
        return self is FoldingRangeStatus.FOLD


class FoldingDisplayType(Enum):
    UNFOLD_START = "unfold_start"
    FOLDED = "folded"
    UNFOLD_END = "unfold_end"


@dataclass(frozen=True)
class FoldingDisplayItem:
    """A gutter marker for a folding range visible in the viewport."""

    position: Position
    y: int
    ty: FoldingDisplayType


@dataclass
class FoldingRange:
    start: Position
    end: Position
    status: FoldingRangeStatus = FoldingRangeStatus.UNFOLD
    collapsed_text: str | None = None

    @classmethod
    def from_lsp(cls, data: dict) -> FoldingRange:
        """Build an unfolded range from an LSP ``FoldingRange`` object."""
        collapsed_text = data.get("collapsedText")
        return cls(
            start=Position(int(data["startLine"]), int(data.get("startCharacter") or 0)),
            end=Position(int(data["endLine"]), int(data.get("endCharacter") or 0)),
            collapsed_text=collapsed_text if isinstance(collapsed_text, str) else None,
        )


class _ScreenLinesLike(Protocol):
    def visual_line_info_for_origin_line(self, origin_line: int): ...


def _offset_of(buffer: TextBuffer, position: Position) -> int:
    return buffer.offset_of_line(position.line) + position.character


@dataclass(frozen=True)
class FoldedRange:
    start: Position
    end: Position
    collapsed_text: str | None = None

    def placeholder(self, buffer: TextBuffer) -> str | None:
        if self.collapsed_text:
            return self.collapsed_text
        start_char = buffer.char_at_offset(_offset_of(buffer, self.start))
        end_char = buffer.char_at_offset(_offset_of(buffer, self.end) - 1)
        if start_char is None or end_char is None:
            return None
        return f"{start_char}...{end_char}"

    def into_phantom_text(
        self,
        buffer: TextBuffer,
        line: int,
        font_size: int | None = None,
        fg: str | None = None,
        bg: str | None = None,
    ) -> PhantomText | None:
        """Return this fold's fragment on ``line``, if it has one there."""
        same_line = self.start.line == self.end.line
        if self.start.line == line:
            text = self.placeholder(buffer)
            if text is None:
                return None
            start = self.start.character
            if same_line:
                hidden = self.end.character - start
                span = FoldedSpan(next_line=None, len=hidden, all_len=hidden, start_position=self.start)
            else:
                folded = buffer.offset_of_line(self.end.line)
                current = buffer.offset_of_line(self.start.line)
                content_len = len(buffer.line_content(line))
                span = FoldedSpan(
                    next_line=self.end.line,
                    len=content_len - start,
                    all_len=folded - current - start,
                    start_position=self.start,
                )
            return PhantomText(
                kind=PhantomKind.LINE_FOLDED_RANGE,
                line=line,
                col=start,
                text=text,
                fold=span,
                fg=fg,
                bg=bg,
                font_size=font_size,
            )
        if self.end.line == line:
            hidden = self.end.character
            return PhantomText(
                kind=PhantomKind.LINE_FOLDED_RANGE,
                line=line,
                col=0,
                text="",
                fold=FoldedSpan(next_line=None, len=hidden, all_len=hidden, start_position=self.start),
            )
        return None


@dataclass
class FoldedRanges:
    """Folded, non-nested ranges in document order."""

    ranges: list[FoldedRange] = field(default_factory=list)

    def __iter__(self):
        return iter(self.ranges)

    def __len__(self) -> int:
        return len(self.ranges)

    def filter_by_line(self, line: int) -> FoldedRanges:
        return FoldedRanges([item for item in self.ranges if item.start.line <= line <= item.end.line])

    def visual_line(self, line: int) -> int:
        """Return the origin line that shows ``line`` once folds are applied."""
        for folded in self.ranges:
            if line <= folded.start.line:
                return line
            if folded.start.line < line <= folded.end.line:
                return folded.start.line
        return line

    def contain_line(self, start_index: int, line: int) -> tuple[bool, int]:
        """Return whether ``line`` is hidden, plus the index to resume from."""
        if start_index >= len(self.ranges):
            return False, start_index
        last_index = start_index
        for folded in self.ranges[start_index:]:
            if folded.start.line >= line:
                return False, last_index
            if folded.start.line < line <= folded.end.line:
                return True, last_index
            last_index += 1
        return False, last_index

    def contain_position(self, position: Position) -> bool:
        return any(item.start <= position <= item.end for item in self.ranges)

    def update_status(self, folding: FoldingRange) -> None:
        if any(item.start == folding.start and item.end == folding.end for item in self.ranges):
            folding.status = FoldingRangeStatus.FOLD

    def phantom_texts(
        self,
        buffer: TextBuffer,
        line: int,
        font_size: int | None = None,
        fg: str | None = None,
        bg: str | None = None,
    ) -> list[PhantomText]:
        phantoms: list[PhantomText] = []
        for item in self.ranges:
            if not item.start.line <= line <= item.end.line:
                continue
            try:
                phantom = item.into_phantom_text(buffer, line, font_size, fg, bg)
            except LineConversionError as exc:
                logger.warning("skipping fold %s..%s: %s", item.start, item.end, exc)
                continue
            if phantom is not None:
                phantoms.append(phantom)
        return phantoms


@dataclass
class FoldingRanges:
    ranges: list[FoldingRange] = field(default_factory=list)

    def __iter__(self):
        return iter(self.ranges)

    def __len__(self) -> int:
        return len(self.ranges)

    def get_all_folded_range(self) -> FoldedRanges:
        """Return folded ranges, skipping those nested in an outer folded one."""
        folded: list[FoldedRange] = []
        limit_line = 0
        for item in self.ranges:
            if limit_line > 0 and item.start.line < limit_line:
                continue
            if item.status.is_folded():
                folded.append(FoldedRange(item.start, item.end, item.collapsed_text))
                limit_line = item.end.line
        return FoldedRanges(folded)

    def fold_by_offset(self, offset: int, buffer: TextBuffer) -> None:
        """Fold the innermost range containing ``offset``."""
        last_range: FoldingRange | None = None
        for item in self.ranges:
            start = _offset_of(buffer, item.start)
            end = _offset_of(buffer, item.end)
            if start <= offset < end:
                last_range = item
            elif end < offset:
                continue
            else:
                break
        if last_range is not None:
            last_range.status = FoldingRangeStatus.FOLD

    def to_display_items(self, screen_lines: _ScreenLinesLike) -> list[FoldingDisplayItem]:
        folded: dict[int, FoldingDisplayItem] = {}
        unfold_start: dict[int, FoldingDisplayItem] = {}
        unfold_end: dict[int, FoldingDisplayItem] = {}
        limit_line = 0
        for item in self.ranges:
            if limit_line > 0 and item.start.line < limit_line:
                continue
            if item.status.is_folded():
                info = screen_lines.visual_line_info_for_origin_line(item.start.line)
                if info is not None:
                    folded[item.start.line] = FoldingDisplayItem(
                        item.start, int(info.folded_line_y), FoldingDisplayType.FOLDED
                    )
                limit_line = item.end.line
            else:
                info = screen_lines.visual_line_info_for_origin_line(item.start.line)
                if info is not None:
                    unfold_start[item.start.line] = FoldingDisplayItem(
                        item.start, int(info.folded_line_y), FoldingDisplayType.UNFOLD_START
                    )
                info = screen_lines.visual_line_info_for_origin_line(item.end.line)
                if info is not None:
                    unfold_end[item.end.line] = FoldingDisplayItem(
                        item.end, int(info.folded_line_y), FoldingDisplayType.UNFOLD_END
                    )
                limit_line = 0
        unfold_start.update(unfold_end)
        unfold_start.update(folded)
        return sorted(unfold_start.values(), key=lambda item: item.position)

    def update_ranges(self, new: Iterable[FoldingRange]) -> None:
        """Replace the ranges, keeping the folded status of identical ones."""
        folded = self.get_all_folded_range()
        ranges = list(new)
        for item in ranges:
            folded.update_status(item)
        self.ranges = ranges

    def update_folding_item(self, item: FoldingDisplayItem) -> None:
        for folding in self.ranges:
            if item.ty is FoldingDisplayType.UNFOLD_END:
                matched = folding.end == item.position
            else:
                matched = folding.start == item.position
            if matched:
                folding.status = folding.status.click()
                return

    def update_by_phantom(self, position: Position) -> None:
        for folding in self.ranges:
            if folding.start == position:
                folding.status = folding.status.click()
                return

    def apply_delta(self, delta: Delta, old_buffer: TextBuffer, new_buffer: TextBuffer) -> None:
        """Move every range through an edit; ranges that collapse are dropped."""
        moved: list[FoldingRange] = []
        for item in self.ranges:
            try:
                start = transform_offset(delta, _offset_of(old_buffer, item.start), after=True)
                end = transform_offset(delta, _offset_of(old_buffer, item.end), after=False)
                start_line, start_col = new_buffer.offset_to_line_col(start)
                end_line, end_col = new_buffer.offset_to_line_col(end)
            except LineConversionError as exc:
                logger.warning("dropping folding range %s..%s: %s", item.start, item.end, exc)
                continue
            if end <= start:
                continue
            moved.append(replace(item, start=Position(start_line, start_col), end=Position(end_line, end_col)))
        self.ranges = moved


@dataclass(frozen=True)
class UpdateByItem:
    item: FoldingDisplayItem


@dataclass(frozen=True)
class NewRanges:
    ranges: tuple[FoldingRange, ...]


@dataclass(frozen=True)
class UpdateByPhantom:
    position: Position


@dataclass(frozen=True)
class FoldCode:
    offset: int


UpdateFolding = UpdateByItem | NewRanges | UpdateByPhantom | FoldCode


def apply_folding_update(ranges: FoldingRanges, action: UpdateFolding, buffer: TextBuffer) -> None:
    if isinstance(action, UpdateByItem):
        ranges.update_folding_item(action.item)
    elif isinstance(action, NewRanges):
        ranges.update_ranges(action.ranges)
    elif isinstance(action, UpdateByPhantom):
        ranges.update_by_phantom(action.position)
    elif isinstance(action, FoldCode):
        ranges.fold_by_offset(action.offset, buffer)
    else:
        raise TypeError(f"unknown folding update {action!r}")
