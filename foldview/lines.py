"""Origin lines, folded lines and the incremental builder that owns them.

``DocLines`` keeps two vectors in step with the buffer:

* one ``OriginLine`` per buffer line, holding its composed phantom fragments
  and the style records clipped to it;
* one ``OriginFoldedLine`` per visual line, merging the origin lines a fold
  run absorbs and owning the shaped layout of the composed text.

An edit is resolved into an ``OriginLinesDelta``; entries fully inside the
leading and trailing copy blocks are reused with their offsets and line
indices shifted, and only the lines in between are composed again.
"""

from __future__ import annotations

from bisect import bisect_left
from collections.abc import Iterable, Mapping, Sequence
import copy
from dataclasses import dataclass, replace
from enum import Enum
import logging

from .buffer import Delta, TextBuffer
from .config import EngineConfig
from .coords import CursorAffinity, Interval, Offset, Position
from .delta import RECOMPUTE_TO_END, OriginLinesDelta, resolve_delta, transform_offset
from .errors import ConsistencyCheckFailure, LayoutError, LineConversionError
from .folding import FoldedRanges, FoldingRanges, UpdateFolding, apply_folding_update
from .geometry import Point, Rect, Size
from .hints import (
    CompletionLens,
    InlayHint,
    PlacedHint,
    PreeditData,
    completion_phantom,
    inlay_hint_phantoms,
    move_hints,
    place_hints,
    preedit_phantom,
)
from .phantom import EmptyText, OriginText, PhantomText, PhantomTextLine, PhantomTextMultiLine, Text
from .shaping import AttrSpan, HitPoint, ShapedLayout, ShapingContext
from .styles import (
    Diagnostic,
    LineStyle,
    StyleSpan,
    line_diagnostic_styles,
    line_semantic_styles,
    move_diagnostics,
    move_spans,
    sort_spans,
    syntax_style_spans,
)

logger = logging.getLogger(__name__)


class BuildPhase(Enum):
    IDLE = "idle"
    RESOLVING_DELTA = "resolving_delta"
    REBUILDING_LINES = "rebuilding_lines"
    REBUILDING_FOLDED_LINES = "rebuilding_folded_lines"


class ColPosition(Enum):
    """Horizontal target of a vertical move that is not a plain final column."""

    START = "start"
    END = "end"
    FIRST_NON_BLANK = "first_non_blank"


def _shift_styles(styles: Iterable[LineStyle], delta: int) -> list[LineStyle]:
    return [replace(style, origin_line_offset_start=style.origin_line_offset_start + delta) for style in styles]


def _origin_contains(text: OriginText, merge_col: int, last_line: bool) -> bool:
    span = text.origin_merge_col
    return span.contains(merge_col) or (last_line and merge_col == span.end)


def _fold_signature(phantoms: Iterable[PhantomText]) -> list[tuple[int, str, int, int, bool]]:
    """Line-independent shape of the fold fragments among ``phantoms``."""
    return sorted(
        (phantom.col, phantom.text, phantom.fold.len, phantom.fold.all_len, phantom.fold.next_line is None)
        for phantom in phantoms
        if phantom.fold is not None
    )


@dataclass
class OriginLine:
    """One buffer line: ``[start_offset, start_offset + len)``."""

    line_index: int
    start_offset: int
    len: int
    phantom: PhantomTextLine
    semantic_styles: list[LineStyle]
    diagnostic_styles: list[LineStyle]

    def shifted_semantic_styles(self, delta: int) -> list[LineStyle]:
        return _shift_styles(self.semantic_styles, delta)

    def shifted_diagnostic_styles(self, delta: int) -> list[LineStyle]:
        return _shift_styles(self.diagnostic_styles, delta)

    def adjust(self, offset: Offset, line_offset: Offset) -> OriginLine:
        return OriginLine(
            line_index=line_offset.adjust(self.line_index),
            start_offset=offset.adjust(self.start_offset),
            len=self.len,
            phantom=self.phantom.adjust(offset, line_offset),
            semantic_styles=[style.adjust(offset, line_offset) for style in self.semantic_styles],
            diagnostic_styles=[style.adjust(offset, line_offset) for style in self.diagnostic_styles],
        )


@dataclass
class OriginFoldedLine:
    """One visual line: origin lines ``origin_line_start..=origin_line_end``."""

    line_index: int
    origin_line_start: int
    origin_line_end: int
    origin_interval: Interval
    last_line: bool
    phantom_text: PhantomTextMultiLine
    layout: ShapedLayout
    semantic_styles: list[LineStyle]
    diagnostic_styles: list[LineStyle]

    def adjust(self, offset: Offset, line_offset: Offset, line_index: int, buffer_last_line: int) -> OriginFoldedLine:
        start = line_offset.adjust(self.origin_line_start)
        end = line_offset.adjust(self.origin_line_end)
        return OriginFoldedLine(
            line_index=line_index,
            origin_line_start=start,
            origin_line_end=end,
            origin_interval=Interval(
                offset.adjust(self.origin_interval.start),
                offset.adjust(self.origin_interval.end),
            ),
            last_line=start <= buffer_last_line <= end,
            phantom_text=self.phantom_text.adjust(offset, line_offset),
            layout=self.layout,
            semantic_styles=[style.adjust(offset, line_offset) for style in self.semantic_styles],
            diagnostic_styles=[style.adjust(offset, line_offset) for style in self.diagnostic_styles],
        )

    def len(self) -> int:
        return self.layout.text_len

    def len_without_rn(self) -> int:
        return self.layout.text_len_without_rn

    def offset_of_line(self) -> int:
        return self.phantom_text.offset_of_line

    def text(self) -> list[Text]:
        return self.phantom_text.texts

    def caret_texts(self) -> list[Text]:
        """Segments a caret can step over; empty fold-end fragments are skipped."""
        return [text for text in self.phantom_text.texts if not (isinstance(text, PhantomText) and not text.text)]

    def final_text(self) -> str:
        return self.layout.text

    def is_last_char(self, final_col: int) -> bool:
        return final_col >= self.layout.text_len_without_rn

    def text_of_final_col(self, final_col: int) -> Text:
        return self.phantom_text.text_of_final_col(final_col)

    def cursor_position_of_final_col(self, final_col: int) -> tuple[int, CursorAffinity]:
        return self.phantom_text.cursor_position_of_final_col(final_col, self.len() - self.len_without_rn())

    def final_col_of_origin_merge_col(self, merge_col: int) -> int | None:
        return self.phantom_text.final_col_of_origin_merge_col(merge_col)

    def cursor_final_col_of_merge_col(self, merge_col: int, affinity: CursorAffinity) -> int:
        return self.phantom_text.cursor_final_col_of_origin_merge_col(merge_col, affinity)

    def hit_point(self, point: Point) -> HitPoint:
        return self.layout.hit_point(point)

    def hit_position_aff(self, offset: int, affinity: CursorAffinity) -> Point:
        """Return the caret point of buffer ``offset`` on this line."""
        final_col = self.cursor_final_col_of_merge_col(offset - self.origin_interval.start, affinity)
        return self.layout.hit_position(final_col)

    def line_scope(self, start_col: int, end_col: int, line_height: float, y: float, base: Point) -> Rect:
        """Rectangle covering final columns ``[start_col, end_col)`` at row ``y``."""
        hit0 = self.layout.hit_position(start_col)
        hit1 = self.layout.hit_position(end_col)
        origin = Point(hit0.x, y + base.y)
        return Rect.from_origin_size(origin, Size(hit1.x - hit0.x, line_height))

    def line_number(self, show_relative: bool = False, current_number: int | None = None) -> int:
        line_number = self.origin_line_start + 1
        if show_relative and current_number is not None and line_number != current_number:
            return abs(line_number - current_number)
        return line_number

    def size_width(self) -> Size:
        return self.layout.size()

    def contain_buffer_offset(self, buffer_offset: int) -> bool:
        if self.last_line:
            return self.origin_interval.start <= buffer_offset
        return self.origin_interval.contains(buffer_offset)

    def first_no_whitespace(self) -> int | None:
        for index, ch in enumerate(self.layout.text):
            if not ch.isspace():
                return index
        return None


def check_origin_lines(origin_lines: list[OriginLine], buffer_len: int) -> list[str]:
    """Return the running-sum problems of ``origin_lines``; empty when sound."""
    problems: list[str] = []
    offset_line = 0
    for line, origin_line in enumerate(origin_lines):
        if origin_line.line_index != line:
            problems.append(f"origin_line.line_index={origin_line.line_index}, but should be {line}")
        if origin_line.start_offset != offset_line:
            problems.append(f"origin_line.start_offset={origin_line.start_offset}, but should be {offset_line}")
        if origin_line.phantom.line != origin_line.line_index:
            problems.append(f"origin_line {line} phantom line is {origin_line.phantom.line}")
        offset_line += origin_line.len
    if offset_line != buffer_len:
        problems.append(f"buffer len={buffer_len}, but origin lines add up to {offset_line}")
    return problems


def check_origin_folded_lines(origin_folded_lines: list[OriginFoldedLine], buffer_len: int) -> list[str]:
    problems: list[str] = []
    line = 0
    offset_line = 0
    for line_index, folded in enumerate(origin_folded_lines):
        if folded.line_index != line_index:
            problems.append(f"folded line_index={folded.line_index}, but should be {line_index}")
        if folded.origin_line_start != line:
            problems.append(f"folded line {line_index} origin_line_start={folded.origin_line_start}, but should be {line}")
        if folded.phantom_text.line != line:
            problems.append(f"folded line {line_index} phantom line={folded.phantom_text.line}, but should be {line}")
        if folded.phantom_text.last_line != folded.origin_line_end:
            problems.append(
                f"folded line {line_index} phantom last_line={folded.phantom_text.last_line}, "
                f"but should be {folded.origin_line_end}"
            )
        if folded.origin_interval.start != offset_line:
            problems.append(
                f"folded line {line_index} origin_interval.start={folded.origin_interval.start}, "
                f"but should be {offset_line}"
            )
        if folded.origin_interval.start != folded.phantom_text.offset_of_line:
            problems.append(
                f"folded line {line_index} origin_interval.start={folded.origin_interval.start}, "
                f"but phantom offset is {folded.phantom_text.offset_of_line}"
            )
        offset_line += folded.origin_interval.size()
        line = folded.origin_line_end + 1
    if offset_line != buffer_len:
        problems.append(f"buffer len={buffer_len}, but folded lines add up to {offset_line}")
    return problems


class DocLines:
    """Line model of one document, rebuilt incrementally on every edit."""

    def __init__(
        self,
        buffer: TextBuffer,
        config: EngineConfig | None = None,
        shaping: ShapingContext | None = None,
    ) -> None:
        self.buffer = buffer
        self.config = config or EngineConfig()
        self.shaping = shaping or ShapingContext(
            char_width=self.config.char_width,
            line_height=self.config.line_height,
            tab_stop=self.config.tab_stop,
        )
        self.folding_ranges = FoldingRanges()
        self.inlay_hints: list[PlacedHint] = []
        self.semantic_styles: list[StyleSpan] | None = None
        self.syntax_styles: list[StyleSpan] = []
        self.diagnostics: list[Diagnostic] = []
        self.preedit: PreeditData | None = None
        self.completion_lens: CompletionLens | None = None
        self.inline_completion: CompletionLens | None = None
        self.origin_lines: list[OriginLine] = []
        self.origin_folded_lines: list[OriginFoldedLine] = []
        self.phase = BuildPhase.IDLE
        self.version = 0
        self._max_width = 0.0
        self.update_lines()

    @property
    def line_height(self) -> int:
        return self.config.line_height

    # Rebuild

    def update_lines(self, lines_delta: OriginLinesDelta | None = None) -> int:
        """Rebuild both line vectors; ``None`` rebuilds everything."""
        delta = lines_delta or OriginLinesDelta()
        folded = self.folding_ranges.get_all_folded_range()
        try:
            self.phase = BuildPhase.REBUILDING_LINES
            origin_lines, trailing_offset = self._build_origin_lines(delta, folded)
            self.phase = BuildPhase.REBUILDING_FOLDED_LINES
            folded_lines = self._build_folded_lines(delta, trailing_offset, origin_lines)
        finally:
            self.phase = BuildPhase.IDLE
        self.origin_lines = origin_lines
        self.origin_folded_lines = folded_lines
        self._max_width = max((line.size_width().width for line in folded_lines), default=0.0)
        self.version += 1
        logger.debug(
            "rebuilt %d origin / %d folded lines (%s), version %d",
            len(origin_lines),
            len(folded_lines),
            "full" if delta.is_full_rebuild() else "incremental",
            self.version,
        )
        return self.version

    def _build_origin_lines(
        self, delta: OriginLinesDelta, folded: FoldedRanges
    ) -> tuple[list[OriginLine], Offset | None]:
        lines: list[OriginLine] = []
        last_line = self.buffer.last_line()
        leading = delta.copy_line_start
        if leading is not None:
            for line in range(leading.line_offset.adjust(leading.copy_line.start)):
                lines.append(self._init_origin_line(line, folded))
            lines.extend(
                line.adjust(leading.offset, leading.line_offset)
                for line in self.origin_lines[leading.copy_line.start : leading.copy_line.end]
            )
        for line in range(delta.recompute_line_start, last_line + 1):
            origin_line = self._init_origin_line(line, folded)
            lines.append(origin_line)
            if origin_line.start_offset + origin_line.len >= delta.recompute_offset_end:
                break
        trailing = delta.copy_line_end
        trailing_offset = None
        if trailing is not None:
            trailing_offset = Offset.new(trailing.copy_line.start, len(lines))
            lines.extend(
                line.adjust(trailing.offset, trailing_offset)
                for line in self.origin_lines[trailing.copy_line.start : trailing.copy_line.end]
            )
            if trailing.recompute_first_or_last_line:
                lines.append(self._init_origin_line(last_line, folded))
        return lines, trailing_offset

    def _reusable_folded_lines(
        self, copy_line: Interval, offset: Offset, line_offset: Offset
    ) -> dict[int, tuple[OriginFoldedLine, Offset, Offset]]:
        if copy_line.is_empty():
            return {}
        return {
            line_offset.adjust(folded.origin_line_start): (folded, offset, line_offset)
            for folded in self.origin_folded_lines
            if copy_line.start <= folded.origin_line_start and folded.origin_line_end < copy_line.end
        }

    def _build_folded_lines(
        self,
        delta: OriginLinesDelta,
        trailing_offset: Offset | None,
        origin_lines: list[OriginLine],
    ) -> list[OriginFoldedLine]:
        reuse: dict[int, tuple[OriginFoldedLine, Offset, Offset]] = {}
        leading = delta.copy_line_start
        if leading is not None:
            reuse.update(self._reusable_folded_lines(leading.copy_line, leading.offset, leading.line_offset))
        trailing = delta.copy_line_end
        if trailing is not None and trailing_offset is not None:
            reuse.update(self._reusable_folded_lines(trailing.copy_line, trailing.offset, trailing_offset))

        folded_lines: list[OriginFoldedLine] = []
        last_line = self.buffer.last_line()
        line = 0
        while line <= last_line:
            cached = reuse.get(line)
            if cached is not None:
                previous, offset, line_offset = cached
                folded = previous.adjust(offset, line_offset, len(folded_lines), last_line)
            else:
                folded = self._init_folded_line(line, origin_lines, len(folded_lines))
            folded_lines.append(folded)
            line = folded.origin_line_end + 1
        return folded_lines

    def _hints_of_line(self, start_offset: int, end_offset: int) -> list[PlacedHint]:
        index = bisect_left(self.inlay_hints, start_offset, key=lambda item: item.offset)
        hints: list[PlacedHint] = []
        for item in self.inlay_hints[index:]:
            if item.offset > end_offset:
                break
            hints.append(item)
        return hints

    def _phantoms_of_line(
        self, line: int, start_offset: int, end_offset: int, folded: FoldedRanges
    ) -> list[PhantomText]:
        config = self.config
        phantoms: list[PhantomText] = []
        if config.enable_inlay_hints:
            phantoms.extend(
                inlay_hint_phantoms(
                    self._hints_of_line(start_offset, end_offset),
                    line,
                    start_offset,
                    end_offset,
                    self.buffer.len(),
                    fg=config.inlay_hint_fg,
                    bg=config.inlay_hint_bg,
                    font_size=config.inlay_hint_font_size,
                )
            )
        lenses = []
        if config.enable_completion_lens:
            lenses.append(self.completion_lens)
        if config.enable_inline_completion:
            lenses.append(self.inline_completion)
        for lens in lenses:
            phantom = completion_phantom(lens, line, folded, config.completion_lens_fg, config.inlay_hint_font_size)
            if phantom is not None:
                phantoms.append(phantom)
        phantom = preedit_phantom(self.preedit, self.buffer, line, config.ime_underline)
        if phantom is not None:
            phantoms.append(phantom)
        phantoms.extend(
            folded.phantom_texts(self.buffer, line, config.inlay_hint_font_size, config.phantom_fg, config.inlay_hint_bg)
        )
        return phantoms

    def _init_origin_line(self, line: int, folded: FoldedRanges) -> OriginLine:
        start_offset = self.buffer.offset_of_line(line)
        end_offset = self.buffer.offset_of_line(line + 1)
        content = self.buffer.line_content(line)
        phantom = PhantomTextLine.new(
            line, start_offset, content, self._phantoms_of_line(line, start_offset, end_offset, folded)
        )
        spans = self.semantic_styles if self.semantic_styles is not None else self.syntax_styles
        semantic = line_semantic_styles(spans, line, start_offset, end_offset)
        diagnostic: list[LineStyle] = []
        if self.config.enable_error_lens:
            diagnostic = line_diagnostic_styles(
                self.diagnostics, line, start_offset, end_offset, self.config.diagnostic_colors()
            )
        return OriginLine(line, start_offset, len(content), phantom, semantic, diagnostic)

    def _init_folded_line(
        self,
        line: int,
        origin_lines: Sequence[OriginLine] | Mapping[int, OriginLine],
        line_index: int,
    ) -> OriginFoldedLine:
        current = origin_lines[line]
        phantom = PhantomTextMultiLine.from_line(current.phantom)
        semantic = list(current.semantic_styles)
        diagnostic = list(current.diagnostic_styles)
        while True:
            next_line = current.phantom.folded_line()
            if next_line is None:
                break
            if not current.line_index < next_line <= self.buffer.last_line():
                logger.error("fold on line %d continues on invalid line %d", current.line_index, next_line)
                break
            visual_shift = phantom.origin_text_len
            current = origin_lines[next_line]
            phantom.merge(current.phantom)
            semantic.extend(current.shifted_semantic_styles(visual_shift))
            diagnostic.extend(current.shifted_diagnostic_styles(visual_shift))

        start, end = phantom.line, phantom.last_line
        buffer_last_line = self.buffer.last_line()
        layout = self.shaping.shape(phantom.final_text(), self._attr_spans(phantom, semantic, diagnostic))
        return OriginFoldedLine(
            line_index=line_index,
            origin_line_start=start,
            origin_line_end=end,
            origin_interval=Interval(self.buffer.offset_of_line(start), self.buffer.offset_of_line(end + 1)),
            last_line=start <= buffer_last_line <= end,
            phantom_text=phantom,
            layout=layout,
            semantic_styles=semantic,
            diagnostic_styles=diagnostic,
        )

    def _final_range(self, phantom: PhantomTextMultiLine, style: LineStyle) -> tuple[int, int] | None:
        if style.end_of_buffer <= style.start_of_buffer:
            return None
        start = phantom.final_col_of_origin_merge_col(style.start_of_buffer - phantom.offset_of_line)
        last = phantom.final_col_of_origin_merge_col(style.end_of_buffer - 1 - phantom.offset_of_line)
        if start is None or last is None or last < start:
            return None
        return start, last + 1

    def _attr_spans(
        self,
        phantom: PhantomTextMultiLine,
        semantic: list[LineStyle],
        diagnostic: list[LineStyle],
    ) -> list[AttrSpan]:
        spans: list[AttrSpan] = []
        for style in semantic:
            final_range = self._final_range(phantom, style)
            if final_range is not None:
                spans.append(AttrSpan(final_range[0], final_range[1], fg=style.fg_color))
        for text in phantom.iter_phantom_text():
            if text.text:
                spans.append(
                    AttrSpan(
                        text.final_col,
                        text.next_final_col(),
                        fg=text.fg or self.config.phantom_fg,
                        bg=text.bg,
                        underline=text.under_line,
                        font_size=text.font_size,
                    )
                )
        for style in diagnostic:
            final_range = self._final_range(phantom, style)
            if final_range is not None:
                spans.append(AttrSpan(final_range[0], final_range[1], underline=style.fg_color))
        return spans

    # Editing

    def _fold_edges(self) -> dict[int, FoldedRanges]:
        """Folded ranges of the current buffer, keyed by their start and end lines."""
        edges: dict[int, FoldedRanges] = {}
        for item in self.folding_ranges.get_all_folded_range():
            for line in {item.start.line, item.end.line}:
                edges.setdefault(line, FoldedRanges()).ranges.append(item)
        return edges

    def _fold_phantoms_of_line(self, edges: dict[int, FoldedRanges], line: int) -> list[PhantomText]:
        ranges = edges.get(line)
        if ranges is None:
            return []
        config = self.config
        return ranges.phantom_texts(self.buffer, line, config.inlay_hint_font_size, config.phantom_fg, config.inlay_hint_bg)

    def _clip_to_folds(self, delta: OriginLinesDelta) -> OriginLinesDelta:
        """Shrink copy blocks so every reused line keeps the fold fragments it would get now.

        A line is not reused when a fold crosses the block edge, before or
        after the edit, or when its fold fragments differ from the ones the
        current folded ranges give it.
        """
        edges = self._fold_edges()
        leading = delta.copy_line_start
        recompute_line_start = delta.recompute_line_start
        if leading is not None:
            block = leading.copy_line
            limit = block.end
            new_end = leading.line_offset.adjust(block.end)
            for line in self.origin_lines[block.start : block.end]:
                next_line = line.phantom.folded_line()
                fresh = self._fold_phantoms_of_line(edges, leading.line_offset.adjust(line.line_index))
                crosses = (next_line is not None and next_line >= block.end) or any(
                    phantom.next_line() is not None and phantom.next_line() >= new_end for phantom in fresh
                )
                if crosses or _fold_signature(line.phantom.phantoms()) != _fold_signature(fresh):
                    limit = line.line_index
                    break
            if limit <= block.start:
                leading = None
                recompute_line_start = 0
            elif limit < block.end:
                leading = replace(leading, copy_line=Interval(block.start, limit))
                recompute_line_start = leading.line_offset.adjust(limit)

        trailing = delta.copy_line_end
        recompute_offset_end = delta.recompute_offset_end
        if trailing is not None:
            block = trailing.copy_line
            first = block.start
            # Lines after the edit all move by the same number of lines.
            line_shift = self.buffer.num_lines() - len(self.origin_lines)
            new_start = block.start + line_shift
            for line in self.origin_lines[block.start : block.end]:
                old = [phantom for phantom in line.phantom.phantoms() if phantom.fold is not None]
                fresh = self._fold_phantoms_of_line(edges, line.line_index + line_shift)
                stale = (
                    any(phantom.fold.start_position.line < block.start for phantom in old)
                    or any(phantom.fold.start_position.line < new_start for phantom in fresh)
                    or _fold_signature(old) != _fold_signature(fresh)
                )
                if stale:
                    first = line.line_index + 1
            if first >= block.end:
                trailing = None
                recompute_offset_end = RECOMPUTE_TO_END
            elif first > block.start:
                recompute_offset_end += (
                    self.origin_lines[first].start_offset - self.origin_lines[block.start].start_offset
                )
                trailing = replace(trailing, copy_line=Interval(first, block.end))

        return OriginLinesDelta(
            copy_line_start=leading,
            recompute_line_start=recompute_line_start,
            recompute_offset_end=recompute_offset_end,
            copy_line_end=trailing,
        )

    def _move_lens(self, lens: CompletionLens | None, delta: Delta, old_buffer: TextBuffer) -> CompletionLens | None:
        if lens is None:
            return None
        offset = transform_offset(delta, old_buffer.offset_of_line_col(lens.line, lens.col), after=True)
        line, col = self.buffer.offset_to_line_col(offset)
        return replace(lens, line=line, col=col)

    def _apply_delta_to_overlays(self, delta: Delta, old_buffer: TextBuffer) -> None:
        self.folding_ranges.apply_delta(delta, old_buffer, self.buffer)
        self.inlay_hints = move_hints(self.inlay_hints, delta, self.buffer)
        if self.semantic_styles is not None:
            self.semantic_styles = move_spans(self.semantic_styles, delta)
        self.syntax_styles = move_spans(self.syntax_styles, delta)
        self.diagnostics = move_diagnostics(self.diagnostics, delta)
        if self.preedit is not None:
            self.preedit = replace(self.preedit, offset=transform_offset(delta, self.preedit.offset, after=True))
        try:
            self.completion_lens = self._move_lens(self.completion_lens, delta, old_buffer)
            self.inline_completion = self._move_lens(self.inline_completion, delta, old_buffer)
        except LineConversionError as exc:
            logger.warning("dropping completion lens after edit: %s", exc)
            self.completion_lens = None
            self.inline_completion = None

    def buffer_edit(self, start: int, end: int, text: str) -> int:
        """Replace ``[start, end)`` with ``text`` and update the lines."""
        old_buffer = copy.copy(self.buffer)
        delta = self.buffer.edit(start, end, text)
        self._apply_delta_to_overlays(delta, old_buffer)
        lines_delta: OriginLinesDelta | None = None
        self.phase = BuildPhase.RESOLVING_DELTA
        try:
            lines_delta = self._clip_to_folds(resolve_delta(old_buffer, delta))
        except LineConversionError as exc:
            logger.error("could not resolve edit delta, rebuilding all lines: %s", exc)
        finally:
            self.phase = BuildPhase.IDLE
        if lines_delta is None:
            return self.update_lines()
        try:
            return self.update_lines(lines_delta)
        except (LineConversionError, ValueError) as exc:
            logger.error("incremental update failed, rebuilding all lines: %s", exc)
            return self.update_lines()

    def reload(self, text: str) -> int:
        self.buffer.reload(text)
        self.folding_ranges = FoldingRanges()
        self.inlay_hints = []
        self.semantic_styles = None
        self.syntax_styles = []
        self.diagnostics = []
        self.preedit = None
        self.completion_lens = None
        self.inline_completion = None
        return self.update_lines()

    # Overlays

    def set_inlay_hints(self, hints: Iterable[InlayHint]) -> int:
        self.inlay_hints = place_hints(hints, self.buffer)
        return self.update_lines()

    def set_semantic_styles(self, spans: Iterable[StyleSpan] | None) -> int:
        """Use LSP semantic spans instead of syntax spans; ``None`` reverts."""
        self.semantic_styles = sort_spans(spans) if spans is not None else None
        return self.update_lines()

    def set_syntax_styles(self, spans: Iterable[StyleSpan]) -> int:
        self.syntax_styles = sort_spans(spans)
        return self.update_lines()

    def highlight_syntax(self, filename: str, style_name: str | None = None) -> int:
        spans = syntax_style_spans(self.buffer.text(), filename, style_name or self.config.style)
        return self.set_syntax_styles(spans)

    def set_diagnostics(self, diagnostics: Iterable[Diagnostic]) -> int:
        self.diagnostics = list(diagnostics)
        return self.update_lines()

    def set_preedit(self, preedit: PreeditData | None) -> int:
        self.preedit = preedit
        return self.update_lines()

    def set_completion_lens(self, lens: CompletionLens | None) -> int:
        self.completion_lens = lens
        return self.update_lines()

    def set_inline_completion(self, lens: CompletionLens | None) -> int:
        self.inline_completion = lens
        return self.update_lines()

    def update_folding_ranges(self, action: UpdateFolding) -> int:
        apply_folding_update(self.folding_ranges, action, self.buffer)
        return self.update_lines()

    def update_config(self, config: EngineConfig) -> int:
        metrics = (config.char_width, config.line_height, config.tab_stop)
        if metrics != (self.config.char_width, self.config.line_height, self.config.tab_stop):
            self.shaping = ShapingContext(config.char_width, config.line_height, config.tab_stop)
        self.config = config
        return self.update_lines()

    # Queries

    def check_lines(self, strict: bool = False) -> bool:
        buffer_len = self.buffer.len()
        problems = check_origin_lines(self.origin_lines, buffer_len)
        problems += check_origin_folded_lines(self.origin_folded_lines, buffer_len)
        for problem in problems:
            logger.error("inconsistent lines: %s", problem)
        if problems and strict:
            raise ConsistencyCheckFailure(problems)
        return not problems

    def folded_line_of_origin_line(self, line: int) -> OriginFoldedLine:
        lines = self.origin_folded_lines
        index = bisect_left(lines, line, key=lambda folded: folded.origin_line_end)
        if index >= len(lines) or lines[index].origin_line_start > line:
            raise LineConversionError(f"no folded line shows origin line {line}", line=line, limit=len(lines))
        return lines[index]

    def folded_line_of_buffer_offset(self, offset: int) -> OriginFoldedLine:
        return self.folded_line_of_origin_line(self.buffer.line_of_offset(offset))

    def folded_line_and_final_col_of_offset(
        self, offset: int, affinity: CursorAffinity = CursorAffinity.BACKWARD
    ) -> tuple[OriginFoldedLine, int]:
        folded = self.folded_line_of_buffer_offset(offset)
        merge_col = offset - folded.origin_interval.start
        return folded, folded.cursor_final_col_of_merge_col(merge_col, affinity)

    def cursor_position_of_buffer_offset(
        self, offset: int, affinity: CursorAffinity = CursorAffinity.BACKWARD
    ) -> Point:
        """Document point of the caret at ``offset``, top of its row."""
        folded, final_col = self.folded_line_and_final_col_of_offset(offset, affinity)
        point = folded.layout.hit_position(final_col)
        return Point(point.x, float(folded.line_index * self.line_height))

    def origin_folded_line_of_point(self, y: float) -> OriginFoldedLine | None:
        if y < 0:
            return None
        index = int(y // self.line_height)
        if index >= len(self.origin_folded_lines):
            return None
        return self.origin_folded_lines[index]

    def unfolded_line(self, line: int, line_index: int) -> OriginFoldedLine:
        """Compose origin ``line`` on its own row, ignoring every fold."""
        origin_line = self._init_origin_line(line, FoldedRanges())
        return self._init_folded_line(line, {line: origin_line}, line_index)

    def origin_folded_line_of_position(self, position: Position) -> OriginFoldedLine:
        return self.folded_line_of_origin_line(position.line)

    def max_width(self) -> float:
        return self._max_width

    # Cursor movement

    def move_right(self, offset: int, affinity: CursorAffinity) -> tuple[int, CursorAffinity] | None:
        """Step the caret one position right; ``None`` at the end of the buffer.

        A caret before phantom text first moves after it without changing
        ``offset``. A fold placeholder is stepped over as a whole.
        """
        if offset >= self.buffer.len():
            return None
        folded = self.folded_line_of_buffer_offset(offset)
        start = folded.origin_interval.start
        merge_col = offset - start
        texts = folded.caret_texts()
        for index, text in enumerate(texts):
            if isinstance(text, PhantomText):
                if not text.origin_merge_col <= merge_col <= text.next_origin_merge_col():
                    continue
                if affinity is CursorAffinity.BACKWARD:
                    return offset, CursorAffinity.FORWARD
                for following in texts[index + 1 :]:
                    if isinstance(following, PhantomText):
                        if following.origin_merge_col > merge_col:
                            return start + following.origin_merge_col, CursorAffinity.FORWARD
                    elif isinstance(following, OriginText):
                        if folded.is_last_char(following.final_col.start):
                            break
                        return start + following.origin_merge_col.start + 1, CursorAffinity.BACKWARD
                return folded.origin_interval.end, CursorAffinity.BACKWARD
            if isinstance(text, OriginText) and _origin_contains(text, merge_col, folded.last_line):
                final_col = text.final_col.start + merge_col - text.origin_merge_col.start
                if folded.is_last_char(final_col):
                    return folded.origin_interval.end, CursorAffinity.BACKWARD
                return offset + 1, CursorAffinity.BACKWARD
        raise LayoutError(f"offset {offset} matched no segment of folded line {folded.line_index}")

    def move_left(self, offset: int, affinity: CursorAffinity) -> tuple[int, CursorAffinity] | None:
        """Step the caret one position left; ``None`` at the start of the buffer."""
        if offset <= 0:
            return None
        folded = self.folded_line_of_buffer_offset(offset)
        start = folded.origin_interval.start
        merge_col = offset - start
        previous: Text | None = None
        for text in folded.caret_texts():
            if isinstance(text, PhantomText):
                if text.origin_merge_col <= merge_col <= text.next_origin_merge_col():
                    if affinity is CursorAffinity.FORWARD:
                        return offset, CursorAffinity.BACKWARD
                    if isinstance(previous, PhantomText):
                        return start + previous.origin_merge_col, CursorAffinity.BACKWARD
                    if isinstance(previous, OriginText):
                        return start + previous.origin_merge_col.end - 1, CursorAffinity.BACKWARD
                    break
            elif isinstance(text, OriginText) and _origin_contains(text, merge_col, folded.last_line):
                if merge_col > text.origin_merge_col.start:
                    # One past a fragment's end is shown right after the fragment.
                    if merge_col == text.origin_merge_col.start + 1 and isinstance(previous, PhantomText):
                        return start + previous.origin_merge_col, CursorAffinity.FORWARD
                    return offset - 1, CursorAffinity.BACKWARD
                if isinstance(previous, PhantomText):
                    return start + previous.origin_merge_col, CursorAffinity.BACKWARD
                break
            elif isinstance(text, EmptyText):
                break
            previous = text

        if folded.line_index == 0:
            return None
        above = self.origin_folded_lines[folded.line_index - 1]
        last = (above.caret_texts() or above.text())[-1]
        if isinstance(last, PhantomText):
            return above.origin_interval.start + last.origin_merge_col, CursorAffinity.FORWARD
        if isinstance(last, OriginText):
            line_ending_len = above.len() - above.len_without_rn()
            return above.origin_interval.start + last.origin_merge_col.end - line_ending_len, CursorAffinity.BACKWARD
        return last.offset_of_line, CursorAffinity.BACKWARD

    def _offset_of_horiz(self, folded: OriginFoldedLine, horiz: int | ColPosition) -> tuple[int, CursorAffinity]:
        if horiz is ColPosition.START:
            return folded.cursor_position_of_final_col(0)
        if horiz is ColPosition.FIRST_NON_BLANK:
            final_col = folded.first_no_whitespace()
            if final_col is not None:
                return folded.cursor_position_of_final_col(final_col)
            horiz = ColPosition.END
        if horiz is ColPosition.END:
            line_ending_len = folded.len() - folded.len_without_rn()
            return folded.origin_interval.end - line_ending_len, CursorAffinity.FORWARD
        return folded.cursor_position_of_final_col(horiz)

    def _move_vertical(
        self, offset: int, affinity: CursorAffinity, horiz: int | ColPosition | None, step: int
    ) -> tuple[int, int | ColPosition, CursorAffinity] | None:
        folded, final_col = self.folded_line_and_final_col_of_offset(offset, affinity)
        if horiz is None:
            horiz = final_col
        index = folded.line_index + step
        if not 0 <= index < len(self.origin_folded_lines):
            return None
        new_offset, new_affinity = self._offset_of_horiz(self.origin_folded_lines[index], horiz)
        return new_offset, horiz, new_affinity

    def move_up(
        self, offset: int, affinity: CursorAffinity, horiz: int | ColPosition | None = None
    ) -> tuple[int, int | ColPosition, CursorAffinity] | None:
        """Move to the visual line above, keeping ``horiz`` (the caret's final column by default)."""
        return self._move_vertical(offset, affinity, horiz, -1)

    def move_down(
        self, offset: int, affinity: CursorAffinity, horiz: int | ColPosition | None = None
    ) -> tuple[int, int | ColPosition, CursorAffinity] | None:
        return self._move_vertical(offset, affinity, horiz, 1)

    def end_of_line(self, offset: int) -> tuple[int, ColPosition, CursorAffinity]:
        """Caret at the end of the visual line holding ``offset``, after any trailing phantom."""
        folded = self.folded_line_of_buffer_offset(offset)
        new_offset, affinity = self._offset_of_horiz(folded, ColPosition.END)
        return new_offset, ColPosition.END, affinity

    def first_non_blank(self, offset: int) -> tuple[int, ColPosition, CursorAffinity]:
        """Jump to the first non-blank character, or to the line start when already there."""
        folded = self.folded_line_of_buffer_offset(offset)
        line_start = folded.origin_interval.start
        non_blank = line_start
        while non_blank < folded.origin_interval.end and self.buffer.char_at_offset(non_blank) in (" ", "\t"):
            non_blank += 1
        if offset > non_blank or offset == line_start:
            return non_blank, ColPosition.FIRST_NON_BLANK, CursorAffinity.BACKWARD
        return line_start, ColPosition.START, CursorAffinity.BACKWARD
