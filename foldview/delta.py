"""Delta resolution: from an edit's copy/insert ops to line-level reuse plans.

``resolve_delta_compute`` collapses the ops to an unaffected prefix, a changed
middle and an unaffected suffix. ``resolve_line_delta`` snaps those copy
ranges to whole lines of the *previous* buffer and describes how the kept
entries must be shifted into the new buffer's coordinates. A line that was
only partially preserved is never reused.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field

from .buffer import Copy, Delta, Insert, TextBuffer
from .coords import Interval, Offset

logger = logging.getLogger(__name__)

RECOMPUTE_TO_END = sys.maxsize


@dataclass(frozen=True)
class OffsetDelta:
    copy_start: Interval = field(default_factory=lambda: Interval(0, 0))
    internal_len: int = 0
    copy_end: Interval = field(default_factory=lambda: Interval(0, 0))


@dataclass(frozen=True)
class CopyLines:
    """Reuse ``copy_line`` of the previous model, shifted by the offsets."""

    recompute_first_or_last_line: bool
    offset: Offset
    line_offset: Offset
    copy_line: Interval


CopyDelta = CopyLines | None


@dataclass(frozen=True)
class OriginLinesDelta:
    copy_line_start: CopyDelta = None
    recompute_line_start: int = 0
    recompute_offset_end: int = RECOMPUTE_TO_END
    copy_line_end: CopyDelta = None

    def is_full_rebuild(self) -> bool:
        return (
            self.copy_line_start is None
            and self.copy_line_end is None
            and self.recompute_line_start == 0
            and self.recompute_offset_end == RECOMPUTE_TO_END
        )


def resolve_delta_compute(delta: Delta) -> OffsetDelta:
    """Collapse an op list into leading copy, inserted length and trailing copy."""
    ops = delta.ops
    if not ops:
        return OffsetDelta()
    if len(ops) == 1:
        only = ops[0]
        if isinstance(only, Copy):
            return OffsetDelta(copy_start=Interval(only.start, only.end))
        return OffsetDelta(internal_len=len(only.text))

    first, last = ops[0], ops[-1]
    copy_start = Interval(0, 0)
    copy_end = Interval(0, 0)
    internal_len = 0
    if isinstance(first, Copy):
        copy_start = Interval(first.start, first.end)
    else:
        internal_len += len(first.text)
    if isinstance(last, Copy):
        copy_end = Interval(last.start, last.end)
    else:
        internal_len += len(last.text)
    for op in ops[1:-1]:
        internal_len += len(op)
    return OffsetDelta(copy_start, internal_len, copy_end)


def _line_complete_by_start_offset(buffer: TextBuffer, offset: int) -> tuple[int, int, bool]:
    """Return ``(line, line_offset, recompute)`` snapping forward to a line start."""
    line = buffer.line_of_offset(offset)
    line_offset = buffer.offset_of_line(line)
    recompute = offset != line_offset
    if recompute:
        line += 1
        line_offset = buffer.offset_of_line(line)
    return line, line_offset, recompute


def _line_complete_by_end_offset(buffer: TextBuffer, offset: int) -> tuple[int, int, bool]:
    line = buffer.line_of_offset(offset)
    offset_line = buffer.offset_of_line(line)
    return line, offset_line, offset != offset_line


def resolve_line_delta(buffer: TextBuffer, offset_delta: OffsetDelta) -> OriginLinesDelta:
    """Convert offset copy ranges to line-aligned copy ranges.

    ``buffer`` must be the state *before* the edit. Lookups outside it raise
    :class:`~foldview.errors.LineConversionError` unchanged.
    """
    copy_line_start: CopyDelta = None
    offset_end = 0
    line_start = 0
    if not offset_delta.copy_start.is_empty():
        start_line, _, recompute_first_line = _line_complete_by_start_offset(
            buffer, offset_delta.copy_start.start
        )
        end_line, _, _ = _line_complete_by_end_offset(buffer, offset_delta.copy_start.end)
        offset_end += offset_delta.copy_start.size()
        if end_line > start_line:
            if recompute_first_line:
                line_start += 1
            copy_line_start = CopyLines(
                recompute_first_or_last_line=recompute_first_line,
                offset=Offset.minus(offset_delta.copy_start.start),
                line_offset=Offset.new(start_line, line_start),
                copy_line=Interval(start_line, end_line),
            )
            line_start += end_line - start_line
    offset_end += offset_delta.internal_len

    copy_line_end: CopyDelta = None
    if not offset_delta.copy_end.is_empty():
        # The line holding the edit point may have changed, so start one below it.
        line = buffer.line_of_offset(offset_delta.copy_end.start) + 1
        offset_of_line = buffer.offset_of_line(line)
        end_line, _, recompute_last_line = _line_complete_by_end_offset(
            buffer, offset_delta.copy_end.end
        )
        if end_line > line:
            copy_line = (
                Interval(line, end_line) if recompute_last_line else Interval(line, end_line + 1)
            )
            offset_end += offset_of_line - offset_delta.copy_end.start
            copy_line_end = CopyLines(
                recompute_first_or_last_line=recompute_last_line,
                offset=Offset.new(offset_of_line, offset_end),
                line_offset=Offset(),
                copy_line=copy_line,
            )
        else:
            offset_end = RECOMPUTE_TO_END
    else:
        offset_end = RECOMPUTE_TO_END

    return OriginLinesDelta(
        copy_line_start=copy_line_start,
        recompute_line_start=line_start,
        recompute_offset_end=offset_end,
        copy_line_end=copy_line_end,
    )


def resolve_delta(buffer: TextBuffer, delta: Delta) -> OriginLinesDelta:
    offset_delta = resolve_delta_compute(delta)
    logger.debug("resolved %s into %s", delta, offset_delta)
    return resolve_line_delta(buffer, offset_delta)


def transform_offset(delta: Delta, offset: int, after: bool = True) -> int:
    """Map ``offset`` of the previous buffer into the buffer after ``delta``.

    Text inserted exactly at ``offset`` lands before the result when ``after``
    is true. Offsets inside deleted text collapse onto the deletion point.
    """
    result = 0
    old_pos = 0
    for op in delta.ops:
        if isinstance(op, Copy):
            if offset < op.start:
                return result
            if offset < op.end or (offset == op.end and not after):
                return result + offset - op.start
            result += op.end - op.start
            old_pos = op.end
        elif isinstance(op, Insert):
            if offset <= old_pos and not after:
                return result
            result += len(op.text)
    return result
