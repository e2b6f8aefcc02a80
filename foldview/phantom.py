"""Phantom text composition.

Phantom text is virtual text merged into the render stream without being part
of the buffer: fold placeholders, inlay hints, IME pre-edit text and
completion lenses. Composition turns one origin line plus its fragments into
an ordered list of ``Text`` segments, and a fold run of origin lines into one
``PhantomTextMultiLine``.

Every segment carries four coordinate spaces:

``col``
    column inside its own origin line.
``visual_merge_col``
    position in the concatenation of the origin lines shown on the folded
    line (hidden lines excluded).
``origin_merge_col``
    buffer offset relative to the folded line's first offset (hidden lines
    included).
``final_col``
    position in the composed string handed to shaping.

Segments are contiguous and non-overlapping in all four spaces at once.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field, replace
from enum import IntEnum

from .coords import CursorAffinity, Interval, Offset, Position
from .errors import PhantomCompositionError

logger = logging.getLogger(__name__)


class PhantomKind(IntEnum):
    """Fragment kinds; the value orders fragments anchored at the same column."""

    IME = 0
    PLACEHOLDER = 1
    COMPLETION = 2
    INLAY_HINT = 3
    DIAGNOSTIC = 4
    LINE_FOLDED_RANGE = 5


@dataclass(frozen=True)
class FoldedSpan:
    """Payload of a ``LINE_FOLDED_RANGE`` fragment.

    ``len`` counts the origin characters hidden within the anchor line and
    ``all_len`` the ones hidden up to the start of ``next_line``. Both are
    equal when the fold does not continue onto another line.
    """

    next_line: int | None
    len: int
    all_len: int
    start_position: Position


@dataclass(frozen=True)
class PhantomText:
    kind: PhantomKind
    line: int
    col: int
    text: str
    visual_merge_col: int | None = None
    origin_merge_col: int | None = None
    final_col: int | None = None
    fold: FoldedSpan | None = None
    # Completion text wants the caret before it whatever the caller asked.
    affinity: CursorAffinity | None = None
    fg: str | None = None
    bg: str | None = None
    under_line: str | None = None
    font_size: int | None = None

    def __post_init__(self) -> None:
        if (self.kind is PhantomKind.LINE_FOLDED_RANGE) != (self.fold is not None):
            raise ValueError("fold payload must be set exactly for LINE_FOLDED_RANGE")
        for name in ("visual_merge_col", "origin_merge_col", "final_col"):
            if getattr(self, name) is None:
                object.__setattr__(self, name, self.col)

    def is_fold(self) -> bool:
        return self.fold is not None

    def next_line(self) -> int | None:
        return self.fold.next_line if self.fold is not None else None

    def hidden_len(self) -> int:
        return self.fold.len if self.fold is not None else 0

    def hidden_all_len(self) -> int:
        return self.fold.all_len if self.fold is not None else 0

    def final_col_range(self) -> tuple[int, int] | None:
        """Inclusive ``(start, end)`` in final space, ``None`` for empty text."""
        if not self.text:
            return None
        return self.final_col, self.final_col + len(self.text) - 1

    def next_final_col(self) -> int:
        return self.final_col + len(self.text)

    def next_origin_col(self) -> int:
        return self.col + self.hidden_len()

    def next_visual_merge_col(self) -> int:
        return self.visual_merge_col + self.hidden_len()

    def next_origin_merge_col(self) -> int:
        return self.origin_merge_col + self.hidden_all_len()

    def shifted(self, visual: int, origin: int, final: int) -> PhantomText:
        return replace(
            self,
            visual_merge_col=self.visual_merge_col + visual,
            origin_merge_col=self.origin_merge_col + origin,
            final_col=self.final_col + final,
        )

    def adjust(self, line_offset: Offset) -> PhantomText:
        fold = self.fold
        if fold is not None:
            next_line = fold.next_line
            fold = replace(
                fold,
                next_line=line_offset.adjust(next_line) if next_line is not None else None,
                start_position=Position(
                    line_offset.adjust(fold.start_position.line),
                    fold.start_position.character,
                ),
            )
        return replace(self, line=line_offset.adjust(self.line), fold=fold)


@dataclass(frozen=True)
class OriginText:
    """A run of real buffer text, described in all four coordinate spaces."""

    line: int
    col: Interval
    visual_merge_col: Interval
    origin_merge_col: Interval
    final_col: Interval

    def origin_col_of_final_col(self, final_col: int) -> int:
        return final_col - self.final_col.start + self.col.start

    def shifted(self, visual: int, origin: int, final: int) -> OriginText:
        return replace(
            self,
            visual_merge_col=self.visual_merge_col.translate(visual),
            origin_merge_col=self.origin_merge_col.translate(origin),
            final_col=self.final_col.translate(final),
        )


@dataclass(frozen=True)
class EmptyText:
    """Stands for an origin line with no characters at all."""

    line: int
    offset_of_line: int


Text = OriginText | PhantomText | EmptyText


def _check_fragment(phantom: PhantomText, line: int, origin_last_end: int, origin_text_len: int) -> None:
    if phantom.line != line:
        raise PhantomCompositionError(f"fragment anchored on line {phantom.line}, composing line {line}")
    if phantom.col < origin_last_end:
        raise PhantomCompositionError(
            f"fragment at col {phantom.col} overlaps text hidden up to col {origin_last_end}"
        )
    if phantom.next_origin_col() > origin_text_len:
        raise PhantomCompositionError(
            f"fragment [{phantom.col}, {phantom.next_origin_col()}) exceeds line length {origin_text_len}"
        )


def _compose_line(
    line: int,
    offset_of_line: int,
    origin_text_len: int,
    phantoms: Iterable[PhantomText],
) -> tuple[list[Text], int]:
    ordered = sorted(phantoms, key=lambda item: (item.col, item.kind))
    texts: list[Text] = []
    offset = 0
    final_last_end = 0
    origin_last_end = 0
    for phantom in ordered:
        try:
            _check_fragment(phantom, line, origin_last_end, origin_text_len)
        except PhantomCompositionError as exc:
            logger.warning("dropping phantom %r on line %d: %s", phantom.text, line, exc)
            continue
        gap = phantom.col - origin_last_end
        if gap > 0:
            span = Interval(origin_last_end, phantom.col)
            texts.append(
                OriginText(
                    line=line,
                    col=span,
                    visual_merge_col=span,
                    origin_merge_col=span,
                    final_col=Interval(final_last_end, final_last_end + gap),
                )
            )
        placed = replace(
            phantom,
            visual_merge_col=phantom.col,
            origin_merge_col=phantom.col,
            final_col=phantom.col + offset,
        )
        offset += len(phantom.text) - phantom.hidden_len()
        final_last_end = placed.next_final_col()
        origin_last_end = placed.next_origin_col()
        texts.append(placed)

    tail = origin_text_len - origin_last_end
    if tail > 0:
        span = Interval(origin_last_end, origin_text_len)
        texts.append(
            OriginText(
                line=line,
                col=span,
                visual_merge_col=span,
                origin_merge_col=span,
                final_col=Interval(final_last_end, final_last_end + tail),
            )
        )
    elif origin_text_len == 0 and not texts:
        texts.append(EmptyText(line=line, offset_of_line=offset_of_line))
    return texts, origin_text_len + offset


@dataclass(frozen=True)
class PhantomTextLine:
    """Composition of a single origin line with its fragments."""

    line: int
    offset_of_line: int
    content: str
    final_text_len: int
    texts: tuple[Text, ...]

    @classmethod
    def new(
        cls,
        line: int,
        offset_of_line: int,
        content: str,
        phantoms: Iterable[PhantomText] = (),
    ) -> PhantomTextLine:
        texts, final_text_len = _compose_line(line, offset_of_line, len(content), phantoms)
        return cls(line, offset_of_line, content, final_text_len, tuple(texts))

    @property
    def origin_text_len(self) -> int:
        return len(self.content)

    def folded_line(self) -> int | None:
        """Return the line a trailing fold continues on, if any."""
        for text in reversed(self.texts):
            if isinstance(text, PhantomText) and text.is_fold():
                return text.next_line()
        return None

    def phantoms(self) -> Iterator[PhantomText]:
        return (text for text in self.texts if isinstance(text, PhantomText))

    def adjust(self, offset: Offset, line_offset: Offset) -> PhantomTextLine:
        return replace(
            self,
            line=line_offset.adjust(self.line),
            offset_of_line=offset.adjust(self.offset_of_line),
            texts=tuple(_adjust_text(text, offset, line_offset) for text in self.texts),
        )


def _adjust_text(text: Text, offset: Offset, line_offset: Offset) -> Text:
    if isinstance(text, PhantomText):
        return text.adjust(line_offset)
    if isinstance(text, OriginText):
        return replace(text, line=line_offset.adjust(text.line))
    return EmptyText(line_offset.adjust(text.line), offset.adjust(text.offset_of_line))


def _shift_text(text: Text, visual: int, origin: int, final: int) -> Text:
    if isinstance(text, EmptyText):
        return text
    return text.shifted(visual, origin, final)


def combine_with_text(texts: Iterable[Text], visual_text: str) -> str:
    """Build the final string from segments and the visual merged text."""
    out: list[str] = []
    for text in texts:
        if isinstance(text, PhantomText):
            out.append(text.text)
        elif isinstance(text, OriginText):
            out.append(visual_text[text.visual_merge_col.start : text.visual_merge_col.end])
    return "".join(out)


@dataclass
class PhantomTextMultiLine:
    """Composition of one visual line, possibly spanning a fold run.

    ``origin_text_len`` sums the shown origin lines, ``origin_span_len`` is
    the buffer span from ``offset_of_line`` to the end of ``last_line``.
    """

    line: int
    last_line: int
    offset_of_line: int
    origin_text_len: int
    origin_span_len: int
    final_text_len: int
    visual_text: str
    texts: list[Text] = field(default_factory=list)

    @classmethod
    def from_line(cls, line: PhantomTextLine) -> PhantomTextMultiLine:
        return cls(
            line=line.line,
            last_line=line.line,
            offset_of_line=line.offset_of_line,
            origin_text_len=line.origin_text_len,
            origin_span_len=line.origin_text_len,
            final_text_len=line.final_text_len,
            visual_text=line.content,
            texts=list(line.texts),
        )

    def merge(self, line: PhantomTextLine) -> None:
        """Append the next shown origin line of a fold run."""
        visual_shift = self.origin_text_len
        origin_shift = line.offset_of_line - self.offset_of_line
        final_shift = self.final_text_len
        self.texts.extend(_shift_text(text, visual_shift, origin_shift, final_shift) for text in line.texts)
        self.origin_text_len += line.origin_text_len
        self.origin_span_len = origin_shift + line.origin_text_len
        self.final_text_len += line.final_text_len
        self.visual_text += line.content
        self.last_line = line.line

    def final_text(self) -> str:
        return combine_with_text(self.texts, self.visual_text)

    def iter_phantom_text(self) -> Iterator[PhantomText]:
        return (text for text in self.texts if isinstance(text, PhantomText))

    def text_of_final_col(self, final_col: int) -> Text:
        """Return the segment under ``final_col``, clamped to the last character."""
        final_col = min(final_col, max(self.final_text_len, 1) - 1)
        for text in self.texts:
            if isinstance(text, PhantomText):
                if text.final_col <= final_col < text.next_final_col():
                    return text
            elif isinstance(text, OriginText):
                if text.final_col.contains(final_col):
                    return text
            else:
                return text
        return self.texts[-1]

    def cursor_position_of_final_col(
        self, final_col: int, line_ending_len: int = 0
    ) -> tuple[int, CursorAffinity]:
        """Map a final column to ``(buffer offset, affinity)``."""
        text = self.text_of_final_col(final_col)
        if isinstance(text, PhantomText):
            # Past the middle of the fragment the caret belongs after it.
            if final_col > text.final_col + len(text.text) // 2:
                return self.offset_of_line + text.origin_merge_col, CursorAffinity.FORWARD
            return self.offset_of_line + text.origin_merge_col, CursorAffinity.BACKWARD
        if isinstance(text, OriginText):
            final_col = min(final_col, max(self.final_text_len, 1) - 1)
            max_merge_col = max(self.origin_span_len - line_ending_len, 0)
            merge_col = final_col - text.final_col.start + text.origin_merge_col.start
            return self.offset_of_line + min(merge_col, max_merge_col), CursorAffinity.BACKWARD
        return text.offset_of_line, CursorAffinity.BACKWARD

    def final_col_of_origin_merge_col(self, merge_col: int) -> int | None:
        """Return the final column showing ``merge_col``; ``None`` when hidden."""
        origin_texts = [text for text in self.texts if isinstance(text, OriginText)]
        for text in origin_texts:
            if text.origin_merge_col.contains(merge_col):
                return text.final_col.start + merge_col - text.origin_merge_col.start
        for text in origin_texts:
            if text.origin_merge_col.end == merge_col:
                return text.final_col.end
        if merge_col == 0 and any(isinstance(text, EmptyText) for text in self.texts):
            return 0
        return None

    def cursor_final_col_of_origin_merge_col(self, merge_col: int, affinity: CursorAffinity) -> int:
        """Final column of a caret at ``merge_col``.

        At a fragment boundary, or inside a hidden span, ``BACKWARD`` puts the
        caret before the fragment and ``FORWARD`` after it.
        """
        matched = [
            text
            for text in self.iter_phantom_text()
            if text.origin_merge_col == merge_col
            or text.origin_merge_col < merge_col < text.next_origin_merge_col()
        ]
        if matched:
            first, last = matched[0], matched[-1]
            if (first.affinity or affinity) is CursorAffinity.BACKWARD:
                return first.final_col
            return last.next_final_col()
        mapped = self.final_col_of_origin_merge_col(merge_col)
        if mapped is not None:
            return mapped
        return self.final_text_len

    def adjust(self, offset: Offset, line_offset: Offset) -> PhantomTextMultiLine:
        return replace(
            self,
            line=line_offset.adjust(self.line),
            last_line=line_offset.adjust(self.last_line),
            offset_of_line=offset.adjust(self.offset_of_line),
            texts=[_adjust_text(text, offset, line_offset) for text in self.texts],
        )
