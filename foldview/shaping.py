"""Monospace shaping backend.

A shaped layout is the composed text of one folded line measured in cells:
tabs expand to the next stop, combining marks take no cells, East Asian
wide/fullwidth characters take two and line endings take none. Pixel
coordinates are cells times ``char_width``.

Layouts are memoized per ``(text, spans)`` in a small LRU cache owned by the
``ShapingContext`` that produced them.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
import unicodedata

from .geometry import Point, Size

SHAPED_LAYOUT_CACHE_MAX = 512
DEFAULT_TAB_STOP = 8


def cell_width(ch: str, col: int, tab_stop: int = DEFAULT_TAB_STOP) -> int:
    """Return the number of cells ``ch`` takes when drawn at cell ``col``."""
    if ch in ("\r", "\n"):
        return 0
    if ch == "\t":
        return tab_stop - (col % tab_stop)
    if unicodedata.combining(ch):
        return 0
    if unicodedata.east_asian_width(ch) in {"W", "F"}:
        return 2
    return 1


def line_ending_len(text: str) -> int:
    if text.endswith("\r\n"):
        return 2
    if text.endswith("\n"):
        return 1
    return 0


@dataclass(frozen=True)
class AttrSpan:
    """Styling for ``[start, end)`` of the composed text."""

    start: int
    end: int
    fg: str | None = None
    bg: str | None = None
    underline: str | None = None
    font_size: int | None = None


@dataclass(frozen=True)
class HitPoint:
    index: int
    is_inside: bool


@dataclass(frozen=True)
class GlyphRun:
    start: int
    end: int
    x: float
    width: float
    text: str
    fg: str | None = None
    bg: str | None = None
    underline: str | None = None


def _merge_attrs(spans: Sequence[AttrSpan], index: int) -> tuple[str | None, str | None, str | None]:
    fg = bg = underline = None
    for span in spans:
        if span.start <= index < span.end:
            fg = span.fg or fg
            bg = span.bg or bg
            underline = span.underline or underline
    return fg, bg, underline


class ShapedLayout:
    """Measured text of one visual line."""

    def __init__(
        self,
        text: str,
        spans: Sequence[AttrSpan],
        char_width: float,
        line_height: float,
        tab_stop: int,
    ) -> None:
        self.text = text
        self.spans = tuple(spans)
        self.char_width = char_width
        self.line_height = line_height
        # columns[i] is the first cell of text[i]; columns[len] is the total.
        columns = [0]
        col = 0
        for ch in text:
            col += cell_width(ch, col, tab_stop)
            columns.append(col)
        self.columns = columns
        self.text_len = len(text)
        self.text_len_without_rn = len(text) - line_ending_len(text)
        self._runs: list[GlyphRun] | None = None

    @property
    def cells(self) -> int:
        return self.columns[-1]

    def size(self) -> Size:
        return Size(self.cells * self.char_width, self.line_height)

    def hit_position(self, index: int) -> Point:
        """Return the top-left point of the caret before ``text[index]``."""
        index = max(0, min(index, self.text_len))
        return Point(self.columns[index] * self.char_width, 0.0)

    def hit_point(self, point: Point) -> HitPoint:
        """Return the caret index nearest to ``point`` and whether it hit text."""
        if point.x < 0:
            return HitPoint(0, False)
        cell = point.x / self.char_width if self.char_width else 0.0
        if cell >= self.columns[self.text_len_without_rn]:
            return HitPoint(self.text_len_without_rn, False)
        for index in range(self.text_len_without_rn):
            left = self.columns[index]
            right = self.columns[index + 1]
            if left <= cell < right:
                if cell - left >= (right - left) / 2:
                    return HitPoint(index + 1, True)
                return HitPoint(index, True)
        return HitPoint(self.text_len_without_rn, False)

    def glyph_index(self, point: Point) -> int | None:
        """Return the index of the character drawn under ``point.x``, if any."""
        if point.x < 0 or not self.char_width:
            return None
        cell = point.x / self.char_width
        for index in range(self.text_len_without_rn):
            if self.columns[index] <= cell < self.columns[index + 1]:
                return index
        return None

    def layout_runs(self) -> list[GlyphRun]:
        """Split the text into runs of uniform styling."""
        if self._runs is not None:
            return self._runs
        bounds = {0, self.text_len}
        for span in self.spans:
            for bound in (span.start, span.end):
                if 0 < bound < self.text_len:
                    bounds.add(bound)
        ordered = sorted(bounds)
        runs: list[GlyphRun] = []
        for start, end in zip(ordered, ordered[1:]):
            fg, bg, underline = _merge_attrs(self.spans, start)
            runs.append(
                GlyphRun(
                    start=start,
                    end=end,
                    x=self.columns[start] * self.char_width,
                    width=(self.columns[end] - self.columns[start]) * self.char_width,
                    text=self.text[start:end],
                    fg=fg,
                    bg=bg,
                    underline=underline,
                )
            )
        self._runs = runs
        return runs


class ShapingContext:
    """Creates shaped layouts and caches them."""

    def __init__(
        self,
        char_width: float = 8.0,
        line_height: float = 20.0,
        tab_stop: int = DEFAULT_TAB_STOP,
        cache_max: int = SHAPED_LAYOUT_CACHE_MAX,
    ) -> None:
        self.char_width = char_width
        self.line_height = line_height
        self.tab_stop = max(1, tab_stop)
        self.cache_max = cache_max
        self._cache: OrderedDict[tuple[str, tuple[AttrSpan, ...]], ShapedLayout] = OrderedDict()

    def _cache_get(self, key: tuple[str, tuple[AttrSpan, ...]]) -> ShapedLayout | None:
        layout = self._cache.get(key)
        if layout is not None:
            self._cache.move_to_end(key)
        return layout

    def _cache_put(self, key: tuple[str, tuple[AttrSpan, ...]], layout: ShapedLayout) -> None:
        self._cache[key] = layout
        self._cache.move_to_end(key)
        while len(self._cache) > self.cache_max:
            self._cache.popitem(last=False)

    def clear_cache(self) -> None:
        self._cache.clear()

    def shape(self, text: str, spans: Iterable[AttrSpan] = ()) -> ShapedLayout:
        key = (text, tuple(spans))
        layout = self._cache_get(key)
        if layout is None:
            layout = ShapedLayout(text, key[1], self.char_width, self.line_height, self.tab_stop)
            self._cache_put(key, layout)
        return layout
