"""Per-line style records: semantic/syntax color spans and diagnostics.

Spans are stored in buffer offsets and sliced per origin line when a line is
built. A ``LineStyle`` keeps both the column inside its line and the buffer
offsets it came from, so it can be shifted when the line is reused.
"""

from __future__ import annotations

from bisect import bisect_left
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from enum import IntEnum
import logging

from pygments.lexers import TextLexer, get_lexer_for_filename
from pygments.styles import get_style_by_name
from pygments.util import ClassNotFound

from .buffer import Delta, TextBuffer
from .coords import Offset, Position
from .delta import transform_offset

logger = logging.getLogger(__name__)

DEFAULT_STYLE = "monokai"

_VALID_STYLES: set[str] = set()
_INVALID_STYLES: set[str] = set()


@dataclass(frozen=True)
class LineStyle:
    """A colored span clipped to one origin line.

    ``origin_line_offset_start`` is the column of the span inside the line;
    ``start_of_buffer``/``end_of_buffer`` are its buffer offsets.
    """

    origin_line: int
    origin_line_offset_start: int
    len: int
    start_of_buffer: int
    end_of_buffer: int
    fg_color: str | None

    def adjust(self, offset: Offset, line_offset: Offset) -> LineStyle:
        return replace(
            self,
            origin_line=line_offset.adjust(self.origin_line),
            start_of_buffer=offset.adjust(self.start_of_buffer),
            end_of_buffer=offset.adjust(self.end_of_buffer),
        )


@dataclass(frozen=True, order=True)
class StyleSpan:
    start: int
    end: int
    style: str = ""
    fg_color: str | None = None


def sort_spans(spans: Iterable[StyleSpan]) -> list[StyleSpan]:
    return sorted(span for span in spans if span.end > span.start)


def line_semantic_styles(
    spans: Sequence[StyleSpan],
    line: int,
    start_offset: int,
    end_offset: int,
) -> list[LineStyle]:
    """Return the spans of ``spans`` (sorted by start) that lie inside the line."""
    index = bisect_left(spans, start_offset, key=lambda span: span.start)
    styles: list[LineStyle] = []
    for span in spans[index:]:
        if span.start >= end_offset:
            break
        if start_offset <= span.start and span.end < end_offset:
            styles.append(
                LineStyle(
                    origin_line=line,
                    origin_line_offset_start=span.start - start_offset,
                    len=span.end - span.start,
                    start_of_buffer=span.start,
                    end_of_buffer=span.end,
                    fg_color=span.fg_color,
                )
            )
    return styles


def move_spans(spans: Iterable[StyleSpan], delta: Delta) -> list[StyleSpan]:
    """Carry spans through an edit, dropping the ones it deletes."""
    moved: list[StyleSpan] = []
    for span in spans:
        start = transform_offset(delta, span.start, after=True)
        end = transform_offset(delta, span.end, after=False)
        if end > start:
            moved.append(replace(span, start=start, end=end))
    return sorted(moved)


class DiagnosticSeverity(IntEnum):
    ERROR = 1
    WARNING = 2
    INFORMATION = 3
    HINT = 4


@dataclass(frozen=True)
class Diagnostic:
    start: int
    end: int
    severity: DiagnosticSeverity
    message: str = ""

    @classmethod
    def from_lsp(cls, data: dict, buffer: TextBuffer) -> Diagnostic:
        """Build a diagnostic from LSP JSON, resolving its range in ``buffer``."""
        range_ = data.get("range") or {}
        start = Position.from_lsp(range_.get("start") or {})
        end = Position.from_lsp(range_.get("end") or {})
        try:
            severity = DiagnosticSeverity(int(data.get("severity") or DiagnosticSeverity.ERROR))
        except ValueError:
            severity = DiagnosticSeverity.ERROR
        return cls(
            start=buffer.offset_of_line_col(start.line, start.character),
            end=buffer.offset_of_line_col(end.line, end.character),
            severity=severity,
            message=str(data.get("message", "")),
        )


def line_diagnostic_styles(
    diagnostics: Iterable[Diagnostic],
    line: int,
    start_offset: int,
    end_offset: int,
    colors: dict[DiagnosticSeverity, str],
) -> list[LineStyle]:
    styles: list[LineStyle] = []
    for diagnostic in diagnostics:
        if diagnostic.severity >= DiagnosticSeverity.HINT:
            continue
        if not (start_offset <= diagnostic.start and diagnostic.end <= end_offset):
            continue
        styles.append(
            LineStyle(
                origin_line=line,
                origin_line_offset_start=diagnostic.start - start_offset,
                len=diagnostic.end - diagnostic.start,
                start_of_buffer=diagnostic.start,
                end_of_buffer=diagnostic.end,
                fg_color=colors.get(diagnostic.severity),
            )
        )
    return styles


def move_diagnostics(diagnostics: Iterable[Diagnostic], delta: Delta) -> list[Diagnostic]:
    moved: list[Diagnostic] = []
    for diagnostic in diagnostics:
        start = transform_offset(delta, diagnostic.start, after=True)
        end = transform_offset(delta, diagnostic.end, after=False)
        if end >= start:
            moved.append(replace(diagnostic, start=start, end=end))
    return moved


def normalize_style(style: str) -> str:
    """Return ``style`` if Pygments knows it, else the default style."""
    if style in _VALID_STYLES:
        return style
    if style in _INVALID_STYLES:
        return DEFAULT_STYLE
    try:
        get_style_by_name(style)
    except ClassNotFound:
        _INVALID_STYLES.add(style)
        return DEFAULT_STYLE
    _VALID_STYLES.add(style)
    return style


def syntax_style_spans(source: str, filename: str, style_name: str = DEFAULT_STYLE) -> list[StyleSpan]:
    """Lex ``source`` with Pygments and return colored spans, one line at most each."""
    try:
        lexer = get_lexer_for_filename(filename, source)
    except ClassNotFound:
        lexer = TextLexer()
    style = get_style_by_name(normalize_style(style_name))

    spans: list[StyleSpan] = []
    for index, token_type, value in lexer.get_tokens_unprocessed(source):
        color = style.style_for_token(token_type).get("color")
        if not color or not value:
            continue
        fg = f"#{color}"
        start = index
        # Multi-line tokens are split so every span stays inside a line.
        for piece in value.split("\n"):
            if piece:
                spans.append(StyleSpan(start, start + len(piece), str(token_type), fg))
            start += len(piece) + 1
    logger.debug("lexed %s with %s into %d spans", filename, lexer.name, len(spans))
    return spans
