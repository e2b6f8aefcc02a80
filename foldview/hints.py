"""Inlay hints, IME pre-edit text and completion lenses as phantom fragments."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace
from enum import IntEnum

from .buffer import Delta, TextBuffer
from .coords import CursorAffinity, Position
from .delta import transform_offset
from .errors import LineConversionError
from .folding import FoldedRanges
from .phantom import PhantomKind, PhantomText

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Location:
    uri: str
    start: Position
    end: Position

    @classmethod
    def from_lsp(cls, data: dict) -> Location:
        range_ = data.get("range") or {}
        return cls(
            uri=str(data.get("uri", "")),
            start=Position.from_lsp(range_.get("start") or {}),
            end=Position.from_lsp(range_.get("end") or {}),
        )


@dataclass(frozen=True)
class InlayHintLabelPart:
    value: str
    location: Location | None = None


class InlayHintKind(IntEnum):
    TYPE = 1
    PARAMETER = 2


@dataclass(frozen=True)
class InlayHint:
    position: Position
    label: str | tuple[InlayHintLabelPart, ...]
    kind: InlayHintKind | None = None

    @classmethod
    def from_lsp(cls, data: dict) -> InlayHint:
        raw_label = data.get("label", "")
        if isinstance(raw_label, list):
            label: str | tuple[InlayHintLabelPart, ...] = tuple(
                InlayHintLabelPart(
                    value=str(part.get("value", "")),
                    location=Location.from_lsp(part["location"]) if part.get("location") else None,
                )
                for part in raw_label
            )
        else:
            label = str(raw_label)
        kind = data.get("kind")
        return cls(
            position=Position.from_lsp(data.get("position") or {}),
            label=label,
            kind=InlayHintKind(kind) if kind in (1, 2) else None,
        )

    def label_text(self) -> str:
        if isinstance(self.label, str):
            return self.label
        return "".join(part.value for part in self.label)


def hint_text(hint: InlayHint) -> str:
    """Return the padded text shown for ``hint``.

    ``": i32"`` becomes ``": i32 "``, ``"name:"`` becomes ``" name: "``
    and anything else gets a single leading space.
    """
    label = hint.label_text()
    if label.startswith(":"):
        return f"{label} "
    if label.endswith(":"):
        return f" {label} "
    return f" {label}"


def location_of_hint_part(hint: InlayHint, phantom_offset: int) -> Location | None:
    """Return the location of the label part under ``phantom_offset``.

    ``phantom_offset`` is the column inside the displayed hint text.
    """
    if isinstance(hint.label, str):
        return None
    leading = 0 if hint.label_text().startswith(":") else 1
    column = phantom_offset - leading
    start = 0
    for part in hint.label:
        end = start + len(part.value)
        if start <= column < end:
            return part.location
        start = end
    return None


@dataclass(frozen=True)
class PlacedHint:
    """An inlay hint resolved to a buffer offset."""

    offset: int
    hint: InlayHint


def place_hints(hints: Iterable[InlayHint], buffer: TextBuffer) -> list[PlacedHint]:
    placed: list[PlacedHint] = []
    for hint in hints:
        try:
            offset = buffer.offset_of_line_col(hint.position.line, hint.position.character)
        except LineConversionError as exc:
            logger.warning("dropping inlay hint %r: %s", hint.label_text(), exc)
            continue
        placed.append(PlacedHint(offset, hint))
    placed.sort(key=lambda item: item.offset)
    return placed


def move_hints(hints: Iterable[PlacedHint], delta: Delta, buffer: TextBuffer) -> list[PlacedHint]:
    """Carry hints through an edit, refreshing their positions in ``buffer``."""
    moved: list[PlacedHint] = []
    for item in hints:
        offset = transform_offset(delta, item.offset, after=True)
        line, col = buffer.offset_to_line_col(offset)
        moved.append(PlacedHint(offset, replace(item.hint, position=Position(line, col))))
    return moved


def inlay_hint_phantoms(
    hints: Iterable[PlacedHint],
    line: int,
    start_offset: int,
    end_offset: int,
    buffer_len: int,
    fg: str | None = None,
    bg: str | None = None,
    font_size: int | None = None,
) -> list[PhantomText]:
    phantoms: list[PhantomText] = []
    for item in hints:
        inside = start_offset <= item.offset < end_offset
        at_end = item.offset == end_offset == buffer_len
        if not (inside or at_end):
            continue
        phantoms.append(
            PhantomText(
                kind=PhantomKind.INLAY_HINT,
                line=line,
                col=item.offset - start_offset,
                text=hint_text(item.hint),
                fg=fg,
                bg=bg,
                font_size=font_size,
            )
        )
    return phantoms


@dataclass(frozen=True)
class PreeditData:
    """Uncommitted IME composition text anchored at a buffer offset."""

    text: str
    offset: int


def preedit_phantom(
    preedit: PreeditData | None,
    buffer: TextBuffer,
    line: int,
    under_line: str | None = None,
) -> PhantomText | None:
    if preedit is None:
        return None
    try:
        ime_line, col = buffer.offset_to_line_col(preedit.offset)
    except LineConversionError as exc:
        logger.error("pre-edit offset %d: %s", preedit.offset, exc)
        return None
    if ime_line != line:
        return None
    return PhantomText(kind=PhantomKind.IME, line=line, col=col, text=preedit.text, under_line=under_line)


@dataclass(frozen=True)
class CompletionLens:
    text: str
    line: int
    col: int


def completion_phantom(
    lens: CompletionLens | None,
    line: int,
    folded_ranges: FoldedRanges,
    fg: str | None = None,
    font_size: int | None = None,
) -> PhantomText | None:
    """Return the completion fragment for ``line``; hidden inside folds."""
    if lens is None or lens.line != line:
        return None
    if folded_ranges.contain_position(Position(lens.line, lens.col)):
        return None
    return PhantomText(
        kind=PhantomKind.COMPLETION,
        line=line,
        col=lens.col,
        text=lens.text,
        affinity=CursorAffinity.BACKWARD,
        fg=fg,
        font_size=font_size,
    )
