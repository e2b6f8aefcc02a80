"""Public package surface for foldview.

Exports the line model and the screen queries most callers need, plus
``main`` for programmatic CLI invocation.
"""

from __future__ import annotations

from .buffer import TextBuffer
from .coords import CursorAffinity, Interval, Offset, Position
from .lines import ColPosition, DocLines, OriginFoldedLine, OriginLine
from .screen import (
    ClickKind,
    ClickResult,
    ScreenLines,
    buffer_offset_of_click,
    compute_screen_lines,
    normal_selection,
    result_of_left_click,
)


def main(*args, **kwargs):
    """Lazily import CLI entrypoint to keep package imports lightweight."""
    from .cli import main as _main

    return _main(*args, **kwargs)


__all__ = [
    "ClickKind",
    "ClickResult",
    "ColPosition",
    "CursorAffinity",
    "DocLines",
    "Interval",
    "Offset",
    "OriginFoldedLine",
    "OriginLine",
    "Position",
    "ScreenLines",
    "TextBuffer",
    "buffer_offset_of_click",
    "compute_screen_lines",
    "main",
    "normal_selection",
    "result_of_left_click",
]
