"""Command-line front door for foldview.

Loads a file into a ``DocLines`` model, applies the folds and inlay hints
given on the command line, and prints the rows of a viewport. ``--click``
resolves pixel points the way an editor would on a mouse press.
"""

from __future__ import annotations

import argparse
import logging
import shutil
import sys
from pathlib import Path

from .buffer import TextBuffer
from .config import load_engine_config
from .coords import Position
from .folding import FoldingRange, FoldingRangeStatus, NewRanges
from .geometry import Point, Rect
from .hints import InlayHint
from .lines import DocLines
from .render import render_screen_lines
from .screen import buffer_offset_of_click, compute_screen_lines, result_of_left_click

logger = logging.getLogger(__name__)

FOLD_PLACEHOLDER = "..."


def _positive_int(value: str) -> int:
    """argparse type for positive integer values."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be >= 1")
    return parsed


def _non_negative_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from exc
    if parsed < 0:
        raise argparse.ArgumentTypeError("value must be >= 0")
    return parsed


def _fold_range(value: str) -> tuple[int, int]:
    """argparse type for ``START:END`` (1-based, inclusive) line pairs."""
    start, sep, end = value.partition(":")
    try:
        first, last = int(start), int(end)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid fold {value!r}, expected START:END") from exc
    if not sep or first <= 0 or last <= first:
        raise argparse.ArgumentTypeError(f"invalid fold {value!r}, expected 1 <= START < END")
    return first, last


def _hint(value: str) -> tuple[int, int, str]:
    """argparse type for ``LINE:COL:LABEL`` inlay hints (1-based)."""
    parts = value.split(":", 2)
    if len(parts) != 3:
        raise argparse.ArgumentTypeError(f"invalid hint {value!r}, expected LINE:COL:LABEL")
    try:
        line, col = int(parts[0]), int(parts[1])
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid hint {value!r}, expected LINE:COL:LABEL") from exc
    if line <= 0 or col <= 0:
        raise argparse.ArgumentTypeError(f"invalid hint {value!r}, LINE and COL start at 1")
    return line, col, parts[2]


def _point(value: str) -> Point:
    """argparse type for ``X,Y`` pixel points."""
    x, sep, y = value.partition(",")
    try:
        if not sep:
            raise ValueError(value)
        return Point(float(x), float(y))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid point {value!r}, expected X,Y") from exc


def read_text(path: Path) -> str:
    """Read text using tolerant encoding fallback order.

    Attempts UTF-8, UTF-8 with BOM, then latin-1; as a final fallback decodes
    raw bytes with UTF-8 replacement semantics.
    """
    for encoding in ("utf-8", "utf-8-sig", "latin-1"):
        try:
            return path.read_text(encoding=encoding)
        except UnicodeDecodeError:
            continue
    return path.read_bytes().decode("utf-8", errors="replace")


def _default_render_width() -> int:
    term = shutil.get_terminal_size((80, 24))
    return max(1, term.columns)


def _default_render_rows() -> int:
    term = shutil.get_terminal_size((80, 24))
    return max(1, term.lines - 1)


def folding_range_for_lines(buffer: TextBuffer, first: int, last: int) -> FoldingRange:
    """Fold 1-based lines ``first..=last``: from the end of ``first`` to the indent of ``last``."""
    start_line, end_line = first - 1, last - 1
    start_content = buffer.line_content(start_line).rstrip("\r\n")
    end_content = buffer.line_content(end_line)
    indent = len(end_content) - len(end_content.lstrip(" \t"))
    return FoldingRange(
        start=Position(start_line, len(start_content)),
        end=Position(end_line, min(indent, len(end_content.rstrip("\r\n")))),
        status=FoldingRangeStatus.FOLD,
        collapsed_text=FOLD_PLACEHOLDER,
    )


def build_doc(
    source: str,
    path: Path,
    style: str | None,
    folds: list[tuple[int, int]],
    hints: list[tuple[int, int, str]],
) -> DocLines:
    """Build the line model of ``source`` with folds, hints and syntax colors."""
    config = load_engine_config()
    doc = DocLines(TextBuffer(source), config)
    doc.highlight_syntax(path.name, style)
    last_line = doc.buffer.last_line()
    ranges: list[FoldingRange] = []
    for first, last in folds:
        if last - 1 > last_line:
            raise SystemExit(f"Fold {first}:{last} is past the last line ({last_line + 1}).")
        ranges.append(folding_range_for_lines(doc.buffer, first, last))
    if ranges:
        ranges.sort(key=lambda item: item.start)
        doc.update_folding_ranges(NewRanges(tuple(ranges)))
    if hints:
        doc.set_inlay_hints(
            InlayHint(position=Position(line - 1, col - 1), label=label) for line, col, label in hints
        )
    return doc


def render_file(
    path: Path,
    style: str | None = None,
    no_color: bool = False,
    max_cols: int = 80,
    top: int = 0,
    rows: int = 24,
    folds: list[tuple[int, int]] | None = None,
    hints: list[tuple[int, int, str]] | None = None,
    clicks: list[Point] | None = None,
) -> str:
    """Render rows ``top..top+rows`` of ``path`` and report any clicks."""
    doc = build_doc(read_text(path), path, style, folds or [], hints or [])
    logger.debug("rendering %s rows %d..%d of %d", path, top, top + rows, len(doc.origin_folded_lines))
    out: list[str] = []
    # Offsets are resolved before a placeholder click unfolds and rebuilds the lines.
    for point in clicks or ():
        offset, is_inside, affinity = buffer_offset_of_click(doc, point)
        result = result_of_left_click(doc, point)
        line, col = doc.buffer.offset_to_line_col(offset)
        out.append(
            f"click ({point.x:g}, {point.y:g}): {result.kind.value} "
            f"offset={offset} line={line + 1} col={col + 1} inside={is_inside} affinity={affinity.value}\n"
        )
    line_height = doc.line_height
    viewport = Rect(0.0, float(top * line_height), max_cols * doc.config.char_width, float((top + rows - 1) * line_height))
    screen_lines, display_items = compute_screen_lines(doc, viewport)
    body = render_screen_lines(screen_lines, display_items, max_cols, no_color, doc.config.tab_stop)
    return body + "".join(out)


def main() -> None:
    """Parse CLI arguments and print the rendered viewport of a file."""
    parser = argparse.ArgumentParser(
        description="Render a file through the foldview layout engine with folds and inlay hints."
    )
    parser.add_argument("path", help="Path to the file to render.")
    parser.add_argument(
        "--fold",
        type=_fold_range,
        action="append",
        default=[],
        metavar="START:END",
        help="Fold 1-based lines START..END (repeatable).",
    )
    parser.add_argument(
        "--hint",
        type=_hint,
        action="append",
        default=[],
        metavar="LINE:COL:LABEL",
        help="Show an inlay hint before 1-based LINE:COL (repeatable).",
    )
    parser.add_argument(
        "--click",
        type=_point,
        action="append",
        default=[],
        metavar="X,Y",
        help="Resolve a click at document pixel X,Y before rendering (repeatable).",
    )
    parser.add_argument("--style", default=None, help="Pygments style name (default: from config).")
    parser.add_argument("--no-color", action="store_true", help="Disable color output.")
    parser.add_argument(
        "--max-cols",
        type=_positive_int,
        default=None,
        help="Column width of the output (default: terminal width).",
    )
    parser.add_argument("--top", type=_non_negative_int, default=0, help="First visual row to render.")
    parser.add_argument(
        "--rows",
        type=_positive_int,
        default=None,
        help="Number of visual rows to render (default: terminal height).",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level for engine diagnostics on stderr.",
    )
    args = parser.parse_args()

    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    path = Path(args.path)
    if not path.is_file():
        raise SystemExit(f"Path not found: {path}")
    max_cols = args.max_cols if args.max_cols is not None else _default_render_width()
    rows = args.rows if args.rows is not None else _default_render_rows()
    sys.stdout.write(
        render_file(
            path,
            style=args.style,
            no_color=args.no_color,
            max_cols=max_cols,
            top=args.top,
            rows=rows,
            folds=args.fold,
            hints=args.hint,
            clicks=args.click,
        )
    )


if __name__ == "__main__":
    main()
