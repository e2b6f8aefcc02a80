"""Terminal rendering of screen lines.

Each row is drawn as a line-number gutter, a fold marker column and the
glyph runs of its shaped layout, colored with 24-bit SGR sequences. Rows are
clipped to the terminal width with the same cell rules the shaper uses.
"""

from __future__ import annotations

import re

from .folding import FoldingDisplayItem, FoldingDisplayType
from .screen import DiffEmptyLine, ScreenLines
from .shaping import DEFAULT_TAB_STOP, ShapedLayout, cell_width

ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")

RESET = "\033[0m"
GUTTER_SGR = "\033[2;38;5;245m"
DIFF_EMPTY_SGR = "\033[48;5;236m"

FOLD_MARKERS = {
    FoldingDisplayType.FOLDED: "▸",
    FoldingDisplayType.UNFOLD_START: "▾",
    FoldingDisplayType.UNFOLD_END: "╰",
}


def sanitize_terminal_text(text: str) -> str:
    """Escape control bytes so rendered text cannot move the cursor or ring the bell."""
    if _CONTROL_RE.search(text) is None:
        return text
    out: list[str] = []
    for ch in text:
        code = ord(ch)
        if code < 32 or code == 127 or 0x80 <= code <= 0x9F:
            out.append(f"\\x{code:02x}")
        else:
            out.append(ch)
    return "".join(out)


def _hex_rgb(color: str) -> tuple[int, int, int] | None:
    value = color.lstrip("#")
    if len(value) != 6:
        return None
    try:
        return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)
    except ValueError:
        return None


def sgr_for(fg: str | None, bg: str | None, underline: str | None) -> str:
    """Return the SGR sequence for one glyph run, empty when unstyled."""
    params: list[str] = []
    if fg and (rgb := _hex_rgb(fg)) is not None:
        params.extend(["38", "2", *map(str, rgb)])
    if bg and (rgb := _hex_rgb(bg)) is not None:
        params.extend(["48", "2", *map(str, rgb)])
    if underline:
        params.append("4")
        if (rgb := _hex_rgb(underline)) is not None:
            params.extend(["58", "2", *map(str, rgb)])
    if not params:
        return ""
    return f"\033[{';'.join(params)}m"


def clip_ansi_line(text: str, max_cols: int, tab_stop: int = DEFAULT_TAB_STOP) -> str:
    """Trim a styled line to at most ``max_cols`` cells.

    Escape sequences are kept verbatim and take no cells; tabs are expanded
    into spaces so clipping matches the cells the shaper measured.
    """
    if max_cols <= 0 or not text:
        return ""
    out: list[str] = []
    col = 0
    i = 0
    n = len(text)
    while i < n and col < max_cols:
        if text[i] == "\x1b":
            match = ANSI_ESCAPE_RE.match(text, i)
            if match:
                out.append(match.group(0))
                i = match.end()
                continue
        ch = text[i]
        w = cell_width(ch, col, tab_stop)
        if col + w > max_cols:
            break
        out.append(" " * w if ch == "\t" else ch)
        col += w
        i += 1
    return "".join(out)


def _run_cells(layout: ShapedLayout, start: int, end: int) -> str:
    """Return ``layout.text[start:end]`` with tabs expanded to their measured cells."""
    out: list[str] = []
    for index in range(start, end):
        ch = layout.text[index]
        if ch == "\t":
            out.append(" " * (layout.columns[index + 1] - layout.columns[index]))
        elif ch not in ("\r", "\n"):
            out.append(ch)
    return "".join(out)


def _gutter_width(screen_lines: ScreenLines) -> int:
    numbers = [info.folded_line.line_number() for info in screen_lines.text_lines()]
    return len(str(max(numbers, default=1)))


def render_screen_lines(
    screen_lines: ScreenLines,
    display_items: list[FoldingDisplayItem] | None = None,
    max_cols: int = 80,
    no_color: bool = False,
    tab_stop: int = DEFAULT_TAB_STOP,
) -> str:
    """Render every row of ``screen_lines`` as one terminal line."""
    markers: dict[int, str] = {}
    for item in display_items or ():
        markers.setdefault(item.y, FOLD_MARKERS[item.ty])

    width = _gutter_width(screen_lines)
    out: list[str] = []
    for info in screen_lines.visual_lines:
        if isinstance(info, DiffEmptyLine):
            gutter = " " * (width + 2)
            row = gutter if no_color else f"{DIFF_EMPTY_SGR}{gutter}\033[K{RESET}"
            out.append(clip_ansi_line(row, max_cols, tab_stop))
            if not no_color:
                out.append(RESET)
            out.append("\n")
            continue

        folded = info.folded_line
        marker = markers.get(int(info.folded_line_y), " ")
        number = str(folded.line_number()).rjust(width)
        pieces: list[str] = [number if no_color else f"{GUTTER_SGR}{number}{RESET}", marker, " "]
        layout = folded.layout
        for run in layout.layout_runs():
            text = sanitize_terminal_text(_run_cells(layout, run.start, run.end))
            if not text:
                continue
            sgr = "" if no_color else sgr_for(run.fg, run.bg, run.underline)
            pieces.append(f"{sgr}{text}{RESET}" if sgr else text)
        row = "".join(pieces)
        out.append(clip_ansi_line(row, max_cols, tab_stop))
        if "\033" in row:
            out.append(RESET)
        out.append("\n")
    return "".join(out)
