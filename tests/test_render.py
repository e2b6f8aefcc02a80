"""Terminal rendering tests for screen rows, gutters and ANSI helpers."""

from __future__ import annotations

import unittest

from foldview.buffer import TextBuffer
from foldview.coords import Position
from foldview.folding import FoldingRange, FoldingRangeStatus, NewRanges
from foldview.geometry import Rect
from foldview.lines import DocLines
from foldview.render import RESET, clip_ansi_line, render_screen_lines, sanitize_terminal_text, sgr_for
from foldview.screen import DiffEmptyRange, compute_screen_lines

TEN_LINES = "".join(f"line{index}\n" for index in range(10))


def _folded_doc() -> DocLines:
    doc = DocLines(TextBuffer(TEN_LINES))
    doc.update_folding_ranges(
        NewRanges((FoldingRange(Position(1, 5), Position(4, 5), FoldingRangeStatus.FOLD, "..."),))
    )
    return doc


class AnsiHelperTests(unittest.TestCase):
    def test_sanitize_escapes_control_bytes(self) -> None:
        self.assertEqual(sanitize_terminal_text("a\x07b"), "a\\x07b")
        self.assertEqual(sanitize_terminal_text("plain"), "plain")

    def test_sgr_for_truecolor_and_underline(self) -> None:
        self.assertEqual(sgr_for("#ff0000", None, "#00ff00"), "\033[38;2;255;0;0;4;58;2;0;255;0m")
        self.assertEqual(sgr_for(None, "#000000", None), "\033[48;2;0;0;0m")
        self.assertEqual(sgr_for(None, None, None), "")
        self.assertEqual(sgr_for("bogus", None, None), "")

    def test_clip_keeps_escapes_and_counts_cells(self) -> None:
        self.assertEqual(clip_ansi_line("\033[31mabcdef\033[0m", 3), "\033[31mabc")
        self.assertEqual(clip_ansi_line("a\tb", 4, tab_stop=4), "a   ")
        self.assertEqual(clip_ansi_line("中中", 3), "中")
        self.assertEqual(clip_ansi_line("abc", 0), "")


class RenderScreenLinesTests(unittest.TestCase):
    def test_plain_rows_with_fold_marker(self) -> None:
        doc = _folded_doc()
        screen_lines, items = compute_screen_lines(doc, Rect(0, 0, 640, 59))
        self.assertEqual(
            render_screen_lines(screen_lines, items, no_color=True),
            "1  line0\n2▸ line1...\n6  line5\n",
        )

    def test_colored_rows_style_the_placeholder(self) -> None:
        doc = _folded_doc()
        screen_lines, items = compute_screen_lines(doc, Rect(0, 0, 640, 59))
        out = render_screen_lines(screen_lines, items)
        self.assertIn("\033[38;2;92;99;112m...\033[0m", out)
        self.assertIn("\033[2;38;5;245m2\033[0m", out)
        self.assertTrue(out.endswith(f"{RESET}\n"))

    def test_rows_are_clipped_to_max_cols(self) -> None:
        doc = _folded_doc()
        screen_lines, items = compute_screen_lines(doc, Rect(0, 0, 640, 19))
        self.assertEqual(render_screen_lines(screen_lines, items, max_cols=5, no_color=True), "1  li\n")

    def test_diff_rows_are_blank(self) -> None:
        doc = DocLines(TextBuffer("ab\ncd\n"))
        screen_lines, items = compute_screen_lines(doc, Rect(0, 0, 640, 100), [DiffEmptyRange(1, 2)])
        self.assertEqual(
            render_screen_lines(screen_lines, items, no_color=True),
            "1  ab\n   \n   \n2  cd\n3  \n",
        )

    def test_tabs_expand_to_their_measured_cells(self) -> None:
        doc = DocLines(TextBuffer("a\tb\n"))
        screen_lines, items = compute_screen_lines(doc, Rect(0, 0, 640, 19))
        self.assertEqual(render_screen_lines(screen_lines, items, no_color=True), "1  a       b\n")


if __name__ == "__main__":
    unittest.main()
