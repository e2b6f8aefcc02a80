"""Tests for phantom text composition and the coordinate spaces it keeps."""

from __future__ import annotations

import unittest

from foldview.coords import CursorAffinity, Interval, Offset, Position
from foldview.phantom import (
    EmptyText,
    FoldedSpan,
    OriginText,
    PhantomKind,
    PhantomText,
    PhantomTextLine,
    PhantomTextMultiLine,
)


def _hint(line: int, col: int, text: str) -> PhantomText:
    return PhantomText(kind=PhantomKind.INLAY_HINT, line=line, col=col, text=text)


def _folded_multi_line() -> PhantomTextMultiLine:
    """``fn a() {`` / ``    x`` / ``}`` folded from the brace to the closing brace."""
    start = Position(0, 7)
    placeholder = PhantomText(
        kind=PhantomKind.LINE_FOLDED_RANGE,
        line=0,
        col=7,
        text="{...}",
        fold=FoldedSpan(next_line=2, len=2, all_len=8, start_position=start),
    )
    closing = PhantomText(
        kind=PhantomKind.LINE_FOLDED_RANGE,
        line=2,
        col=0,
        text="",
        fold=FoldedSpan(next_line=None, len=1, all_len=1, start_position=start),
    )
    first = PhantomTextLine.new(0, 0, "fn a() {\n", [placeholder])
    last = PhantomTextLine.new(2, 15, "}\n", [closing])
    multi = PhantomTextMultiLine.from_line(first)
    multi.merge(last)
    return multi


class ComposeLineTests(unittest.TestCase):
    def test_line_without_fragments_is_one_origin_run(self) -> None:
        line = PhantomTextLine.new(0, 0, "abc\n")
        self.assertEqual(
            line.texts,
            (OriginText(0, Interval(0, 4), Interval(0, 4), Interval(0, 4), Interval(0, 4)),),
        )
        self.assertEqual(line.final_text_len, 4)

    def test_empty_line_is_a_single_empty_text(self) -> None:
        line = PhantomTextLine.new(3, 17, "")
        self.assertEqual(line.texts, (EmptyText(3, 17),))
        self.assertEqual(line.final_text_len, 0)

    def test_inlay_hint_splits_the_origin_text(self) -> None:
        line = PhantomTextLine.new(0, 0, "let a = 1;\n", [_hint(0, 5, ": i32 ")])
        origin_a, hint, origin_b = line.texts
        self.assertEqual(origin_a.final_col, Interval(0, 5))
        self.assertEqual(hint.final_col, 5)
        self.assertEqual(hint.next_final_col(), 11)
        self.assertEqual(origin_b.col, Interval(5, 11))
        self.assertEqual(origin_b.final_col, Interval(11, 17))
        self.assertEqual(line.final_text_len, 17)
        self.assertEqual(PhantomTextMultiLine.from_line(line).final_text(), "let a: i32  = 1;\n")

    def test_fragments_at_one_column_sort_by_kind(self) -> None:
        ime = PhantomText(kind=PhantomKind.IME, line=0, col=1, text="I")
        line = PhantomTextLine.new(0, 0, "ab\n", [_hint(0, 1, "H"), ime])
        self.assertEqual(PhantomTextMultiLine.from_line(line).final_text(), "aIHb\n")

    def test_fragment_outside_the_line_is_dropped(self) -> None:
        with self.assertLogs("foldview.phantom", level="WARNING"):
            line = PhantomTextLine.new(0, 0, "ab\n", [_hint(0, 10, "x")])
        self.assertEqual(len(line.texts), 1)
        self.assertEqual(line.final_text_len, 3)

    def test_fragment_inside_hidden_text_is_dropped(self) -> None:
        fold = PhantomText(
            kind=PhantomKind.LINE_FOLDED_RANGE,
            line=0,
            col=1,
            text="..",
            fold=FoldedSpan(next_line=None, len=3, all_len=3, start_position=Position(0, 1)),
        )
        with self.assertLogs("foldview.phantom", level="WARNING"):
            line = PhantomTextLine.new(0, 0, "abcde\n", [fold, _hint(0, 2, "x")])
        self.assertEqual(PhantomTextMultiLine.from_line(line).final_text(), "a..e\n")

    def test_fold_payload_must_match_kind(self) -> None:
        with self.assertRaises(ValueError):
            PhantomText(kind=PhantomKind.LINE_FOLDED_RANGE, line=0, col=0, text="x")


class MultiLineTests(unittest.TestCase):
    def test_folded_run_merges_into_one_visual_line(self) -> None:
        multi = _folded_multi_line()
        self.assertEqual(multi.final_text(), "fn a() {...}\n")
        self.assertEqual(multi.line, 0)
        self.assertEqual(multi.last_line, 2)
        self.assertEqual(multi.final_text_len, 13)
        self.assertEqual(multi.origin_text_len, 11)
        self.assertEqual(multi.origin_span_len, 17)

    def test_merge_shifts_every_coordinate_space(self) -> None:
        multi = _folded_multi_line()
        tail = multi.texts[-1]
        self.assertIsInstance(tail, OriginText)
        self.assertEqual(tail.visual_merge_col, Interval(10, 11))
        self.assertEqual(tail.origin_merge_col, Interval(16, 17))
        self.assertEqual(tail.final_col, Interval(12, 13))

    def test_hidden_offsets_map_to_the_placeholder(self) -> None:
        multi = _folded_multi_line()
        self.assertEqual(multi.cursor_final_col_of_origin_merge_col(7, CursorAffinity.BACKWARD), 7)
        self.assertEqual(multi.cursor_final_col_of_origin_merge_col(7, CursorAffinity.FORWARD), 12)
        self.assertEqual(multi.cursor_final_col_of_origin_merge_col(10, CursorAffinity.BACKWARD), 7)
        self.assertEqual(multi.cursor_final_col_of_origin_merge_col(16, CursorAffinity.BACKWARD), 12)
        self.assertIsNone(multi.final_col_of_origin_merge_col(10))
        self.assertEqual(multi.final_col_of_origin_merge_col(3), 3)

    def test_text_of_final_col_finds_the_segment(self) -> None:
        multi = _folded_multi_line()
        self.assertIsInstance(multi.text_of_final_col(3), OriginText)
        placeholder = multi.text_of_final_col(8)
        self.assertIsInstance(placeholder, PhantomText)
        self.assertEqual(placeholder.text, "{...}")
        self.assertIsInstance(multi.text_of_final_col(99), OriginText)

    def test_cursor_position_of_final_col_uses_the_phantom_midpoint(self) -> None:
        line = PhantomTextLine.new(0, 0, "let a = 1;\n", [_hint(0, 5, ": i32 ")])
        multi = PhantomTextMultiLine.from_line(line)
        self.assertEqual(multi.cursor_position_of_final_col(6, 1), (5, CursorAffinity.BACKWARD))
        self.assertEqual(multi.cursor_position_of_final_col(9, 1), (5, CursorAffinity.FORWARD))
        self.assertEqual(multi.cursor_position_of_final_col(12, 1), (6, CursorAffinity.BACKWARD))
        self.assertEqual(multi.cursor_position_of_final_col(100, 1), (10, CursorAffinity.BACKWARD))

    def test_fragment_affinity_overrides_the_caller(self) -> None:
        lens = PhantomText(
            kind=PhantomKind.COMPLETION, line=0, col=3, text="p", affinity=CursorAffinity.BACKWARD
        )
        multi = PhantomTextMultiLine.from_line(PhantomTextLine.new(0, 0, "hel\n", [lens]))
        self.assertEqual(multi.cursor_final_col_of_origin_merge_col(3, CursorAffinity.FORWARD), 3)

    def test_adjust_shifts_lines_and_offsets(self) -> None:
        multi = _folded_multi_line().adjust(Offset.add(4), Offset.add(2))
        self.assertEqual((multi.line, multi.last_line, multi.offset_of_line), (2, 4, 4))
        placeholder = multi.texts[1]
        self.assertEqual(placeholder.line, 2)
        self.assertEqual(placeholder.next_line(), 4)
        self.assertEqual(placeholder.fold.start_position, Position(2, 7))
        self.assertEqual(multi.final_text(), "fn a() {...}\n")


if __name__ == "__main__":
    unittest.main()
