"""Tests for offsets, intervals, positions and affinity defaults."""

from __future__ import annotations

import unittest

from foldview.coords import CursorAffinity, Interval, Offset, Position


class OffsetTests(unittest.TestCase):
    def test_new_picks_direction_from_origin_and_target(self) -> None:
        self.assertEqual(Offset.new(5, 3), Offset.minus(2))
        self.assertEqual(Offset.new(3, 9), Offset.add(6))
        self.assertTrue(Offset.new(4, 4).is_none())

    def test_adjust_applies_signed_shift(self) -> None:
        self.assertEqual(Offset.add(6).adjust(10), 16)
        self.assertEqual(Offset.minus(3).adjust(10), 7)
        self.assertEqual(Offset().adjust(10), 10)
        self.assertEqual(Offset.add(2).adjust_new(1), 3)

    def test_adjust_rejects_underflow(self) -> None:
        with self.assertRaises(ValueError):
            Offset.minus(3).adjust(2)

    def test_kind_and_repr(self) -> None:
        self.assertEqual(Offset.add(6).kind, "add")
        self.assertEqual(Offset.minus(1).kind, "minus")
        self.assertEqual(Offset().kind, "none")
        self.assertEqual(repr(Offset.add(6)), "Offset.add(6)")
        self.assertEqual(repr(Offset.minus(2)), "Offset.minus(2)")
        self.assertEqual(repr(Offset()), "Offset()")


class IntervalTests(unittest.TestCase):
    def test_half_open_membership(self) -> None:
        span = Interval(2, 5)
        self.assertEqual(span.size(), 3)
        self.assertTrue(span.contains(2))
        self.assertTrue(span.contains(4))
        self.assertFalse(span.contains(5))
        self.assertFalse(span.is_empty())
        self.assertTrue(Interval(3, 3).is_empty())

    def test_translate_and_str(self) -> None:
        self.assertEqual(Interval(2, 5).translate(3), Interval(5, 8))
        self.assertEqual(str(Interval(0, 4)), "[0, 4)")


class PositionTests(unittest.TestCase):
    def test_positions_order_line_first(self) -> None:
        self.assertLess(Position(1, 9), Position(2, 0))
        self.assertLess(Position(2, 0), Position(2, 1))

    def test_from_lsp_defaults_missing_fields(self) -> None:
        self.assertEqual(Position.from_lsp({"line": 3, "character": 4}), Position(3, 4))
        self.assertEqual(Position.from_lsp({}), Position(0, 0))

    def test_default_affinity_is_backward(self) -> None:
        self.assertIs(CursorAffinity.default(), CursorAffinity.BACKWARD)


if __name__ == "__main__":
    unittest.main()
