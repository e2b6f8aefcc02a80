"""Tests for monospace cell measurement, hit-testing and the layout cache."""

from __future__ import annotations

import unittest

from foldview.geometry import Point, Size
from foldview.shaping import AttrSpan, GlyphRun, HitPoint, ShapingContext, cell_width


class CellWidthTests(unittest.TestCase):
    def test_cell_rules(self) -> None:
        self.assertEqual(cell_width("a", 0), 1)
        self.assertEqual(cell_width("\t", 3), 5)
        self.assertEqual(cell_width("\t", 3, tab_stop=4), 1)
        self.assertEqual(cell_width("中", 0), 2)
        self.assertEqual(cell_width("\u0301", 0), 0)
        self.assertEqual(cell_width("\n", 0), 0)
        self.assertEqual(cell_width("\r", 0), 0)


class ShapedLayoutTests(unittest.TestCase):
    def setUp(self) -> None:
        self.layout = ShapingContext().shape("a\tb\n")

    def test_columns_and_lengths(self) -> None:
        self.assertEqual(self.layout.columns, [0, 1, 8, 9, 9])
        self.assertEqual(self.layout.cells, 9)
        self.assertEqual(self.layout.text_len, 4)
        self.assertEqual(self.layout.text_len_without_rn, 3)
        self.assertEqual(self.layout.size(), Size(72.0, 20.0))

    def test_hit_position(self) -> None:
        self.assertEqual(self.layout.hit_position(2), Point(64.0, 0.0))
        self.assertEqual(self.layout.hit_position(99), Point(72.0, 0.0))

    def test_hit_point_snaps_to_the_nearer_edge(self) -> None:
        self.assertEqual(self.layout.hit_point(Point(-1, 0)), HitPoint(0, False))
        self.assertEqual(self.layout.hit_point(Point(100, 0)), HitPoint(3, False))
        self.assertEqual(self.layout.hit_point(Point(20, 0)), HitPoint(1, True))
        self.assertEqual(self.layout.hit_point(Point(40, 0)), HitPoint(2, True))

    def test_glyph_index(self) -> None:
        self.assertEqual(self.layout.glyph_index(Point(20, 0)), 1)
        self.assertEqual(self.layout.glyph_index(Point(65, 0)), 2)
        self.assertIsNone(self.layout.glyph_index(Point(100, 0)))
        self.assertIsNone(self.layout.glyph_index(Point(-3, 0)))

    def test_runs_split_on_span_edges(self) -> None:
        layout = ShapingContext().shape("a\tb\n", [AttrSpan(0, 1, fg="#ff0000")])
        self.assertEqual(
            layout.layout_runs(),
            [
                GlyphRun(0, 1, 0.0, 8.0, "a", fg="#ff0000"),
                GlyphRun(1, 4, 8.0, 64.0, "\tb\n"),
            ],
        )

    def test_later_spans_win(self) -> None:
        spans = [AttrSpan(0, 2, fg="#111111"), AttrSpan(0, 2, fg="#222222", underline="#333333")]
        runs = ShapingContext().shape("ab", spans).layout_runs()
        self.assertEqual((runs[0].fg, runs[0].underline), ("#222222", "#333333"))


class ShapingCacheTests(unittest.TestCase):
    def test_same_key_returns_the_cached_layout(self) -> None:
        context = ShapingContext()
        self.assertIs(context.shape("ab"), context.shape("ab"))
        self.assertIsNot(context.shape("ab"), context.shape("ab", [AttrSpan(0, 1, fg="#ffffff")]))

    def test_least_recently_used_entry_is_evicted(self) -> None:
        context = ShapingContext(cache_max=2)
        first = context.shape("a")
        second = context.shape("b")
        self.assertIs(context.shape("a"), first)
        context.shape("c")
        self.assertIs(context.shape("a"), first)
        self.assertIsNot(context.shape("b"), second)

    def test_clear_cache(self) -> None:
        context = ShapingContext()
        first = context.shape("a")
        context.clear_cache()
        self.assertIsNot(context.shape("a"), first)


if __name__ == "__main__":
    unittest.main()
