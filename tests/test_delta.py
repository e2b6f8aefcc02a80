"""Tests for edit delta resolution into line copy plans."""

from __future__ import annotations

import copy
import unittest

from foldview.buffer import Copy, Delta, Insert, TextBuffer
from foldview.coords import Interval, Offset
from foldview.delta import (
    RECOMPUTE_TO_END,
    CopyLines,
    OffsetDelta,
    OriginLinesDelta,
    resolve_delta,
    resolve_delta_compute,
    resolve_line_delta,
    transform_offset,
)


def _resolve_edit(text: str, start: int, end: int, insert: str) -> OriginLinesDelta:
    buffer = TextBuffer(text)
    old = copy.copy(buffer)
    delta = buffer.edit(start, end, insert)
    return resolve_delta(old, delta)


class ResolveDeltaComputeTests(unittest.TestCase):
    def test_insert_in_the_middle(self) -> None:
        delta = Delta((Copy(0, 4), Insert("X"), Copy(4, 9)), 9)
        self.assertEqual(resolve_delta_compute(delta), OffsetDelta(Interval(0, 4), 1, Interval(4, 9)))

    def test_single_ops(self) -> None:
        self.assertEqual(resolve_delta_compute(Delta((Copy(0, 8),), 9)), OffsetDelta(copy_start=Interval(0, 8)))
        self.assertEqual(resolve_delta_compute(Delta((Insert("abc"),), 0)), OffsetDelta(internal_len=3))
        self.assertEqual(resolve_delta_compute(Delta((), 9)), OffsetDelta())

    def test_leading_insert_counts_as_internal(self) -> None:
        delta = Delta((Insert("Z"), Copy(0, 9)), 9)
        self.assertEqual(resolve_delta_compute(delta), OffsetDelta(Interval(0, 0), 1, Interval(0, 9)))


class ResolveLineDeltaTests(unittest.TestCase):
    TEXT = "ab\ncd\nef\n"

    def test_insert_inside_a_line_keeps_both_neighbours(self) -> None:
        self.assertEqual(
            _resolve_edit(self.TEXT, 4, 4, "X"),
            OriginLinesDelta(
                copy_line_start=CopyLines(False, Offset(), Offset(), Interval(0, 1)),
                recompute_line_start=1,
                recompute_offset_end=7,
                copy_line_end=CopyLines(False, Offset.add(1), Offset(), Interval(2, 4)),
            ),
        )

    def test_inserted_newline_resolves_like_any_insert(self) -> None:
        lines_delta = _resolve_edit(self.TEXT, 4, 4, "\n")
        self.assertEqual(lines_delta.recompute_line_start, 1)
        self.assertEqual(lines_delta.recompute_offset_end, 7)
        self.assertEqual(lines_delta.copy_line_end.copy_line, Interval(2, 4))

    def test_insert_at_start_only_copies_trailing_lines(self) -> None:
        self.assertEqual(
            _resolve_edit(self.TEXT, 0, 0, "Z"),
            OriginLinesDelta(
                copy_line_start=None,
                recompute_line_start=0,
                recompute_offset_end=4,
                copy_line_end=CopyLines(False, Offset.add(1), Offset(), Interval(1, 4)),
            ),
        )

    def test_append_recomputes_to_the_end(self) -> None:
        self.assertEqual(
            _resolve_edit(self.TEXT, 9, 9, "g"),
            OriginLinesDelta(
                copy_line_start=CopyLines(False, Offset(), Offset(), Interval(0, 3)),
                recompute_line_start=3,
                recompute_offset_end=RECOMPUTE_TO_END,
                copy_line_end=None,
            ),
        )

    def test_deleting_everything_is_a_full_rebuild(self) -> None:
        lines_delta = _resolve_edit(self.TEXT, 0, 9, "")
        self.assertTrue(lines_delta.is_full_rebuild())

    def test_partial_last_line_is_recomputed(self) -> None:
        lines_delta = _resolve_edit("ab\ncd\nef", 1, 1, "X")
        trailing = lines_delta.copy_line_end
        self.assertIsNotNone(trailing)
        self.assertTrue(trailing.recompute_first_or_last_line)
        self.assertEqual(trailing.copy_line, Interval(1, 2))

    def test_resolve_line_delta_of_empty_offset_delta(self) -> None:
        lines_delta = resolve_line_delta(TextBuffer(self.TEXT), OffsetDelta())
        self.assertTrue(lines_delta.is_full_rebuild())


class TransformOffsetTests(unittest.TestCase):
    def test_insert_at_offset_respects_side(self) -> None:
        delta = Delta((Copy(0, 4), Insert("X"), Copy(4, 9)), 9)
        self.assertEqual(transform_offset(delta, 2), 2)
        self.assertEqual(transform_offset(delta, 4, after=True), 5)
        self.assertEqual(transform_offset(delta, 4, after=False), 4)
        self.assertEqual(transform_offset(delta, 9), 10)

    def test_deleted_offsets_collapse_to_the_deletion_point(self) -> None:
        delta = Delta((Copy(0, 2), Copy(5, 9)), 9)
        self.assertEqual(transform_offset(delta, 3), 2)
        self.assertEqual(transform_offset(delta, 6), 3)


if __name__ == "__main__":
    unittest.main()
