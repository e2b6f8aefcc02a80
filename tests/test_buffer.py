"""Tests for the line-indexed text buffer and its edit deltas."""

from __future__ import annotations

import copy
import unittest

from foldview.buffer import Copy, Delta, Insert, TextBuffer
from foldview.errors import LineConversionError


class TextBufferTests(unittest.TestCase):
    def test_lines_own_their_endings(self) -> None:
        buffer = TextBuffer("ab\ncd\n")
        self.assertEqual(buffer.num_lines(), 3)
        self.assertEqual(buffer.last_line(), 2)
        self.assertEqual(buffer.line_content(0), "ab\n")
        self.assertEqual(buffer.line_content(1), "cd\n")
        self.assertEqual(buffer.line_content(2), "")

    def test_offset_line_conversion_accepts_one_past_the_end(self) -> None:
        buffer = TextBuffer("ab\ncd\n")
        self.assertEqual(buffer.offset_of_line(1), 3)
        self.assertEqual(buffer.offset_of_line(2), 6)
        self.assertEqual(buffer.offset_of_line(3), 6)
        self.assertEqual(buffer.line_of_offset(2), 0)
        self.assertEqual(buffer.line_of_offset(3), 1)
        self.assertEqual(buffer.line_of_offset(6), 2)
        self.assertEqual(buffer.offset_to_line_col(4), (1, 1))

    def test_out_of_range_lookups_raise_with_context(self) -> None:
        buffer = TextBuffer("ab\n")
        with self.assertRaises(LineConversionError) as ctx:
            buffer.offset_of_line(5)
        self.assertEqual(ctx.exception.line, 5)
        with self.assertRaises(LineConversionError) as ctx:
            buffer.line_of_offset(9)
        self.assertEqual(ctx.exception.offset, 9)
        with self.assertRaises(LineConversionError):
            buffer.offset_of_line_col(0, 4)

    def test_line_ending_len(self) -> None:
        buffer = TextBuffer("a\r\nb\nc")
        self.assertEqual(buffer.line_ending_len(0), 2)
        self.assertEqual(buffer.line_ending_len(1), 1)
        self.assertEqual(buffer.line_ending_len(2), 0)

    def test_edit_returns_copy_insert_delta(self) -> None:
        buffer = TextBuffer("ab\ncd\n")
        delta = buffer.edit(1, 2, "XY")
        self.assertEqual(delta, Delta((Copy(0, 1), Insert("XY"), Copy(2, 6)), 6))
        self.assertEqual(delta.new_len(), 7)
        self.assertEqual(buffer.text(), "aXY\ncd\n")
        self.assertEqual(buffer.rev, 1)

    def test_edit_at_edges_omits_empty_copies(self) -> None:
        buffer = TextBuffer("abc")
        self.assertEqual(buffer.edit(0, 0, "Z").ops, (Insert("Z"), Copy(0, 3)))
        self.assertEqual(buffer.edit(4, 4, "!").ops, (Copy(0, 4), Insert("!")))
        self.assertEqual(buffer.edit(0, 5, "").ops, ())
        self.assertEqual(buffer.text(), "")

    def test_edit_rejects_range_outside_buffer(self) -> None:
        buffer = TextBuffer("abc")
        with self.assertRaises(LineConversionError):
            buffer.edit(2, 9, "")

    def test_copy_is_a_snapshot(self) -> None:
        buffer = TextBuffer("ab\n")
        snapshot = copy.copy(buffer)
        buffer.edit(0, 0, "x\n")
        self.assertEqual(snapshot.text(), "ab\n")
        self.assertEqual(snapshot.num_lines(), 2)
        self.assertEqual(buffer.num_lines(), 3)

    def test_reload_replaces_everything(self) -> None:
        buffer = TextBuffer("ab\n")
        buffer.reload("xyz")
        self.assertEqual(buffer.text(), "xyz")
        self.assertEqual(buffer.num_lines(), 1)


if __name__ == "__main__":
    unittest.main()
