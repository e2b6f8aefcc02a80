"""Coordinate primitives shared by every layer of the engine.

``Offset`` is a signed shift applied to stored offsets or line indices when
entries are reused across an edit. ``Interval`` is a half-open range.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class Offset:
    """Relative shift: ``None`` (0), ``Add(n)`` or ``Minus(n)``.

    The sign of ``amount`` carries the variant, so ``Offset()`` is the
    ``None`` state and equality compares variants and magnitudes at once.
    """

    amount: int = 0

    @classmethod
    def new(cls, origin: int, new: int) -> Offset:
        """Return the shift that moves ``origin`` onto ``new``."""
        if origin > new:
            return cls.minus(origin - new)
        return cls.add(new - origin)

    @classmethod
    def add(cls, offset: int) -> Offset:
        return cls(abs(offset))

    @classmethod
    def minus(cls, offset: int) -> Offset:
        return cls(-abs(offset))

    @property
    def kind(self) -> str:
        if self.amount > 0:
            return "add"
        if self.amount < 0:
            return "minus"
        return "none"

    def is_none(self) -> bool:
        return self.amount == 0

    def adjust(self, num: int) -> int:
        """Return ``num`` shifted by this offset; underflow is an error."""
        value = num + self.amount
        if value < 0:
            raise ValueError(f"offset {self!r} underflows {num}")
        return value

    adjust_new = adjust

    def __repr__(self) -> str:
        if self.amount > 0:
            return f"Offset.add({self.amount})"
        if self.amount < 0:
            return f"Offset.minus({-self.amount})"
        return "Offset()"


@dataclass(frozen=True)
class Interval:
    """Half-open ``[start, end)`` range."""

    start: int
    end: int

    def size(self) -> int:
        return self.end - self.start

    def is_empty(self) -> bool:
        return self.end <= self.start

    def contains(self, value: int) -> bool:
        return self.start <= value < self.end

    def translate(self, amount: int) -> Interval:
        return Interval(self.start + amount, self.end + amount)

    def __str__(self) -> str:
        return f"[{self.start}, {self.end})"


class CursorAffinity(Enum):
    """Which side of an ambiguous boundary a caret belongs to."""

    FORWARD = "forward"
    BACKWARD = "backward"

    @classmethod
    def default(cls) -> CursorAffinity:
        return cls.BACKWARD


@dataclass(frozen=True, order=True)
class Position:
    """LSP-style ``(line, character)`` position, ordered line first."""

    line: int
    character: int

    @classmethod
    def from_lsp(cls, data: dict) -> Position:
        return cls(int(data.get("line", 0)), int(data.get("character", 0)))
