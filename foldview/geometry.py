"""Plain 2D geometry values used by shaping, hit-testing and selection."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Size:
    width: float
    height: float


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle stored as its two corners."""

    x0: float
    y0: float
    x1: float
    y1: float

    @classmethod
    def from_origin_size(cls, origin: Point, size: Size) -> Rect:
        return cls(origin.x, origin.y, origin.x + size.width, origin.y + size.height)

    def origin(self) -> Point:
        return Point(self.x0, self.y0)
