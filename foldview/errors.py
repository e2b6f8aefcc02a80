"""Error taxonomy for the layout engine.

Buffer-boundary failures propagate to the caller, which decides whether to
fall back to a full rebuild. Composition and consistency problems are
reported through logging and only raised where a caller asks for it.
"""

from __future__ import annotations


class LayoutError(Exception):
    """Base class for every error raised by the layout engine."""


class LineConversionError(LayoutError):
    """An offset or line lookup fell outside the buffer."""

    def __init__(
        self,
        message: str,
        *,
        line: int | None = None,
        offset: int | None = None,
        limit: int | None = None,
    ) -> None:
        super().__init__(message)
        self.line = line
        self.offset = offset
        self.limit = limit


class PhantomCompositionError(LayoutError):
    """A phantom fragment overlaps another one or falls outside its line."""


class ConsistencyCheckFailure(LayoutError):
    """Running sums over the built line vectors do not add up."""

    def __init__(self, problems: list[str]) -> None:
        super().__init__("; ".join(problems) if problems else "inconsistent lines")
        self.problems = problems
