"""Index arithmetic on closed rings of points.

Segments on a ring are stored as inclusive ``(start, end)`` index pairs; a
segment with ``end < start`` wraps through index 0.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence, TypeVar

from coil_layout.errors import InputValidationError

T = TypeVar("T")


@dataclass(frozen=True)
class CyclicSequence:
    length: int

    def __post_init__(self):
        if self.length <= 0:
            raise InputValidationError(f"cyclic sequence length must be positive, got {self.length}")

    def wrap(self, index: int) -> int:
        return index % self.length

    def next(self, index: int) -> int:
        return (index + 1) % self.length

    def prev(self, index: int) -> int:
        return (index - 1) % self.length

    def offset(self, index: int, steps: int) -> int:
        return (index + steps) % self.length

    def distance(self, start: int, end: int) -> int:
        """Number of forward steps from ``start`` to ``end``."""
        return (end - start) % self.length

    def indices(self, start: int, end: int) -> list[int]:
        """Inclusive run of indices from ``start`` forward to ``end``."""
        return [(start + k) % self.length for k in range(self.distance(start, end) + 1)]

    def contains(self, start: int, end: int, index: int) -> bool:
        return self.distance(start, index) <= self.distance(start, end)

    def slice_wrapping(self, items: Sequence[T], start: int, end: int) -> list[T]:
        return [items[i] for i in self.indices(start, end)]

    def unwrapped_end(self, start: int, end: int) -> int:
        """``end`` shifted past ``length`` when the segment wraps."""
        return end + self.length if end < start else end


def merge_segments(
    first_start: int,
    first_end: int,
    second_start: int,
    second_end: int,
) -> tuple[bool, bool] | None:
    """Merge two ring segments.

    Returns ``(first_starts, first_ends)``: whether the merged span starts at
    the first segment's start and ends at the first segment's end. ``None``
    means the segments do not overlap.
    """
    first_wraps = first_end < first_start
    second_wraps = second_end < second_start

    if first_wraps and second_wraps:
        return first_start <= second_start, first_end > second_end

    if first_wraps:
        if first_start <= second_start:
            return True, True
        if first_end >= second_end:
            return True, True
        if first_end >= second_start:
            return True, False
        if first_start <= second_end:
            return False, True
        return None

    if second_wraps:
        if second_start <= first_start:
            return False, False
        if second_end >= first_end:
            return False, False
        if second_end >= first_start:
            return False, True
        if second_start <= first_end:
            return True, False
        return None

    if first_start <= second_start:
        if first_end < second_start:
            return None
        if first_end <= second_end:
            return True, False
        return True, True

    if second_end < first_start:
        return None
    if second_end <= first_end:
        return False, True
    return False, False
