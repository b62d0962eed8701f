"""2D extents shared by the catalog, the chunk planner and the materializers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class Bounds2D:
    """2D bounding box defined by min/max coordinates.

    Attributes:
        min_x: Minimum X coordinate
        min_y: Minimum Y coordinate
        max_x: Maximum X coordinate
        max_y: Maximum Y coordinate
    """
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def area(self) -> float:
        return self.width * self.height

    def expand(self, distance: float) -> "Bounds2D":
        return Bounds2D(
            min_x=self.min_x - distance,
            min_y=self.min_y - distance,
            max_x=self.max_x + distance,
            max_y=self.max_y + distance,
        )

    def clip(self, other: "Bounds2D") -> "Bounds2D":
        """Intersect with another box (assumed to overlap)."""
        return Bounds2D(
            min_x=max(self.min_x, other.min_x),
            min_y=max(self.min_y, other.min_y),
            max_x=min(self.max_x, other.max_x),
            max_y=min(self.max_y, other.max_y),
        )

    def contains(self, other: "Bounds2D") -> bool:
        return (
            other.min_x >= self.min_x
            and other.min_y >= self.min_y
            and other.max_x <= self.max_x
            and other.max_y <= self.max_y
        )


def bounds_intersect(a: Bounds2D, b: Bounds2D) -> bool:
    """Check if two 2D bounding boxes intersect (inclusive edges)."""
    return not (a.max_x < b.min_x or a.min_x > b.max_x or a.max_y < b.min_y or a.min_y > b.max_y)


def union_bounds(boxes: Iterable[Bounds2D]) -> Bounds2D:
    """Smallest box covering every box in ``boxes``."""
    boxes = list(boxes)
    if not boxes:
        raise ValueError("Cannot compute the union of zero bounding boxes")
    return Bounds2D(
        min_x=min(b.min_x for b in boxes),
        min_y=min(b.min_y for b in boxes),
        max_x=max(b.max_x for b in boxes),
        max_y=max(b.max_y for b in boxes),
    )
