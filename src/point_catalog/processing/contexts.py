"""
Execution contexts handed to user functions.

The engine calls every user function with an explicit context as first
argument instead of the raw data, so a function knows whether it is
processing one buffered chunk or a whole in-memory collection without
inspecting its input:

- ChunkContext: one chunk of a catalog run; the function must trim the
  buffer from its result
- WholeCatalogContext: an entire in-memory collection; nothing to trim
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Union

import numpy as np

from ..preprocessing.bounds import Bounds2D
from ..preprocessing.point_set import PointSet
from .tiling import ChunkDescriptor


@dataclass(frozen=True, eq=False)
class ChunkContext:
    """Context for one chunk of a catalog run.

    Attributes:
        points: Points of the buffered chunk, tagged with the 'buffer' attribute
        chunk: Descriptor of the chunk being processed
    """
    points: PointSet
    chunk: ChunkDescriptor

    is_chunk = True

    @property
    def chunk_id(self) -> int:
        return self.chunk.id

    @property
    def core_bounds(self) -> Bounds2D:
        return self.chunk.core_bounds

    @property
    def extent(self) -> Bounds2D:
        return self.chunk.extent

    def core_mask(self, x: np.ndarray, y: np.ndarray) -> np.ndarray:
        return self.chunk.core_mask(x, y)

    def trim(self, result: Any) -> Any:
        """Drop buffer points from a PointSet result; other values pass through."""
        if isinstance(result, PointSet):
            return result.trim_buffer()
        return result


@dataclass(frozen=True, eq=False)
class WholeCatalogContext:
    """Context for a whole in-memory point collection.

    Attributes:
        points: The complete collection
        extent: Extent of the collection (defaults to the point bounds)
    """
    points: PointSet
    extent: Optional[Bounds2D] = None

    is_chunk = False

    def __post_init__(self) -> None:
        if self.extent is None:
            object.__setattr__(self, "extent", self.points.bounds())

    @property
    def chunk_id(self) -> Optional[int]:
        return None

    @property
    def core_bounds(self) -> Optional[Bounds2D]:
        return self.extent

    def core_mask(self, x: np.ndarray, y: np.ndarray) -> np.ndarray:
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        e = self.extent
        if e is None:
            return np.zeros(x.shape, dtype=bool)
        return (x >= e.min_x) & (x <= e.max_x) & (y >= e.min_y) & (y <= e.max_y)

    def trim(self, result: Any) -> Any:
        return result


ProcessingContext = Union[ChunkContext, WholeCatalogContext]
