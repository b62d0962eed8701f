"""
Tile materializers

Load the points of one chunk (core plus buffer margin) into a PointSet
and tag every point with its buffer membership. Two implementations:

- LasTileMaterializer: streams the chunk's LAS/LAZ source files with laspy
- PointSetMaterializer: cuts the chunk out of an in-memory PointSet

Both are plain picklable objects so they can travel to worker processes.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Protocol, Sequence, Union

import numpy as np

from .point_set import BUFFER_ATTRIBUTE, CLASSIFICATION_ATTRIBUTE, PointSet
from ..utils.logging import setup_logger
from ..utils.point_cloud_filters import create_classification_mask, get_filter_statistics

if TYPE_CHECKING:
    from ..processing.tiling import ChunkDescriptor

logger = setup_logger(__name__)

_COORDINATE_DIMENSIONS = {"X", "Y", "Z", "x", "y", "z"}


class TileMaterializer(Protocol):
    """Loads the points of a chunk, or returns None when the chunk is empty."""

    def load(self, chunk: "ChunkDescriptor") -> Optional[PointSet]:
        ...


def _in_box(x: np.ndarray, y: np.ndarray, bounds) -> np.ndarray:
    return (
        (x >= bounds.min_x)
        & (x <= bounds.max_x)
        & (y >= bounds.min_y)
        & (y <= bounds.max_y)
    )


def _tag_buffer(points: PointSet, chunk: "ChunkDescriptor") -> PointSet:
    in_core = chunk.core_mask(points.x, points.y)
    return points.with_attribute(BUFFER_ATTRIBUTE, ~in_core)


class LasTileMaterializer:
    """Chunk loader backed by LAS/LAZ files.

    Attributes:
        select: Extra attributes to read ("*" for all, None for classification only)
        classification_filter: Optional list of classification codes to keep
        chunk_points: Points per laspy streaming chunk
    """

    def __init__(
        self,
        *,
        select: Union[str, Sequence[str], None] = None,
        classification_filter: Optional[List[int]] = None,
        chunk_points: int = 1_000_000,
    ) -> None:
        self.select = select
        self.classification_filter = classification_filter
        self.chunk_points = int(chunk_points)

    def _dimensions(self, header) -> List[str]:
        available = [d for d in header.point_format.dimension_names if d not in _COORDINATE_DIMENSIONS]
        if self.select == "*":
            return available
        wanted = [CLASSIFICATION_ATTRIBUTE] + [d for d in (self.select or []) if d != CLASSIFICATION_ATTRIBUTE]
        missing = [d for d in wanted if d not in available and d != CLASSIFICATION_ATTRIBUTE]
        if missing:
            logger.warning(f"Requested attributes not present in file: {missing}")
        return [d for d in wanted if d in available]

    def _read_file(self, path: Path, chunk: "ChunkDescriptor") -> Optional[PointSet]:
        import laspy

        box = chunk.buffered_bounds
        parts: List[PointSet] = []
        n_in_box = 0
        n_kept = 0
        with laspy.open(str(path)) as reader:
            dims = self._dimensions(reader.header)
            for record in reader.chunk_iterator(self.chunk_points):
                x = np.asarray(record.x, dtype=np.float64)
                y = np.asarray(record.y, dtype=np.float64)
                z = np.asarray(record.z, dtype=np.float64)

                mask = _in_box(x, y, box)
                n_in_box += int(np.count_nonzero(mask))
                if self.classification_filter is not None and CLASSIFICATION_ATTRIBUTE in dims:
                    mask &= create_classification_mask(
                        np.asarray(record.classification),
                        classification_filter=self.classification_filter,
                    )
                if not np.any(mask):
                    continue
                n_kept += int(np.count_nonzero(mask))

                attrs: Dict[str, np.ndarray] = {d: np.asarray(record[d])[mask] for d in dims}
                parts.append(PointSet(np.column_stack([x[mask], y[mask], z[mask]]), attrs))

        if self.classification_filter is not None:
            stats = get_filter_statistics(n_in_box, n_kept, classification_filter=self.classification_filter)
            logger.debug(
                f"{path.name}: {stats['filtered_points']:,}/{stats['total_points']:,} points kept "
                f"({stats['percentage']:.1f}%, {stats['filter_description']})"
            )

        if not parts:
            return None
        return PointSet.concatenate(parts)

    def load(self, chunk: "ChunkDescriptor") -> Optional[PointSet]:
        parts = []
        for path in chunk.source_files:
            points = self._read_file(Path(path), chunk)
            if points is not None:
                parts.append(points)

        if not parts:
            return None

        points = _tag_buffer(PointSet.concatenate(parts), chunk)
        logger.debug(
            f"Chunk {chunk.id}: read {len(points):,} points from {len(chunk.source_files)} files"
        )
        return points


class PointSetMaterializer:
    """Chunk loader backed by an in-memory PointSet."""

    def __init__(
        self,
        points: PointSet,
        *,
        select: Union[str, Sequence[str], None] = None,
        classification_filter: Optional[List[int]] = None,
    ) -> None:
        self.points = points
        self.select = select
        self.classification_filter = classification_filter

    def _selected(self, points: PointSet) -> PointSet:
        if self.select == "*":
            return points
        keep = {CLASSIFICATION_ATTRIBUTE, *(self.select or [])}
        return PointSet(points.xyz, {n: v for n, v in points.attributes.items() if n in keep})

    def load(self, chunk: "ChunkDescriptor") -> Optional[PointSet]:
        pts = self.points
        mask = _in_box(pts.x, pts.y, chunk.buffered_bounds)
        if self.classification_filter is not None and pts.has_attribute(CLASSIFICATION_ATTRIBUTE):
            mask &= create_classification_mask(
                pts.attribute(CLASSIFICATION_ATTRIBUTE),
                classification_filter=self.classification_filter,
            )
        if not np.any(mask):
            return None
        return _tag_buffer(self._selected(pts.subset(mask)), chunk)
