"""
Catalog descriptor

A catalog is a collection of spatially disjoint point cloud files treated
as one logical dataset. It records the files with their header extents,
the overall extent, and the processing options (chunk size, buffer, workers,
...) that the engine reads when driving the catalog through a run.
An in-memory variant wraps a single PointSet so the same engine can process
already-loaded data.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Iterable, List, Literal, Optional, Sequence, Tuple, Union

from .bounds import Bounds2D, union_bounds
from .loader import LasTileMaterializer, PointSetMaterializer, TileMaterializer
from .point_set import PointSet
from ..utils.logging import setup_logger

logger = setup_logger(__name__)

# Simple in-process cache for LAS/LAZ header bounds to avoid rescanning
_BOUNDS_CACHE: Dict[str, Bounds2D] = {}

AttributeSelection = Union[Literal["*"], List[str], None]


@dataclass(frozen=True)
class CatalogOptions:
    """Processing options attached to a catalog.

    Attributes:
        chunk_size: Side length of the square chunks. 0 means one chunk per file.
        buffer: Buffer width added around every chunk
        n_workers: Number of worker processes (None = cpu_count - 1)
        select: Extra attributes to read ("*" for all, None for classification only)
        classification_filter: Optional list of classification codes to keep
        output_template: Path template for per-chunk output files
        on_error: "continue" collects every chunk failure and reports them at the end;
            "abort" stops scheduling new chunks after the first failure
        chunk_points: Points per laspy streaming chunk
    """
    chunk_size: float = 0.0
    buffer: float = 30.0
    n_workers: Optional[int] = None
    select: AttributeSelection = None
    classification_filter: Optional[List[int]] = None
    output_template: Optional[str] = None
    on_error: Literal["continue", "abort"] = "continue"
    chunk_points: int = 1_000_000


def scan_las_bounds(files: Iterable[str | Path]) -> List[Tuple[Path, Bounds2D]]:
    """Scan LAS/LAZ file headers to get 2D bounds per file.

    Args:
        files: Iterable of LAS/LAZ file paths

    Returns:
        List of (Path, Bounds2D) tuples with header extents.
    """
    import laspy

    out: List[Tuple[Path, Bounds2D]] = []
    for f in files:
        fp = Path(f)
        key = str(fp.resolve())
        b = _BOUNDS_CACHE.get(key)
        if b is None:
            with laspy.open(str(fp)) as r:
                h = r.header
                b = Bounds2D(
                    float(h.x_min),
                    float(h.y_min),
                    float(h.x_max),
                    float(h.y_max),
                )
            _BOUNDS_CACHE[key] = b
        out.append((fp, b))
    return out


@dataclass(frozen=True)
class Catalog:
    """File-partitioned (or in-memory) point cloud collection.

    Attributes:
        extent: Bounding box covering every file
        files: Source files with their header extents, in catalog order
        options: Processing options used by the engine
        points: Backing PointSet for an in-memory catalog, None for files
    """
    extent: Bounds2D
    files: Tuple[Tuple[Path, Bounds2D], ...] = ()
    options: CatalogOptions = field(default_factory=CatalogOptions)
    points: Optional[PointSet] = None

    @classmethod
    def from_files(cls, paths: Sequence[str | Path], options: Optional[CatalogOptions] = None) -> "Catalog":
        """Build a catalog over LAS/LAZ files by reading their headers."""
        if not paths:
            raise ValueError("Cannot build a catalog from an empty file list")
        files = scan_las_bounds(paths)
        extent = union_bounds(b for _, b in files)
        logger.info(
            f"Catalog over {len(files)} files, extent "
            f"({extent.min_x:.2f}, {extent.min_y:.2f}) - ({extent.max_x:.2f}, {extent.max_y:.2f})"
        )
        return cls(extent=extent, files=tuple(files), options=options or CatalogOptions())

    @classmethod
    def from_points(cls, points: PointSet, options: Optional[CatalogOptions] = None) -> "Catalog":
        """Wrap an in-memory PointSet so it can be processed chunk by chunk."""
        extent = points.bounds()
        if extent is None:
            raise ValueError("Cannot build a catalog from an empty PointSet")
        return cls(extent=extent, options=options or CatalogOptions(), points=points)

    @property
    def paths(self) -> List[Path]:
        return [p for p, _ in self.files]

    @property
    def in_memory(self) -> bool:
        return self.points is not None

    def with_options(self, **changes) -> "Catalog":
        """Return a copy of the catalog with some options replaced."""
        return replace(self, options=replace(self.options, **changes))

    def materializer(self, select: AttributeSelection = None) -> TileMaterializer:
        """Tile materializer reading this catalog's data for a chunk."""
        if self.points is not None:
            return PointSetMaterializer(
                self.points,
                select=select,
                classification_filter=self.options.classification_filter,
            )
        return LasTileMaterializer(
            select=select,
            classification_filter=self.options.classification_filter,
            chunk_points=self.options.chunk_points,
        )

    def __len__(self) -> int:
        return len(self.files)
