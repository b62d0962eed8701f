"""
Chunk planning for tiled catalog processing.

Divides a catalog extent into chunks that can be processed independently.
Each chunk has:
- a 'core' region: the area the chunk is responsible for
- a 'buffered' region: core + buffer margin, clipped to the catalog extent

Core regions tile the extent with no gaps and no overlaps. Point membership
is half-open ([min, max)) except on the catalog's max edges, which are
closed, so every point of the catalog belongs to exactly one core.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np

from ..preprocessing.bounds import Bounds2D, bounds_intersect
from .errors import ConfigurationError

# Tolerance when counting grid cells so float noise does not add sliver chunks
_EPS = 1e-9


@dataclass(frozen=True)
class ChunkDescriptor:
    """A single chunk of a processing plan.

    Attributes:
        id: 1-based chunk identifier, stable across runs with the same inputs
        core_bounds: Region whose points the chunk is responsible for
        buffered_bounds: Core expanded by the buffer width, clipped to the extent
        source_files: Files whose extent intersects the buffered region
        extent: Catalog extent the plan was computed for
        closed_core: If True the core is closed on every edge (one chunk per file)
        origin_file: File the chunk was planned from (one chunk per file only)
    """
    id: int
    core_bounds: Bounds2D
    buffered_bounds: Bounds2D
    source_files: Tuple[Path, ...]
    extent: Bounds2D
    closed_core: bool = False
    origin_file: Optional[Path] = None

    def core_mask(self, x: np.ndarray, y: np.ndarray) -> np.ndarray:
        """Boolean mask of the points falling in the core region."""
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        c = self.core_bounds
        if self.closed_core:
            return (x >= c.min_x) & (x <= c.max_x) & (y >= c.min_y) & (y <= c.max_y)

        upper_x = (x <= c.max_x) if c.max_x >= self.extent.max_x else (x < c.max_x)
        upper_y = (y <= c.max_y) if c.max_y >= self.extent.max_y else (y < c.max_y)
        return (x >= c.min_x) & upper_x & (y >= c.min_y) & upper_y

    @property
    def buffer_width(self) -> float:
        return max(
            self.core_bounds.min_x - self.buffered_bounds.min_x,
            self.core_bounds.min_y - self.buffered_bounds.min_y,
            self.buffered_bounds.max_x - self.core_bounds.max_x,
            self.buffered_bounds.max_y - self.core_bounds.max_y,
        )


def _n_cells(length: float, size: float) -> int:
    return max(1, int(math.ceil(length / size - _EPS)))


class ChunkPlanner:
    """Generate the ordered chunk sequence covering a catalog extent.

    With chunk_size > 0 a regular grid anchored at the extent's lower-left
    corner is laid over the extent (edge chunks may be smaller). With
    chunk_size == 0 every source file becomes one chunk whose core is the
    file's bounding box.

    Attributes:
        extent: Bounding box covering the catalog
        files: Source files with their extents, in catalog order
        chunk_size: Chunk side length in data units (0 = one chunk per file)
        buffer: Buffer width around each chunk in data units
    """

    def __init__(
        self,
        extent: Bounds2D,
        chunk_size: float,
        buffer: float,
        files: Sequence[Tuple[Path, Bounds2D]] = (),
    ) -> None:
        if chunk_size < 0:
            raise ConfigurationError(f"chunk_size must be >= 0, got {chunk_size}")
        if buffer < 0:
            raise ConfigurationError(f"buffer must be >= 0, got {buffer}")
        if chunk_size == 0 and not files:
            raise ConfigurationError("chunk_size=0 (one chunk per file) requires source files")

        self.extent = extent
        self.files = list(files)
        self.chunk_size = float(chunk_size)
        self.buffer = float(buffer)

    def _source_files(self, region: Bounds2D) -> Tuple[Path, ...]:
        return tuple(Path(p) for p, b in self.files if bounds_intersect(b, region))

    def _buffered(self, core: Bounds2D) -> Bounds2D:
        return core.expand(self.buffer).clip(self.extent)

    def _grid_chunks(self) -> Iterator[ChunkDescriptor]:
        gb = self.extent
        tx = _n_cells(gb.width, self.chunk_size)
        ty = _n_cells(gb.height, self.chunk_size)

        chunk_id = 0
        # Row-major, south row first, west to east
        for j in range(ty):
            y0 = gb.min_y + j * self.chunk_size
            y1 = gb.max_y if j == ty - 1 else min(gb.max_y, gb.min_y + (j + 1) * self.chunk_size)
            for i in range(tx):
                x0 = gb.min_x + i * self.chunk_size
                x1 = gb.max_x if i == tx - 1 else min(gb.max_x, gb.min_x + (i + 1) * self.chunk_size)

                chunk_id += 1
                core = Bounds2D(min_x=x0, min_y=y0, max_x=x1, max_y=y1)
                buffered = self._buffered(core)
                yield ChunkDescriptor(
                    id=chunk_id,
                    core_bounds=core,
                    buffered_bounds=buffered,
                    source_files=self._source_files(buffered),
                    extent=gb,
                )

    def _file_chunks(self) -> Iterator[ChunkDescriptor]:
        for chunk_id, (path, fb) in enumerate(self.files, start=1):
            core = fb.clip(self.extent)
            buffered = self._buffered(core)
            yield ChunkDescriptor(
                id=chunk_id,
                core_bounds=core,
                buffered_bounds=buffered,
                source_files=self._source_files(buffered),
                extent=self.extent,
                closed_core=True,
                origin_file=Path(path),
            )

    def chunks(self) -> List[ChunkDescriptor]:
        """Compute the full chunk plan, ordered by chunk id."""
        if self.chunk_size > 0:
            return list(self._grid_chunks())
        return list(self._file_chunks())


def plan_chunks(
    catalog,
    chunk_size: Optional[float] = None,
    buffer: Optional[float] = None,
) -> List[ChunkDescriptor]:
    """Plan the chunks of a catalog using its options unless overridden.

    An in-memory catalog has no files, so chunk_size=0 plans a single chunk
    over the whole extent.
    """
    opts = catalog.options
    size = opts.chunk_size if chunk_size is None else chunk_size
    if size == 0 and not catalog.files:
        size = max(catalog.extent.width, catalog.extent.height, 1.0)
    return ChunkPlanner(
        extent=catalog.extent,
        chunk_size=size,
        buffer=opts.buffer if buffer is None else buffer,
        files=catalog.files,
    ).chunks()
