"""
Export utilities for per-chunk results.

Writes chunk PointSets to LAS/LAZ files named from an output path template,
so a run can persist its output and hand back a catalog over the new files.

Template fields:
- {id}: chunk id
- {xleft}, {ybottom}, {xright}, {ytop}: chunk core bounds
- {original_filename}: stem of the file the chunk was planned from
  (first source file for grid chunks)
"""

from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np

from .logging import setup_logger

if TYPE_CHECKING:
    from ..preprocessing.point_set import PointSet
    from ..processing.tiling import ChunkDescriptor

logger = setup_logger(__name__)

_LAS_SUFFIXES = (".las", ".laz")
_SKIPPED_DIMENSIONS = {"X", "Y", "Z", "x", "y", "z"}


def _fmt(value: float) -> str:
    return f"{value:g}"


def format_output_path(template: str, chunk: "ChunkDescriptor") -> Path:
    """Resolve an output path template for one chunk.

    Args:
        template: Path template, e.g. "out/tile_{xleft}_{ybottom}"
        chunk: Chunk descriptor supplying the template fields

    Returns:
        Path with a .las suffix appended when the template has no LAS/LAZ suffix

    Raises:
        ValueError: If the template references an unknown field
    """
    c = chunk.core_bounds
    if chunk.origin_file is not None:
        original = Path(chunk.origin_file).stem
    elif chunk.source_files:
        original = Path(chunk.source_files[0]).stem
    else:
        original = f"chunk_{chunk.id}"
    try:
        resolved = template.format(
            id=chunk.id,
            xleft=_fmt(c.min_x),
            ybottom=_fmt(c.min_y),
            xright=_fmt(c.max_x),
            ytop=_fmt(c.max_y),
            original_filename=original,
        )
    except KeyError as e:
        raise ValueError(f"Unknown field {e} in output template '{template}'") from None

    path = Path(resolved)
    if path.suffix.lower() not in _LAS_SUFFIXES:
        path = path.with_name(path.name + ".las")
    return path


class LasWriter:
    """
    Output writer storing chunk PointSets as LAS/LAZ files.

    Attributes other than the standard point format dimensions are stored as
    extra bytes dimensions; boolean attributes are stored as uint8.
    """

    def __init__(self, scale: float = 0.001, point_format: int = 6, version: str = "1.4"):
        self.scale = float(scale)
        self.point_format = point_format
        self.version = version

    def write(self, points: "PointSet", template: str, chunk: "ChunkDescriptor") -> Path:
        """
        Write one chunk result.

        Args:
            points: Points to write
            template: Output path template
            chunk: Chunk that produced the points

        Returns:
            Path of the created file
        """
        import laspy

        output_path = format_output_path(template, chunk)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        header = laspy.LasHeader(point_format=self.point_format, version=self.version)
        header.offsets = np.floor(points.xyz.min(axis=0)) if len(points) else np.zeros(3)
        header.scales = np.array([self.scale, self.scale, self.scale])

        standard = set(header.point_format.dimension_names)
        extra = {}
        for name, values in points.attributes.items():
            if name in _SKIPPED_DIMENSIONS or name in standard:
                continue
            data = np.asarray(values)
            if data.dtype == np.bool_:
                data = data.astype(np.uint8)
            extra[name] = data
            header.add_extra_dim(laspy.ExtraBytesParams(name=name, type=data.dtype))

        las = laspy.LasData(header)
        las.x = points.x
        las.y = points.y
        las.z = points.z

        for name, values in points.attributes.items():
            if name in standard and name not in _SKIPPED_DIMENSIONS:
                las[name] = np.asarray(values)
        for name, data in extra.items():
            las[name] = data

        las.write(str(output_path))
        logger.debug(f"Chunk {chunk.id}: wrote {len(points):,} points to {output_path}")

        return output_path
