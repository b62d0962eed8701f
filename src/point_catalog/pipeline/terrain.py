"""
Terrain workloads run through the catalog engine.

Both functions follow the engine's user function contract: the first
argument is a ChunkContext or WholeCatalogContext, the remaining ones are
the user arguments. Both interpolate ground elevation with any
SpatialEstimator and therefore open an interpolation context.

- normalize_height: subtract the ground surface from every point
  (pass-through workload, typically written to new files)
- terrain_model: ground elevation on a regular grid (reduction workload,
  merged in memory)
"""

from __future__ import annotations

import logging

import numpy as np

from ..interpolation.base import SpatialEstimator, interpolation_context
from ..preprocessing.point_set import CLASSIFICATION_ATTRIBUTE, PointSet
from ..processing.assembly import Empty
from ..processing.contexts import ProcessingContext
from ..processing.options import processing_options
from ..utils.point_cloud_filters import create_classification_mask

logger = logging.getLogger(__name__)

REFERENCE_Z_ATTRIBUTE = "z_ref"

# Tolerance when counting grid cells so float noise does not add a column
_EPS = 1e-9


def ground_points(points: PointSet) -> PointSet:
    """Points classified as ground (class 2)."""
    if not points.has_attribute(CLASSIFICATION_ATTRIBUTE):
        raise ValueError("Ground interpolation needs the 'classification' attribute")
    mask = create_classification_mask(points.attribute(CLASSIFICATION_ATTRIBUTE), ground_only=True)
    return points.subset(mask)


@processing_options(need_buffer=True, forced_select="*")
def normalize_height(context: ProcessingContext, estimator: SpatialEstimator):
    """
    Normalize point heights against the interpolated ground surface.

    Ground points of the whole tile (buffer included) are the known samples;
    only the points the context is responsible for are returned. The
    original elevation is kept in the 'z_ref' attribute. Every attribute is
    read so the normalized points can be written out without losing any.
    """
    ground = ground_points(context.points)
    if len(ground) == 0:
        raise ValueError(f"No ground points available in chunk {context.chunk_id}")

    points = context.trim(context.points)
    if len(points) == 0:
        return Empty

    token = interpolation_context("normalize_height")
    z_ground = estimator.estimate(ground, points, token).values

    logger.debug(f"normalize_height: {len(points):,} points against {len(ground):,} ground points")
    return points.with_attribute(REFERENCE_Z_ATTRIBUTE, points.z).with_z(points.z - z_ground)


@processing_options(need_buffer=True)
def terrain_model(context: ProcessingContext, estimator: SpatialEstimator, resolution: float = 1.0):
    """
    Interpolate ground elevation at grid cell centres.

    The grid is anchored at the extent's lower-left corner so chunks agree on
    cell positions, and covers the whole extent: when the extent is not a
    multiple of the resolution, the last row and column are partial cells
    whose centre lies past the extent's max edge. A cell belongs to the chunk
    whose core holds its lower-left corner, which makes the merged grid free
    of duplicates.

    Returns:
        PointSet of (x, y, z) cell centres, or Empty when the chunk owns no cell
    """
    if resolution <= 0:
        raise ValueError(f"resolution must be > 0, got {resolution}")

    ground = ground_points(context.points)
    if len(ground) == 0:
        raise ValueError(f"No ground points available in chunk {context.chunk_id}")

    region = context.core_bounds
    origin = context.extent
    nx = max(1, int(np.ceil(origin.width / resolution - _EPS)))
    ny = max(1, int(np.ceil(origin.height / resolution - _EPS)))

    i0 = max(0, int(np.floor((region.min_x - origin.min_x) / resolution)))
    i1 = min(nx, int(np.ceil((region.max_x - origin.min_x) / resolution)) + 1)
    j0 = max(0, int(np.floor((region.min_y - origin.min_y) / resolution)))
    j1 = min(ny, int(np.ceil((region.max_y - origin.min_y) / resolution)) + 1)
    gx, gy = np.meshgrid(
        origin.min_x + np.arange(i0, i1) * resolution,
        origin.min_y + np.arange(j0, j1) * resolution,
    )
    gx, gy = gx.ravel(), gy.ravel()

    keep = context.core_mask(gx, gy)
    if not np.any(keep):
        return Empty

    query = np.column_stack([gx[keep], gy[keep]]) + 0.5 * resolution
    token = interpolation_context("terrain_model")
    z = estimator.estimate(ground, query, token).values

    return PointSet.from_arrays(query[:, 0], query[:, 1], z)
