"""
Triangulation-based interpolation with nearest-neighbour extrapolation.

Known points are triangulated (Delaunay, via scipy) and query points inside
the convex hull get the linear (barycentric) interpolation of their
enclosing triangle. Query points outside the hull then take the value of
the nearest query point that was interpolated, so extrapolation follows the
fitted surface rather than the raw samples.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from scipy.spatial import Delaunay, QhullError

from .base import EstimationResult, SpatialEstimator
from .knnidw import nearest_neighbor

logger = logging.getLogger(__name__)


def delaunay_interpolate(known_xy: np.ndarray, known_z: np.ndarray, query_xy: np.ndarray) -> np.ndarray:
    """
    Linear interpolation on the Delaunay triangulation of the known points.

    Returns:
        (M,) values, NaN for query points outside the triangulation (or for
        every point when the known points cannot be triangulated)
    """
    values = np.full(len(query_xy), np.nan, dtype=np.float64)
    try:
        tri = Delaunay(known_xy)
    except (QhullError, ValueError) as e:
        logger.debug(f"Triangulation failed for {len(known_xy)} points: {e}")
        return values

    simplex = tri.find_simplex(query_xy)
    inside = simplex >= 0
    if not np.any(inside):
        return values

    # Affine transform to barycentric coordinates per enclosing triangle
    T = tri.transform[simplex[inside]]
    delta = query_xy[inside] - T[:, 2]
    b = np.einsum("ijk,ik->ij", T[:, :2], delta)
    bary = np.column_stack([b, 1.0 - b.sum(axis=1)])

    vertices = tri.simplices[simplex[inside]]
    values[inside] = np.sum(known_z[vertices] * bary, axis=1)
    return values


class TIN(SpatialEstimator):
    """
    Delaunay triangulation estimator with nearest-neighbour fallback.

    Args:
        n_jobs: Parallel jobs for the fallback neighbour search
    """

    name = "tin"

    def __init__(self, n_jobs: Optional[int] = None):
        self.n_jobs = n_jobs

    def _estimate(self, known_xy, known_z, query_xy) -> EstimationResult:
        z = delaunay_interpolate(known_xy, known_z, query_xy)
        gaps = np.isnan(z)

        if np.any(gaps):
            filled = ~gaps
            if np.any(filled):
                z[gaps] = nearest_neighbor(query_xy[filled], z[filled], query_xy[gaps], n_jobs=self.n_jobs)
            else:
                # Nothing could be triangulated; use the raw samples
                z[gaps] = nearest_neighbor(known_xy, known_z, query_xy[gaps], n_jobs=self.n_jobs)
            logger.debug(f"tin: {int(gaps.sum())} points outside the convex hull extrapolated")

        return EstimationResult(values=z, valid=np.ones(len(z), dtype=bool))

    def __repr__(self) -> str:
        return "TIN()"
