"""
k-nearest-neighbour inverse-distance-weighting interpolation.

Each query point takes the weighted mean of its k nearest known points,
weighted by 1/d^p. A query point coincident with a known point takes that
point's value. Neighbour searches use scikit-learn's KD-tree.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
from sklearn.neighbors import NearestNeighbors

from .base import EstimationResult, SpatialEstimator

# Candidates checked per query point when breaking nearest-neighbour ties
_TIE_CANDIDATES = 8


def idw(
    known_xy: np.ndarray,
    known_z: np.ndarray,
    query_xy: np.ndarray,
    k: int,
    p: float,
    n_jobs: Optional[int] = None,
) -> np.ndarray:
    """Inverse-distance-weighted values at query points (always finite)."""
    kk = max(1, min(int(k), len(known_xy)))
    nn = NearestNeighbors(n_neighbors=kk, algorithm="kd_tree", n_jobs=n_jobs).fit(known_xy)
    dist, idx = nn.kneighbors(query_xy, n_neighbors=kk)
    values = known_z[idx]

    out = np.empty(len(query_xy), dtype=np.float64)
    exact = dist[:, 0] == 0.0
    out[exact] = values[exact, 0]

    far = ~exact
    if np.any(far):
        w = 1.0 / np.power(dist[far], p)
        out[far] = np.sum(w * values[far], axis=1) / np.sum(w, axis=1)
    return out


def nearest_neighbor(
    known_xy: np.ndarray,
    known_z: np.ndarray,
    query_xy: np.ndarray,
    n_jobs: Optional[int] = None,
) -> np.ndarray:
    """Value of the nearest known point; ties go to the lowest known index."""
    kk = min(_TIE_CANDIDATES, len(known_xy))
    nn = NearestNeighbors(n_neighbors=kk, algorithm="kd_tree", n_jobs=n_jobs).fit(known_xy)
    dist, idx = nn.kneighbors(query_xy, n_neighbors=kk)

    tied = dist == dist[:, :1]
    best = np.where(tied, idx, np.iinfo(idx.dtype).max).min(axis=1)

    # Every candidate tied: more equidistant points may exist beyond them
    overflow = np.flatnonzero(tied.all(axis=1)) if kk < len(known_xy) else np.empty(0, dtype=int)
    for i in overflow:
        # Relative epsilon keeps every tied point inside the radius
        radius = dist[i, 0] * (1.0 + 1e-9) + 1e-12
        ties = nn.radius_neighbors(query_xy[i:i + 1], radius=radius, return_distance=False)[0]
        best[i] = ties.min()

    return known_z[best]


class KNNIDW(SpatialEstimator):
    """
    k-NN inverse-distance-weighting estimator.

    Args:
        k: Number of nearest neighbours (default 10)
        p: Power of the inverse distance (default 2)
        n_jobs: Parallel jobs for the neighbour search
    """

    name = "knnidw"

    def __init__(self, k: int = 10, p: float = 2.0, n_jobs: Optional[int] = None):
        if int(k) < 1:
            raise ValueError(f"k must be >= 1, got {k}")
        if p < 0:
            raise ValueError(f"p must be >= 0, got {p}")
        self.k = int(k)
        self.p = float(p)
        self.n_jobs = n_jobs

    def _estimate(self, known_xy, known_z, query_xy) -> EstimationResult:
        values = idw(known_xy, known_z, query_xy, self.k, self.p, n_jobs=self.n_jobs)
        return EstimationResult(values=values, valid=np.ones(len(values), dtype=bool))

    def __repr__(self) -> str:
        return f"KNNIDW(k={self.k}, p={self.p:g})"
