"""
Spatial estimator contract.

Every interpolation algorithm implements SpatialEstimator: constructed with
fixed parameters, it maps known points with values to estimated values at
query coordinates. Estimators only run inside an interpolation context: the
caller (e.g. height normalization) creates an InterpolationContext token and
passes it explicitly, and an estimator invoked without one raises
ContextViolation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Union

import numpy as np

from ..preprocessing.point_set import PointSet
from ..processing.errors import ContextViolation


@dataclass(frozen=True)
class InterpolationContext:
    """Token proving the caller is a recognized interpolation workload.

    Attributes:
        caller: Name of the workload that opened the context
    """
    caller: str


def interpolation_context(caller: str) -> InterpolationContext:
    """Open an interpolation context on behalf of ``caller``."""
    return InterpolationContext(caller=caller)


def require_context(context: object, algorithm: str) -> InterpolationContext:
    """Fail unless ``context`` is an InterpolationContext."""
    if not isinstance(context, InterpolationContext):
        raise ContextViolation(
            f"The '{algorithm}' algorithm is not allowed in this context; "
            "it can only be used by interpolation workloads"
        )
    return context


@dataclass(frozen=True)
class EstimationResult:
    """Estimated values with a per-point validity flag.

    Attributes:
        values: (M,) estimated values, NaN where invalid
        valid: (M,) boolean flags
    """
    values: np.ndarray
    valid: np.ndarray

    @property
    def all_valid(self) -> bool:
        return bool(np.all(self.valid))

    @property
    def n_invalid(self) -> int:
        return int(np.count_nonzero(~self.valid))


def as_query_xy(query: Union[np.ndarray, PointSet]) -> np.ndarray:
    """Query coordinates as an (M, 2) float array."""
    if isinstance(query, PointSet):
        return np.asarray(query.xy, dtype=np.float64)
    xy = np.asarray(query, dtype=np.float64)
    if xy.ndim != 2 or xy.shape[1] < 2:
        raise ValueError(f"Query coordinates must be (M, 2), got {xy.shape}")
    return xy[:, :2]


class SpatialEstimator(ABC):
    """Base class for spatial interpolation algorithms."""

    name: str = "estimator"

    def estimate(
        self,
        known: PointSet,
        query: Union[np.ndarray, PointSet],
        context: InterpolationContext,
    ) -> EstimationResult:
        """
        Estimate values at query coordinates from known points.

        Args:
            known: Points with known values (their z)
            query: Query coordinates, (M, 2) array or PointSet
            context: Interpolation context token

        Returns:
            EstimationResult with values and validity flags

        Raises:
            ContextViolation: If ``context`` is not an InterpolationContext
            ValueError: If there are no known points
        """
        require_context(context, self.name)
        xy = as_query_xy(query)
        if len(known) == 0:
            raise ValueError(f"{self.name}: cannot interpolate without known points")
        if len(xy) == 0:
            return EstimationResult(np.empty(0), np.empty(0, dtype=bool))
        return self._estimate(np.asarray(known.xy), np.asarray(known.z), xy)

    @abstractmethod
    def _estimate(self, known_xy: np.ndarray, known_z: np.ndarray, query_xy: np.ndarray) -> EstimationResult:
        ...
