"""
Kriging interpolation.

Delegates to pykrige's ordinary kriging with a fixed variogram model and a
moving neighbourhood of the k closest known points. The solver's own
console output is routed through our logger at the level given by the
CollaboratorLogging passed to the estimator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np

from ..utils.logging import CollaboratorLogging, redirect_stdout_stderr_to_logger
from .base import EstimationResult, SpatialEstimator
from .knnidw import nearest_neighbor

logger = logging.getLogger(__name__)

VARIOGRAM_MODELS = ("spherical", "exponential", "gaussian", "hole-effect")


@dataclass(frozen=True)
class Variogram:
    """Variogram model with partial sill, range and nugget.

    Attributes:
        psill: Partial sill
        model: One of "spherical", "exponential", "gaussian", "hole-effect"
        range: Range of the model in data units
        nugget: Nugget effect
    """
    psill: float = 0.59
    model: str = "spherical"
    range: float = 874.0
    nugget: float = 0.0

    def __post_init__(self) -> None:
        if self.model not in VARIOGRAM_MODELS:
            raise ValueError(f"Unsupported variogram model '{self.model}', expected one of {VARIOGRAM_MODELS}")
        if self.range <= 0:
            raise ValueError(f"Variogram range must be > 0, got {self.range}")

    def parameters(self) -> Dict[str, float]:
        return {"psill": float(self.psill), "range": float(self.range), "nugget": float(self.nugget)}


class Kriging(SpatialEstimator):
    """
    Ordinary kriging estimator over the k nearest known points.

    Args:
        model: Variogram model (default: spherical, psill 0.59, range 874)
        k: Number of nearest known points used per prediction (default 10)
        log_config: Verbosity of the kriging solver for each call
    """

    name = "kriging"

    def __init__(
        self,
        model: Optional[Variogram] = None,
        k: int = 10,
        log_config: Optional[CollaboratorLogging] = None,
    ):
        if int(k) < 1:
            raise ValueError(f"k must be >= 1, got {k}")
        self.model = model or Variogram()
        self.k = int(k)
        self.log_config = log_config or CollaboratorLogging()

    def _krige(self, known_xy: np.ndarray, known_z: np.ndarray, query_xy: np.ndarray) -> np.ndarray:
        from pykrige.ok import OrdinaryKriging

        n = len(known_xy)
        kk = min(self.k, n)
        with redirect_stdout_stderr_to_logger(logger, self.log_config.effective_level()):
            ok = OrdinaryKriging(
                known_xy[:, 0],
                known_xy[:, 1],
                known_z,
                variogram_model=self.model.model,
                variogram_parameters=self.model.parameters(),
                verbose=self.log_config.verbose,
                enable_plotting=False,
            )
            if 2 <= kk < n:
                zhat, _ = ok.execute(
                    "points", query_xy[:, 0], query_xy[:, 1],
                    backend="loop", n_closest_points=kk,
                )
            else:
                zhat, _ = ok.execute("points", query_xy[:, 0], query_xy[:, 1], backend="vectorized")

        return np.asarray(np.ma.filled(np.ma.asarray(zhat, dtype=np.float64), np.nan), dtype=np.float64)

    def _estimate(self, known_xy, known_z, query_xy) -> EstimationResult:
        if len(known_xy) == 1:
            values = np.full(len(query_xy), float(known_z[0]))
        elif self.k == 1:
            # A one-point neighbourhood predicts the nearest known value
            values = nearest_neighbor(known_xy, known_z, query_xy)
        else:
            values = self._krige(known_xy, known_z, query_xy)

        gaps = ~np.isfinite(values)
        if np.any(gaps):
            logger.warning(f"kriging: {int(gaps.sum())} non-finite predictions replaced by nearest neighbour")
            values[gaps] = nearest_neighbor(known_xy, known_z, query_xy[gaps])

        return EstimationResult(values=values, valid=np.ones(len(values), dtype=bool))

    def __repr__(self) -> str:
        return f"Kriging(model={self.model}, k={self.k})"
