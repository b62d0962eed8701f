"""Build a spatial estimator from configuration."""

from __future__ import annotations

from ..utils.config import InterpolationConfig
from ..utils.logging import CollaboratorLogging
from .base import SpatialEstimator
from .knnidw import KNNIDW
from .kriging import Kriging, Variogram
from .tin import TIN


def create_estimator(config: InterpolationConfig) -> SpatialEstimator:
    """Instantiate the estimator selected by ``config.method``."""
    if config.method == "tin":
        return TIN(n_jobs=config.n_jobs)
    if config.method == "knnidw":
        return KNNIDW(k=config.knnidw.k, p=config.knnidw.p, n_jobs=config.n_jobs)
    if config.method == "kriging":
        m = config.kriging.model
        return Kriging(
            model=Variogram(psill=m.psill, model=m.model, range=m.range, nugget=m.nugget),
            k=config.kriging.k,
            log_config=CollaboratorLogging(verbose=config.kriging.verbose),
        )
    raise ValueError(f"Unknown interpolation method: {config.method}")
