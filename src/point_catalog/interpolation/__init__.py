"""
Spatial Interpolation Module

Interchangeable spatial estimators sharing the SpatialEstimator contract:
- TIN: Delaunay triangulation with nearest-neighbour extrapolation
- KNNIDW: k-nearest-neighbour inverse distance weighting
- Kriging: ordinary kriging over the k nearest points (pykrige)
"""

from .base import (
    EstimationResult,
    InterpolationContext,
    SpatialEstimator,
    interpolation_context,
    require_context,
)
from .knnidw import KNNIDW
from .kriging import Kriging, Variogram
from .tin import TIN
from .factory import create_estimator

__all__ = [
    "EstimationResult",
    "InterpolationContext",
    "SpatialEstimator",
    "interpolation_context",
    "require_context",
    "TIN",
    "KNNIDW",
    "Kriging",
    "Variogram",
    "create_estimator",
]
