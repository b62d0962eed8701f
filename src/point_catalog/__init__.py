"""
Point Catalog Package

Tiled processing of large, file-partitioned point cloud collections.
A catalog's extent is split into buffered chunks, a user function runs on
every chunk in parallel worker processes, buffer points are trimmed and the
results are merged in memory or written to new files.
The interpolation module provides the spatial estimators (triangulation,
k-NN inverse distance weighting, kriging) used by the terrain workloads.
"""

__version__ = "0.1.0"

from .preprocessing import *
from .processing import *
from .interpolation import *
from .pipeline import *
from .utils import *

__all__ = [
    "preprocessing",
    "processing",
    "interpolation",
    "pipeline",
    "utils",
]
