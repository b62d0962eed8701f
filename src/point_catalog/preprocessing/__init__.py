"""
Data Preprocessing Module

This module handles the data side of a processing run:
- In-memory point collections (PointSet)
- Catalog description of file-partitioned datasets
- Loading the points of one chunk (tile materializers)
"""

from .bounds import Bounds2D, bounds_intersect, union_bounds
from .point_set import PointSet, BUFFER_ATTRIBUTE, CLASSIFICATION_ATTRIBUTE
from .loader import LasTileMaterializer, PointSetMaterializer, TileMaterializer
from .catalog import Catalog, CatalogOptions, scan_las_bounds

__all__ = [
    "Bounds2D",
    "bounds_intersect",
    "union_bounds",
    "PointSet",
    "BUFFER_ATTRIBUTE",
    "CLASSIFICATION_ATTRIBUTE",
    "TileMaterializer",
    "LasTileMaterializer",
    "PointSetMaterializer",
    "Catalog",
    "CatalogOptions",
    "scan_las_bounds",
]
