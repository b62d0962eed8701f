"""Terrain workloads driven by the catalog engine."""

from .terrain import ground_points, normalize_height, terrain_model

__all__ = ["ground_points", "normalize_height", "terrain_model"]
