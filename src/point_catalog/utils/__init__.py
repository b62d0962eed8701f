"""
Utility Functions Module

This module provides common utility functions used across the project.
- Logging setup and third-party output redirection
- Point cloud filtering utilities
- LAS/LAZ export of chunk results
"""

from .logging import setup_logger, CollaboratorLogging
from .point_cloud_filters import create_classification_mask, get_filter_statistics
from .export import LasWriter, format_output_path

__all__ = [
    "setup_logger",
    "CollaboratorLogging",
    "create_classification_mask",
    "get_filter_statistics",
    "LasWriter",
    "format_output_path",
]
