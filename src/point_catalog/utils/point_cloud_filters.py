"""
Point Cloud Filtering Utilities

Shared utilities for filtering point cloud data on classification codes.
Used by the tile materializers (reading side) and by the terrain workloads
(ground selection), so both apply exactly the same rules.
"""

from typing import List, Optional

import numpy as np

GROUND_CLASS = 2


def create_classification_mask(
    classification: np.ndarray,
    ground_only: bool = False,
    classification_filter: Optional[List[int]] = None,
) -> np.ndarray:
    """Create a boolean mask for point classification filtering.

    Args:
        classification: Array of classification codes for each point
        ground_only: If True, only accept ground points (class 2).
            Ignored if classification_filter is provided.
        classification_filter: List of classification codes to accept.
            If provided, overrides ground_only behavior.

    Returns:
        Boolean array indicating which points pass the filter (True = accept)

    Examples:
        >>> classes = np.array([1, 2, 2, 3, 2, 1])
        >>> create_classification_mask(classes, ground_only=True)
        array([False,  True,  True, False,  True, False])

        >>> create_classification_mask(classes, classification_filter=[1, 2])
        array([ True,  True,  True, False,  True,  True])
    """
    classification = np.asarray(classification)

    if classification_filter is not None:
        return np.isin(classification, np.asarray(classification_filter))

    if ground_only:
        return classification == GROUND_CLASS

    return np.ones(len(classification), dtype=bool)


def get_filter_statistics(
    total_points: int,
    filtered_points: int,
    ground_only: bool = False,
    classification_filter: Optional[List[int]] = None,
) -> dict:
    """Generate statistics about point filtering results.

    Args:
        total_points: Total number of points before filtering
        filtered_points: Number of points after filtering
        ground_only: Whether ground-only filtering was applied
        classification_filter: Classification filter that was used, if any

    Returns:
        Dictionary with counts, percentage and a filter description
    """
    percentage = (filtered_points / total_points * 100.0) if total_points > 0 else 0.0

    if classification_filter is not None:
        filter_desc = f"classification filter: {classification_filter}"
    elif ground_only:
        filter_desc = "ground only (class 2)"
    else:
        filter_desc = "no filter"

    return {
        "total_points": total_points,
        "filtered_points": filtered_points,
        "percentage": percentage,
        "filter_description": filter_desc,
        "ground_only": ground_only,
        "classification_filter": classification_filter,
    }
