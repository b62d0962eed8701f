"""Tests for shared point cloud filtering utilities."""

import numpy as np
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).parent.parent / "src"))

from point_catalog.utils.point_cloud_filters import (
    create_classification_mask,
    get_filter_statistics,
)


def test_create_classification_mask_ground_only():
    """Test ground-only filtering (class 2)."""
    classes = np.array([1, 2, 2, 3, 2, 1, 5, 2])
    mask = create_classification_mask(classes, ground_only=True)

    expected = np.array([False, True, True, False, True, False, False, True])
    assert np.array_equal(mask, expected)


def test_create_classification_mask_custom_filter():
    """Custom filter overrides ground_only."""
    classes = np.array([1, 2, 2, 3, 2, 1, 5, 2])
    mask = create_classification_mask(classes, ground_only=True, classification_filter=[1, 3])

    expected = np.array([True, False, False, True, False, True, False, False])
    assert np.array_equal(mask, expected)


def test_create_classification_mask_no_filter():
    """Test no filtering - accept all points."""
    classes = np.array([1, 2, 5])
    assert create_classification_mask(classes).all()


def test_get_filter_statistics():
    stats = get_filter_statistics(200, 50, classification_filter=[2])
    assert stats["percentage"] == 25.0
    assert stats["filter_description"] == "classification filter: [2]"

    stats = get_filter_statistics(0, 0, ground_only=True)
    assert stats["percentage"] == 0.0
    assert stats["filter_description"] == "ground only (class 2)"
