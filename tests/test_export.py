"""
Tests for export utilities.

Tests output path templates and LAS export of chunk results.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

sys.path.append(str(Path(__file__).parent.parent / "src"))

from point_catalog.preprocessing import Bounds2D, PointSet
from point_catalog.processing import ChunkDescriptor
from point_catalog.utils.export import LasWriter, format_output_path


@pytest.fixture
def chunk():
    return ChunkDescriptor(
        id=3,
        core_bounds=Bounds2D(1000, 2000, 1250.5, 2250),
        buffered_bounds=Bounds2D(990, 1990, 1260.5, 2260),
        source_files=(Path("data/tile_A.laz"), Path("data/tile_B.laz")),
        extent=Bounds2D(0, 0, 5000, 5000),
    )


@pytest.fixture
def sample_points():
    """Generate sample chunk result."""
    rng = np.random.default_rng(42)
    n_points = 100
    xyz = np.column_stack([
        rng.uniform(1000, 1250, n_points),
        rng.uniform(2000, 2250, n_points),
        rng.uniform(100, 150, n_points),
    ])
    return PointSet(xyz, {
        "classification": rng.integers(1, 6, n_points).astype(np.uint8),
        "z_ref": xyz[:, 2] + 10.0,
        "buffer": np.zeros(n_points, dtype=bool),
    })


class TestFormatOutputPath:
    def test_bounds_fields(self, chunk):
        path = format_output_path("out/dtm_{xleft}_{ybottom}", chunk)
        assert path == Path("out/dtm_1000_2000.las")

    def test_all_fields(self, chunk):
        path = format_output_path("{original_filename}_{id}_{xright}_{ytop}.laz", chunk)
        assert path == Path("tile_A_3_1250.5_2250.laz")

    def test_unknown_field(self, chunk):
        with pytest.raises(ValueError):
            format_output_path("out/{tile}", chunk)

    def test_chunk_without_files(self, chunk):
        from dataclasses import replace
        path = format_output_path("{original_filename}", replace(chunk, source_files=()))
        assert path == Path("chunk_3.las")

    def test_origin_file_preferred(self, chunk):
        from dataclasses import replace
        per_file = replace(chunk, origin_file=Path("data/tile_B.laz"))
        assert format_output_path("out/{original_filename}", per_file) == Path("out/tile_B.las")


class TestLasWriter:
    def test_write_and_read_back(self, tmp_path, chunk, sample_points):
        laspy = pytest.importorskip("laspy")

        path = LasWriter().write(sample_points, str(tmp_path / "norm_{id}"), chunk)
        assert path == tmp_path / "norm_3.las"
        assert path.exists()

        las = laspy.read(str(path))
        assert len(las.points) == len(sample_points)
        np.testing.assert_allclose(las.x, sample_points.x, atol=1e-3)
        np.testing.assert_allclose(las.y, sample_points.y, atol=1e-3)
        np.testing.assert_allclose(las.z, sample_points.z, atol=1e-3)
        np.testing.assert_array_equal(las.classification, sample_points.attribute("classification"))
        np.testing.assert_allclose(las["z_ref"], sample_points.attribute("z_ref"))
        assert "buffer" in las.point_format.extra_dimension_names

    def test_creates_directories(self, tmp_path, chunk, sample_points):
        pytest.importorskip("laspy")
        path = LasWriter().write(sample_points, str(tmp_path / "a" / "b" / "{id}.las"), chunk)
        assert path.parent == tmp_path / "a" / "b"
        assert path.exists()
