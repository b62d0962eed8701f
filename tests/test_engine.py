"""
Tests for the catalog processing engine.

Runs in-memory catalogs through catalog_apply and checks scheduling,
buffer handling, result assembly and failure reporting.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

sys.path.append(str(Path(__file__).parent.parent / "src"))

from point_catalog.interpolation import KNNIDW
from point_catalog.preprocessing import Bounds2D, Catalog, CatalogOptions, PointSet
from point_catalog.processing import (
    CatalogProcessingError,
    ConfigurationError,
    ContextViolation,
    Empty,
    ProcessingOptions,
    apply_to_points,
    catalog_apply,
    processing_options,
)
from point_catalog.processing.contexts import ChunkContext, WholeCatalogContext
from point_catalog.utils.export import format_output_path


# Module-level user functions for pickling compatibility
def _count_core_points(context):
    """Number of points in the chunk core."""
    return int(np.count_nonzero(~context.points.attribute("buffer")))


def _chunk_id(context):
    return context.chunk_id


def _trimmed(context):
    return context.trim(context.points)


def _fail_on_chunk_two(context):
    if context.chunk_id == 2:
        raise ValueError("cannot process chunk 2")
    return context.chunk_id


def _nothing(context):
    return None


def _estimate_without_context(context):
    return KNNIDW().estimate(context.points, context.points.xy, None)


def _context_kind(context):
    return "chunk" if context.is_chunk else "whole"


@processing_options(need_output_file=True)
def _must_write(context):
    raise AssertionError("must not be scheduled")


@processing_options(need_buffer=True)
def _needs_buffer(context):
    return context.trim(context.points)


class _TextWriter:
    """Writer storing the number of points of a chunk in a text file."""

    def write(self, points, template, chunk):
        path = format_output_path(template, chunk).with_suffix(".txt")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(str(len(points)))
        return path


@pytest.fixture
def quadrant_catalog():
    """20x20 extent, 10 m chunks, no points in chunk 3 (north-west)."""
    x = np.array([2.0, 3.0, 12.0, 15.0, 18.0, 14.0])
    y = np.array([2.0, 7.0, 3.0, 6.0, 14.0, 17.0])
    z = np.arange(6, dtype=float)
    points = PointSet.from_arrays(x, y, z, classification=np.full(6, 2))
    return Catalog(
        extent=Bounds2D(0, 0, 20, 20),
        options=CatalogOptions(chunk_size=10, buffer=0, n_workers=1),
        points=points,
    )


@pytest.fixture
def dense_catalog():
    """Jittered points over a 30x30 extent."""
    rng = np.random.default_rng(3)
    gx, gy = np.meshgrid(np.arange(30) + 0.5, np.arange(30) + 0.5)
    x = gx.ravel() + rng.uniform(-0.4, 0.4, gx.size)
    y = gy.ravel() + rng.uniform(-0.4, 0.4, gy.size)
    z = rng.normal(100.0, 1.0, x.size)
    points = PointSet.from_arrays(x, y, z, classification=np.full(x.size, 2), pid=np.arange(x.size))
    return Catalog(
        extent=Bounds2D(0, 0, 30, 30),
        options=CatalogOptions(chunk_size=10, buffer=2, n_workers=1, select=["pid"]),
        points=points,
    )


class TestCatalogApply:
    def test_empty_chunk_is_skipped(self, quadrant_catalog):
        """Only the three non-empty chunks contribute, in chunk order."""
        result = catalog_apply(quadrant_catalog, _chunk_id)
        assert result == [1, 2, 4]

    def test_core_counts(self, quadrant_catalog):
        result = catalog_apply(quadrant_catalog, _count_core_points)
        assert result == [2, 2, 2]

    def test_trimmed_points_cover_catalog_once(self, dense_catalog):
        """Buffered chunks trimmed back to their cores give every point once."""
        merged = catalog_apply(dense_catalog, _trimmed)

        assert isinstance(merged, PointSet)
        assert not merged.has_attribute("buffer")
        pid = np.sort(merged.attribute("pid"))
        np.testing.assert_array_equal(pid, np.arange(len(dense_catalog.points)))

    def test_parallel_matches_sequential(self, dense_catalog):
        sequential = catalog_apply(dense_catalog, _count_core_points)
        parallel = catalog_apply(dense_catalog.with_options(n_workers=2), _count_core_points)
        assert parallel == sequential
        assert sum(parallel) == len(dense_catalog.points)

    def test_select_limits_attributes(self, dense_catalog):
        merged = catalog_apply(dense_catalog.with_options(select=None), _trimmed)
        assert set(merged.attributes) == {"classification"}

    def test_all_empty_results(self, quadrant_catalog):
        assert catalog_apply(quadrant_catalog, _nothing) is None

    def test_user_function_gets_chunk_context(self, quadrant_catalog):
        assert catalog_apply(quadrant_catalog, _context_kind) == ["chunk"] * 3

    def test_no_automerge(self, dense_catalog):
        parts = catalog_apply(dense_catalog, _trimmed, options=ProcessingOptions(automerge=False))
        assert len(parts) == 9
        assert all(isinstance(p, PointSet) for p in parts)


class TestRequirements:
    def test_missing_output_template_fails_before_scheduling(self, quadrant_catalog):
        with pytest.raises(ConfigurationError):
            catalog_apply(quadrant_catalog, _must_write)

    def test_need_buffer_with_zero_buffer(self, quadrant_catalog):
        with pytest.raises(ConfigurationError):
            catalog_apply(quadrant_catalog, _needs_buffer)

    def test_forced_buffer_from_caller(self, quadrant_catalog):
        result = catalog_apply(
            quadrant_catalog,
            _needs_buffer,
            options=ProcessingOptions(forced_buffer=5),
        )
        assert len(result) == len(quadrant_catalog.points)


class TestWrittenOutput:
    def test_results_written_per_chunk(self, quadrant_catalog, tmp_path):
        catalog = quadrant_catalog.with_options(output_template=str(tmp_path / "out" / "chunk_{id}"))
        paths = catalog_apply(catalog, _trimmed, writer=_TextWriter(), catalog_factory=list)

        assert [p.name for p in paths] == ["chunk_1.txt", "chunk_2.txt", "chunk_4.txt"]
        assert [p.read_text() for p in paths] == ["2", "2", "2"]

    def test_non_point_results_cannot_be_written(self, quadrant_catalog, tmp_path):
        catalog = quadrant_catalog.with_options(output_template=str(tmp_path / "{id}"))
        with pytest.raises(CatalogProcessingError) as exc_info:
            catalog_apply(
                catalog,
                _chunk_id,
                options=ProcessingOptions(need_output_file=True),
                writer=_TextWriter(),
                catalog_factory=list,
            )
        assert exc_info.value.failed_chunk_ids == [1, 2, 4]


class TestFailures:
    def test_failures_are_aggregated(self, quadrant_catalog):
        with pytest.raises(CatalogProcessingError) as exc_info:
            catalog_apply(quadrant_catalog, _fail_on_chunk_two)

        err = exc_info.value
        assert err.failed_chunk_ids == [2]
        assert err.n_chunks == 4
        assert err.partial_result == [1, 4]
        assert err.failures[0].error_type == "ValueError"

    def test_abort_skips_remaining_chunks(self, quadrant_catalog):
        catalog = quadrant_catalog.with_options(on_error="abort")
        with pytest.raises(CatalogProcessingError) as exc_info:
            catalog_apply(catalog, _fail_on_chunk_two)

        err = exc_info.value
        assert err.failed_chunk_ids == [2]
        assert err.skipped == [3, 4]
        assert err.partial_result == [1]


class TestContextViolation:
    def test_raised_to_caller_and_stops_run(self, quadrant_catalog):
        """An estimator used without its context ends the run at the first chunk."""
        with pytest.raises(ContextViolation) as exc_info:
            catalog_apply(quadrant_catalog, _estimate_without_context)
        assert "Chunk 1" in str(exc_info.value)
        assert "3 chunks not scheduled" in str(exc_info.value)

    def test_raised_from_parallel_run(self, dense_catalog):
        with pytest.raises(ContextViolation):
            catalog_apply(dense_catalog.with_options(n_workers=2), _estimate_without_context)

    def test_overrides_continue_policy(self, quadrant_catalog):
        catalog = quadrant_catalog.with_options(on_error="continue")
        with pytest.raises(ContextViolation):
            catalog_apply(catalog, _estimate_without_context)


class TestApplyToPoints:
    def test_whole_context(self, dense_catalog):
        assert apply_to_points(dense_catalog.points, _context_kind) == "whole"

    def test_empty_points(self):
        assert apply_to_points(PointSet.empty(), _context_kind) is Empty

    def test_whole_context_trim_is_identity(self, dense_catalog):
        ctx = WholeCatalogContext(points=dense_catalog.points)
        assert ctx.trim(ctx.points) is ctx.points
        assert ctx.chunk_id is None
        assert ctx.extent == dense_catalog.points.bounds()
        assert ctx.core_mask(ctx.points.x, ctx.points.y).all()

    def test_chunk_context_trim(self):
        points = PointSet.from_arrays([0, 1], [0, 1], [0, 0], buffer=np.array([False, True]))
        ctx = ChunkContext(points=points, chunk=None)
        trimmed = ctx.trim(points)
        assert len(trimmed) == 1
        assert ctx.trim(5) == 5
