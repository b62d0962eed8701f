"""Tests for processing requirements, error aggregation and result assembly."""

import pickle
import sys
from pathlib import Path

import numpy as np
import pytest

sys.path.append(str(Path(__file__).parent.parent / "src"))

from point_catalog.preprocessing import CatalogOptions, PointSet
from point_catalog.processing import (
    CatalogProcessingError,
    ConfigurationError,
    ContextViolation,
    Empty,
    ProcessingOptions,
    TaskFailure,
    WrittenArtifact,
    assemble_results,
    processing_options,
    resolve_options,
)
from point_catalog.processing.assembly import is_empty
from point_catalog.processing.options import declared_options


@processing_options(need_buffer=True, forced_buffer=5.0)
def _needs_buffer(context):
    return None


def _plain(context):
    return None


class TestProcessingOptions:
    def test_decorator_attaches_options(self):
        opts = declared_options(_needs_buffer)
        assert opts.need_buffer
        assert opts.forced_buffer == 5.0

    def test_undecorated_function_has_defaults(self):
        assert declared_options(_plain) == ProcessingOptions()

    def test_merge_keeps_strictest(self):
        a = ProcessingOptions(need_buffer=True, forced_buffer=2.0, automerge=True)
        b = ProcessingOptions(need_output_file=True, forced_buffer=4.0, automerge=False)
        merged = a.merged(b)

        assert merged.need_buffer and merged.need_output_file
        assert merged.forced_buffer == 4.0
        assert merged.automerge is False
        assert a.merged(None) is a


class TestResolveOptions:
    def test_defaults_pass_through(self):
        run = resolve_options(CatalogOptions(chunk_size=100, buffer=10, n_workers=3), ProcessingOptions())
        assert run.buffer == 10
        assert run.chunk_size == 100
        assert run.n_workers == 3
        assert run.on_error == "continue"

    def test_forced_buffer_raises_buffer(self):
        run = resolve_options(CatalogOptions(buffer=2), ProcessingOptions(forced_buffer=8))
        assert run.buffer == 8

    def test_forced_buffer_never_lowers(self):
        run = resolve_options(CatalogOptions(buffer=20), ProcessingOptions(forced_buffer=8))
        assert run.buffer == 20

    def test_need_buffer_with_zero_buffer(self):
        with pytest.raises(ConfigurationError):
            resolve_options(CatalogOptions(buffer=0), ProcessingOptions(need_buffer=True))

    def test_need_output_file_without_template(self):
        with pytest.raises(ConfigurationError):
            resolve_options(CatalogOptions(), ProcessingOptions(need_output_file=True))

    def test_template_from_options(self):
        run = resolve_options(
            CatalogOptions(),
            ProcessingOptions(need_output_file=True, output_template="out/{id}"),
        )
        assert run.output_template == "out/{id}"

    def test_forced_select(self):
        run = resolve_options(CatalogOptions(select=["intensity"]), ProcessingOptions(forced_select="*"))
        assert run.select == "*"

    @pytest.mark.parametrize("opts", [
        CatalogOptions(chunk_size=-1),
        CatalogOptions(buffer=-1),
        CatalogOptions(on_error="retry"),
    ])
    def test_invalid_catalog_options(self, opts):
        with pytest.raises(ConfigurationError):
            resolve_options(opts, ProcessingOptions())

    def test_configuration_error_is_value_error(self):
        assert issubclass(ConfigurationError, ValueError)


class TestCatalogProcessingError:
    def test_failures_sorted_and_reported(self):
        failures = [
            TaskFailure.from_exception(4, KeyError("z")),
            TaskFailure.from_exception(2, ValueError("bad")),
        ]
        err = CatalogProcessingError(failures, n_chunks=6, partial_result=[1, 2])

        assert err.failed_chunk_ids == [2, 4]
        assert err.partial_result == [1, 2]
        assert "2 chunks failed out of 6" in str(err)
        assert str(err.failures[0]) == "chunk 2: ValueError: bad"

    def test_context_violation_is_fatal(self):
        assert TaskFailure.from_exception(1, ContextViolation("no token")).is_fatal
        assert not TaskFailure.from_exception(1, ValueError("bad")).is_fatal

    def test_skipped_in_message(self):
        err = CatalogProcessingError([TaskFailure(1, "RuntimeError", "x")], n_chunks=4, skipped=[4, 3])
        assert err.skipped == [3, 4]
        assert "not scheduled" in str(err)


class TestAssembly:
    def test_empty_singleton_survives_pickling(self):
        assert pickle.loads(pickle.dumps(Empty)) is Empty
        assert not Empty
        assert is_empty(None) and is_empty(Empty)

    def test_all_empty(self):
        assert assemble_results([Empty, None, Empty]) is None

    def test_point_sets_are_concatenated_in_order(self):
        a = PointSet.from_arrays([1], [1], [1], classification=np.array([2]))
        b = PointSet.from_arrays([2, 3], [2, 3], [2, 3], classification=np.array([2, 1]))
        merged = assemble_results([a, Empty, b])

        assert isinstance(merged, PointSet)
        np.testing.assert_array_equal(merged.x, [1, 2, 3])
        np.testing.assert_array_equal(merged.attribute("classification"), [2, 2, 1])

    def test_other_values_become_list(self):
        assert assemble_results([3, Empty, {"n": 1}]) == [3, {"n": 1}]

    def test_no_automerge_returns_list(self):
        a = PointSet.from_arrays([1], [1], [1])
        result = assemble_results([a, Empty, a], automerge=False)
        assert result == [a, a]

    def test_written_artifacts_build_catalog(self):
        written = [WrittenArtifact(Path("a.las"), 1), WrittenArtifact(Path("b.las"), 3)]
        assert assemble_results(written) == [Path("a.las"), Path("b.las")]
        assert assemble_results(written, catalog_factory=tuple) == (Path("a.las"), Path("b.las"))

    def test_mixed_kinds_rejected(self):
        mixed = [WrittenArtifact(Path("a.las"), 1), PointSet.from_arrays([1], [1], [1])]
        with pytest.raises(ConfigurationError):
            assemble_results(mixed)
