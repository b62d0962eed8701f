"""
Catalog processing engine.

Drives a user function over every chunk of a catalog in parallel:

1. merge the function's declared ProcessingOptions with the caller's and
   validate them against the catalog options (nothing runs on failure)
2. plan the buffered chunks
3. per chunk, in a worker: materialize the tile, skip it if empty, call
   ``user_function(ChunkContext, *user_args)``, and write the result when an
   output template is configured
4. assemble the results in chunk-id order, or raise an aggregate error
   listing every failed chunk, or re-raise a ContextViolation raised by
   any chunk
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from functools import partial
from typing import Any, Callable, Optional, Tuple

from ..preprocessing.catalog import Catalog
from ..preprocessing.loader import TileMaterializer
from ..preprocessing.point_set import PointSet
from ..utils.export import LasWriter
from .assembly import Empty, WrittenArtifact, assemble_results, is_empty
from .contexts import ChunkContext, WholeCatalogContext
from .errors import CatalogProcessingError, ConfigurationError, ContextViolation
from .options import ProcessingOptions, declared_options, resolve_options
from .parallel_executor import ChunkParallelExecutor
from .tiling import ChunkDescriptor, plan_chunks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChunkJob:
    """Everything a worker needs to process one chunk (must be picklable)."""
    user_function: Callable
    user_args: Tuple[Any, ...]
    materializer: TileMaterializer
    writer: Any = None
    output_template: Optional[str] = None
    need_output_file: bool = False


def process_chunk(chunk: ChunkDescriptor, job: ChunkJob) -> Any:
    """
    Process a single chunk in a worker process.

    Returns:
        Empty, a WrittenArtifact, or the in-memory value returned by the
        user function
    """
    tile = job.materializer.load(chunk)
    if tile is None or tile.is_empty:
        logger.debug(f"Chunk {chunk.id} is empty, skipped")
        return Empty

    result = job.user_function(ChunkContext(points=tile, chunk=chunk), *job.user_args)

    if is_empty(result) or (isinstance(result, PointSet) and result.is_empty):
        logger.debug(f"Chunk {chunk.id}: no result")
        return Empty

    if isinstance(result, WrittenArtifact):
        return result

    if job.output_template and isinstance(result, PointSet):
        path = job.writer.write(result, job.output_template, chunk)
        return WrittenArtifact(path=path, chunk_id=chunk.id)

    if job.need_output_file:
        raise RuntimeError(
            f"Chunk {chunk.id} produced a {type(result).__name__} that cannot be written "
            "but an output file is required"
        )

    logger.debug(f"Chunk {chunk.id}: {type(result).__name__} result kept in memory")
    return result


def catalog_apply(
    catalog: Catalog,
    user_function: Callable,
    *user_args: Any,
    options: Optional[ProcessingOptions] = None,
    materializer: Optional[TileMaterializer] = None,
    writer: Any = None,
    catalog_factory: Optional[Callable] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> Any:
    """
    Apply a user function to every chunk of a catalog.

    Args:
        catalog: Catalog to process
        user_function: Picklable callable ``fn(context, *user_args)``; its
            first argument is a ChunkContext
        *user_args: Extra positional arguments for the user function
        options: Requirements merged with those declared on the function
        materializer: Tile loader (defaults to the catalog's own)
        writer: Output writer used when an output template is configured
            (defaults to LasWriter)
        catalog_factory: Builds the returned catalog from written paths
            (defaults to Catalog.from_files with the input catalog options)
        progress_callback: Called as callback(completed, total)

    Returns:
        A catalog over written files, a merged PointSet, a list of values,
        or None when every chunk was empty

    Raises:
        ConfigurationError: If the options cannot be satisfied (nothing runs)
        ContextViolation: If a chunk used an algorithm outside its context;
            no further chunks are scheduled
        CatalogProcessingError: If one or more chunks failed
    """
    opts = declared_options(user_function).merged(options)
    run = resolve_options(catalog.options, opts)

    chunks = plan_chunks(catalog, buffer=run.buffer)
    fn_name = getattr(user_function, "__name__", repr(user_function))
    logger.info(
        f"Applying {fn_name} to {len(chunks)} chunks "
        f"(chunk_size={run.chunk_size:g}, buffer={run.buffer:g}, "
        f"output={'files' if run.output_template else 'memory'})"
    )

    if run.output_template and writer is None:
        writer = LasWriter()
    if catalog_factory is None:
        catalog_factory = partial(Catalog.from_files, options=replace(catalog.options, output_template=None))

    job = ChunkJob(
        user_function=user_function,
        user_args=tuple(user_args),
        materializer=materializer or catalog.materializer(select=run.select),
        writer=writer,
        output_template=run.output_template,
        need_output_file=run.need_output_file,
    )

    executor = ChunkParallelExecutor(n_workers=run.n_workers, on_error=run.on_error)
    report = executor.map_chunks(
        items=[(c.id, c) for c in chunks],
        worker_fn=process_chunk,
        worker_kwargs={"job": job},
        progress_callback=progress_callback,
    )

    ordered = [report.results.get(c.id, Empty) for c in chunks]

    fatal = [f for f in report.failures if f.is_fatal]
    if fatal:
        raise ContextViolation(
            f"Chunk {fatal[0].chunk_id}: {fatal[0].message} "
            f"({len(report.skipped)} chunks not scheduled)"
        )

    if report.failures or report.skipped:
        try:
            partial_result = assemble_results(ordered, automerge=run.automerge, catalog_factory=catalog_factory)
        except ConfigurationError:
            partial_result = None
        raise CatalogProcessingError(
            report.failures,
            n_chunks=len(chunks),
            partial_result=partial_result,
            skipped=report.skipped,
        )

    return assemble_results(ordered, automerge=run.automerge, catalog_factory=catalog_factory)


def apply_to_points(points: PointSet, user_function: Callable, *user_args: Any) -> Any:
    """
    Apply a user function to a whole in-memory collection.

    The function receives a WholeCatalogContext, so it knows there is no
    buffer to trim.
    """
    if points.is_empty:
        return Empty
    return user_function(WholeCatalogContext(points=points), *user_args)
