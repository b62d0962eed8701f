"""
Parallel execution infrastructure for chunk-based processing.

Provides ChunkParallelExecutor for distributing chunk processing across
multiple CPU cores using multiprocessing.
"""

from __future__ import annotations

import logging
import queue
import time
from dataclasses import dataclass, field
from multiprocessing import Pool, cpu_count
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .errors import TaskFailure

logger = logging.getLogger(__name__)

ON_ERROR_POLICIES = ("continue", "abort")


def _worker_wrapper(
    args: Tuple[int, Any, Callable, Dict[str, Any]]
) -> Tuple[int, Any, Optional[TaskFailure]]:
    """
    Worker wrapper function for parallel chunk processing.

    Must be at module level for pickling.

    Args:
        args: Tuple of (chunk_id, item, worker_fn, worker_kwargs)

    Returns:
        Tuple of (chunk_id, result, failure)
    """
    chunk_id, item, worker_fn, worker_kwargs = args
    try:
        result = worker_fn(item, **worker_kwargs)
        return (chunk_id, result, None)
    except Exception as e:
        failure = TaskFailure.from_exception(chunk_id, e)
        logger.error(f"Worker error on chunk {chunk_id}: {failure.error_type}: {failure.message}")
        return (chunk_id, None, failure)


@dataclass
class ExecutionReport:
    """Outcome of mapping a worker over chunks.

    Attributes:
        results: Result per successful chunk id
        failures: Failures in completion order
        skipped: Chunk ids never scheduled because the run aborted
    """
    results: Dict[int, Any] = field(default_factory=dict)
    failures: List[TaskFailure] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures and not self.skipped


class ChunkParallelExecutor:
    """
    Parallel executor for chunk-based processing.

    Runs at most n_workers chunks at a time and collects results keyed by
    chunk id. Failures never propagate out of a worker; they are recorded
    and, depending on the on_error policy, either collected while the
    remaining chunks run ("continue") or used to stop scheduling new chunks
    while in-flight ones finish ("abort"). A ContextViolation inside a worker
    always stops scheduling.

    Example:
        executor = ChunkParallelExecutor(n_workers=4)
        report = executor.map_chunks(
            items=[(chunk.id, chunk) for chunk in chunks],
            worker_fn=process_chunk,
            worker_kwargs={'job': job},
        )
    """

    def __init__(self, n_workers: Optional[int] = None, on_error: str = "continue"):
        """
        Initialize parallel executor.

        Args:
            n_workers: Number of worker processes. If None, uses cpu_count - 1
                to leave one core for system/coordination. Minimum is 1.
            on_error: "continue" or "abort"
        """
        if n_workers is None:
            n_workers = max(1, cpu_count() - 1)
        else:
            n_workers = max(1, int(n_workers))
        if on_error not in ON_ERROR_POLICIES:
            raise ValueError(f"on_error must be one of {ON_ERROR_POLICIES}, got {on_error!r}")

        self.n_workers = n_workers
        self.on_error = on_error

        logger.info(
            f"Initialized ChunkParallelExecutor with {self.n_workers} workers "
            f"(total CPUs: {cpu_count()}, on_error={self.on_error})"
        )

    def _log_progress(self, completed: int, n_items: int, n_ok: int, start_time: float) -> None:
        if completed % 10 == 0 or completed == n_items:
            elapsed = max(time.time() - start_time, 1e-9)
            rate = completed / elapsed
            eta = (n_items - completed) / rate if rate > 0 else 0
            logger.info(
                f"Progress: {completed}/{n_items} chunks "
                f"({100 * completed / n_items:.1f}%) - "
                f"Rate: {rate:.2f} chunks/s - ETA: {eta:.1f}s - "
                f"Success: {100 * n_ok / completed:.1f}%"
            )

    def map_chunks(
        self,
        items: Sequence[Tuple[int, Any]],
        worker_fn: Callable,
        worker_kwargs: Optional[Dict[str, Any]] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> ExecutionReport:
        """
        Map worker function over chunks.

        Args:
            items: (chunk_id, item) pairs in scheduling order
            worker_fn: Function to apply to each item. Must be picklable and
                have signature: worker_fn(item, **worker_kwargs) -> result
            worker_kwargs: Fixed keyword arguments passed to each worker call
            progress_callback: Optional callback called after each chunk
                completes. Signature: callback(completed_count, total_count)

        Returns:
            ExecutionReport with results keyed by chunk id and the failures
        """
        worker_kwargs = worker_kwargs or {}
        n_items = len(items)

        if n_items == 0:
            logger.warning("No chunks to process")
            return ExecutionReport()

        logger.info(f"Processing {n_items} chunks with {self.n_workers} workers")
        start_time = time.time()

        # If only 1 worker or 1 chunk, use sequential processing (no pool overhead)
        if self.n_workers == 1 or n_items == 1:
            logger.info("Using sequential processing (1 worker or 1 chunk)")
            report = self._sequential_map(items, worker_fn, worker_kwargs, progress_callback, start_time)
        else:
            report = self._parallel_map(items, worker_fn, worker_kwargs, progress_callback, start_time)

        total_time = max(time.time() - start_time, 1e-9)
        logger.info(
            f"Processing complete: {len(report.results)}/{n_items} chunks succeeded in {total_time:.1f}s "
            f"({n_items / total_time:.2f} chunks/s)"
        )
        if report.failures:
            logger.error(f"{len(report.failures)} chunks failed out of {n_items}")
            for failure in report.failures[:5]:
                logger.error(f"  {failure}")
            if len(report.failures) > 5:
                logger.error(f"  ... and {len(report.failures) - 5} more errors")
        if report.skipped:
            logger.warning(f"{len(report.skipped)} chunks were not scheduled after an abort")
        return report

    def _stops_run(self, failure: Optional[TaskFailure]) -> bool:
        """A fatal failure stops scheduling under either policy."""
        if failure is None:
            return False
        return failure.is_fatal or self.on_error == "abort"

    def _record(self, report: ExecutionReport, chunk_id: int, result: Any, failure: Optional[TaskFailure]) -> None:
        if failure is not None:
            report.failures.append(failure)
            logger.error(f"Chunk {chunk_id} failed: {failure.error_type}: {failure.message}")
        else:
            report.results[chunk_id] = result

    def _sequential_map(
        self,
        items: Sequence[Tuple[int, Any]],
        worker_fn: Callable,
        worker_kwargs: Dict[str, Any],
        progress_callback: Optional[Callable],
        start_time: float,
    ) -> ExecutionReport:
        report = ExecutionReport()
        n_items = len(items)
        for i, (chunk_id, item) in enumerate(items):
            _, result, failure = _worker_wrapper((chunk_id, item, worker_fn, worker_kwargs))
            self._record(report, chunk_id, result, failure)

            completed = i + 1
            if progress_callback:
                progress_callback(completed, n_items)
            self._log_progress(completed, n_items, len(report.results), start_time)

            if self._stops_run(failure):
                report.skipped = [cid for cid, _ in items[completed:]]
                break
        return report

    def _parallel_map(
        self,
        items: Sequence[Tuple[int, Any]],
        worker_fn: Callable,
        worker_kwargs: Dict[str, Any],
        progress_callback: Optional[Callable],
        start_time: float,
    ) -> ExecutionReport:
        """
        Execute parallel mapping using multiprocessing.Pool.

        Keeps at most n_workers chunks in flight and submits the next one
        as each completes, so an abort stops scheduling immediately while
        letting running chunks finish.
        """
        report = ExecutionReport()
        n_items = len(items)
        pending = iter(items)
        done: "queue.Queue[Tuple[int, Any, Optional[TaskFailure]]]" = queue.Queue()
        stop = False

        with Pool(processes=self.n_workers) as pool:

            def submit() -> bool:
                nxt = next(pending, None)
                if nxt is None:
                    return False
                chunk_id, item = nxt

                def on_error(exc: BaseException, cid: int = chunk_id) -> None:
                    # Raised outside the worker function, e.g. while pickling
                    done.put((cid, None, TaskFailure.from_exception(cid, exc)))

                pool.apply_async(
                    _worker_wrapper,
                    ((chunk_id, item, worker_fn, worker_kwargs),),
                    callback=done.put,
                    error_callback=on_error,
                )
                return True

            in_flight = 0
            while in_flight < self.n_workers and submit():
                in_flight += 1

            completed = 0
            while in_flight:
                chunk_id, result, failure = done.get()
                in_flight -= 1
                completed += 1
                self._record(report, chunk_id, result, failure)

                if progress_callback:
                    progress_callback(completed, n_items)
                self._log_progress(completed, n_items, len(report.results), start_time)

                if self._stops_run(failure):
                    stop = True
                if not stop and submit():
                    in_flight += 1

        report.skipped = [cid for cid, _ in pending]
        return report
