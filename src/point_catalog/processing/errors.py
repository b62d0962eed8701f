"""
Error types raised while driving a catalog through a processing run.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional


class ConfigurationError(ValueError):
    """Invalid or contradictory processing options, raised before any chunk runs."""


class ContextViolation(RuntimeError):
    """An algorithm was invoked outside the execution context it requires."""


@dataclass(frozen=True)
class TaskFailure:
    """Unhandled error raised while processing one chunk.

    Attributes:
        chunk_id: Identifier of the failed chunk
        error_type: Exception class name
        message: Exception message
        is_fatal: The error was a ContextViolation, which ends the whole run
    """
    chunk_id: int
    error_type: str
    message: str
    is_fatal: bool = False

    @classmethod
    def from_exception(cls, chunk_id: int, exc: BaseException) -> "TaskFailure":
        return cls(
            chunk_id=chunk_id,
            error_type=type(exc).__name__,
            message=str(exc),
            is_fatal=isinstance(exc, ContextViolation),
        )

    def __str__(self) -> str:
        return f"chunk {self.chunk_id}: {self.error_type}: {self.message}"


class CatalogProcessingError(RuntimeError):
    """Aggregate report of the chunks that failed during a run.

    Attributes:
        failures: Failures ordered by chunk id
        n_chunks: Number of chunks in the plan
        partial_result: Result assembled from the successful chunks, if any
        skipped: Chunk ids never scheduled because the run aborted
    """

    def __init__(
        self,
        failures: List[TaskFailure],
        n_chunks: int,
        partial_result: Optional[Any] = None,
        skipped: Optional[List[int]] = None,
    ) -> None:
        self.failures = sorted(failures, key=lambda f: f.chunk_id)
        self.n_chunks = n_chunks
        self.partial_result = partial_result
        self.skipped = sorted(skipped or [])
        message = f"{len(self.failures)} chunks failed out of {n_chunks}"
        if self.skipped:
            message += f" ({len(self.skipped)} not scheduled after abort)"
        super().__init__(message)

    @property
    def failed_chunk_ids(self) -> List[int]:
        return [f.chunk_id for f in self.failures]
