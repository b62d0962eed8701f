"""
Output assembly for catalog runs.

Per-chunk results come in three kinds: Empty (nothing to contribute), an
in-memory value (usually a PointSet), or a WrittenArtifact pointing to a
file written for the chunk. Assembly turns the ordered results into the
value returned by the engine:

- written artifacts -> a new catalog over the written files
- PointSets -> one PointSet concatenated in chunk order
- other values -> the list of values in chunk order
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence

from ..preprocessing.point_set import PointSet
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class EmptyResult:
    """Marker for a chunk that contributed nothing (no points or no result)."""

    _instance: Optional["EmptyResult"] = None

    def __new__(cls) -> "EmptyResult":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __reduce__(self):
        # Unpickles to the singleton in worker and parent processes alike
        return (EmptyResult, ())

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "Empty"


Empty = EmptyResult()


def is_empty(result: Any) -> bool:
    return result is None or isinstance(result, EmptyResult)


@dataclass(frozen=True)
class WrittenArtifact:
    """A chunk result persisted to disk.

    Attributes:
        path: Path of the written file
        chunk_id: Identifier of the chunk that produced it
    """
    path: Path
    chunk_id: int


def assemble_results(
    results: Sequence[Any],
    *,
    automerge: bool = True,
    catalog_factory: Optional[Callable[[List[Path]], Any]] = None,
) -> Any:
    """Merge per-chunk results ordered by chunk id.

    Args:
        results: Chunk results in chunk-id order
        automerge: If False, return the non-empty results as a list
        catalog_factory: Builds a catalog from written file paths

    Returns:
        Catalog over written files, a merged PointSet, a list of values,
        or None when every chunk was empty

    Raises:
        ConfigurationError: If written artifacts are mixed with in-memory results
    """
    contributing = [r for r in results if not is_empty(r)]
    logger.debug(f"Assembling {len(contributing)} non-empty results out of {len(results)} chunks")

    if not contributing:
        logger.warning("Every chunk produced an empty result")
        return None

    written = [r for r in contributing if isinstance(r, WrittenArtifact)]
    if written and len(written) != len(contributing):
        raise ConfigurationError(
            "Chunk results mix written files and in-memory values; "
            "a run must produce only one kind of result"
        )

    if not automerge:
        return contributing

    if written:
        paths = [w.path for w in written]
        if catalog_factory is None:
            return paths
        return catalog_factory(paths)

    if all(isinstance(r, PointSet) for r in contributing):
        return PointSet.concatenate(contributing)

    return contributing
