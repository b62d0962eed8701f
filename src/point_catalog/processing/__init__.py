"""
Processing Module

Tiled catalog processing infrastructure:
- Chunk planning with buffers
- Processing requirements and execution contexts
- Parallel chunk execution
- The catalog engine and output assembly
"""

from .errors import (
    CatalogProcessingError,
    ConfigurationError,
    ContextViolation,
    TaskFailure,
)
from .tiling import ChunkDescriptor, ChunkPlanner, plan_chunks
from .options import ProcessingOptions, processing_options, resolve_options
from .contexts import ChunkContext, WholeCatalogContext
from .assembly import Empty, WrittenArtifact, assemble_results
from .parallel_executor import ChunkParallelExecutor, ExecutionReport
from .engine import apply_to_points, catalog_apply

__all__ = [
    # Errors
    "CatalogProcessingError",
    "ConfigurationError",
    "ContextViolation",
    "TaskFailure",
    # Planning
    "ChunkDescriptor",
    "ChunkPlanner",
    "plan_chunks",
    # Options and contexts
    "ProcessingOptions",
    "processing_options",
    "resolve_options",
    "ChunkContext",
    "WholeCatalogContext",
    # Execution
    "Empty",
    "WrittenArtifact",
    "assemble_results",
    "ChunkParallelExecutor",
    "ExecutionReport",
    "catalog_apply",
    "apply_to_points",
]
