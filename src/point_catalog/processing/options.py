"""
Processing requirements declared by user functions.

A function run by the engine can declare what it needs from the run (an
output file per chunk, a non-zero buffer, all attributes, ...). The engine
merges those declarations with the catalog options and validates the result
once, before any chunk is scheduled.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, List, Literal, Optional, Union

from .errors import ConfigurationError

OPTIONS_ATTRIBUTE = "processing_options"


@dataclass(frozen=True)
class ProcessingOptions:
    """Requirements a user function places on a processing run.

    Attributes:
        need_output_file: Every non-empty chunk result must be written to disk
        need_buffer: The run must use a buffer strictly greater than 0
        forced_buffer: Minimum buffer width; the catalog buffer is raised to it
        forced_select: Attribute selection overriding the catalog's ("*" = all)
        output_template: Output path template overriding the catalog's
        automerge: Merge chunk results; if False the ordered list is returned
    """
    need_output_file: bool = False
    need_buffer: bool = False
    forced_buffer: Optional[float] = None
    forced_select: Union[Literal["*"], List[str], None] = None
    output_template: Optional[str] = None
    automerge: bool = True

    def merged(self, other: Optional["ProcessingOptions"]) -> "ProcessingOptions":
        """Combine two sets of requirements; the stricter one wins per field."""
        if other is None:
            return self
        forced = [b for b in (self.forced_buffer, other.forced_buffer) if b is not None]
        return replace(
            self,
            need_output_file=self.need_output_file or other.need_output_file,
            need_buffer=self.need_buffer or other.need_buffer,
            forced_buffer=max(forced) if forced else None,
            forced_select=other.forced_select if other.forced_select is not None else self.forced_select,
            output_template=other.output_template or self.output_template,
            automerge=self.automerge and other.automerge,
        )


@dataclass(frozen=True)
class ResolvedRun:
    """Effective settings of one processing run after validation."""
    buffer: float
    chunk_size: float
    n_workers: Optional[int]
    select: Union[Literal["*"], List[str], None]
    output_template: Optional[str]
    need_output_file: bool
    automerge: bool
    on_error: str


def processing_options(**kwargs) -> Callable[[Callable], Callable]:
    """Decorator attaching ProcessingOptions to a user function.

    Example:
        @processing_options(need_buffer=True)
        def my_algorithm(context, estimator):
            ...
    """
    opts = ProcessingOptions(**kwargs)

    def decorator(fn: Callable) -> Callable:
        setattr(fn, OPTIONS_ATTRIBUTE, opts)
        return fn

    return decorator


def declared_options(fn: Callable) -> ProcessingOptions:
    return getattr(fn, OPTIONS_ATTRIBUTE, None) or ProcessingOptions()


def resolve_options(catalog_options, options: ProcessingOptions) -> ResolvedRun:
    """Validate requirements against the catalog options.

    Raises:
        ConfigurationError: If a requirement cannot be satisfied
    """
    if catalog_options.chunk_size < 0:
        raise ConfigurationError(f"chunk_size must be >= 0, got {catalog_options.chunk_size}")
    if catalog_options.buffer < 0:
        raise ConfigurationError(f"buffer must be >= 0, got {catalog_options.buffer}")
    if catalog_options.on_error not in ("continue", "abort"):
        raise ConfigurationError(
            f"on_error must be 'continue' or 'abort', got {catalog_options.on_error!r}"
        )
    if options.forced_buffer is not None and options.forced_buffer < 0:
        raise ConfigurationError(f"forced_buffer must be >= 0, got {options.forced_buffer}")

    buffer = float(catalog_options.buffer)
    if options.forced_buffer is not None and options.forced_buffer > buffer:
        buffer = float(options.forced_buffer)

    if options.need_buffer and buffer <= 0:
        raise ConfigurationError(
            "This algorithm requires a buffer greater than 0 around each chunk"
        )

    template = options.output_template or catalog_options.output_template
    if options.need_output_file and not template:
        raise ConfigurationError(
            "This algorithm requires an output file per chunk but no output_template is configured"
        )

    select = options.forced_select if options.forced_select is not None else catalog_options.select

    return ResolvedRun(
        buffer=buffer,
        chunk_size=float(catalog_options.chunk_size),
        n_workers=catalog_options.n_workers,
        select=select,
        output_template=template,
        need_output_file=options.need_output_file,
        automerge=options.automerge,
        on_error=catalog_options.on_error,
    )
