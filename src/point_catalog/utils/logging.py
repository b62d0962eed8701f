"""
Logging Utilities

This module sets up logging for the project and includes helpers to
route chatty third-party output (e.g. the kriging solver) into our logger
at a level chosen by the caller.
"""

import logging
import sys
from contextlib import contextmanager, redirect_stdout, redirect_stderr
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


def setup_logger(name: str,
                 level: int = logging.INFO,
                 log_file: Optional[str] = None) -> logging.Logger:
    """
    Set up a logger with consistent formatting.

    Args:
        name: Logger name (usually __name__)
        level: Logging level (default: logging.INFO)
        log_file: Optional log file path. If provided, logs will be written to this file

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding multiple handlers
    if logger.handlers:
        return logger

    logger.setLevel(level)

    # Simpler format for console, worker process info for the file
    console_formatter = logging.Formatter(
        '%(asctime)s | %(levelname)s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    file_formatter = logging.Formatter(
        '%(asctime)s | %(levelname)s | %(processName)s[%(process)d] | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)

    return logger


@dataclass(frozen=True)
class CollaboratorLogging:
    """
    Logging settings handed to an external numeric routine for one call.

    Attributes:
        verbose: If True the routine may print its own progress; the output
            is still routed through the logger.
        level: Level used for the routed output.
    """
    verbose: bool = False
    level: int = logging.DEBUG

    def effective_level(self) -> int:
        return logging.INFO if self.verbose else self.level


class _StreamToLogger:
    """
    File-like stream object that redirects writes to a logger.

    Partial lines are buffered until a newline arrives.
    """

    def __init__(self, logger: logging.Logger, level: int = logging.DEBUG):
        self.logger = logger
        self.level = level
        self._buffer = ""

    def write(self, msg: str) -> int:
        if not isinstance(msg, str):
            msg = str(msg)
        self._buffer += msg
        while "\n" in self._buffer:
            line, self._buffer = self._buffer.split("\n", 1)
            self._handle_line(line)
        return len(msg)

    def flush(self) -> None:
        if self._buffer:
            self._handle_line(self._buffer)
            self._buffer = ""

    def _handle_line(self, line: str) -> None:
        text = line.rstrip()
        if text:
            self.logger.log(self.level, text)


@contextmanager
def redirect_stdout_stderr_to_logger(logger: logging.Logger,
                                     level: int = logging.DEBUG):
    """
    Context manager that redirects stdout and stderr to a logger.

    Args:
        logger: Target logger
        level: Logging level to use (default: DEBUG)
    """
    out_stream = _StreamToLogger(logger, level=level)
    err_stream = _StreamToLogger(logger, level=level)
    try:
        with redirect_stdout(out_stream), redirect_stderr(err_stream):
            yield
    finally:
        out_stream.flush()
        err_stream.flush()
