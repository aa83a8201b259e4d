"""Logging utilities for exportkit."""

from __future__ import annotations

import logging
import sys
import time
from collections import Counter
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from .models import Diagnostic

_LOGGER_NAME = "exportkit"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the exportkit hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Configure the exportkit logger with stderr output and an optional file sink.

    Records go to stderr so that ``generate --stdout`` output stays clean.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter("[exportkit] %(levelname)s %(message)s"))
    logger.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


def format_diagnostic(diagnostic: "Diagnostic") -> str:
    """Render a diagnostic as ``kind [path]: message``."""
    location = f" {diagnostic.path}" if diagnostic.path else ""
    return f"{diagnostic.kind}{location}: {diagnostic.message}"


def summarize_diagnostics(
    logger: logging.Logger, diagnostics: Iterable["Diagnostic"]
) -> int:
    """Log one warning counting diagnostics by kind, with each entry at debug.

    Returns the number of diagnostics seen.
    """
    entries = list(diagnostics)
    if not entries:
        return 0
    for diagnostic in entries:
        logger.debug(format_diagnostic(diagnostic))
    counts = Counter(diagnostic.kind for diagnostic in entries)
    breakdown = ", ".join(f"{kind}: {count}" for kind, count in sorted(counts.items()))
    noun = "diagnostic" if len(entries) == 1 else "diagnostics"
    logger.warning("%d %s (%s)", len(entries), noun, breakdown)
    return len(entries)


def log_pass(
    logger: logging.Logger, generation: int, started: float, *, files: int, exports: int
) -> None:
    """Log how long a pass took; ``started`` is a ``time.perf_counter()`` reading."""
    logger.debug(
        "Pass %d finished in %.3fs (%d files, %d exports)",
        generation,
        time.perf_counter() - started,
        files,
        exports,
    )


__all__ = ["configure_logging", "format_diagnostic", "get_logger", "log_pass", "summarize_diagnostics"]
