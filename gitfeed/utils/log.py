"""
Logging configuration for the feed crawler.

Provides:
* ``colorlog`` console output with ANSI highlights for ``[CATEGORY]`` tags
* an optional file handler that always records DEBUG detail
* :func:`section`, which brackets a pipeline stage with start/end lines
"""

import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import colorlog

log = logging.getLogger("gitfeed")

_FILE_LOG_FMT = "%(asctime)s [%(levelname)s] %(threadName)s %(message)s"
_FILE_LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# ── Category colours ───────────────────────────────────────────────
_ANSI_RESET = "\033[0m"
_CATEGORY_STYLES: dict[str, str] = {
    "[START]":   "\033[1;32m",
    "[END]":     "\033[1;32m",
    "[CACHE]":   "\033[90m",
    "[SKIP]":    "\033[90m",
    "[SAVE]":    "\033[1;32m",
    "[RETRY]":   "\033[36m",
    "[FEED]":    "\033[1;35m",
    "[BLOCKED]": "\033[1;31m",
    "[ERR]":     "\033[1;31m",
}


def _apply_category_styles(msg: str) -> str:
    """Inject ANSI colours for known ``[CATEGORY]`` tags in *msg*."""
    for tag, style in _CATEGORY_STYLES.items():
        if tag in msg:
            msg = msg.replace(tag, f"{style}{tag}{_ANSI_RESET}")
    return msg


class _ColorlogCategoryFormatter(colorlog.ColoredFormatter):
    """Extends ``colorlog.ColoredFormatter`` to also highlight inline
    ``[CATEGORY]`` tags."""

    def format(self, record: logging.LogRecord) -> str:
        return _apply_category_styles(super().format(record))


def setup_logging(
    debug: bool = False,
    log_file: str | None = None,
    quiet: bool = False,
) -> None:
    """Configure the package logger.

    Parameters
    ----------
    debug : bool
        Enable DEBUG-level console output (default is INFO).
    log_file : str | None
        If given, also write every message to this file at DEBUG level.
    quiet : bool
        Only warnings and errors reach the console.
    """
    if debug:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    log.setLevel(logging.DEBUG if log_file else level)
    log.handlers.clear()
    log.propagate = False

    handler = colorlog.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(_ColorlogCategoryFormatter(
        "%(log_color)s%(asctime)s [%(levelname)s]%(reset)s %(message)s",
        datefmt="%H:%M:%S",
        log_colors={
            "DEBUG":    "cyan",
            "INFO":     "green",
            "WARNING":  "yellow",
            "ERROR":    "red",
            "CRITICAL": "bold_red",
        },
    ))
    log.addHandler(handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(log_path), encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(_FILE_LOG_FMT, datefmt=_FILE_LOG_DATEFMT))
        log.addHandler(fh)
        log.info("Logging to file: %s", log_path.resolve())


@contextmanager
def section(name: str) -> Iterator[None]:
    """Log ``[START]``/``[END]`` lines around a block, with its duration."""
    log.info("[START] %s", name)
    t0 = time.monotonic()
    try:
        yield
    finally:
        log.info("[END] Executed %s in %.2f s", name, time.monotonic() - t0)
