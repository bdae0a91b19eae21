"""
Logging configuration for fhirgen.

Library modules only ever do ``logger = get_logger(__name__)``; handlers are
installed once by :func:`setup_logging`, which the CLI calls at startup.

Levels are resolved in precedence order:
    CLI flag  >  FHIRGEN_LOG_LEVEL env var  >  WARNING (default)
"""

from __future__ import annotations

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

LOG_LEVEL_ENV = "FHIRGEN_LOG_LEVEL"

# File output, always full detail
_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

_NOISY_LOGGERS = ("urllib3", "charset_normalizer")


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``fhirgen`` hierarchy."""
    return logging.getLogger(name)


def resolve_level(level: str | None = None) -> int:
    """Resolve a level name from the argument, then the environment."""
    candidate = level or os.environ.get(LOG_LEVEL_ENV) or "WARNING"
    numeric = getattr(logging, candidate.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric


def setup_logging(
    level: str | None = None,
    log_file: str | None = None,
    quiet_third_party: bool = True,
) -> int:
    """Configure process-wide logging.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a log file, written at the same level.
        quiet_third_party: Keep noisy third-party loggers at WARNING unless
            running at DEBUG.

    Returns:
        The numeric level that was applied.
    """
    numeric_level = resolve_level(level)

    console = RichHandler(
        console=Console(stderr=True),
        show_path=numeric_level <= logging.DEBUG,
        show_time=numeric_level <= logging.INFO,
        rich_tracebacks=True,
        markup=False,
    )
    console.setLevel(numeric_level)
    console.setFormatter(logging.Formatter("%(message)s"))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)

    if log_file:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(numeric_level)
        fh.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        root.addHandler(fh)

    root.setLevel(numeric_level)

    if quiet_third_party and numeric_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    return numeric_level
