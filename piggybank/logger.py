"""Application logging setup (single entry point).

Modules obtain their loggers with ``logging.getLogger(__name__)``; the
entry points (the Streamlit dashboard and the API service) call
:func:`setup_logger` once so formatting, level and handlers are not
configured in more than one place.
"""

from __future__ import annotations

import logging
import sys
from logging import Logger, StreamHandler
from typing import Final, Optional

try:
    from .config import LOG_LEVEL
except ImportError:  # pragma: no cover - fallback for direct execution
    from config import LOG_LEVEL

LOG_FORMAT: Final[str] = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

LOG_LEVELS: Final[dict] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def setup_logger(name: str = "piggybank", level: Optional[str] = None) -> Logger:
    """Configure root logging and return a named logger.

    Parameters
    ----------
    name : str, optional
        Logger name, usually the package or ``__name__`` of the caller.
    level : str, optional
        ``"DEBUG"``, ``"INFO"``, ``"WARNING"``, ``"ERROR"`` or
        ``"CRITICAL"`` (case-insensitive).  Defaults to
        ``PIGGYBANK_LOG_LEVEL``; unknown values fall back to ``INFO``.

    Returns
    -------
    logging.Logger
        The configured logger.
    """
    log_level = LOG_LEVELS.get((level or LOG_LEVEL).upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        handlers=[StreamHandler(sys.stdout)],
        force=True,
    )

    return logging.getLogger(name)
