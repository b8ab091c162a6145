"""
Logging setup.

The terminal belongs to the renderer, so log records go to a file only.
"""

import logging
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def init_logging(log_path: Path, verbose: bool = False, level: str = "INFO") -> logging.Handler | None:
    """
    Attach a file handler to the package logger.

    Returns the handler (close it on shutdown to flush), or None when the log
    directory cannot be created.
    """
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path, encoding="utf-8")
    except OSError:
        return None

    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logger = logging.getLogger("hnreader")
    logger.setLevel(logging.DEBUG if verbose else level.upper())
    logger.addHandler(handler)
    logger.propagate = False
    return handler
