"""Centralized logging setup for ydrag.

Everything logs to stderr: stdout carries command output and, for the
stdio transport, the protocol stream itself.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

LOGGER_NAME = "src"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

_HANDLER: Optional[logging.StreamHandler] = None


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Configure the package logger and return it.

    Safe to call more than once; later calls adjust the level and rebind
    the handler to the current sys.stderr.
    """
    global _HANDLER

    logger = logging.getLogger(LOGGER_NAME)
    level = logging.DEBUG if verbose else logging.WARNING
    logger.setLevel(level)

    if _HANDLER is None:
        _HANDLER = logging.StreamHandler(sys.stderr)
        _HANDLER.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(_HANDLER)
    else:
        # sys.stderr may have been replaced since the handler was created
        _HANDLER.setStream(sys.stderr)

    # uvicorn and the MCP SDK log through their own loggers
    for name in ("uvicorn", "uvicorn.error", "mcp"):
        logging.getLogger(name).setLevel(logging.INFO if verbose else logging.WARNING)

    logger.debug("Logging initialized (verbose=%s)", verbose)
    return logger
