"""Loguru setup for the server and the CLI.

Every record carries a ``worktree_id`` extra.  Lifecycle messages bind the
workspace they touch (``logger.bind(worktree_id=...)``); everything else,
including stdlib records from uvicorn and sqlalchemy, shows ``-``.
"""

from __future__ import annotations

import logging
import sys

from loguru import logger

UNBOUND_WORKTREE = "-"
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore")

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[worktree_id]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


class _InterceptHandler(logging.Handler):
    """Forward stdlib records to loguru at their original call-site."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = "INFO") -> None:
    """Make loguru the only sink; call once per process."""
    level = level.upper()

    logger.remove()
    logger.configure(extra={"worktree_id": UNBOUND_WORKTREE})
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug("Logging initialised (level={})", level)
