"""
Logging configuration for mcp-timelog.

The MCP server speaks over stdout, so log output always goes to stderr or
to the operations log file.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

PACKAGE_LOGGER = "mcp_timelog"


def configure_logging(level: str = "WARNING") -> logging.Logger:
    """Send package logs at ``level`` and above to stderr.

    Safe to call more than once; only one stderr handler is installed.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    numeric = getattr(logging, level.upper(), logging.WARNING)
    if logger.level == logging.NOTSET or logger.level > numeric:
        logger.setLevel(numeric)

    handler = next(
        (h for h in logger.handlers
         if type(h) is logging.StreamHandler and h.stream is sys.stderr),
        None,
    )
    if handler is None:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S"
        ))
        logger.addHandler(handler)
    handler.setLevel(numeric)

    return logger


def configure_ops_log(data_path: Path) -> RotatingFileHandler:
    """Configure a persistent operations log next to the record store.

    Writes to {data_path}/timelog-ops.log using a rotating file handler
    (1MB max, 3 backups). Returns the handler so it can be removed on close.
    """
    data_path.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        str(data_path / "timelog-ops.log"),
        maxBytes=1_000_000,
        backupCount=3,
        encoding="utf-8",
    )
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.addHandler(handler)
    # Let INFO through to the file even when stderr is quieter
    if logger.level == logging.NOTSET or logger.level > logging.INFO:
        logger.setLevel(logging.INFO)

    return handler
