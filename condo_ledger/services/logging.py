"""Logging for ledger jobs: the ``condo_ledger`` logger tree to stdout and a file.

The level comes from the LOG_LEVEL env var (default INFO). Snapshot hits and
misses are logged at DEBUG; allocations, sweeps and backfill summaries at INFO.
"""

import logging
import os
import sys
from pathlib import Path

ROOT_LOGGER = "condo_ledger"
LOG_FORMAT = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_LEVEL_MAP = {
    name: getattr(logging, name) for name in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
}


def get_log_level(default: str = "INFO") -> int:
    """Resolve the level named by LOG_LEVEL, or ``default`` when unset.

    Unknown names resolve to INFO.
    """
    name = os.getenv("LOG_LEVEL", default).strip().upper()
    return LOG_LEVEL_MAP.get(name, logging.INFO)


def _configured(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(
    log_file: str = "logs/ledger.log",
    level: str = "INFO",
    sql_echo: bool = False,
) -> logging.Logger:
    """Attach stdout and file handlers to the ``condo_ledger`` logger.

    Calling it again replaces the previous handlers instead of stacking them.

    Args:
        log_file: Log file path; missing parent directories are created
        level: Level name used when LOG_LEVEL is not set
        sql_echo: Also emit SQLAlchemy engine statements at INFO

    Returns:
        The ``condo_ledger`` logger
    """
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)

    log_level = get_log_level(level)
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(log_level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    logger.addHandler(_configured(logging.StreamHandler(sys.stdout), log_level))
    logger.addHandler(_configured(logging.FileHandler(path, encoding="utf-8"), log_level))

    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if sql_echo else logging.WARNING)

    return logger


__all__ = ["setup_logging", "get_log_level", "LOG_LEVEL_MAP"]
