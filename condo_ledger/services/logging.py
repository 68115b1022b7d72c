"""Logging setup shared by the ledger API server and the CLI.

Records go to stdout and to a log file. LOG_LEVEL overrides the configured
level (DEBUG, INFO, WARNING, ERROR, CRITICAL).

Ledger services log every committed write at INFO, rolled-back operations and
skipped report rows at WARNING, and charges whose paid amount would leave
[0, amount] at CRITICAL.
"""

import logging
import os
import sys
from pathlib import Path

LOG_FORMAT = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that flood INFO output
NOISY_LOGGERS = ("uvicorn.access", "httpx")


def get_log_level(default: str = "INFO") -> int:
    """Resolve the logging level, LOG_LEVEL first.

    Args:
        default: Level name used when LOG_LEVEL is unset

    Returns:
        Logging level constant (unknown names fall back to INFO)
    """
    name = os.getenv("LOG_LEVEL", default).upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_server_logging(
    log_file: str = "logs/server.log", level: str = "INFO", sql_echo: bool = False
) -> None:
    """
    Configure the root logger for the API server and CLI.

    Args:
        log_file: Path to the log file; its directory is created if missing
        level: Level name used when LOG_LEVEL is unset
        sql_echo: Log every SQL statement through ``sqlalchemy.engine``

    Replaces any handlers already on the root logger, so calling it twice
    does not duplicate output.
    """
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    log_level = get_log_level(level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(_handler(logging.StreamHandler(sys.stdout), log_level))
    root_logger.addHandler(_handler(logging.FileHandler(log_path), log_level))

    if log_level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if sql_echo else logging.WARNING)


__all__ = ["setup_server_logging", "get_log_level"]
