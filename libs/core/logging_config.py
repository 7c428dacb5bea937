"""
Process-wide logging for the ranking bot.

The process that owns the browser (normally scripts/run_ranking_task.py)
configures logging once. Core components never touch handlers: they report
through the injected diagnostic sink, whose default implementation writes to
the ``rankbot.<Component>`` loggers configured here.

Files:
    logs/rankbot/system.log          everything, rotating
    logs/rankbot/runs/<run_id>.log   one file per run (see attach_run_log)

Usage:
    from libs.core.logging_config import setup_logging, get_logger

    setup_logging("DEBUG")
    logger = get_logger("rankbot.runner")
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_DIR = Path("logs/rankbot")
SYSTEM_LOG_FILE = LOG_DIR / "system.log"
RUN_LOG_DIR = LOG_DIR / "runs"

ROTATE_BYTES = 10 * 1024 * 1024
ROTATE_KEEP = 5

FILE_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)-28s | %(message)s"
FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"
CONSOLE_FORMAT = "%(asctime)s | %(levelname)-7s | %(message)s"
CONSOLE_DATEFMT = "%H:%M:%S"

# Libraries that log every protocol message at DEBUG
QUIET_LOGGERS = ("asyncio", "playwright", "urllib3")

_configured = False


def _resolve_level(level: Optional[str]) -> int:
    name = (level or os.getenv("RANKBOT_LOG_LEVEL") or "INFO").upper()
    return getattr(logging, name, logging.INFO)


def _handler(handler: logging.Handler, level: int, fmt: str, datefmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt))
    return handler


def setup_logging(
    level: Optional[str] = None,
    log_to_console: bool = True,
    log_to_file: bool = True,
) -> None:
    """
    Configure the root logger. Later calls are no-ops.

    Args:
        level: DEBUG/INFO/WARNING/ERROR; falls back to RANKBOT_LOG_LEVEL, then INFO
        log_to_console: Mirror records to stderr (stdout is kept for the result JSON)
        log_to_file: Write logs/rankbot/system.log
    """
    global _configured
    if _configured:
        return

    log_level = _resolve_level(level)
    root = logging.getLogger()
    root.setLevel(log_level)
    for existing in list(root.handlers):
        root.removeHandler(existing)

    if log_to_file:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        rotating = RotatingFileHandler(
            SYSTEM_LOG_FILE, maxBytes=ROTATE_BYTES, backupCount=ROTATE_KEEP, encoding="utf-8"
        )
        root.addHandler(_handler(rotating, log_level, FILE_FORMAT, FILE_DATEFMT))
    if log_to_console:
        root.addHandler(_handler(logging.StreamHandler(sys.stderr), log_level, CONSOLE_FORMAT, CONSOLE_DATEFMT))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True
    get_logger("rankbot").info(
        f"Logging ready (level={logging.getLevelName(log_level)}, file={SYSTEM_LOG_FILE if log_to_file else '-'})"
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def attach_run_log(run_id: str) -> logging.Handler:
    """Copy every ``rankbot.*`` record into logs/rankbot/runs/<run_id>.log.

    Returns the handler; pass it to ``detach_run_log`` when the run is over.
    """
    RUN_LOG_DIR.mkdir(parents=True, exist_ok=True)
    handler = _handler(
        logging.FileHandler(RUN_LOG_DIR / f"{run_id}.log", encoding="utf-8"),
        logging.DEBUG,
        FILE_FORMAT,
        FILE_DATEFMT,
    )
    logging.getLogger("rankbot").addHandler(handler)
    return handler


def detach_run_log(handler: logging.Handler) -> None:
    logging.getLogger("rankbot").removeHandler(handler)
    handler.close()


def log_run_start(logger: logging.Logger, run_id: str, keyword: str, product_id: str, location: str) -> None:
    logger.info(f"[{run_id}] RUN START | site={location} | keyword={keyword[:100]!r} | product={product_id}")


def log_run_end(logger: logging.Logger, run_id: str, success: bool, elapsed_ms: float) -> None:
    logger.info(f"[{run_id}] RUN END | {'SUCCESS' if success else 'FAILED'} | elapsed={elapsed_ms:.0f}ms")
