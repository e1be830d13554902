# price_tracker/config/logging_config.py

"""Logging for tracker commands and batch passes.

Every CLI invocation writes its own ``run_<timestamp>.log`` under
``Settings.LOGS_DIR``. A batch pass scrapes products on worker threads, so
file records carry the thread name next to the logger; that is how the
lines of one product's fetch, extraction and snapshot are told apart.

Stderr only shows warnings: a failed product or an undelivered alert is
visible at the terminal while per-item detail stays in the file.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from price_tracker.config.settings import Settings

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(threadName)s | "
    "%(module)s:%(funcName)s:%(lineno)d | %(message)s"
)
_STDERR_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _run_log_path(logs_dir: Path) -> Path:
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return logs_dir / f"run_{stamp}.log"


def _handler(
    handler: logging.Handler, level: int, fmt: str,
) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=_DATE_FORMAT))
    return handler


def setup_logging(settings: Settings) -> Path:
    """Attach the run file and stderr handlers to ``price_tracker``.

    Safe to call more than once per process: when handlers are already
    attached nothing is added and the path for this call is still returned.

    Returns:
        The :class:`~pathlib.Path` of this run's log file.
    """
    settings.LOGS_DIR.mkdir(parents=True, exist_ok=True)
    log_file = _run_log_path(settings.LOGS_DIR)

    tracker_logger = logging.getLogger("price_tracker")
    tracker_logger.setLevel(logging.DEBUG)
    if tracker_logger.handlers:
        return log_file

    tracker_logger.addHandler(_handler(
        logging.FileHandler(log_file, encoding="utf-8"),
        logging.DEBUG,
        _FILE_FORMAT,
    ))
    tracker_logger.addHandler(_handler(
        logging.StreamHandler(sys.stderr),
        logging.WARNING,
        _STDERR_FORMAT,
    ))

    tracker_logger.info("Run log: %s (db %s)", log_file, settings.DB_PATH)
    return log_file
