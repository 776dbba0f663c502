# src/habit_strike/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

APP_LOGGER = "habit_strike"
LOG_FILE_NAME = "habit.log"

# Threads started by the periodic trigger and the backfill worker pool.
BACKGROUND_THREAD_PREFIXES = ("backfill",)


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console stays readable while the REPL owns it: anything logged from a
    background backfill thread needs WARNING+, other libraries need ERROR+.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if record.threadName.startswith(BACKGROUND_THREAD_PREFIXES):
            return record.levelno >= logging.WARNING
        if record.name == APP_LOGGER or record.name.startswith(APP_LOGGER + "."):
            return True
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/habit",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
) -> Path:
    """
    Send filtered logs to stderr and everything to `<log_dir>/habit.log`
    (rotated). Replaces existing root handlers. Returns the log file path.
    """
    log_file = Path(log_dir) / LOG_FILE_NAME
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    return log_file
