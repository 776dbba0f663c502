# tests/test_logging_setup.py

from __future__ import annotations

import logging

from habit_strike.logging_setup import _ConsoleNoiseFilter


def _record(name: str, level: int, thread: str = "MainThread") -> logging.LogRecord:
    record = logging.LogRecord(name, level, __file__, 1, "msg", None, None)
    record.threadName = thread
    return record


def test_console_filter_quiets_background_backfill_threads() -> None:
    f = _ConsoleNoiseFilter()

    assert f.filter(_record("habit_strike.habits.backfill", logging.INFO))
    assert not f.filter(_record("habit_strike.habits.backfill", logging.INFO, "backfill-trigger"))
    assert not f.filter(_record("habit_strike.habits.store", logging.DEBUG, "backfill_0"))
    assert f.filter(_record("habit_strike.habits.trigger", logging.WARNING, "backfill-trigger"))


def test_console_filter_only_passes_errors_from_other_loggers() -> None:
    f = _ConsoleNoiseFilter()

    assert not f.filter(_record("asyncio", logging.WARNING))
    assert not f.filter(_record("py.warnings", logging.WARNING))
    assert f.filter(_record("asyncio", logging.ERROR))
    assert not f.filter(_record("habit_strikes", logging.INFO))
