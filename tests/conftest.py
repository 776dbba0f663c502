# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from habit_strike.cli.bootstrap import create_initial_state
from habit_strike.core.state import AppState
from habit_strike.habits.store import HabitStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and AppState.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment and any local .env.
    """
    return SimpleNamespace(
        app_name="habit-strike-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        db_path=tmp_path / "habits.sqlite3",
        backfill_horizon_days=None,
        backfill_workers=1,
        store_timeout_seconds=5.0,
        trigger_enabled=False,
        trigger_interval_seconds=0.01,
        trigger_retry_seconds=0.01,
        delete_policy="cascade",
        score_orphans=True,
    )


@pytest.fixture()
def store(tmp_path: Path) -> HabitStore:
    return HabitStore(tmp_path / "store.sqlite3", timeout_seconds=5.0)


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState wired through the real bootstrap.

    NOTE: We keep a real SQLite store here because the uniqueness constraint
    is part of what we want to test.
    """
    return create_initial_state(settings=settings)
