# src/habit_strike/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the SQLite store, the backfill engine and the scoring service into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.state import AppState
from ..habits.backfill import BackfillEngine
from ..habits.scoring import ScoringService
from ..habits.store import HabitStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = HabitStore(
        settings.db_path,
        timeout_seconds=settings.store_timeout_seconds,
        delete_policy=settings.delete_policy,
    )
    engine = BackfillEngine(
        store,
        horizon_days=settings.backfill_horizon_days,
        max_workers=settings.backfill_workers,
    )
    scoring = ScoringService(store, count_orphans=settings.score_orphans)

    logger.debug(
        "State wired db=%s horizon_days=%s workers=%s delete_policy=%s",
        settings.db_path,
        settings.backfill_horizon_days,
        settings.backfill_workers,
        settings.delete_policy,
    )
    return AppState(settings=settings, store=store, engine=engine, scoring=scoring)
