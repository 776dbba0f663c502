# src/habit_strike/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from ..habits.backfill import BackfillEngine
from ..habits.models import BackfillResult
from ..habits.scoring import ScoringService
from ..habits.store import HabitStore


@dataclass
class AppState:
    # Settings live on the state so command handlers can read them.
    settings: object

    store: HabitStore
    engine: BackfillEngine
    scoring: ScoringService

    # Result of the most recent backfill (trigger or /refresh); None until the first run.
    last_backfill: BackfillResult | None = None

    lock: threading.RLock = field(default_factory=threading.RLock)
