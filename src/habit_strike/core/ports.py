# src/habit_strike/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The backfill and scoring engines depend on this Protocol instead of the SQLite store,
which keeps storage swappable and lets tests run against an in-memory fake.
"""

from datetime import date
from typing import Protocol

from ..habits.dates import DateRange
from ..habits.models import Blueprint, Instance


class HabitRepo(Protocol):
    # Backfill API
    def list_active_blueprints(self) -> list[Blueprint]: ...
    def list_instance_dates(self, blueprint_id: int, date_range: DateRange) -> set[date]: ...

    def insert_instance(
            self,
            blueprint_id: int,
            day: date,
            completed: bool = False,
    ) -> Instance:
        """Insert one instance; raises DuplicateKey if (blueprint_id, day) already exists."""
        ...

    # Scoring API
    def list_instances(self, date_range: DateRange) -> list[Instance]: ...
    def list_blueprint_ids(self) -> set[int]: ...
    def earliest_instance_day(self) -> date | None: ...
