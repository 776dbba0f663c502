# tests/fakes.py

from __future__ import annotations

from collections.abc import Callable
from datetime import date

from habit_strike.core.errors import DuplicateKey, StoreUnavailable
from habit_strike.habits.dates import DateRange
from habit_strike.habits.models import Blueprint, Instance


class FakeHabitRepo:
    """
    In-memory HabitRepo used for engine unit tests.

    Failure injection:
    - fail_reads_for: blueprint ids whose list_instance_dates raises StoreUnavailable
    - fail_inserts_after: blueprint id -> number of successful inserts before StoreUnavailable
    - before_insert: hook called with (blueprint_id, day) right before the uniqueness check,
      used to simulate a concurrent writer winning the race
    """

    def __init__(self, blueprints: list[Blueprint] | None = None) -> None:
        self.blueprints: dict[int, Blueprint] = {bp.id: bp for bp in blueprints or []}
        self.instances: dict[tuple[int, date], Instance] = {}
        self._next_id = 1

        self.fail_reads_for: set[int] = set()
        self.fail_inserts_after: dict[int, int] = {}
        self.fail_list_blueprints: Exception | None = None
        self.before_insert: Callable[[int, date], None] | None = None

    # ---- HabitRepo ----

    def list_active_blueprints(self) -> list[Blueprint]:
        if self.fail_list_blueprints is not None:
            raise self.fail_list_blueprints
        return [bp for bp in self.blueprints.values() if not bp.archived]

    def list_instance_dates(self, blueprint_id: int, date_range: DateRange) -> set[date]:
        if blueprint_id in self.fail_reads_for:
            raise StoreUnavailable("database is locked")
        return {d for (bid, d) in self.instances if bid == blueprint_id and d in date_range}

    def insert_instance(self, blueprint_id: int, day: date, completed: bool = False) -> Instance:
        budget = self.fail_inserts_after.get(blueprint_id)
        if budget is not None:
            if budget <= 0:
                raise StoreUnavailable("disk I/O error")
            self.fail_inserts_after[blueprint_id] = budget - 1

        if self.before_insert is not None:
            self.before_insert(blueprint_id, day)

        if (blueprint_id, day) in self.instances:
            raise DuplicateKey(blueprint_id, day)
        return self.add_instance(blueprint_id, day, completed=completed)

    def list_instances(self, date_range: DateRange) -> list[Instance]:
        out = [i for i in self.instances.values() if i.day in date_range]
        out.sort(key=lambda i: (i.day, i.blueprint_id))
        return out

    def list_blueprint_ids(self) -> set[int]:
        return set(self.blueprints)

    def earliest_instance_day(self) -> date | None:
        return min((d for (_, d) in self.instances), default=None)

    # ---- test helpers ----

    def add_instance(self, blueprint_id: int, day: date, *, completed: bool = False) -> Instance:
        inst = Instance(
            id=self._next_id,
            blueprint_id=blueprint_id,
            day=day,
            completed=completed,
            completed_at=1.0 if completed else None,
        )
        self._next_id += 1
        self.instances[(blueprint_id, day)] = inst
        return inst

    def dates_for(self, blueprint_id: int) -> list[date]:
        return sorted(d for (bid, d) in self.instances if bid == blueprint_id)
