# src/habit_strike/habits/scoring.py

from __future__ import annotations

"""
Consistency scoring.

- Daily strike rate: completed / total over every instance dated that day
  (archived blueprints included). A day with no instances has no rate (None), it is not 0.
- Consistency score: arithmetic mean of the defined daily rates in a range. Each day is
  one data point of equal weight, so 1/1 and 8/10 average to 0.9, not 9/11.

The module-level functions are pure; ScoringService is a thin read-only query layer
over the store and never writes.
"""

import logging
from collections.abc import Iterable
from datetime import date
from fractions import Fraction

from ..core.ports import HabitRepo
from .dates import DateRange
from .models import DailyStrikeRecord, Instance

logger = logging.getLogger(__name__)

# Window name -> number of days ending today.
WINDOWS: dict[str, int] = {
    "week": 7,
    "month": 30,
    "90": 90,
}
LIFETIME = "all"


def daily_records(
    instances: Iterable[Instance],
    date_range: DateRange | None = None,
) -> list[DailyStrikeRecord]:
    """One record per day that has at least one instance, ordered by day."""
    counts: dict[date, list[int]] = {}
    for inst in instances:
        if date_range is not None and inst.day not in date_range:
            continue
        c = counts.setdefault(inst.day, [0, 0])
        c[1] += 1
        if inst.completed:
            c[0] += 1
    return [DailyStrikeRecord(day=d, completed=c[0], total=c[1]) for d, c in sorted(counts.items())]


def daily_strike_rate(instances: Iterable[Instance], day: date) -> Fraction | None:
    records = daily_records(instances, DateRange.single(day))
    return records[0].rate if records else None


def mean_rate(records: Iterable[DailyStrikeRecord]) -> Fraction | None:
    rates = [r.rate for r in records if r.rate is not None]
    if not rates:
        return None
    return sum(rates, Fraction(0)) / len(rates)


def consistency_score(instances: Iterable[Instance], date_range: DateRange) -> Fraction | None:
    """Mean of daily strike rates in range; None when no day in range had anything scheduled."""
    return mean_rate(daily_records(instances, date_range))


def format_rate(rate: Fraction | None) -> str:
    if rate is None:
        return "no data"
    return f"{float(rate) * 100:.1f}%"


class ScoringService:
    """
    Query surface for presentation.

    count_orphans: whether instances of deleted blueprints still count. When False they
    are dropped before scoring; either way an orphan never raises.
    """

    def __init__(self, store: HabitRepo, *, count_orphans: bool = True) -> None:
        self._store = store
        self._count_orphans = count_orphans

    def _instances(self, date_range: DateRange) -> list[Instance]:
        instances = self._store.list_instances(date_range)
        if self._count_orphans or not instances:
            return instances

        known = self._store.list_blueprint_ids()
        kept = [i for i in instances if i.blueprint_id in known]
        if len(kept) != len(instances):
            logger.debug(
                "Excluded %s orphan instance(s) from scoring in %s..%s",
                len(instances) - len(kept),
                date_range.start,
                date_range.end,
            )
        return kept

    def get_daily_rate(self, day: date) -> Fraction | None:
        return daily_strike_rate(self._instances(DateRange.single(day)), day)

    def get_daily_records(self, date_range: DateRange) -> list[DailyStrikeRecord]:
        return daily_records(self._instances(date_range), date_range)

    def get_consistency_score(self, date_range: DateRange) -> Fraction | None:
        return consistency_score(self._instances(date_range), date_range)

    def window(self, name: str, today: date) -> DateRange | None:
        """
        Named window ending today: "week", "month", "90" or "all" (lifetime).
        Returns None for "all" when nothing has been recorded yet.
        """
        key = name.strip().lower()
        if key == LIFETIME:
            first = self._store.earliest_instance_day()
            if first is None:
                return None
            return DateRange(min(first, today), today)
        if key not in WINDOWS:
            raise ValueError(f"unknown window: {name!r}")
        return DateRange.last_n_days(today, WINDOWS[key])

    def get_window_score(self, name: str, today: date) -> Fraction | None:
        date_range = self.window(name, today)
        if date_range is None:
            return None
        return self.get_consistency_score(date_range)
