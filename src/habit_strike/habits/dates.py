# src/habit_strike/habits/dates.py

"""Calendar helpers shared by the generator, the backfill engine and scoring."""

from __future__ import annotations

from calendar import monthrange
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from dateutil.relativedelta import relativedelta
from dateutil.rrule import DAILY, MONTHLY, rrule


def days_in_month(year: int, month: int) -> int:
    return monthrange(year, month)[1]


def clamp_day(year: int, month: int, day_of_month: int) -> date:
    """Day `day_of_month` of the month, clamped to the month's last day (Jan 31 -> Feb 28)."""
    return date(year, month, 1) + relativedelta(day=day_of_month)


def as_midnight(day: date) -> datetime:
    """rrule works on datetimes; dates map to naive local midnight."""
    return datetime.combine(day, time.min)


def iter_days(start: date, end: date) -> Iterator[date]:
    """Every date from start to end, both inclusive. Empty when start > end."""
    for dt in rrule(DAILY, dtstart=as_midnight(start), until=as_midnight(end)):
        yield dt.date()


def iter_months(start: date, end: date) -> Iterator[date]:
    """First day of every month touched by [start, end]."""
    first = start.replace(day=1)
    for dt in rrule(MONTHLY, dtstart=as_midnight(first), until=as_midnight(end)):
        yield dt.date()


def parse_day(raw: str) -> date:
    """Parse YYYY-MM-DD; raises ValueError on anything else."""
    return date.fromisoformat(raw.strip())


@dataclass(slots=True, frozen=True)
class DateRange:
    """Inclusive calendar range."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"empty range: {self.start} > {self.end}")

    def __contains__(self, day: object) -> bool:
        return isinstance(day, date) and self.start <= day <= self.end

    def __iter__(self) -> Iterator[date]:
        return iter_days(self.start, self.end)

    def __len__(self) -> int:
        return (self.end - self.start).days + 1

    @classmethod
    def single(cls, day: date) -> DateRange:
        return cls(day, day)

    @classmethod
    def last_n_days(cls, today: date, n: int) -> DateRange:
        """n days ending today (inclusive)."""
        if n < 1:
            raise ValueError("n must be >= 1")
        return cls(today - timedelta(days=n - 1), today)
