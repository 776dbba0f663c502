# src/habit_strike/habits/recurrence.py

from __future__ import annotations

"""
Recurrence rules and the occurrence generator.

A rule is exactly one of Daily / Weekly / Monthly / OneOff. Each variant is a frozen
dataclass that validates itself on construction, so an invalid rule (empty weekday set,
day_of_month out of 1..31, unsupported overflow policy) never reaches the generator.

Generator contract:
- occurs_on(rule, day) is pure and total over valid dates
- expand(rule, start, end) yields matching dates in order, both bounds inclusive
"""

from dataclasses import dataclass, field
from datetime import date
from enum import IntEnum, StrEnum
from typing import Any, TypeAlias

from dateutil.rrule import FR, MO, SA, SU, TH, TU, WE, WEEKLY, rrule

from ..core.errors import InvalidRule
from .dates import as_midnight, clamp_day, days_in_month, iter_days, iter_months


class Weekday(IntEnum):
    """Same numbering as date.weekday()."""

    MON = 0
    TUE = 1
    WED = 2
    THU = 3
    FRI = 4
    SAT = 5
    SUN = 6

    @classmethod
    def parse(cls, raw: str) -> Weekday:
        key = raw.strip().upper()[:3]
        try:
            return cls[key]
        except KeyError:
            raise InvalidRule(f"unknown weekday: {raw!r}") from None


class OverflowPolicy(StrEnum):
    """
    How a Monthly rule resolves a day_of_month the month does not have.

    Only LAST_DAY has a defined algorithm. SKIP is named so stored data and
    callers can refer to it, but rules using it are rejected as InvalidRule.
    """

    LAST_DAY = "last_day"
    SKIP = "skip"


SUPPORTED_OVERFLOW_POLICIES = frozenset({OverflowPolicy.LAST_DAY})

_RRULE_WEEKDAYS = {
    Weekday.MON: MO,
    Weekday.TUE: TU,
    Weekday.WED: WE,
    Weekday.THU: TH,
    Weekday.FRI: FR,
    Weekday.SAT: SA,
    Weekday.SUN: SU,
}


@dataclass(slots=True, frozen=True)
class Daily:
    pass


@dataclass(slots=True, frozen=True)
class Weekly:
    days: frozenset[Weekday]

    def __post_init__(self) -> None:
        if not self.days:
            raise InvalidRule("weekly rule needs at least one weekday")
        try:
            days = frozenset(Weekday(int(d)) for d in self.days)
        except (TypeError, ValueError):
            raise InvalidRule(f"invalid weekdays: {sorted(self.days)!r}") from None
        object.__setattr__(self, "days", days)


@dataclass(slots=True, frozen=True)
class Monthly:
    day_of_month: int
    overflow_policy: OverflowPolicy = field(default=OverflowPolicy.LAST_DAY)

    def __post_init__(self) -> None:
        if isinstance(self.day_of_month, bool) or not isinstance(self.day_of_month, int):
            raise InvalidRule(f"day_of_month must be an integer, got {self.day_of_month!r}")
        if not 1 <= self.day_of_month <= 31:
            raise InvalidRule(f"day_of_month out of range 1..31: {self.day_of_month}")
        try:
            policy = OverflowPolicy(self.overflow_policy)
        except ValueError:
            raise InvalidRule(f"unknown overflow policy: {self.overflow_policy!r}") from None
        if policy not in SUPPORTED_OVERFLOW_POLICIES:
            raise InvalidRule(f"overflow policy not supported: {policy.value}")
        object.__setattr__(self, "overflow_policy", policy)

    def resolve(self, year: int, month: int) -> date:
        """The date this rule fires on in the given month."""
        return clamp_day(year, month, self.day_of_month)


@dataclass(slots=True, frozen=True)
class OneOff:
    on: date

    def __post_init__(self) -> None:
        if not isinstance(self.on, date):
            raise InvalidRule(f"one-off rule needs a date, got {self.on!r}")


RecurrenceRule: TypeAlias = Daily | Weekly | Monthly | OneOff


def validate_rule(rule: object) -> RecurrenceRule:
    """Return `rule` if it is one of the rule variants, else raise InvalidRule."""
    if isinstance(rule, (Daily, Weekly, Monthly, OneOff)):
        return rule
    raise InvalidRule(f"not a recurrence rule: {rule!r}")


def occurs_on(rule: RecurrenceRule, day: date) -> bool:
    if isinstance(rule, Daily):
        return True
    if isinstance(rule, Weekly):
        return day.weekday() in rule.days
    if isinstance(rule, Monthly):
        target = min(rule.day_of_month, days_in_month(day.year, day.month))
        return day.day == target
    if isinstance(rule, OneOff):
        return day == rule.on
    raise InvalidRule(f"not a recurrence rule: {rule!r}")


def expand(rule: RecurrenceRule, start: date, end: date) -> list[date]:
    """Ordered dates in [start, end] on which `rule` occurs."""
    if start > end:
        return []

    if isinstance(rule, Daily):
        return list(iter_days(start, end))

    if isinstance(rule, Weekly):
        byweekday = [_RRULE_WEEKDAYS[d] for d in sorted(rule.days)]
        return [
            dt.date()
            for dt in rrule(WEEKLY, dtstart=as_midnight(start), until=as_midnight(end), byweekday=byweekday)
        ]

    if isinstance(rule, Monthly):
        # rrule's bymonthday skips short months, so resolve each month with the clamp instead.
        out: list[date] = []
        for first in iter_months(start, end):
            d = rule.resolve(first.year, first.month)
            if start <= d <= end:
                out.append(d)
        return out

    if isinstance(rule, OneOff):
        return [rule.on] if start <= rule.on <= end else []

    raise InvalidRule(f"not a recurrence rule: {rule!r}")


# ---- persistence / display ----


def rule_to_dict(rule: RecurrenceRule) -> dict[str, Any]:
    if isinstance(rule, Daily):
        return {"kind": "daily"}
    if isinstance(rule, Weekly):
        return {"kind": "weekly", "days": sorted(int(d) for d in rule.days)}
    if isinstance(rule, Monthly):
        return {
            "kind": "monthly",
            "day_of_month": rule.day_of_month,
            "overflow": rule.overflow_policy.value,
        }
    if isinstance(rule, OneOff):
        return {"kind": "once", "date": rule.on.isoformat()}
    raise InvalidRule(f"not a recurrence rule: {rule!r}")


def rule_from_dict(data: Any) -> RecurrenceRule:
    """Inverse of rule_to_dict. Any malformed payload raises InvalidRule."""
    if not isinstance(data, dict):
        raise InvalidRule(f"rule payload must be an object, got {type(data).__name__}")

    kind = data.get("kind")
    try:
        if kind == "daily":
            return Daily()
        if kind == "weekly":
            raw_days = data.get("days") or []
            return Weekly(frozenset(Weekday(int(d)) for d in raw_days))
        if kind == "monthly":
            return Monthly(
                int(data["day_of_month"]),
                OverflowPolicy(data.get("overflow", OverflowPolicy.LAST_DAY.value)),
            )
        if kind == "once":
            return OneOff(date.fromisoformat(str(data["date"])))
    except InvalidRule:
        raise
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidRule(f"malformed {kind} rule: {data!r}") from e

    raise InvalidRule(f"unknown rule kind: {kind!r}")


def describe_rule(rule: RecurrenceRule) -> str:
    if isinstance(rule, Daily):
        return "daily"
    if isinstance(rule, Weekly):
        names = ", ".join(d.name.capitalize() for d in sorted(rule.days))
        return f"weekly on {names}"
    if isinstance(rule, Monthly):
        return f"monthly on day {rule.day_of_month}"
    if isinstance(rule, OneOff):
        return f"once on {rule.on.isoformat()}"
    return repr(rule)
