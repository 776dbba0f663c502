# src/habit_strike/habits/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from fractions import Fraction

from .recurrence import RecurrenceRule


@dataclass(slots=True)
class Blueprint:
    """A habit definition: name + recurrence rule, independent of any date."""

    id: int
    name: str
    rule: RecurrenceRule
    created_on: date
    archived: bool = False
    # Set when the rule changes or the habit is unarchived; generation never reaches back past it.
    active_since: date | None = None

    @property
    def generation_start(self) -> date:
        if self.active_since is None or self.active_since < self.created_on:
            return self.created_on
        return self.active_since


@dataclass(slots=True)
class Instance:
    """One dated, checkable occurrence of a blueprint."""

    id: int
    blueprint_id: int
    day: date
    completed: bool = False
    completed_at: float | None = None


@dataclass(slots=True, frozen=True)
class DailyStrikeRecord:
    day: date
    completed: int
    total: int

    @property
    def rate(self) -> Fraction | None:
        if self.total == 0:
            return None
        return Fraction(self.completed, self.total)


@dataclass(slots=True, frozen=True)
class BackfillFailure:
    """blueprint_id is None when the run failed before any blueprint was read."""

    blueprint_id: int | None
    cause: str


@dataclass(slots=True)
class BackfillResult:
    """
    Outcome of one backfill run.

    created_count counts rows this run inserted; skipped_count counts dates another
    invocation inserted between our read and our write (DuplicateKey).
    """

    created_count: int = 0
    skipped_count: int = 0
    errors: list[BackfillFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors
