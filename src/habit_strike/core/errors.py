# src/habit_strike/core/errors.py

"""
Error kinds raised by the store and the engines.

Propagation:
- DuplicateKey is benign for backfill (another run already inserted the row).
- StoreUnavailable is reported per blueprint in BackfillResult.errors.
- InvalidRule is raised when a blueprint is created or edited, never by the generator.
- OrphanInstance is never raised past the scoring surface.
"""

from __future__ import annotations

from datetime import date


class HabitError(Exception):
    """Base class for all habit_strike errors."""


class DuplicateKey(HabitError):
    def __init__(self, blueprint_id: int, day: date) -> None:
        super().__init__(f"instance already exists blueprint_id={blueprint_id} day={day.isoformat()}")
        self.blueprint_id = blueprint_id
        self.day = day


class StoreUnavailable(HabitError):
    """Transient store failure (locked database, I/O error, timeout)."""


class InvalidRule(HabitError):
    """Malformed recurrence rule (empty weekday set, day out of range, ...)."""


class OrphanInstance(HabitError):
    def __init__(self, instance_id: int, blueprint_id: int) -> None:
        super().__init__(f"instance {instance_id} references missing blueprint {blueprint_id}")
        self.instance_id = instance_id
        self.blueprint_id = blueprint_id


class NotFound(HabitError):
    """Requested blueprint or instance does not exist."""
