# src/habit_strike/habits/backfill.py

from __future__ import annotations

"""
Backfill engine.

For every active blueprint, make sure exactly one instance exists for each date the
rule fires on, from max(created_on, active_since, horizon start) through `today` inclusive:

- expected = expand(rule, window)
- existing = dates already stored for the blueprint in that window
- insert expected - existing, treating DuplicateKey as "someone else got there first"

Existing instances are never touched, so re-running with the same `today` creates nothing.
Failures are recorded per blueprint; one broken blueprint never stops the others.

The engine never reads the clock: `today` is always passed in by the trigger.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta

from ..core.errors import DuplicateKey, StoreUnavailable
from ..core.ports import HabitRepo
from .dates import DateRange
from .models import BackfillFailure, BackfillResult, Blueprint
from .recurrence import OneOff, expand

logger = logging.getLogger(__name__)


class BackfillEngine:
    def __init__(
        self,
        store: HabitRepo,
        *,
        horizon_days: int | None = None,
        max_workers: int = 1,
    ) -> None:
        """
        horizon_days: if set, never generate more than this many days before `today`
            (a blueprint created long ago is only caught up over the horizon).
        max_workers: blueprints processed in parallel; 1 means sequential.
        """
        if horizon_days is not None and horizon_days < 0:
            raise ValueError("horizon_days must be >= 0")
        self._store = store
        self._horizon_days = horizon_days
        self._max_workers = max(1, int(max_workers))

    def horizon_start(self, today: date) -> date | None:
        if self._horizon_days is None:
            return None
        return today - timedelta(days=self._horizon_days)

    def window_for(self, blueprint: Blueprint, today: date) -> DateRange | None:
        """
        Dates to reconcile for one blueprint, or None when there is nothing to do yet.

        The window starts at max(created_on, active_since, horizon start), so days before
        a rule change or spent archived are never generated. One-offs are not clamped to
        created_on or the horizon: their single date is generated as soon as `today`
        reaches it, unless it falls before active_since.
        """
        rule = blueprint.rule
        if isinstance(rule, OneOff):
            if rule.on > today:
                return None
            if blueprint.active_since is not None and rule.on < blueprint.active_since:
                return None
            return DateRange.single(rule.on)

        start = blueprint.generation_start
        horizon = self.horizon_start(today)
        if horizon is not None and horizon > start:
            start = horizon
        if start > today:
            return None
        return DateRange(start, today)

    def backfill_blueprint(self, blueprint: Blueprint, today: date) -> BackfillResult:
        """Reconcile a single blueprint. Store errors propagate to the caller."""
        result = BackfillResult()
        self._reconcile(blueprint, today, result)
        return result

    def _reconcile(self, blueprint: Blueprint, today: date, result: BackfillResult) -> None:
        # Counts are added per insert; on failure `result` still holds the partial progress.
        if blueprint.archived:
            return

        window = self.window_for(blueprint, today)
        if window is None:
            return

        expected = expand(blueprint.rule, window.start, window.end)
        if not expected:
            return

        existing = self._store.list_instance_dates(blueprint.id, window)
        missing = [d for d in expected if d not in existing]

        for day in missing:
            try:
                self._store.insert_instance(blueprint.id, day, completed=False)
                result.created_count += 1
            except DuplicateKey:
                # A concurrent run inserted it between our read and our write.
                result.skipped_count += 1

        if missing:
            logger.debug(
                "Backfilled blueprint id=%s created=%s skipped=%s window=%s..%s",
                blueprint.id,
                result.created_count,
                result.skipped_count,
                window.start,
                window.end,
            )

    def _safe_backfill(self, blueprint: Blueprint, today: date) -> BackfillResult:
        result = BackfillResult()
        try:
            self._reconcile(blueprint, today, result)
        except StoreUnavailable as e:
            logger.warning("Backfill aborted for blueprint id=%s: store unavailable: %s", blueprint.id, e)
            result.errors.append(BackfillFailure(blueprint.id, f"store unavailable: {e}"))
        except Exception as e:
            logger.exception("Backfill failed for blueprint id=%s", blueprint.id)
            result.errors.append(BackfillFailure(blueprint.id, f"{type(e).__name__}: {e}"))
        return result

    def run_backfill(self, today: date) -> BackfillResult:
        """
        Reconcile every active blueprint up to `today` (inclusive).

        Never raises: failures come back in BackfillResult.errors.
        """
        total = BackfillResult()

        try:
            blueprints = self._store.list_active_blueprints()
        except Exception as e:
            logger.exception("list_active_blueprints failed")
            total.errors.append(BackfillFailure(None, f"{type(e).__name__}: {e}"))
            return total

        if self._max_workers > 1 and len(blueprints) > 1:
            with ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="backfill") as pool:
                results = list(pool.map(lambda bp: self._safe_backfill(bp, today), blueprints))
        else:
            results = [self._safe_backfill(bp, today) for bp in blueprints]

        for r in results:
            total.created_count += r.created_count
            total.skipped_count += r.skipped_count
            total.errors.extend(r.errors)

        logger.info(
            "Backfill done today=%s blueprints=%s created=%s skipped=%s errors=%s",
            today,
            len(blueprints),
            total.created_count,
            total.skipped_count,
            len(total.errors),
        )
        return total
