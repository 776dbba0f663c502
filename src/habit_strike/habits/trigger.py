# src/habit_strike/habits/trigger.py

from __future__ import annotations

"""
Periodic backfill trigger.

A small polling loop that calls BackfillEngine.run_backfill(today) every
interval_seconds. If a run reported errors, the next run comes after
retry_delay_seconds instead; backfill is idempotent, so retrying just completes
what the failed run left out.

The engine itself has no clock; this adapter is where "today" comes from.
"""

import asyncio
import contextlib
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime

from ..core.state import AppState
from .backfill import BackfillEngine
from .models import BackfillResult

logger = logging.getLogger(__name__)


def local_today() -> date:
    return datetime.now().astimezone().date()


async def run_backfill_trigger(
        engine: BackfillEngine,
        *,
        interval_seconds: float = 900.0,
        retry_delay_seconds: float = 60.0,
        today_fn: Callable[[], date] = local_today,
        stop_event: asyncio.Event | None = None,
        on_result: Callable[[BackfillResult], None] | None = None,
) -> None:
    """
    Run backfill now, then once per interval until stop_event is set
    (or the coroutine is cancelled).

    The backfill itself is blocking SQLite work, so it runs in a worker thread
    to keep the event loop responsive.
    """
    sleep_s = max(0.01, float(interval_seconds))
    retry_s = max(0.01, min(float(retry_delay_seconds), sleep_s))

    while stop_event is None or not stop_event.is_set():
        today = today_fn()
        result = await asyncio.to_thread(engine.run_backfill, today)

        if result.errors:
            logger.warning(
                "Backfill for %s finished with %s error(s); retrying in %.0fs",
                today,
                len(result.errors),
                retry_s,
            )
            delay = retry_s
        else:
            delay = sleep_s

        if on_result is not None:
            try:
                on_result(result)
            except Exception:
                logger.exception("on_result callback failed")

        if stop_event is None:
            await asyncio.sleep(delay)
            continue

        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(stop_event.wait(), timeout=delay)


@dataclass(slots=True)
class TriggerBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Failed to signal trigger stop (loop already closed).", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_trigger_in_background(state: AppState) -> TriggerBackgroundRunner | None:
    """
    Start the periodic trigger in a background thread with its own event loop,
    so the blocking console REPL can run in the main thread.
    """
    settings = state.settings
    if not getattr(settings, "trigger_enabled", True):
        logger.info("Backfill trigger disabled, not starting.")
        return None

    ready = threading.Event()
    holder: dict[str, object] = {}

    def _remember(result: BackfillResult) -> None:
        state.last_backfill = result

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(
                run_backfill_trigger(
                    state.engine,
                    interval_seconds=float(getattr(settings, "trigger_interval_seconds", 900.0)),
                    retry_delay_seconds=float(getattr(settings, "trigger_retry_seconds", 60.0)),
                    stop_event=stop_event,
                    on_result=_remember,
                )
            )
        finally:
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="backfill-trigger", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Trigger thread did not initialize properly.")
        return None

    logger.info("Backfill trigger started (interval=%ss).", getattr(settings, "trigger_interval_seconds", 900.0))
    return TriggerBackgroundRunner(thread=t, loop=loop, stop_event=stop_event)
