# src/habit_strike/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, runs one backfill for "app foregrounding",
then starts:
- the periodic backfill trigger in a background thread (optional),
- the console REPL in the main thread (or a one-shot command from argv).
"""

from __future__ import annotations

import logging
import sys
from datetime import date

from ..cli.bootstrap import create_initial_state
from ..cli.commands import describe_error, registry as command_registry, summarize_backfill
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.errors import HabitError
from ..core.state import AppState
from ..habits.trigger import TriggerBackgroundRunner, local_today, start_trigger_in_background
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _shutdown(state) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        state.store.close()
    except Exception:
        logger.debug("Store close failed.", exc_info=True)


def run_one_shot(state: AppState, line: str, today: date) -> tuple[int, str]:
    """Run a single command line; returns (exit code, text to print)."""
    try:
        with state.lock:
            reply = command_registry.handle(state, line, today)
    except HabitError as e:
        logger.warning("Command failed: %s", e)
        return 1, describe_error(e)
    if reply is None:
        return 2, "Commands start with '/'. Try /help."
    return 0, reply


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)
    state = create_initial_state(settings=settings)

    # Opening the app is itself a trigger: catch up before showing anything.
    state.last_backfill = state.engine.run_backfill(local_today())
    if state.last_backfill.errors:
        print(summarize_backfill(state.last_backfill))

    # One-shot mode: `habit-strike /score week`
    if argv:
        code, text = run_one_shot(state, " ".join(argv), local_today())
        print(text)
        _shutdown(state)
        return code

    trigger_runner: TriggerBackgroundRunner | None = start_trigger_in_background(state)

    try:
        run_console_loop(state)
    finally:
        if trigger_runner is not None:
            trigger_runner.stop()
            trigger_runner.join(timeout=10.0)

        _shutdown(state)
        logger.info("Bye.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
