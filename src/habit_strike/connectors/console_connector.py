# src/habit_strike/connectors/console_connector.py

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime

from ..cli.commands import describe_error, registry as command_registry
from ..core.errors import HabitError
from ..core.state import AppState
from ..habits.trigger import local_today

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def run_console_loop(
    state: AppState,
    *,
    today_fn: Callable[[], date] = local_today,
    input_fn: Callable[[str], str] = input,
) -> None:
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Use /help for commands, /today for today's checklist, /exit to quit.\n")

    def emit(text: str) -> None:
        print(f"[{_ts_local()}] {text}", flush=True)

    while True:
        try:
            user_input = input_fn(">>> ").strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if not user_input.startswith("/"):
            _print_ts("Commands start with '/'. Try /help.")
            continue

        try:
            with state.lock:
                reply = command_registry.handle(state, user_input, today_fn(), emit=emit)
        except HabitError as e:
            logger.warning("Command failed: %s", e)
            reply = describe_error(e)
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is not None:
            _print_ts(reply)

    logger.info("Console connector finished.")
