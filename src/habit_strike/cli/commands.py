# src/habit_strike/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
from collections.abc import Callable
from datetime import date
from typing import cast

from ..core.errors import HabitError, InvalidRule, NotFound, OrphanInstance
from ..core.state import AppState
from ..habits.dates import DateRange, parse_day
from ..habits.models import BackfillResult
from ..habits.recurrence import (
    Daily,
    Monthly,
    OneOff,
    RecurrenceRule,
    Weekly,
    Weekday,
    describe_rule,
)
from ..habits.scoring import LIFETIME, WINDOWS, format_rate

CommandEmitter = Callable[[str], None]
CommandHandler3 = Callable[[AppState, list[str], date], str]
CommandHandler4 = Callable[[AppState, list[str], date, CommandEmitter | None], str]
CommandHandler = CommandHandler3 | CommandHandler4

logger = logging.getLogger(__name__)

RULE_USAGE = "daily | weekly mon,wed,fri | monthly <1-31> | once <YYYY-MM-DD>"
MAX_DAYS_LISTED = 366


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        today: date,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 4

        if nparams >= 4:
            h4 = cast(CommandHandler4, handler)
            return h4(state, args, today, emit)

        h3 = cast(CommandHandler3, handler)
        return h3(state, args, today)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- parsing helpers ----


def parse_rule(args: list[str]) -> tuple[RecurrenceRule, list[str]]:
    """
    Parse a rule from the head of `args`; returns (rule, remaining args).

      daily
      weekly mon,wed,fri
      monthly 31
      once 2026-02-09
    """
    if not args:
        raise InvalidRule(f"missing rule ({RULE_USAGE})")

    kind = args[0].lower()
    if kind == "daily":
        return Daily(), args[1:]

    if len(args) < 2:
        raise InvalidRule(f"/{kind} needs an argument ({RULE_USAGE})")
    arg = args[1]

    if kind == "weekly":
        days = frozenset(Weekday.parse(p) for p in arg.split(",") if p.strip())
        return Weekly(days), args[2:]
    if kind == "monthly":
        try:
            dom = int(arg)
        except ValueError:
            raise InvalidRule(f"day of month must be a number: {arg!r}") from None
        return Monthly(dom), args[2:]
    if kind in ("once", "oneoff"):
        try:
            return OneOff(parse_day(arg)), args[2:]
        except ValueError:
            raise InvalidRule(f"date must be YYYY-MM-DD: {arg!r}") from None

    raise InvalidRule(f"unknown rule {kind!r} ({RULE_USAGE})")


def _parse_id(raw: str) -> int | None:
    try:
        return int(raw)
    except ValueError:
        return None


def _optional_day(args: list[str], default: date) -> date | None:
    if not args:
        return default
    try:
        return parse_day(args[0])
    except ValueError:
        return None


def summarize_backfill(result: BackfillResult) -> str:
    line = f"Backfill: created {result.created_count} instance(s)"
    if result.skipped_count:
        line += f", {result.skipped_count} already present"
    if not result.errors:
        return line + "."
    lines = [line + f", {len(result.errors)} error(s):"]
    for err in result.errors:
        who = f"habit #{err.blueprint_id}" if err.blueprint_id is not None else "store"
        lines.append(f"  {who}: {err.cause}")
    return "\n".join(lines)


# ---- handlers ----


def cmd_help(state: AppState, args: list[str], today: date) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str], today: date) -> str:
    settings = state.settings
    last = state.last_backfill
    if last is None:
        backfill = "not run yet"
    elif last.errors:
        backfill = f"last run had {len(last.errors)} error(s); scores may be stale"
    else:
        backfill = f"ok (last run created {last.created_count})"
    return (
        "Status:\n"
        f"  Database: {getattr(settings, 'db_path', '?')}\n"
        f"  Habits: {state.store.count_blueprints()}  Instances: {state.store.count_instances()}\n"
        f"  Backfill: {backfill}\n"
        f"  Today: {today.isoformat()}"
    )


def cmd_add(state: AppState, args: list[str], today: date) -> str:
    """
    /add daily Drink water
    /add weekly mon,wed,fri Gym
    /add monthly 31 Pay rent
    /add once 2026-02-09 Dentist
    """
    try:
        rule, rest = parse_rule(args)
    except InvalidRule as e:
        return f"Invalid rule: {e}\nUsage: /add <{RULE_USAGE}> <name>"

    name = " ".join(rest).strip()
    if not name:
        return f"Missing name. Usage: /add <{RULE_USAGE}> <name>"

    bp = state.store.add_blueprint(name=name, rule=rule, created_on=today)
    result = state.engine.backfill_blueprint(bp, today)
    logger.info("Habit added id=%s name=%s rule=%s", bp.id, bp.name, describe_rule(rule))

    due_today = state.store.get_instance(bp.id, today) is not None
    suffix = " Scheduled for today." if due_today else ""
    if result.created_count > 1:
        suffix += f" Created {result.created_count} instance(s)."
    return f"Added habit #{bp.id} '{bp.name}' ({describe_rule(rule)}).{suffix}"


def cmd_list(state: AppState, args: list[str], today: date) -> str:
    include_archived = bool(args) and args[0].lower() == "all"
    items = state.store.list_blueprints(include_archived=include_archived)
    if not items:
        return "No habits yet. Add one with /add."
    lines = ["Habits:"]
    for bp in items:
        flag = " [archived]" if bp.archived else ""
        lines.append(f"  #{bp.id} {bp.name} - {describe_rule(bp.rule)} (since {bp.created_on}){flag}")
    return "\n".join(lines)


def cmd_edit(state: AppState, args: list[str], today: date) -> str:
    if len(args) < 2 or _parse_id(args[0]) is None:
        return "Usage: /edit <id> <new name>"
    bid = cast(int, _parse_id(args[0]))
    try:
        state.store.update_blueprint(bid, name=" ".join(args[1:]))
    except NotFound:
        return f"No habit #{bid}."
    return f"Renamed habit #{bid}."


def cmd_rule(state: AppState, args: list[str], today: date) -> str:
    if len(args) < 2 or _parse_id(args[0]) is None:
        return f"Usage: /rule <id> <{RULE_USAGE}>"
    bid = cast(int, _parse_id(args[0]))
    try:
        rule, _ = parse_rule(args[1:])
        state.store.update_blueprint(bid, rule=rule, effective_on=today)
    except InvalidRule as e:
        return f"Invalid rule: {e}"
    except NotFound:
        return f"No habit #{bid}."
    return f"Habit #{bid} now recurs {describe_rule(rule)} from {today.isoformat()}. Past instances are unchanged."


def _set_archived(state: AppState, args: list[str], today: date, archived: bool) -> str:
    bid = _parse_id(args[0]) if args else None
    if bid is None:
        return f"Usage: /{'archive' if archived else 'unarchive'} <id>"
    try:
        state.store.set_archived(bid, archived, today=today)
    except NotFound:
        return f"No habit #{bid}."
    return f"Habit #{bid} {'archived' if archived else 'restored'}."


def cmd_archive(state: AppState, args: list[str], today: date) -> str:
    return _set_archived(state, args, today, True)


def cmd_unarchive(state: AppState, args: list[str], today: date) -> str:
    return _set_archived(state, args, today, False)


def cmd_delete(state: AppState, args: list[str], today: date) -> str:
    bid = _parse_id(args[0]) if args else None
    if bid is None:
        return "Usage: /delete <id>"
    try:
        removed = state.store.delete_blueprint(bid)
    except NotFound:
        return f"No habit #{bid}."
    if state.store.delete_policy == "cascade":
        return f"Deleted habit #{bid} and {removed} instance(s)."
    return f"Deleted habit #{bid}; its history is kept."


def cmd_today(state: AppState, args: list[str], today: date) -> str:
    day = _optional_day(args, today)
    if day is None:
        return "Usage: /today [YYYY-MM-DD]"

    instances = state.store.list_instances(DateRange.single(day))
    if not instances:
        return f"Nothing scheduled on {day.isoformat()}."

    names = {bp.id: bp.name for bp in state.store.list_blueprints()}
    lines = [f"{day.isoformat()}:"]
    for inst in instances:
        mark = "x" if inst.completed else " "
        name = names.get(inst.blueprint_id, "(deleted habit)")
        lines.append(f"  [{mark}] #{inst.blueprint_id} {name}")
    lines.append(f"Strike rate: {format_rate(state.scoring.get_daily_rate(day))}")
    return "\n".join(lines)


def _toggle(state: AppState, args: list[str], today: date, completed: bool) -> str:
    verb = "done" if completed else "undo"
    bid = _parse_id(args[0]) if args else None
    day = _optional_day(args[1:], today) if args else None
    if bid is None or day is None:
        return f"Usage: /{verb} <id> [YYYY-MM-DD]"
    try:
        state.store.set_completed(bid, day, completed)
    except NotFound:
        return f"Habit #{bid} has nothing scheduled on {day.isoformat()}."
    except OrphanInstance:
        return f"Habit #{bid} was deleted; its history is read-only."
    return f"Habit #{bid} on {day.isoformat()} marked {'done' if completed else 'not done'}."


def cmd_done(state: AppState, args: list[str], today: date) -> str:
    return _toggle(state, args, today, True)


def cmd_undo(state: AppState, args: list[str], today: date) -> str:
    return _toggle(state, args, today, False)


def cmd_refresh(
    state: AppState,
    args: list[str],
    today: date,
    emit: CommandEmitter | None = None,
) -> str:
    if emit:
        with contextlib.suppress(Exception):
            emit("[BACKFILL] Catching up missed days...")
    result = state.engine.run_backfill(today)
    state.last_backfill = result
    return summarize_backfill(result)


def cmd_score(state: AppState, args: list[str], today: date) -> str:
    """
    /score         -> all windows
    /score week    -> last 7 days
    /score month   -> last 30 days
    /score 90      -> last 90 days
    /score all     -> lifetime
    """
    names = [args[0].lower()] if args else [*WINDOWS, LIFETIME]
    valid = {*WINDOWS, LIFETIME}
    if any(n not in valid for n in names):
        return f"Usage: /score [{' | '.join([*WINDOWS, LIFETIME])}]"

    lines = ["Consistency:"]
    for n in names:
        lines.append(f"  {n}: {format_rate(state.scoring.get_window_score(n, today))}")
    if state.last_backfill is not None and state.last_backfill.errors:
        lines.append("  (last backfill had errors; scores may be stale)")
    return "\n".join(lines)


def cmd_rate(state: AppState, args: list[str], today: date) -> str:
    day = _optional_day(args, today)
    if day is None:
        return "Usage: /rate [YYYY-MM-DD]"
    return f"Strike rate on {day.isoformat()}: {format_rate(state.scoring.get_daily_rate(day))}"


def cmd_days(state: AppState, args: list[str], today: date) -> str:
    """/days [n] -> per-day completion for the last n days (default 7, at most a year)."""
    usage = f"Usage: /days [1-{MAX_DAYS_LISTED}]"
    try:
        n = int(args[0]) if args else 7
    except ValueError:
        return usage
    if not 1 <= n <= MAX_DAYS_LISTED:
        return usage

    records = {r.day: r for r in state.scoring.get_daily_records(DateRange.last_n_days(today, n))}
    lines = [f"Last {n} day(s):"]
    for day in DateRange.last_n_days(today, n):
        r = records.get(day)
        if r is None:
            lines.append(f"  {day.isoformat()}  -")
        else:
            lines.append(f"  {day.isoformat()}  {r.completed}/{r.total}  {format_rate(r.rate)}")
    return "\n".join(lines)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show database, counts and last backfill.")
registry.register("add", cmd_add, help_text=f"Add a habit: /add <{RULE_USAGE}> <name>.")
registry.register("list", cmd_list, help_text="List habits: /list | /list all.", aliases=["ls"])
registry.register("edit", cmd_edit, help_text="Rename a habit: /edit <id> <name>.")
registry.register("rule", cmd_rule, help_text="Change a habit's recurrence: /rule <id> <rule>.")
registry.register("archive", cmd_archive, help_text="Stop generating a habit, keep its history.")
registry.register("unarchive", cmd_unarchive, help_text="Resume an archived habit.")
registry.register("delete", cmd_delete, help_text="Delete a habit: /delete <id>.")
registry.register("today", cmd_today, help_text="Show a day's checklist: /today [YYYY-MM-DD].")
registry.register("done", cmd_done, help_text="Complete: /done <id> [YYYY-MM-DD].", aliases=["x"])
registry.register("undo", cmd_undo, help_text="Un-complete: /undo <id> [YYYY-MM-DD].")
registry.register("refresh", cmd_refresh, help_text="Run backfill now.")
registry.register("score", cmd_score, help_text="Consistency: /score [week | month | 90 | all].")
registry.register("rate", cmd_rate, help_text="Daily strike rate: /rate [YYYY-MM-DD].")
registry.register("days", cmd_days, help_text="Per-day completion: /days [n].")


def describe_error(e: HabitError) -> str:
    return f"{type(e).__name__}: {e}"
