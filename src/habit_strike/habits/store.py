# src/habit_strike/habits/store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
from collections.abc import Iterator
from datetime import date
from pathlib import Path

from ..core.errors import DuplicateKey, InvalidRule, NotFound, OrphanInstance, StoreUnavailable
from .dates import DateRange
from .models import Blueprint, Instance
from .recurrence import OneOff, RecurrenceRule, rule_from_dict, rule_to_dict, validate_rule

logger = logging.getLogger(__name__)

DELETE_CASCADE = "cascade"
DELETE_ORPHAN = "orphan"


class HabitStore:
    """
    SQLite store for blueprints and instances.

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    One instance per (blueprint_id, day) is enforced by a UNIQUE constraint, so
    insert_instance is an atomic check-then-insert even across processes.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(
        self,
        db_path: str | Path = "habits.sqlite3",
        *,
        timeout_seconds: float = 10.0,
        delete_policy: str = DELETE_CASCADE,
    ) -> None:
        if delete_policy not in (DELETE_CASCADE, DELETE_ORPHAN):
            raise ValueError(f"unknown delete policy: {delete_policy!r}")
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._timeout = float(timeout_seconds)
        self._delete_policy = delete_policy
        self._ensure_schema()
        logger.info(
            "HabitStore ready db=%s blueprints=%s instances=%s",
            self._db_path,
            self.count_blueprints(),
            self.count_instances(),
        )

    @property
    def delete_policy(self) -> str:
        return self._delete_policy

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=self._timeout)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    @contextlib.contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """
        Short-lived connection. Operational failures (locked DB past the busy timeout,
        disk I/O) surface as StoreUnavailable; IntegrityError passes through unchanged.
        """
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise StoreUnavailable(f"cannot open {self._db_path}: {e}") from e
        try:
            yield conn
        except sqlite3.IntegrityError:
            raise
        except (sqlite3.OperationalError, sqlite3.DatabaseError) as e:
            raise StoreUnavailable(str(e)) from e
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS blueprints (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    rule TEXT NOT NULL,
                    created_on TEXT NOT NULL,
                    archived INTEGER NOT NULL DEFAULT 0,
                    active_since TEXT,
                    updated_at REAL NOT NULL DEFAULT 0
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS instances (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    blueprint_id INTEGER NOT NULL,
                    day TEXT NOT NULL,
                    completed INTEGER NOT NULL DEFAULT 0,
                    completed_at REAL,
                    created_at REAL NOT NULL DEFAULT 0,
                    UNIQUE (blueprint_id, day)
                )
                """
            )

            # Migrations (safe): add missing columns.
            def add_col(table: str, name: str, decl: str) -> None:
                cur.execute(f"PRAGMA table_info({table})")
                cols = {row["name"] for row in cur.fetchall()}
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl}")
                logger.info("HabitStore migration: added column %s.%s", table, name)

            add_col("blueprints", "archived", "INTEGER NOT NULL DEFAULT 0")
            add_col("blueprints", "updated_at", "REAL NOT NULL DEFAULT 0")
            add_col("blueprints", "active_since", "TEXT")
            add_col("instances", "completed_at", "REAL")
            add_col("instances", "created_at", "REAL NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_instances_day ON instances(day)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_blueprints_archived ON blueprints(archived)")

            conn.commit()

    @staticmethod
    def _rule_to_str(rule: RecurrenceRule) -> str:
        return json.dumps(rule_to_dict(rule), ensure_ascii=False, sort_keys=True)

    @staticmethod
    def _str_to_rule(s: str | None) -> RecurrenceRule:
        try:
            data = json.loads(s or "")
        except ValueError as e:
            raise InvalidRule(f"undecodable rule: {s!r}") from e
        return rule_from_dict(data)

    def _row_to_blueprint(self, row: sqlite3.Row) -> Blueprint:
        return Blueprint(
            id=int(row["id"]),
            name=str(row["name"] or ""),
            rule=self._str_to_rule(row["rule"]),
            created_on=date.fromisoformat(row["created_on"]),
            archived=bool(row["archived"]),
            active_since=date.fromisoformat(row["active_since"]) if row["active_since"] else None,
        )

    @staticmethod
    def _row_to_instance(row: sqlite3.Row) -> Instance:
        return Instance(
            id=int(row["id"]),
            blueprint_id=int(row["blueprint_id"]),
            day=date.fromisoformat(row["day"]),
            completed=bool(row["completed"]),
            completed_at=float(row["completed_at"]) if row["completed_at"] is not None else None,
        )

    def _rows_to_blueprints(self, rows: list[sqlite3.Row]) -> list[Blueprint]:
        out: list[Blueprint] = []
        for r in rows:
            try:
                out.append(self._row_to_blueprint(r))
            except (InvalidRule, ValueError):
                logger.warning("Skipping blueprint id=%s with unreadable data", r["id"], exc_info=True)
        return out

    # ---- counts ----

    def count_blueprints(self) -> int:
        with self._connect() as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM blueprints").fetchone()
            return int(n)

    def count_instances(self) -> int:
        with self._connect() as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM instances").fetchone()
            return int(n)

    # ---- blueprints ----

    def add_blueprint(self, *, name: str, rule: RecurrenceRule, created_on: date) -> Blueprint:
        """
        Create a blueprint.

        A one-off whose date is on or before created_on gets its instance in the same
        transaction; backfill starts at created_on and would never reach that date.
        """
        if not name or not name.strip():
            raise ValueError("name is required")
        rule = validate_rule(rule)

        now = time.time()
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(
                "INSERT INTO blueprints(name, rule, created_on, archived, updated_at) VALUES (?, ?, ?, 0, ?)",
                (name.strip(), self._rule_to_str(rule), created_on.isoformat(), now),
            )
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for blueprints insert")
            blueprint_id = int(rowid)

            if isinstance(rule, OneOff) and rule.on <= created_on:
                cur.execute(
                    "INSERT OR IGNORE INTO instances(blueprint_id, day, completed, created_at) VALUES (?, ?, 0, ?)",
                    (blueprint_id, rule.on.isoformat(), now),
                )
            conn.commit()

        logger.debug("Blueprint added id=%s name=%s rule=%s", blueprint_id, name, rule)
        return Blueprint(id=blueprint_id, name=name.strip(), rule=rule, created_on=created_on)

    def get_blueprint(self, blueprint_id: int) -> Blueprint | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM blueprints WHERE id = ?", (int(blueprint_id),)).fetchone()
            return self._row_to_blueprint(row) if row else None

    def list_blueprints(self, *, include_archived: bool = True) -> list[Blueprint]:
        sql = "SELECT * FROM blueprints"
        if not include_archived:
            sql += " WHERE archived = 0"
        sql += " ORDER BY id ASC"
        with self._connect() as conn:
            return self._rows_to_blueprints(conn.execute(sql).fetchall())

    def list_active_blueprints(self) -> list[Blueprint]:
        return self.list_blueprints(include_archived=False)

    def list_blueprint_ids(self) -> set[int]:
        with self._connect() as conn:
            return {int(r["id"]) for r in conn.execute("SELECT id FROM blueprints").fetchall()}

    def update_blueprint(
        self,
        blueprint_id: int,
        *,
        name: str | None = None,
        rule: RecurrenceRule | None = None,
        effective_on: date | None = None,
    ) -> None:
        """
        Edit name and/or rule. Existing instances are left as they are.

        A new rule applies from `effective_on` onward: backfill never generates its
        dates before that day. A one-off moved to a date on or before `effective_on`
        gets its instance right away, as in add_blueprint.
        """
        fields: list[str] = []
        params: list[object] = []

        if name is not None:
            if not name.strip():
                raise ValueError("name must not be empty")
            fields.append("name = ?")
            params.append(name.strip())

        if rule is not None:
            if effective_on is None:
                raise ValueError("effective_on is required when changing the rule")
            rule = validate_rule(rule)
            fields.append("rule = ?")
            params.append(self._rule_to_str(rule))
            fields.append("active_since = MAX(COALESCE(active_since, created_on), ?)")
            params.append(effective_on.isoformat())

        if not fields:
            return

        now = time.time()
        fields.append("updated_at = ?")
        params.append(now)
        params.append(int(blueprint_id))

        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(f"UPDATE blueprints SET {', '.join(fields)} WHERE id = ?", params)
            if cur.rowcount == 0:
                conn.rollback()
                raise NotFound(f"blueprint {blueprint_id} not found")
            if isinstance(rule, OneOff) and effective_on is not None and rule.on <= effective_on:
                cur.execute(
                    "INSERT OR IGNORE INTO instances(blueprint_id, day, completed, created_at) VALUES (?, ?, 0, ?)",
                    (int(blueprint_id), rule.on.isoformat(), now),
                )
            conn.commit()

        if rule is not None:
            logger.info("Blueprint id=%s rule changed to %s from %s", blueprint_id, rule, effective_on)

    def set_archived(self, blueprint_id: int, archived: bool, *, today: date | None = None) -> None:
        """
        Archive or restore a blueprint.

        Restoring needs `today`: generation resumes from that day, so the days spent
        archived never turn into missed instances.
        """
        if archived:
            sql = "UPDATE blueprints SET archived = 1, updated_at = ? WHERE id = ?"
            params: tuple[object, ...] = (time.time(), int(blueprint_id))
        else:
            if today is None:
                raise ValueError("today is required when unarchiving")
            sql = (
                "UPDATE blueprints SET archived = 0, updated_at = ?, "
                "active_since = MAX(COALESCE(active_since, created_on), ?) "
                "WHERE id = ? AND archived = 1"
            )
            params = (time.time(), today.isoformat(), int(blueprint_id))

        with self._connect() as conn:
            cur = conn.execute(sql, params)
            conn.commit()
            # Restoring an already active habit matches nothing and keeps its start date.
            if cur.rowcount == 0 and not conn.execute(
                "SELECT 1 FROM blueprints WHERE id = ?", (int(blueprint_id),)
            ).fetchone():
                raise NotFound(f"blueprint {blueprint_id} not found")

    def delete_blueprint(self, blueprint_id: int) -> int:
        """
        Delete a blueprint. Under the cascade policy its instances go too; under the
        orphan policy they stay (and keep counting in scores if configured).

        Returns the number of instances removed.
        """
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute("DELETE FROM blueprints WHERE id = ?", (int(blueprint_id),))
            if cur.rowcount == 0:
                conn.rollback()
                raise NotFound(f"blueprint {blueprint_id} not found")
            removed = 0
            if self._delete_policy == DELETE_CASCADE:
                cur.execute("DELETE FROM instances WHERE blueprint_id = ?", (int(blueprint_id),))
                removed = cur.rowcount
            conn.commit()

        logger.info(
            "Blueprint deleted id=%s policy=%s instances_removed=%s",
            blueprint_id,
            self._delete_policy,
            removed,
        )
        return removed

    # ---- instances ----

    def list_instance_dates(self, blueprint_id: int, date_range: DateRange) -> set[date]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT day
                FROM instances
                WHERE blueprint_id = ?
                  AND day BETWEEN ? AND ?
                """,
                (int(blueprint_id), date_range.start.isoformat(), date_range.end.isoformat()),
            ).fetchall()
            return {date.fromisoformat(r["day"]) for r in rows}

    def insert_instance(self, blueprint_id: int, day: date, completed: bool = False) -> Instance:
        now = time.time()
        completed_at = now if completed else None
        with self._connect() as conn:
            try:
                cur = conn.execute(
                    """
                    INSERT INTO instances(blueprint_id, day, completed, completed_at, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (int(blueprint_id), day.isoformat(), 1 if completed else 0, completed_at, now),
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                raise DuplicateKey(int(blueprint_id), day) from e

            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for instances insert")

        logger.debug("Instance added id=%s blueprint_id=%s day=%s", rowid, blueprint_id, day)
        return Instance(
            id=int(rowid),
            blueprint_id=int(blueprint_id),
            day=day,
            completed=completed,
            completed_at=completed_at,
        )

    def list_instances(self, date_range: DateRange) -> list[Instance]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM instances
                WHERE day BETWEEN ? AND ?
                ORDER BY day ASC, blueprint_id ASC
                """,
                (date_range.start.isoformat(), date_range.end.isoformat()),
            ).fetchall()
            return [self._row_to_instance(r) for r in rows]

    def get_instance(self, blueprint_id: int, day: date) -> Instance | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM instances WHERE blueprint_id = ? AND day = ?",
                (int(blueprint_id), day.isoformat()),
            ).fetchone()
            return self._row_to_instance(row) if row else None

    def earliest_instance_day(self) -> date | None:
        with self._connect() as conn:
            (raw,) = conn.execute("SELECT MIN(day) FROM instances").fetchone()
            return date.fromisoformat(raw) if raw else None

    def set_completed(
        self,
        blueprint_id: int,
        day: date,
        completed: bool,
        now_ts: float | None = None,
    ) -> Instance:
        """
        Toggle completion of one instance. completed_at is set when completing
        and cleared when un-completing.

        Raises NotFound if no instance exists for (blueprint_id, day), and
        OrphanInstance if it exists but its blueprint was deleted.
        """
        if now_ts is None:
            now_ts = time.time()

        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM instances WHERE blueprint_id = ? AND day = ?",
                (int(blueprint_id), day.isoformat()),
            ).fetchone()
            if row is None:
                raise NotFound(f"no instance for blueprint {blueprint_id} on {day.isoformat()}")

            owner = conn.execute("SELECT 1 FROM blueprints WHERE id = ?", (int(blueprint_id),)).fetchone()
            if owner is None:
                raise OrphanInstance(int(row["id"]), int(blueprint_id))

            completed_at = float(now_ts) if completed else None
            conn.execute(
                "UPDATE instances SET completed = ?, completed_at = ? WHERE id = ?",
                (1 if completed else 0, completed_at, int(row["id"])),
            )
            conn.commit()

        return Instance(
            id=int(row["id"]),
            blueprint_id=int(blueprint_id),
            day=day,
            completed=completed,
            completed_at=completed_at,
        )
