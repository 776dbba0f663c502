# tests/test_store.py

from __future__ import annotations

import sqlite3
from datetime import date
from pathlib import Path

import pytest

from habit_strike.core.errors import DuplicateKey, InvalidRule, NotFound, OrphanInstance
from habit_strike.habits.dates import DateRange
from habit_strike.habits.recurrence import Daily, Monthly, OneOff, Weekday, Weekly
from habit_strike.habits.store import HabitStore

FEB = DateRange(date(2026, 2, 1), date(2026, 2, 28))


def test_blueprint_crud(store: HabitStore) -> None:
    bp = store.add_blueprint(name="  Read  ", rule=Monthly(31), created_on=date(2026, 2, 1))
    assert bp.id > 0
    assert bp.name == "Read"

    loaded = store.get_blueprint(bp.id)
    assert loaded is not None
    assert loaded.rule == Monthly(31)
    assert loaded.created_on == date(2026, 2, 1)

    with pytest.raises(ValueError):
        store.update_blueprint(bp.id, rule=Daily())
    store.update_blueprint(
        bp.id,
        name="Read 20 pages",
        rule=Weekly(frozenset({Weekday.SUN})),
        effective_on=date(2026, 2, 10),
    )
    loaded = store.get_blueprint(bp.id)
    assert loaded is not None
    assert loaded.name == "Read 20 pages"
    assert loaded.rule == Weekly(frozenset({Weekday.SUN}))
    assert loaded.active_since == date(2026, 2, 10)

    store.set_archived(bp.id, True)
    assert store.list_active_blueprints() == []
    assert [b.id for b in store.list_blueprints()] == [bp.id]
    assert store.list_blueprint_ids() == {bp.id}

    with pytest.raises(NotFound):
        store.set_archived(999, True)
    with pytest.raises(NotFound):
        store.update_blueprint(999, name="x")


def test_add_blueprint_validates_input(store: HabitStore) -> None:
    with pytest.raises(ValueError):
        store.add_blueprint(name=" ", rule=Daily(), created_on=date(2026, 2, 1))
    with pytest.raises(InvalidRule):
        store.add_blueprint(name="x", rule="daily", created_on=date(2026, 2, 1))  # type: ignore[arg-type]
    assert store.count_blueprints() == 0


def test_insert_instance_is_unique_per_blueprint_and_day(store: HabitStore) -> None:
    bp = store.add_blueprint(name="Run", rule=Daily(), created_on=date(2026, 2, 1))
    inst = store.insert_instance(bp.id, date(2026, 2, 3))
    assert inst.completed is False
    assert inst.completed_at is None

    with pytest.raises(DuplicateKey):
        store.insert_instance(bp.id, date(2026, 2, 3))

    assert store.list_instance_dates(bp.id, FEB) == {date(2026, 2, 3)}
    assert store.count_instances() == 1


def test_set_completed_sets_and_clears_timestamp(store: HabitStore) -> None:
    bp = store.add_blueprint(name="Run", rule=Daily(), created_on=date(2026, 2, 1))
    store.insert_instance(bp.id, date(2026, 2, 3))

    done = store.set_completed(bp.id, date(2026, 2, 3), True, now_ts=1234.5)
    assert done.completed is True
    assert done.completed_at == 1234.5

    loaded = store.get_instance(bp.id, date(2026, 2, 3))
    assert loaded is not None and loaded.completed and loaded.completed_at == 1234.5

    store.set_completed(bp.id, date(2026, 2, 3), False)
    loaded = store.get_instance(bp.id, date(2026, 2, 3))
    assert loaded is not None
    assert loaded.completed is False
    assert loaded.completed_at is None

    with pytest.raises(NotFound):
        store.set_completed(bp.id, date(2026, 2, 4), True)


def test_delete_cascade_removes_instances(store: HabitStore) -> None:
    bp = store.add_blueprint(name="Run", rule=Daily(), created_on=date(2026, 2, 1))
    store.insert_instance(bp.id, date(2026, 2, 1))
    store.insert_instance(bp.id, date(2026, 2, 2))

    assert store.delete_blueprint(bp.id) == 2
    assert store.list_instances(FEB) == []
    with pytest.raises(NotFound):
        store.delete_blueprint(bp.id)


def test_delete_orphan_policy_keeps_instances(tmp_path: Path) -> None:
    store = HabitStore(tmp_path / "orphan.sqlite3", delete_policy="orphan")
    bp = store.add_blueprint(name="Run", rule=Daily(), created_on=date(2026, 2, 1))
    store.insert_instance(bp.id, date(2026, 2, 1))

    assert store.delete_blueprint(bp.id) == 0
    assert [i.blueprint_id for i in store.list_instances(FEB)] == [bp.id]
    assert store.list_blueprint_ids() == set()

    with pytest.raises(OrphanInstance):
        store.set_completed(bp.id, date(2026, 2, 1), True)


def test_unknown_delete_policy_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        HabitStore(tmp_path / "x.sqlite3", delete_policy="soft")


def test_unreadable_rule_rows_are_skipped(store: HabitStore, tmp_path: Path) -> None:
    good = store.add_blueprint(name="Good", rule=Daily(), created_on=date(2026, 2, 1))

    conn = sqlite3.connect(str(tmp_path / "store.sqlite3"))
    try:
        conn.execute(
            "INSERT INTO blueprints(name, rule, created_on, archived) VALUES (?, ?, ?, 0)",
            ("Broken", '{"kind": "weekly", "days": []}', "2026-02-01"),
        )
        conn.commit()
    finally:
        conn.close()

    assert [bp.id for bp in store.list_active_blueprints()] == [good.id]
    assert len(store.list_blueprint_ids()) == 2


def test_schema_migration_adds_missing_columns(tmp_path: Path) -> None:
    db = tmp_path / "old.sqlite3"
    conn = sqlite3.connect(str(db))
    try:
        conn.execute(
            "CREATE TABLE blueprints (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL, "
            "rule TEXT NOT NULL, created_on TEXT NOT NULL)"
        )
        conn.execute(
            "CREATE TABLE instances (id INTEGER PRIMARY KEY AUTOINCREMENT, blueprint_id INTEGER NOT NULL, "
            "day TEXT NOT NULL, completed INTEGER NOT NULL DEFAULT 0, UNIQUE (blueprint_id, day))"
        )
        conn.execute(
            "INSERT INTO blueprints(name, rule, created_on) VALUES ('Old', '{\"kind\": \"daily\"}', '2026-01-01')"
        )
        conn.commit()
    finally:
        conn.close()

    store = HabitStore(db)
    [bp] = store.list_active_blueprints()
    assert bp.name == "Old"
    assert bp.archived is False
    assert bp.active_since is None
    assert bp.generation_start == date(2026, 1, 1)

    store.insert_instance(bp.id, date(2026, 1, 2), completed=True)
    inst = store.get_instance(bp.id, date(2026, 1, 2))
    assert inst is not None
    assert inst.completed_at is not None


def test_unarchive_moves_generation_start_forward(store: HabitStore) -> None:
    bp = store.add_blueprint(name="Run", rule=Daily(), created_on=date(2026, 2, 1))
    store.set_archived(bp.id, True)

    with pytest.raises(ValueError):
        store.set_archived(bp.id, False)
    with pytest.raises(NotFound):
        store.set_archived(999, False, today=date(2026, 2, 20))

    store.set_archived(bp.id, False, today=date(2026, 2, 20))
    loaded = store.get_blueprint(bp.id)
    assert loaded is not None
    assert loaded.archived is False
    assert loaded.generation_start == date(2026, 2, 20)

    # Restoring an active habit again keeps the start it already has.
    store.set_archived(bp.id, False, today=date(2026, 3, 1))
    loaded = store.get_blueprint(bp.id)
    assert loaded is not None and loaded.active_since == date(2026, 2, 20)


def test_rule_change_never_moves_generation_start_back(store: HabitStore) -> None:
    bp = store.add_blueprint(name="Run", rule=Daily(), created_on=date(2026, 2, 1))
    store.update_blueprint(bp.id, rule=Monthly(1), effective_on=date(2026, 2, 15))
    store.update_blueprint(bp.id, rule=Daily(), effective_on=date(2026, 2, 10))

    loaded = store.get_blueprint(bp.id)
    assert loaded is not None
    assert loaded.active_since == date(2026, 2, 15)


def test_rule_change_to_past_one_off_records_it(store: HabitStore) -> None:
    bp = store.add_blueprint(name="Form", rule=Daily(), created_on=date(2026, 2, 1))
    store.update_blueprint(bp.id, rule=OneOff(date(2026, 2, 5)), effective_on=date(2026, 2, 20))

    assert store.list_instance_dates(bp.id, FEB) == {date(2026, 2, 5)}
