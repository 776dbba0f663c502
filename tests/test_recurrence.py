# tests/test_recurrence.py

from __future__ import annotations

from datetime import date

import pytest

from habit_strike.core.errors import InvalidRule
from habit_strike.habits.dates import DateRange, days_in_month
from habit_strike.habits.recurrence import (
    Daily,
    Monthly,
    OneOff,
    OverflowPolicy,
    Weekday,
    Weekly,
    describe_rule,
    expand,
    occurs_on,
    rule_from_dict,
    rule_to_dict,
    validate_rule,
)


def test_monthly_31_clamps_to_last_day_of_short_months() -> None:
    rule = Monthly(31)

    assert occurs_on(rule, date(2026, 1, 31))
    assert occurs_on(rule, date(2026, 2, 28))
    assert occurs_on(rule, date(2026, 4, 30))

    assert not occurs_on(rule, date(2026, 1, 30))
    assert not occurs_on(rule, date(2026, 2, 27))
    assert not occurs_on(rule, date(2026, 4, 29))


def test_monthly_31_fires_exactly_on_month_ends() -> None:
    rule = Monthly(31, OverflowPolicy.LAST_DAY)
    for d in DateRange(date(2023, 12, 1), date(2026, 12, 31)):
        expected = d.day == days_in_month(d.year, d.month) or d.day == 31
        assert occurs_on(rule, d) is expected, d


def test_monthly_overflow_is_resolved_per_month_not_carried() -> None:
    got = expand(Monthly(30), date(2024, 1, 1), date(2024, 4, 30))
    assert got == [date(2024, 1, 30), date(2024, 2, 29), date(2024, 3, 30), date(2024, 4, 30)]


def test_monthly_expand_once_per_month() -> None:
    got = expand(Monthly(15), date(2026, 1, 1), date(2026, 12, 31))
    assert len(got) == 12
    assert all(d.day == 15 for d in got)


def test_monthly_expand_respects_partial_months() -> None:
    got = expand(Monthly(10), date(2026, 1, 11), date(2026, 3, 9))
    assert got == [date(2026, 2, 10)]


def test_weekly_mon_wed_fri() -> None:
    rule = Weekly(frozenset({Weekday.MON, Weekday.WED, Weekday.FRI}))
    got = expand(rule, date(2026, 2, 9), date(2026, 2, 15))
    assert got == [date(2026, 2, 9), date(2026, 2, 11), date(2026, 2, 13)]


@pytest.mark.parametrize(
    "rule",
    [
        Daily(),
        Weekly(frozenset({Weekday.SUN})),
        Weekly(frozenset({Weekday.TUE, Weekday.SAT})),
        Monthly(30),
    ],
)
def test_expand_matches_occurs_on_across_year_end(rule) -> None:
    # Starts on a Thursday so the first weekly match is later in the same week.
    window = DateRange(date(2025, 12, 25), date(2026, 3, 3))
    assert expand(rule, window.start, window.end) == [d for d in window if occurs_on(rule, d)]


def test_daily_expand_is_inclusive_and_ordered() -> None:
    got = expand(Daily(), date(2026, 2, 27), date(2026, 3, 2))
    assert got == [date(2026, 2, 27), date(2026, 2, 28), date(2026, 3, 1), date(2026, 3, 2)]


def test_expand_empty_when_start_after_end() -> None:
    assert expand(Daily(), date(2026, 3, 2), date(2026, 3, 1)) == []


def test_one_off() -> None:
    rule = OneOff(date(2026, 2, 9))
    assert occurs_on(rule, date(2026, 2, 9))
    assert not occurs_on(rule, date(2026, 2, 10))
    assert expand(rule, date(2026, 1, 1), date(2026, 2, 9)) == [date(2026, 2, 9)]
    assert expand(rule, date(2026, 1, 1), date(2026, 2, 8)) == []


@pytest.mark.parametrize(
    "build",
    [
        lambda: Weekly(frozenset()),
        lambda: Monthly(0),
        lambda: Monthly(32),
        lambda: Monthly(31, OverflowPolicy.SKIP),
        lambda: Monthly(31, "clamp"),
    ],
)
def test_invalid_rules_are_rejected_on_construction(build) -> None:
    with pytest.raises(InvalidRule):
        build()


def test_validate_rule_rejects_non_rules() -> None:
    assert validate_rule(Daily()) == Daily()
    with pytest.raises(InvalidRule):
        validate_rule("daily")


def test_rule_dict_round_trip_and_malformed_payloads() -> None:
    weekly = Weekly(frozenset({Weekday.TUE, Weekday.SAT}))
    assert rule_to_dict(weekly) == {"kind": "weekly", "days": [1, 5]}
    assert rule_from_dict(rule_to_dict(weekly)) == weekly
    assert rule_from_dict({"kind": "monthly", "day_of_month": 31}) == Monthly(31)

    for bad in ({"kind": "weekly", "days": []}, {"kind": "yearly"}, {"kind": "once"}, [1, 2]):
        with pytest.raises(InvalidRule):
            rule_from_dict(bad)


def test_weekday_parse_and_describe() -> None:
    assert Weekday.parse("monday") is Weekday.MON
    assert Weekday.parse(" Fri ") is Weekday.FRI
    with pytest.raises(InvalidRule):
        Weekday.parse("xyz")

    assert describe_rule(Weekly(frozenset({Weekday.FRI, Weekday.MON}))) == "weekly on Mon, Fri"
    assert describe_rule(OneOff(date(2026, 2, 9))) == "once on 2026-02-09"
