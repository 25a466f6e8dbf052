from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

import pytest

from app.services.scheduling.validators import (
    day_of_week,
    is_aligned_to_slot,
    is_allowed_weekday,
    is_minimum_hours_in_future,
    is_valid_date,
    is_valid_time,
    is_within_horizon,
    is_within_working_hours,
    parse_date,
    parse_time,
    rule_contains,
    slot_fits,
)

BR = ZoneInfo("America/Sao_Paulo")


@pytest.mark.parametrize(
    "value,ok",
    [
        ("2026-03-02", True),
        ("2024-02-29", True),
        ("2026-02-30", False),
        ("2026-13-01", False),
        ("02/03/2026", False),
        ("2026-3-2", False),
        ("", False),
    ],
)
def test_is_valid_date(value, ok):
    assert is_valid_date(value) is ok


@pytest.mark.parametrize(
    "value,ok",
    [
        ("08:00", True),
        ("23:59", True),
        ("24:00", False),
        ("8:00", False),
        ("08:60", False),
        ("08:00:00", False),
    ],
)
def test_is_valid_time(value, ok):
    assert is_valid_time(value) is ok


def test_parse_rejects_invalid():
    assert parse_date("2026-03-02") == date(2026, 3, 2)
    assert parse_time("14:50") == time(14, 50)
    with pytest.raises(ValueError):
        parse_date("2026-02-30")
    with pytest.raises(ValueError):
        parse_time("25:00")


def test_working_hours_end_is_exclusive():
    start, end = time(8), time(18)
    assert is_within_working_hours(time(8), start, end)
    assert is_within_working_hours(time(17, 59), start, end)
    assert not is_within_working_hours(time(18), start, end)
    assert not is_within_working_hours(time(7, 59), start, end)


def test_day_of_week_starts_on_sunday():
    assert day_of_week(date(2026, 3, 1)) == 0  # domingo
    assert day_of_week(date(2026, 3, 2)) == 1  # segunda
    assert day_of_week(date(2026, 3, 7)) == 6  # sábado
    assert not is_allowed_weekday(date(2026, 3, 1), frozenset({0}))
    assert is_allowed_weekday(date(2026, 3, 7), frozenset({0}))


def test_slot_alignment():
    assert is_aligned_to_slot(time(8, 50), time(8), 50)
    assert is_aligned_to_slot(time(9, 40), time(8), 50)
    assert not is_aligned_to_slot(time(9), time(8), 50)
    # antes da âncora nunca está alinhado
    assert not is_aligned_to_slot(time(7, 10), time(8), 50)


def test_rule_contains_and_slot_fits():
    assert rule_contains(time(8), time(12), time(11, 20))
    assert not rule_contains(time(8), time(12), time(12))
    # 11:20 + 50min passa do fim da janela
    assert not slot_fits(time(8), time(12), time(11, 20), 50)
    assert slot_fits(time(8), time(12), time(10, 30), 50)


def test_minimum_hours_in_future():
    now = datetime(2026, 3, 2, 9, 0, tzinfo=BR)
    assert is_minimum_hours_in_future(now + timedelta(hours=2), 2, now)
    assert not is_minimum_hours_in_future(now + timedelta(hours=1, minutes=59), 2, now)
    assert is_minimum_hours_in_future(now + timedelta(hours=1), 1, now)


def test_horizon_boundary_is_inclusive():
    now = datetime(2026, 3, 2, 9, 0, tzinfo=BR)
    assert is_within_horizon(now + timedelta(days=90), 90, now)
    assert not is_within_horizon(now + timedelta(days=90, minutes=1), 90, now)
