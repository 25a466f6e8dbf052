"""Predicados puros sobre datas e horários de agenda (sem I/O)."""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^(?:[01]\d|2[0-3]):[0-5]\d$")


def is_valid_date(value: str) -> bool:
    """AAAA-MM-DD e data existente no calendário (rejeita 2026-02-30)."""
    if not isinstance(value, str) or not _DATE_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def is_valid_time(value: str) -> bool:
    return isinstance(value, str) and bool(_TIME_RE.match(value))


def parse_date(value: str) -> date:
    if not is_valid_date(value):
        raise ValueError(f"data inválida: {value!r}")
    return date.fromisoformat(value)


def parse_time(value: str) -> time:
    if not is_valid_time(value):
        raise ValueError(f"horário inválido: {value!r}")
    h, m = map(int, value.split(":"))
    return time(h, m)


def format_time(t: time) -> str:
    return f"{t.hour:02d}:{t.minute:02d}"


def minutes_of(t: time) -> int:
    return t.hour * 60 + t.minute


def is_within_working_hours(t: time, start: time, end: time) -> bool:
    # fim exclusivo
    return start <= t < end


def day_of_week(d: date) -> int:
    """0=domingo ... 6=sábado."""
    return d.isoweekday() % 7


def is_allowed_weekday(d: date, closed_weekdays: frozenset[int]) -> bool:
    return day_of_week(d) not in closed_weekdays


def is_aligned_to_slot(t: time, anchor: time, slot_minutes: int) -> bool:
    delta = minutes_of(t) - minutes_of(anchor)
    return delta >= 0 and delta % slot_minutes == 0


def rule_contains(start: time, end: time, t: time) -> bool:
    return start <= t < end


def slot_fits(start: time, end: time, t: time, slot_minutes: int) -> bool:
    """O slot [t, t+duração) cabe inteiro na janela [start, end)."""
    return (
        minutes_of(start) <= minutes_of(t)
        and minutes_of(t) + slot_minutes <= minutes_of(end)
    )


def is_minimum_hours_in_future(
    target: datetime, min_hours: float, now: datetime
) -> bool:
    return target - now >= timedelta(hours=min_hours)


def is_within_horizon(target: datetime, max_days: int, now: datetime) -> bool:
    return target - now <= timedelta(days=max_days)
