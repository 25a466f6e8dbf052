from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

BR_TZ = ZoneInfo("America/Sao_Paulo")

Clock = Callable[[], datetime]


def system_clock(tz: ZoneInfo | None = None) -> Clock:
    """Relógio real na TZ da clínica (aware)."""
    tz = tz or BR_TZ

    def _now() -> datetime:
        return datetime.now(tz)

    return _now


def combine_local(d: date, t: time, tz: ZoneInfo | None = None) -> datetime:
    """
    Combina data+hora de agenda (relógio de parede local) num datetime aware.
    """
    tz = tz or BR_TZ
    if t.tzinfo is not None:
        t = time(t.hour, t.minute, t.second, t.microsecond)
    return datetime.combine(d, t).replace(tzinfo=tz)
