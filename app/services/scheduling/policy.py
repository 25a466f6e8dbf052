"""Política de agenda passada explicitamente a cada componente."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import time
from decimal import Decimal
from zoneinfo import ZoneInfo

from app.core.settings import Settings
from app.models.appointment import AppointmentType


def _hhmm(value: str) -> time:
    h, m = map(int, value.split(":"))
    return time(h, m)


@dataclass(frozen=True)
class SchedulingPolicy:
    slot_minutes: int = 50
    work_start: time = time(8, 0)
    work_end: time = time(18, 0)
    # 0=domingo ... 6=sábado
    closed_weekdays: frozenset[int] = frozenset({0})
    min_lead_hours_presencial: float = 2
    min_lead_hours_online: float = 1
    max_horizon_days: int = 90
    reschedule_free_window_hours: float = 24
    reschedule_fee_amount: Decimal = Decimal("30.00")
    open_availability_when_no_rules: bool = True
    enforce_availability_on_booking: bool = False
    tz: ZoneInfo = field(default_factory=lambda: ZoneInfo("America/Sao_Paulo"))

    def min_lead_hours_for(self, type_: AppointmentType) -> float:
        if type_ == AppointmentType.ONLINE:
            return self.min_lead_hours_online
        return self.min_lead_hours_presencial

    @classmethod
    def from_settings(cls, s: Settings) -> SchedulingPolicy:
        closed = frozenset(
            int(x) for x in s.CLOSED_WEEKDAYS.split(",") if x.strip() != ""
        )
        return cls(
            slot_minutes=s.SLOT_MINUTES,
            work_start=_hhmm(s.WORK_START),
            work_end=_hhmm(s.WORK_END),
            closed_weekdays=closed,
            min_lead_hours_presencial=s.MIN_LEAD_HOURS_PRESENCIAL,
            min_lead_hours_online=s.MIN_LEAD_HOURS_ONLINE,
            max_horizon_days=s.MAX_HORIZON_DAYS,
            reschedule_free_window_hours=s.RESCHEDULE_FREE_WINDOW_HOURS,
            reschedule_fee_amount=s.RESCHEDULE_FEE_AMOUNT,
            open_availability_when_no_rules=s.OPEN_AVAILABILITY_WHEN_NO_RULES,
            enforce_availability_on_booking=s.ENFORCE_AVAILABILITY_ON_BOOKING,
            tz=ZoneInfo(s.CLINIC_TZ),
        )
