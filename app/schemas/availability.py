from __future__ import annotations

from pydantic import BaseModel, Field, constr

from app.models.availability import AvailabilityRule
from app.services.scheduling.slots import Slot
from app.services.scheduling.validators import format_time

TimeStr = constr(pattern=r"^(?:[01]\d|2[0-3]):[0-5]\d$")  # "HH:MM"


class AvailabilityRuleIn(BaseModel):
    # faixa 0..6 é validada no serviço (400 no envelope padrão)
    day_of_week: int = Field(..., description="0=domingo ... 6=sábado")
    start_time: TimeStr  # type: ignore
    end_time: TimeStr  # type: ignore


class AvailabilityBatchIn(BaseModel):
    availabilities: list[AvailabilityRuleIn] = Field(..., min_length=1)


class AvailabilityRuleOut(BaseModel):
    id: int
    professional_id: int
    day_of_week: int
    start_time: str  # "HH:MM"
    end_time: str  # "HH:MM"
    is_active: bool

    @classmethod
    def from_model(cls, r: AvailabilityRule) -> AvailabilityRuleOut:
        return cls(
            id=r.id,
            professional_id=r.professional_id,
            day_of_week=r.day_of_week,
            start_time=format_time(r.start_time),
            end_time=format_time(r.end_time),
            is_active=r.is_active,
        )


class SlotOut(BaseModel):
    date: str  # "AAAA-MM-DD"
    time: str  # "HH:MM"
    is_available: bool

    @classmethod
    def from_slot(cls, s: Slot) -> SlotOut:
        return cls(
            date=s.date.isoformat(), time=format_time(s.time), is_available=s.is_available
        )
