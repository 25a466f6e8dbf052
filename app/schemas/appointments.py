from __future__ import annotations

from pydantic import AliasChoices, BaseModel, Field

from app.models.appointment import Appointment, AppointmentType
from app.services.scheduling.validators import format_time


class CreateAppointmentIn(BaseModel):
    # aceita também os nomes legados do front (patientId/doctorId)
    patient_id: int | None = Field(
        None, ge=1, validation_alias=AliasChoices("patient_id", "patientId")
    )
    professional_id: int = Field(
        ...,
        ge=1,
        validation_alias=AliasChoices("professional_id", "professionalId", "doctorId"),
    )
    # strings cruas: formato é validado pelas regras de agenda (400, não 422)
    date: str = Field(..., description="AAAA-MM-DD")
    time: str = Field(..., description="HH:MM")
    type: AppointmentType = AppointmentType.PRESENCIAL
    notes: str | None = Field(None, max_length=2000)


class AppointmentCreatedOut(BaseModel):
    id: int
    status: str
    price: float


class AppointmentOut(BaseModel):
    id: int
    patient_id: int
    professional_id: int
    date: str
    time: str
    duration_minutes: int
    type: str
    status: str
    price: float
    payment_status: str
    notes: str | None = None
    cancellation_reason: str | None = None
    cancelled_by: int | None = None

    @classmethod
    def from_model(cls, ap: Appointment) -> AppointmentOut:
        return cls(
            id=ap.id,
            patient_id=ap.patient_id,
            professional_id=ap.professional_id,
            date=ap.date.isoformat(),
            time=format_time(ap.time),
            duration_minutes=ap.duration_minutes,
            type=ap.type.value,
            status=ap.status.value,
            price=float(ap.price),
            payment_status=ap.payment_status.value,
            notes=ap.notes,
            cancellation_reason=ap.cancellation_reason,
            cancelled_by=ap.cancelled_by,
        )


class RescheduleIn(BaseModel):
    date: str = Field(
        ..., validation_alias=AliasChoices("date", "new_date", "newDate")
    )
    time: str = Field(
        ..., validation_alias=AliasChoices("time", "new_time", "newTime")
    )
