from __future__ import annotations

from datetime import date, time

from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError
from app.models.appointment import ACTIVE_STATUSES, Appointment, AppointmentStatus

SLOT_TAKEN_MSG = (
    "Ops, o horário acabou de ser reservado por outra pessoa. "
    "Atualize os horários e escolha outro."
)
DUPLICATE_DAY_MSG = (
    "O paciente já possui uma consulta agendada com este profissional nesta data."
)


def _conflict_from_integrity(e: IntegrityError) -> ConflictError | None:
    """Traduz violação dos índices únicos parciais em ConflictError."""
    msg = str(getattr(e, "orig", e))
    lowered = msg.lower()
    if "ux_appt_patient_prof_day_active" in msg or (
        "unique" in lowered and "patient_id" in lowered
    ):
        return ConflictError(DUPLICATE_DAY_MSG, field="date", code="DUPLICATE_APPOINTMENT")
    if (
        "ux_appt_prof_slot_active" in msg
        or "unique" in lowered
        or getattr(getattr(e, "orig", None), "pgcode", None) == "23505"
    ):
        return ConflictError(SLOT_TAKEN_MSG, field="time", code="SLOT_NOT_AVAILABLE")
    return None


class AppointmentRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, appointment_id: int) -> Appointment | None:
        return self.db.get(Appointment, appointment_id)

    def _flush(self) -> None:
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            conflict = _conflict_from_integrity(e)
            if conflict is None:
                raise
            raise conflict from e

    def add(self, appointment: Appointment) -> Appointment:
        self.db.add(appointment)
        self._flush()
        return appointment

    def list_for_professional_between(
        self, professional_id: int, start: date, end: date
    ) -> list[Appointment]:
        """Agendamentos do profissional com data em [start, end] (todos os status)."""
        return (
            self.db.query(Appointment)
            .filter(
                and_(
                    Appointment.professional_id == professional_id,
                    Appointment.date >= start,
                    Appointment.date <= end,
                )
            )
            .all()
        )

    def list_for_patient(self, patient_id: int) -> list[Appointment]:
        return (
            self.db.query(Appointment)
            .filter(Appointment.patient_id == patient_id)
            .order_by(Appointment.date.desc(), Appointment.time.desc())
            .all()
        )

    def list_for_professional(
        self, professional_id: int, on: date | None = None
    ) -> list[Appointment]:
        q = self.db.query(Appointment).filter(
            Appointment.professional_id == professional_id
        )
        if on is not None:
            q = q.filter(Appointment.date == on)
        return q.order_by(Appointment.date.asc(), Appointment.time.asc()).all()

    def has_patient_conflict(
        self,
        patient_id: int,
        professional_id: int,
        on: date,
        exclude_id: int | None = None,
    ) -> bool:
        q = self.db.query(Appointment.id).filter(
            and_(
                Appointment.patient_id == patient_id,
                Appointment.professional_id == professional_id,
                Appointment.date == on,
                Appointment.status.in_(ACTIVE_STATUSES),
            )
        )
        if exclude_id is not None:
            q = q.filter(Appointment.id != exclude_id)
        return q.first() is not None

    def is_slot_taken(
        self,
        professional_id: int,
        on: date,
        at: time,
        exclude_id: int | None = None,
    ) -> bool:
        q = self.db.query(Appointment.id).filter(
            and_(
                Appointment.professional_id == professional_id,
                Appointment.date == on,
                Appointment.time == at,
                Appointment.status.in_(ACTIVE_STATUSES),
            )
        )
        if exclude_id is not None:
            q = q.filter(Appointment.id != exclude_id)
        return q.first() is not None

    def reschedule(self, appointment_id: int, new_date: date, new_time: time) -> Appointment:
        """Move a MESMA linha para nova data/hora; demais campos intactos."""
        ap = self.get(appointment_id)
        if ap is None:
            raise NotFoundError("Agendamento não encontrado para reagendamento.")
        ap.date = new_date
        ap.time = new_time
        self._flush()
        return ap

    def update_status(self, appointment: Appointment, status: AppointmentStatus) -> Appointment:
        appointment.status = status
        self._flush()
        return appointment

    def cancel(
        self,
        appointment: Appointment,
        status: AppointmentStatus,
        reason: str | None,
        cancelled_by: int,
    ) -> Appointment:
        appointment.status = status
        appointment.cancellation_reason = reason
        appointment.cancelled_by = cancelled_by
        self._flush()
        return appointment
