"""
Regras de agendamento: validam um pedido ANTES de gravar.

As checagens rodam em ordem fixa e param na primeira falha; nada é gravado
aqui. A unicidade real fica com os índices parciais do banco.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, time

from app.core.errors import ConflictError, LeadTimeError, ValidationError
from app.core.logging import get_logger
from app.models.appointment import AppointmentType
from app.models.availability import AvailabilityRule
from app.repositories.appointments import DUPLICATE_DAY_MSG
from app.services.scheduling.policy import SchedulingPolicy
from app.services.scheduling.validators import (
    day_of_week,
    format_time,
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
from app.utils.tz import Clock, combine_local, system_clock


@dataclass(frozen=True)
class BookingRequest:
    patient_id: int
    professional_id: int
    date: str  # AAAA-MM-DD
    time: str  # HH:MM
    type: AppointmentType = AppointmentType.PRESENCIAL
    notes: str | None = None


@dataclass(frozen=True)
class ValidatedSlot:
    date: date
    time: time
    starts_at: datetime


class BookingRules:
    def __init__(
        self,
        policy: SchedulingPolicy,
        availability_repo,
        appointment_repo,
        clock: Clock | None = None,
    ):
        self.policy = policy
        self.availability_repo = availability_repo
        self.appointment_repo = appointment_repo
        self.clock = clock or system_clock(policy.tz)

    # ---------- checagens individuais ----------

    def check_format(self, raw_date: str, raw_time: str) -> tuple[date, time]:
        if not is_valid_date(raw_date):
            raise ValidationError("Data inválida. Use o formato AAAA-MM-DD.", field="date")
        if not is_valid_time(raw_time):
            raise ValidationError("Horário inválido. Use o formato HH:MM.", field="time")
        d, t = parse_date(raw_date), parse_time(raw_time)
        p = self.policy
        if not is_within_working_hours(t, p.work_start, p.work_end):
            raise ValidationError(
                f"Horário fora do expediente ({format_time(p.work_start)} às "
                f"{format_time(p.work_end)}).",
                field="time",
            )
        return d, t

    def check_weekday(self, d: date) -> None:
        if not is_allowed_weekday(d, self.policy.closed_weekdays):
            raise ValidationError(
                "A clínica não atende neste dia da semana.", field="date"
            )

    def alignment_anchor(self, t: time, day_rules: Sequence[AvailabilityRule]) -> time:
        """Início da janela que contém `t`; sem janela, o início do expediente."""
        for rule in day_rules:
            if rule_contains(rule.start_time, rule.end_time, t):
                return rule.start_time
        return self.policy.work_start

    def check_alignment(self, t: time, day_rules: Sequence[AvailabilityRule]) -> None:
        slot = self.policy.slot_minutes
        containing = [
            r for r in day_rules if rule_contains(r.start_time, r.end_time, t)
        ]
        anchors = [r.start_time for r in containing] or [self.policy.work_start]
        if not any(is_aligned_to_slot(t, a, slot) for a in anchors):
            raise ValidationError(
                f"Horário deve seguir intervalos de {slot} minutos a partir de "
                f"{format_time(self.alignment_anchor(t, day_rules))}.",
                field="time",
            )

    def check_lead_time(
        self, starts_at: datetime, type_: AppointmentType, now: datetime
    ) -> None:
        if starts_at <= now:
            raise LeadTimeError(
                "O agendamento deve ser para uma data futura.", field="date"
            )
        min_hours = self.policy.min_lead_hours_for(type_)
        if not is_minimum_hours_in_future(starts_at, min_hours, now):
            raise LeadTimeError(
                f"Antecedência mínima de {min_hours:g}h não atingida para "
                f"consultas {type_.value}.",
                field="time",
            )

    def check_horizon(self, starts_at: datetime, now: datetime) -> None:
        days = self.policy.max_horizon_days
        if not is_within_horizon(starts_at, days, now):
            raise ValidationError(
                f"Não é possível agendar consultas com mais de {days} dias de "
                "antecedência.",
                field="date",
            )

    def fits_availability(
        self,
        professional_id: int,
        t: time,
        day_rules: Sequence[AvailabilityRule],
    ) -> bool:
        if day_rules:
            return any(
                slot_fits(r.start_time, r.end_time, t, self.policy.slot_minutes)
                for r in day_rules
            )
        if self.availability_repo.has_any_active(professional_id):
            # tem grade, mas não neste dia
            return False
        return self.policy.open_availability_when_no_rules

    def check_availability(
        self,
        professional_id: int,
        d: date,
        t: time,
        day_rules: Sequence[AvailabilityRule],
    ) -> None:
        if self.fits_availability(professional_id, t, day_rules):
            return
        if self.policy.enforce_availability_on_booking:
            raise ConflictError(
                "Profissional não atende neste horário.",
                field="time",
                code="SLOT_NOT_AVAILABLE",
            )
        get_logger().bind(
            professional_id=professional_id, date=d.isoformat(), time=format_time(t)
        ).warning("booking.outside_availability")

    def check_patient_day(
        self,
        patient_id: int,
        professional_id: int,
        d: date,
        exclude_id: int | None = None,
    ) -> None:
        if self.appointment_repo.has_patient_conflict(
            patient_id, professional_id, d, exclude_id=exclude_id
        ):
            raise ConflictError(
                DUPLICATE_DAY_MSG, field="date", code="DUPLICATE_APPOINTMENT"
            )

    def check_slot_free(self, professional_id: int, d: date, t: time) -> None:
        if self.appointment_repo.is_slot_taken(professional_id, d, t):
            raise ConflictError(
                "Este horário não está mais disponível. Por favor, escolha outro horário.",
                field="time",
                code="SLOT_NOT_AVAILABLE",
            )

    # ---------- pipeline completo ----------

    def validate_booking(self, request: BookingRequest) -> ValidatedSlot:
        log = get_logger().bind(
            patient_id=request.patient_id, professional_id=request.professional_id
        )
        try:
            d, t = self.check_format(request.date, request.time)
            self.check_weekday(d)
            day_rules = self.availability_repo.list_active_for_weekday(
                request.professional_id, day_of_week(d)
            )
            self.check_alignment(t, day_rules)

            now = self.clock()
            starts_at = combine_local(d, t, self.policy.tz)
            self.check_lead_time(starts_at, request.type, now)
            self.check_horizon(starts_at, now)
            self.check_availability(request.professional_id, d, t, day_rules)
            self.check_patient_day(request.patient_id, request.professional_id, d)
            self.check_slot_free(request.professional_id, d, t)
        except (ValidationError, ConflictError) as exc:
            log.info("booking.rejected", code=exc.code, reason=exc.message)
            raise
        return ValidatedSlot(date=d, time=t, starts_at=starts_at)
