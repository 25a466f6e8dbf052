"""
Remarcação feita pelo próprio paciente.

Reaplica as regras temporais do agendamento sobre a NOVA data/hora e atualiza
a mesma linha. Remarcar em cima da hora não bloqueia: só gera cobrança de taxa
(registrada em log e repassada ao `fee_recorder`).
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from decimal import Decimal

from app.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.core.logging import get_logger
from app.models.appointment import Appointment, AppointmentStatus
from app.models.user import Role
from app.services.scheduling.policy import SchedulingPolicy
from app.services.scheduling.rules import BookingRules
from app.services.scheduling.validators import day_of_week, format_time
from app.utils.tz import Clock, combine_local, system_clock

FeeRecorder = Callable[[Appointment, Decimal, datetime], None]

RESCHEDULABLE_STATUSES = frozenset(
    {
        AppointmentStatus.SCHEDULED,
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.RESCHEDULED,
    }
)


class RescheduleEngine:
    def __init__(
        self,
        policy: SchedulingPolicy,
        appointment_repo,
        availability_repo,
        clock: Clock | None = None,
        fee_recorder: FeeRecorder | None = None,
    ):
        self.policy = policy
        self.appointment_repo = appointment_repo
        self.availability_repo = availability_repo
        self.clock = clock or system_clock(policy.tz)
        self.fee_recorder = fee_recorder
        self.rules = BookingRules(
            policy, availability_repo, appointment_repo, clock=self.clock
        )

    def late_fee_applies(self, original_starts_at: datetime, now: datetime) -> bool:
        window = self.policy.reschedule_free_window_hours
        return (original_starts_at - now).total_seconds() < window * 3600

    def _new_slot_available(self, ap: Appointment, new_date, new_time) -> bool:
        if not self.availability_repo.has_any_active(ap.professional_id):
            if not self.policy.open_availability_when_no_rules:
                return False
            return not self.appointment_repo.is_slot_taken(
                ap.professional_id, new_date, new_time, exclude_id=ap.id
            )
        return self.availability_repo.is_professional_available(
            ap.professional_id,
            new_date,
            new_time,
            self.policy.slot_minutes,
            exclude_appointment_id=ap.id,
        )

    def reschedule(
        self,
        requester_id: int,
        requester_role: Role,
        appointment_id: int,
        new_date: str,
        new_time: str,
    ) -> Appointment:
        ap = self.appointment_repo.get(appointment_id)
        if ap is None:
            raise NotFoundError("Agendamento não encontrado.")

        if requester_role != Role.PATIENT or requester_id != ap.patient_id:
            raise ForbiddenError("Apenas o paciente pode remarcar este agendamento.")

        if ap.status not in RESCHEDULABLE_STATUSES:
            raise ValidationError(
                f"Agendamento com status '{ap.status.value}' não pode ser remarcado.",
                field="status",
            )

        rules = self.rules
        d, t = rules.check_format(new_date, new_time)
        rules.check_weekday(d)
        day_rules = self.availability_repo.list_active_for_weekday(
            ap.professional_id, day_of_week(d)
        )
        rules.check_alignment(t, day_rules)

        now = self.clock()
        new_starts_at = combine_local(d, t, self.policy.tz)
        if new_starts_at <= now:
            raise ValidationError("O novo horário deve ser no futuro.", field="date")
        rules.check_horizon(new_starts_at, now)
        rules.check_lead_time(new_starts_at, ap.type, now)

        if not self._new_slot_available(ap, d, t):
            raise ConflictError(
                "O novo horário selecionado não está disponível. Por favor, escolha outro.",
                field="time",
                code="NEW_SLOT_NOT_AVAILABLE",
            )
        rules.check_patient_day(ap.patient_id, ap.professional_id, d, exclude_id=ap.id)

        original_starts_at = combine_local(ap.date, ap.time, self.policy.tz)
        original = (ap.date.isoformat(), format_time(ap.time))

        ap = self.appointment_repo.reschedule(ap.id, d, t)

        log = get_logger().bind(
            appointment_id=ap.id,
            patient_id=ap.patient_id,
            from_date=original[0],
            from_time=original[1],
            to_date=d.isoformat(),
            to_time=format_time(t),
        )
        log.info("appointment.rescheduled")

        if self.late_fee_applies(original_starts_at, now):
            amount = self.policy.reschedule_fee_amount
            log.warning(
                "appointment.reschedule_fee",
                message="Cobrança de taxa de remarcação",
                amount=str(amount),
                free_window_hours=self.policy.reschedule_free_window_hours,
            )
            if self.fee_recorder is not None:
                self.fee_recorder(ap, amount, original_starts_at)

        return ap
