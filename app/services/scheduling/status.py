"""Ciclo de vida do agendamento: transições válidas e quem pode dispará-las."""

from __future__ import annotations

from dataclasses import dataclass

from app.core.errors import ForbiddenError, NotFoundError, ValidationError
from app.core.logging import get_logger
from app.models.appointment import Appointment, AppointmentStatus
from app.models.user import STAFF_ROLES, Role

S = AppointmentStatus

_CANCELLED = frozenset({S.CANCELLED_BY_PATIENT, S.CANCELLED_BY_CLINIC})

TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    S.SCHEDULED: frozenset({S.CONFIRMED, S.WAITING, S.NO_SHOW, S.RESCHEDULED}) | _CANCELLED,
    # remarcação feita pela clínica: a linha pode ser confirmada de novo
    S.RESCHEDULED: frozenset({S.CONFIRMED}) | _CANCELLED,
    S.CONFIRMED: frozenset({S.WAITING, S.IN_PROGRESS, S.NO_SHOW, S.RESCHEDULED})
    | _CANCELLED,
    S.WAITING: frozenset({S.IN_PROGRESS, S.NO_SHOW}) | _CANCELLED,
    S.IN_PROGRESS: frozenset({S.COMPLETED}),
}

TERMINAL_STATUSES = frozenset(
    {S.COMPLETED, S.NO_SHOW, S.CANCELLED_BY_PATIENT, S.CANCELLED_BY_CLINIC}
)

# ações -> rótulo usado nas mensagens
_ACTION_LABELS = {
    S.CONFIRMED: "confirmado",
    S.WAITING: "marcado como presente",
    S.IN_PROGRESS: "iniciado",
    S.COMPLETED: "concluído",
    S.NO_SHOW: "marcado como falta",
    S.CANCELLED_BY_PATIENT: "cancelado",
    S.CANCELLED_BY_CLINIC: "cancelado",
    S.RESCHEDULED: "remarcado",
}


@dataclass(frozen=True)
class Requester:
    id: int
    role: Role


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def ensure_transition(current: AppointmentStatus, target: AppointmentStatus) -> None:
    if target in _CANCELLED and (current in _CANCELLED or current == S.COMPLETED):
        raise ValidationError(
            "Este agendamento já está cancelado ou concluído.", field="status"
        )
    if not can_transition(current, target):
        label = _ACTION_LABELS.get(target, target.value)
        raise ValidationError(
            f"Agendamento com status '{current.value}' não pode ser {label}.",
            field="status",
        )


class AppointmentWorkflow:
    def __init__(self, appointment_repo, professional_repo):
        self.appointment_repo = appointment_repo
        self.professional_repo = professional_repo

    def _load(self, appointment_id: int) -> Appointment:
        ap = self.appointment_repo.get(appointment_id)
        if ap is None:
            raise NotFoundError("Agendamento não encontrado.")
        return ap

    def _is_own_professional(self, requester: Requester, ap: Appointment) -> bool:
        prof = self.professional_repo.get_by_user_id(requester.id)
        return prof is not None and prof.id == ap.professional_id

    def _ensure_staff(self, requester: Requester, ap: Appointment) -> None:
        if requester.role not in STAFF_ROLES:
            raise ForbiddenError("Você não tem permissão para realizar esta ação.")
        if requester.role == Role.HEALTH_PROFESSIONAL and not self._is_own_professional(
            requester, ap
        ):
            raise ForbiddenError(
                "Apenas o profissional responsável pode alterar este agendamento."
            )

    def _move(
        self, appointment_id: int, requester: Requester, target: AppointmentStatus
    ) -> Appointment:
        ap = self._load(appointment_id)
        self._ensure_staff(requester, ap)
        previous = ap.status
        ensure_transition(previous, target)
        self.appointment_repo.update_status(ap, target)
        get_logger().bind(
            appointment_id=ap.id,
            from_status=previous.value,
            to_status=target.value,
            by=requester.id,
        ).info("appointment.status_changed")
        return ap

    def confirm(self, appointment_id: int, requester: Requester) -> Appointment:
        return self._move(appointment_id, requester, S.CONFIRMED)

    def check_in(self, appointment_id: int, requester: Requester) -> Appointment:
        return self._move(appointment_id, requester, S.WAITING)

    def start(self, appointment_id: int, requester: Requester) -> Appointment:
        return self._move(appointment_id, requester, S.IN_PROGRESS)

    def complete(self, appointment_id: int, requester: Requester) -> Appointment:
        return self._move(appointment_id, requester, S.COMPLETED)

    def mark_no_show(self, appointment_id: int, requester: Requester) -> Appointment:
        return self._move(appointment_id, requester, S.NO_SHOW)

    def cancel(
        self, appointment_id: int, requester: Requester, reason: str | None = None
    ) -> Appointment:
        ap = self._load(appointment_id)
        if requester.role == Role.PATIENT:
            if ap.patient_id != requester.id:
                raise ForbiddenError("Você não pode cancelar este agendamento.")
            target = S.CANCELLED_BY_PATIENT
        else:
            self._ensure_staff(requester, ap)
            target = S.CANCELLED_BY_CLINIC

        previous = ap.status
        ensure_transition(previous, target)
        self.appointment_repo.cancel(ap, target, reason, cancelled_by=requester.id)
        get_logger().bind(
            appointment_id=ap.id,
            from_status=previous.value,
            to_status=target.value,
            by=requester.id,
        ).info("appointment.status_changed")
        return ap
