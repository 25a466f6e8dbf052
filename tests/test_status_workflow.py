from datetime import date, time

import pytest
from structlog.testing import capture_logs

from app.core.errors import ForbiddenError, NotFoundError, ValidationError
from app.models.appointment import AppointmentStatus
from app.models.user import Role
from app.repositories.appointments import AppointmentRepository
from app.repositories.professionals import ProfessionalRepository
from app.services.scheduling.status import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    AppointmentWorkflow,
    Requester,
    can_transition,
)

S = AppointmentStatus
TUESDAY = date(2026, 3, 3)


@pytest.fixture
def workflow(db_session):
    return AppointmentWorkflow(AppointmentRepository(db_session), ProfessionalRepository(db_session))


@pytest.fixture
def appointment(make_appointment, patient, professional):
    return make_appointment(patient, professional, TUESDAY, time(14))


def test_terminal_statuses_have_no_exits():
    for status in TERMINAL_STATUSES:
        assert not TRANSITIONS.get(status)


def test_transition_table():
    assert can_transition(S.SCHEDULED, S.CONFIRMED)
    assert can_transition(S.CONFIRMED, S.IN_PROGRESS)
    assert can_transition(S.WAITING, S.IN_PROGRESS)
    assert can_transition(S.IN_PROGRESS, S.COMPLETED)
    assert not can_transition(S.SCHEDULED, S.COMPLETED)
    assert not can_transition(S.COMPLETED, S.CONFIRMED)
    assert not can_transition(S.IN_PROGRESS, S.CANCELLED_BY_CLINIC)


def test_full_lifecycle(workflow, appointment, receptionist, professional_user):
    desk = Requester(receptionist.id, Role.RECEPTIONIST)
    doctor = Requester(professional_user.id, Role.HEALTH_PROFESSIONAL)

    with capture_logs() as logs:
        assert workflow.confirm(appointment.id, desk).status == S.CONFIRMED
        assert workflow.check_in(appointment.id, desk).status == S.WAITING
        assert workflow.start(appointment.id, doctor).status == S.IN_PROGRESS
        assert workflow.complete(appointment.id, doctor).status == S.COMPLETED

    changes = [e for e in logs if e["event"] == "appointment.status_changed"]
    assert [e["to_status"] for e in changes] == ["confirmed", "waiting", "in_progress", "completed"]


def test_invalid_transition(workflow, appointment, receptionist):
    desk = Requester(receptionist.id, Role.RECEPTIONIST)
    with pytest.raises(ValidationError) as exc:
        workflow.complete(appointment.id, desk)
    assert "scheduled" in exc.value.message


def test_patient_cannot_confirm(workflow, appointment, patient):
    with pytest.raises(ForbiddenError):
        workflow.confirm(appointment.id, Requester(patient.id, Role.PATIENT))


def test_professional_only_acts_on_own_agenda(workflow, appointment, other_professional):
    with pytest.raises(ForbiddenError):
        workflow.confirm(
            appointment.id, Requester(other_professional.user_id, Role.HEALTH_PROFESSIONAL)
        )


def test_cancel_by_patient_and_by_clinic(
    workflow, make_appointment, patient, other_patient, professional, admin
):
    own = make_appointment(patient, professional, TUESDAY, time(14))
    ap = workflow.cancel(own.id, Requester(patient.id, Role.PATIENT), reason="imprevisto")
    assert ap.status == S.CANCELLED_BY_PATIENT
    assert ap.cancellation_reason == "imprevisto"
    assert ap.cancelled_by == patient.id

    other = make_appointment(other_patient, professional, TUESDAY, time(14, 50))
    ap = workflow.cancel(other.id, Requester(admin.id, Role.ADMIN))
    assert ap.status == S.CANCELLED_BY_CLINIC


def test_patient_cannot_cancel_someone_else(workflow, appointment, other_patient):
    with pytest.raises(ForbiddenError):
        workflow.cancel(appointment.id, Requester(other_patient.id, Role.PATIENT))


def test_cancel_twice_is_rejected(workflow, appointment, patient):
    me = Requester(patient.id, Role.PATIENT)
    workflow.cancel(appointment.id, me)
    with pytest.raises(ValidationError) as exc:
        workflow.cancel(appointment.id, me)
    assert "cancelado ou concluído" in exc.value.message


def test_no_show_releases_slot(db_session, workflow, appointment, receptionist, professional):
    workflow.mark_no_show(appointment.id, Requester(receptionist.id, Role.RECEPTIONIST))
    db_session.commit()
    assert not AppointmentRepository(db_session).is_slot_taken(professional.id, TUESDAY, time(14))


def test_unknown_appointment(workflow, admin):
    with pytest.raises(NotFoundError):
        workflow.confirm(999, Requester(admin.id, Role.ADMIN))
