from dataclasses import replace
from datetime import date, time
from decimal import Decimal

import pytest
from structlog.testing import capture_logs

from app.core.errors import ConflictError, LeadTimeError, NotFoundError, ValidationError
from app.models.appointment import AppointmentStatus, AppointmentType, PaymentStatus
from app.repositories.appointments import AppointmentRepository
from app.repositories.availability import AvailabilityRepository
from app.repositories.professionals import ProfessionalRepository
from app.services.scheduling.booking import BookingService
from app.services.scheduling.rules import BookingRequest, BookingRules


@pytest.fixture
def booking(db_session, policy, clock):
    def _service(p=None):
        return BookingService(
            p or policy,
            ProfessionalRepository(db_session),
            AvailabilityRepository(db_session),
            AppointmentRepository(db_session),
            clock=clock,
        )

    return _service


def _req(patient, professional, d, t, type_=AppointmentType.PRESENCIAL):
    return BookingRequest(
        patient_id=patient.id, professional_id=professional.id, date=d, time=t, type=type_
    )


def test_schedule_happy_path_freezes_price(db_session, booking, patient, professional, rules):
    ap = booking().schedule(_req(patient, professional, "2026-03-03", "14:00"))
    db_session.commit()

    assert ap.id is not None
    assert ap.status == AppointmentStatus.SCHEDULED
    assert ap.payment_status == PaymentStatus.PENDING
    assert ap.duration_minutes == 50
    assert ap.price == Decimal("150.00")

    # reajuste do profissional não altera consulta já marcada
    professional.price = Decimal("300.00")
    db_session.commit()
    db_session.refresh(ap)
    assert ap.price == Decimal("150.00")


def test_yesterday_is_rejected(booking, patient, professional, rules):
    # sábado anterior: dia permitido, mas no passado
    with pytest.raises(ValidationError) as exc:
        booking().schedule(_req(patient, professional, "2026-02-28", "10:30"))
    assert isinstance(exc.value, LeadTimeError)
    assert "futura" in exc.value.message


def test_beyond_horizon_is_rejected(booking, patient, professional, rules):
    with pytest.raises(ValidationError) as exc:
        booking().schedule(_req(patient, professional, "2026-06-05", "10:30"))
    assert exc.value.code == "VALIDATION_ERROR"
    assert "90 dias" in exc.value.message


@pytest.mark.parametrize(
    "d,t,field",
    [
        ("2026-02-30", "10:30", "date"),
        ("2026-03-03", "7:00", "time"),
        ("2026-03-03", "18:00", "time"),
        ("2026-03-03", "07:10", "time"),
    ],
)
def test_format_and_working_hours(booking, patient, professional, d, t, field):
    with pytest.raises(ValidationError) as exc:
        booking().schedule(_req(patient, professional, d, t))
    assert exc.value.field == field


def test_sunday_is_closed(booking, patient, professional, rules):
    with pytest.raises(ValidationError) as exc:
        booking().schedule(_req(patient, professional, "2026-03-08", "10:30"))
    assert exc.value.field == "date"
    assert "dia da semana" in exc.value.message


def test_alignment_follows_rule_start(booking, patient, professional, rules):
    # terça: janela começa às 14:00, então 14:40 (alinhado ao expediente) não vale
    with pytest.raises(ValidationError) as exc:
        booking().schedule(_req(patient, professional, "2026-03-03", "14:40"))
    assert "14:00" in exc.value.message


def test_alignment_without_rules_uses_working_hours_start(booking, patient, professional):
    with pytest.raises(ValidationError) as exc:
        booking().schedule(_req(patient, professional, "2026-03-03", "09:00"))
    assert "08:00" in exc.value.message
    ap = booking().schedule(_req(patient, professional, "2026-03-03", "09:40"))
    assert ap.time == time(9, 40)


def test_lead_time_depends_on_type(booking, patient, other_patient, professional, rules):
    # agora = seg 09:00; 10:30 está a 1h30
    with pytest.raises(LeadTimeError) as exc:
        booking().schedule(_req(patient, professional, "2026-03-02", "10:30"))
    assert exc.value.code == "INSUFFICIENT_NOTICE"

    ap = booking().schedule(
        _req(other_patient, professional, "2026-03-02", "10:30", AppointmentType.ONLINE)
    )
    assert ap.type == AppointmentType.ONLINE


def test_checks_run_in_order(booking, patient, professional, rules):
    # desalinhado E no passado: alinhamento é checado antes da antecedência
    with pytest.raises(ValidationError) as exc:
        booking().schedule(_req(patient, professional, "2026-02-27", "08:10"))
    assert not isinstance(exc.value, LeadTimeError)
    assert "intervalos" in exc.value.message

    # domingo fora do expediente: formato/expediente vem antes do dia da semana
    with pytest.raises(ValidationError) as exc:
        booking().schedule(_req(patient, professional, "2026-03-08", "19:00"))
    assert exc.value.field == "time"


def test_double_booking_same_slot(db_session, booking, patient, other_patient, professional, rules):
    booking().schedule(_req(patient, professional, "2026-03-03", "14:00"))
    db_session.commit()

    with pytest.raises(ConflictError) as exc:
        booking().schedule(_req(other_patient, professional, "2026-03-03", "14:00"))
    assert exc.value.code == "SLOT_NOT_AVAILABLE"


def test_same_patient_same_day(db_session, booking, patient, professional, rules):
    booking().schedule(_req(patient, professional, "2026-03-03", "14:00"))
    db_session.commit()

    with pytest.raises(ConflictError) as exc:
        booking().schedule(_req(patient, professional, "2026-03-03", "15:40"))
    assert exc.value.code == "DUPLICATE_APPOINTMENT"


def test_same_patient_other_professional_same_day(
    db_session, booking, patient, professional, other_professional, rules
):
    booking().schedule(_req(patient, professional, "2026-03-03", "14:00"))
    db_session.commit()
    # sem grade cadastrada: alinhamento pelo início do expediente
    ap = booking().schedule(_req(patient, other_professional, "2026-03-03", "13:50"))
    assert ap.professional_id == other_professional.id


def test_cancelled_slot_can_be_rebooked(
    booking, make_appointment, patient, other_patient, professional, rules
):
    make_appointment(
        patient, professional, date(2026, 3, 3), time(14), AppointmentStatus.CANCELLED_BY_CLINIC
    )
    ap = booking().schedule(_req(other_patient, professional, "2026-03-03", "14:00"))
    assert ap.status == AppointmentStatus.SCHEDULED


def test_outside_availability_is_advisory_by_default(booking, patient, professional, rules):
    # sábado não tem janela cadastrada
    with capture_logs() as logs:
        ap = booking().schedule(_req(patient, professional, "2026-03-07", "10:30"))
    assert ap.id is not None
    assert any(e["event"] == "booking.outside_availability" for e in logs)


def test_outside_availability_can_be_enforced(booking, policy, patient, professional, rules):
    strict = replace(policy, enforce_availability_on_booking=True)
    with pytest.raises(ConflictError) as exc:
        booking(strict).schedule(_req(patient, professional, "2026-03-07", "10:30"))
    assert exc.value.code == "SLOT_NOT_AVAILABLE"


def test_no_rules_means_open_agenda(booking, policy, patient, professional):
    assert booking().schedule(_req(patient, professional, "2026-03-07", "10:30")).id

    closed = replace(policy, open_availability_when_no_rules=False, enforce_availability_on_booking=True)
    with pytest.raises(ConflictError):
        booking(closed).schedule(_req(patient, professional, "2026-03-09", "10:30"))


def test_unknown_and_inactive_professional(db_session, booking, patient, professional):
    with pytest.raises(NotFoundError):
        booking().schedule(
            BookingRequest(patient_id=patient.id, professional_id=999, date="2026-03-03", time="14:00")
        )

    professional.is_active = False
    db_session.commit()
    with pytest.raises(ValidationError):
        booking().schedule(_req(patient, professional, "2026-03-03", "14:00"))


def test_rejection_is_logged(db_session, policy, clock, patient, professional):
    rules = BookingRules(
        policy, AvailabilityRepository(db_session), AppointmentRepository(db_session), clock=clock
    )
    with capture_logs() as logs, pytest.raises(ValidationError):
        rules.validate_booking(_req(patient, professional, "2026-03-08", "10:30"))
    rejected = [e for e in logs if e["event"] == "booking.rejected"]
    assert rejected and rejected[0]["code"] == "VALIDATION_ERROR"
