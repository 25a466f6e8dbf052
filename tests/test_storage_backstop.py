"""Índices únicos parciais barram a corrida entre validar e gravar."""

from datetime import date, time

import pytest

from app.core.errors import ConflictError
from app.models.appointment import (
    Appointment,
    AppointmentStatus,
    AppointmentType,
    PaymentStatus,
)
from app.repositories.appointments import AppointmentRepository

TUESDAY = date(2026, 3, 3)


def _row(patient, professional, at, status=AppointmentStatus.SCHEDULED):
    return Appointment(
        patient_id=patient.id,
        professional_id=professional.id,
        date=TUESDAY,
        time=at,
        duration_minutes=50,
        type=AppointmentType.PRESENCIAL,
        status=status,
        price=professional.price,
        payment_status=PaymentStatus.PENDING,
    )


def test_same_slot_insert_raises_conflict(db_session, patient, other_patient, professional):
    repo = AppointmentRepository(db_session)
    repo.add(_row(patient, professional, time(14)))
    db_session.commit()

    with pytest.raises(ConflictError) as exc:
        repo.add(_row(other_patient, professional, time(14)))
    assert exc.value.code == "SLOT_NOT_AVAILABLE"
    assert exc.value.status_code == 409


def test_same_patient_day_insert_raises_conflict(db_session, patient, professional):
    repo = AppointmentRepository(db_session)
    repo.add(_row(patient, professional, time(14)))
    db_session.commit()

    with pytest.raises(ConflictError) as exc:
        repo.add(_row(patient, professional, time(15, 40)))
    assert exc.value.code == "DUPLICATE_APPOINTMENT"


def test_released_rows_do_not_block(db_session, patient, other_patient, professional):
    repo = AppointmentRepository(db_session)
    repo.add(_row(patient, professional, time(14), AppointmentStatus.CANCELLED_BY_PATIENT))
    repo.add(_row(other_patient, professional, time(14), AppointmentStatus.NO_SHOW))
    ap = repo.add(_row(patient, professional, time(14)))
    db_session.commit()
    assert ap.id is not None


def test_session_is_usable_after_conflict(db_session, patient, other_patient, professional):
    repo = AppointmentRepository(db_session)
    repo.add(_row(patient, professional, time(14)))
    db_session.commit()

    with pytest.raises(ConflictError):
        repo.add(_row(other_patient, professional, time(14)))

    ap = repo.add(_row(other_patient, professional, time(14, 50)))
    db_session.commit()
    assert repo.is_slot_taken(professional.id, TUESDAY, time(14, 50))
    assert ap.id is not None


def test_reschedule_missing_row_is_not_found(db_session):
    from app.core.errors import NotFoundError

    with pytest.raises(NotFoundError):
        AppointmentRepository(db_session).reschedule(999, TUESDAY, time(14))
