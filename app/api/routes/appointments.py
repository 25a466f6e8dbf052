from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from app.audit.helpers import record_audit
from app.core.errors import ForbiddenError, NotFoundError, ValidationError
from app.db import get_db
from app.deps import (
    as_requester,
    get_booking_service,
    get_clock,
    get_current_user,
    get_policy,
    get_workflow,
)
from app.models.appointment import Appointment
from app.models.user import Role, User
from app.repositories.appointments import AppointmentRepository
from app.repositories.availability import AvailabilityRepository
from app.repositories.professionals import ProfessionalRepository
from app.schemas.appointments import (
    AppointmentCreatedOut,
    AppointmentOut,
    CreateAppointmentIn,
    RescheduleIn,
)
from app.services.scheduling.booking import BookingService
from app.services.scheduling.policy import SchedulingPolicy
from app.services.scheduling.reschedule import RescheduleEngine
from app.services.scheduling.rules import BookingRequest
from app.services.scheduling.status import AppointmentWorkflow
from app.services.scheduling.validators import is_valid_date, parse_date

router = APIRouter(prefix="/appointments", tags=["appointments"])


def _resolve_patient_id(db: Session, user: User, payload: CreateAppointmentIn) -> int:
    if user.role == Role.PATIENT:
        if payload.patient_id is not None and payload.patient_id != user.id:
            raise ForbiddenError("Pacientes só podem agendar para si mesmos.")
        return user.id
    # equipe agenda em nome de um paciente
    if payload.patient_id is None:
        raise ValidationError("Informe o paciente do agendamento.", field="patient_id")
    patient = db.get(User, payload.patient_id)
    if patient is None or patient.role != Role.PATIENT or not patient.is_active:
        raise NotFoundError("Paciente não encontrado.", field="patient_id")
    return patient.id


def _ensure_can_view(db: Session, user: User, ap: Appointment) -> None:
    if user.role in (Role.ADMIN, Role.RECEPTIONIST):
        return
    if user.role == Role.PATIENT and ap.patient_id == user.id:
        return
    if user.role == Role.HEALTH_PROFESSIONAL:
        prof = ProfessionalRepository(db).get_by_user_id(user.id)
        if prof is not None and prof.id == ap.professional_id:
            return
    raise ForbiddenError("Você não tem acesso a este agendamento.")


def _audit_status(
    db: Session, request: Request, user: User, ap: Appointment, action: str
) -> None:
    record_audit(
        db,
        request=request,
        user_id=user.id,
        action=action,
        entity="appointment",
        entity_id=ap.id,
        details={"status": ap.status.value},
    )
    db.commit()
    db.refresh(ap)


# ---------- criação / consulta ----------


@router.post("", response_model=AppointmentCreatedOut, status_code=status.HTTP_201_CREATED)
def create_appointment(
    payload: CreateAppointmentIn,
    request: Request,
    db: Session = Depends(get_db),  # noqa: B008
    service: BookingService = Depends(get_booking_service),  # noqa: B008
    current_user: Annotated[User, Depends(get_current_user)] = None,
) -> AppointmentCreatedOut:
    patient_id = _resolve_patient_id(db, current_user, payload)
    ap = service.schedule(
        BookingRequest(
            patient_id=patient_id,
            professional_id=payload.professional_id,
            date=payload.date,
            time=payload.time,
            type=payload.type,
            notes=payload.notes,
        )
    )
    record_audit(
        db,
        request=request,
        user_id=current_user.id,
        action="CREATE",
        entity="appointment",
        entity_id=ap.id,
        details={"date": payload.date, "time": payload.time},
    )
    db.commit()
    db.refresh(ap)
    return AppointmentCreatedOut(id=ap.id, status=ap.status.value, price=float(ap.price))


@router.get("", response_model=list[AppointmentOut])
def list_appointments(
    date: str | None = Query(None, description="AAAA-MM-DD"),
    professional_id: int | None = Query(None, ge=1),
    db: Session = Depends(get_db),  # noqa: B008
    current_user: Annotated[User, Depends(get_current_user)] = None,
) -> list[AppointmentOut]:
    on = None
    if date is not None:
        if not is_valid_date(date):
            raise ValidationError("Data inválida. Use o formato AAAA-MM-DD.", field="date")
        on = parse_date(date)

    repo = AppointmentRepository(db)
    if current_user.role == Role.PATIENT:
        rows = repo.list_for_patient(current_user.id)
        if on is not None:
            rows = [ap for ap in rows if ap.date == on]
    elif current_user.role == Role.HEALTH_PROFESSIONAL:
        prof = ProfessionalRepository(db).get_by_user_id(current_user.id)
        if prof is None:
            raise NotFoundError("Perfil profissional não encontrado.")
        rows = repo.list_for_professional(prof.id, on=on)
    else:
        if professional_id is None:
            raise ValidationError("Informe o profissional.", field="professional_id")
        rows = repo.list_for_professional(professional_id, on=on)
    return [AppointmentOut.from_model(ap) for ap in rows]


@router.get("/{appointment_id}", response_model=AppointmentOut)
def get_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),  # noqa: B008
    current_user: Annotated[User, Depends(get_current_user)] = None,
) -> AppointmentOut:
    ap = AppointmentRepository(db).get(appointment_id)
    if ap is None:
        raise NotFoundError("Agendamento não encontrado.")
    _ensure_can_view(db, current_user, ap)
    return AppointmentOut.from_model(ap)


# ---------- remarcação ----------


@router.post("/{appointment_id}/reschedule", response_model=AppointmentOut)
def reschedule_appointment(
    appointment_id: int,
    payload: RescheduleIn,
    request: Request,
    db: Session = Depends(get_db),  # noqa: B008
    policy: SchedulingPolicy = Depends(get_policy),  # noqa: B008
    clock=Depends(get_clock),  # noqa: B008
    current_user: Annotated[User, Depends(get_current_user)] = None,
) -> AppointmentOut:
    def record_fee(ap: Appointment, amount: Decimal, original_starts_at: datetime) -> None:
        record_audit(
            db,
            request=request,
            user_id=current_user.id,
            action="RESCHEDULE_FEE",
            entity="appointment",
            entity_id=ap.id,
            details={
                "amount": str(amount),
                "original_starts_at": original_starts_at.isoformat(),
            },
        )

    engine = RescheduleEngine(
        policy,
        AppointmentRepository(db),
        AvailabilityRepository(db),
        clock=clock,
        fee_recorder=record_fee,
    )
    ap = engine.reschedule(
        current_user.id, current_user.role, appointment_id, payload.date, payload.time
    )
    record_audit(
        db,
        request=request,
        user_id=current_user.id,
        action="RESCHEDULE",
        entity="appointment",
        entity_id=ap.id,
        details={"date": payload.date, "time": payload.time},
    )
    db.commit()
    db.refresh(ap)
    return AppointmentOut.from_model(ap)


# ---------- ciclo de vida ----------


@router.patch("/{appointment_id}/confirm", response_model=AppointmentOut)
def confirm_appointment(
    appointment_id: int,
    request: Request,
    db: Session = Depends(get_db),  # noqa: B008
    workflow: AppointmentWorkflow = Depends(get_workflow),  # noqa: B008
    current_user: Annotated[User, Depends(get_current_user)] = None,
) -> AppointmentOut:
    ap = workflow.confirm(appointment_id, as_requester(current_user))
    _audit_status(db, request, current_user, ap, "CONFIRM")
    return AppointmentOut.from_model(ap)


@router.post("/{appointment_id}/checkin", response_model=AppointmentOut)
def check_in_appointment(
    appointment_id: int,
    request: Request,
    db: Session = Depends(get_db),  # noqa: B008
    workflow: AppointmentWorkflow = Depends(get_workflow),  # noqa: B008
    current_user: Annotated[User, Depends(get_current_user)] = None,
) -> AppointmentOut:
    ap = workflow.check_in(appointment_id, as_requester(current_user))
    _audit_status(db, request, current_user, ap, "CHECKIN")
    return AppointmentOut.from_model(ap)


@router.post("/{appointment_id}/start", response_model=AppointmentOut)
def start_appointment(
    appointment_id: int,
    request: Request,
    db: Session = Depends(get_db),  # noqa: B008
    workflow: AppointmentWorkflow = Depends(get_workflow),  # noqa: B008
    current_user: Annotated[User, Depends(get_current_user)] = None,
) -> AppointmentOut:
    ap = workflow.start(appointment_id, as_requester(current_user))
    _audit_status(db, request, current_user, ap, "START")
    return AppointmentOut.from_model(ap)


@router.post("/{appointment_id}/complete", response_model=AppointmentOut)
def complete_appointment(
    appointment_id: int,
    request: Request,
    db: Session = Depends(get_db),  # noqa: B008
    workflow: AppointmentWorkflow = Depends(get_workflow),  # noqa: B008
    current_user: Annotated[User, Depends(get_current_user)] = None,
) -> AppointmentOut:
    ap = workflow.complete(appointment_id, as_requester(current_user))
    _audit_status(db, request, current_user, ap, "COMPLETE")
    return AppointmentOut.from_model(ap)


@router.post("/{appointment_id}/no-show", response_model=AppointmentOut)
def no_show_appointment(
    appointment_id: int,
    request: Request,
    db: Session = Depends(get_db),  # noqa: B008
    workflow: AppointmentWorkflow = Depends(get_workflow),  # noqa: B008
    current_user: Annotated[User, Depends(get_current_user)] = None,
) -> AppointmentOut:
    ap = workflow.mark_no_show(appointment_id, as_requester(current_user))
    _audit_status(db, request, current_user, ap, "NO_SHOW")
    return AppointmentOut.from_model(ap)


@router.delete("/{appointment_id}", response_model=AppointmentOut)
def cancel_appointment(
    appointment_id: int,
    request: Request,
    reason: str | None = Query(None, max_length=255),
    db: Session = Depends(get_db),  # noqa: B008
    workflow: AppointmentWorkflow = Depends(get_workflow),  # noqa: B008
    current_user: Annotated[User, Depends(get_current_user)] = None,
) -> AppointmentOut:
    ap = workflow.cancel(appointment_id, as_requester(current_user), reason=reason)
    _audit_status(db, request, current_user, ap, "CANCEL")
    return AppointmentOut.from_model(ap)
