from __future__ import annotations

from app.core.errors import NotFoundError, ValidationError
from app.core.logging import get_logger
from app.models.appointment import Appointment, AppointmentStatus, PaymentStatus
from app.services.scheduling.policy import SchedulingPolicy
from app.services.scheduling.rules import BookingRequest, BookingRules
from app.utils.tz import Clock


class BookingService:
    def __init__(
        self,
        policy: SchedulingPolicy,
        professional_repo,
        availability_repo,
        appointment_repo,
        clock: Clock | None = None,
    ):
        self.policy = policy
        self.professional_repo = professional_repo
        self.appointment_repo = appointment_repo
        self.rules = BookingRules(policy, availability_repo, appointment_repo, clock=clock)

    def schedule(self, request: BookingRequest) -> Appointment:
        prof = self.professional_repo.get(request.professional_id)
        if prof is None:
            raise NotFoundError("Profissional não encontrado.", field="professional_id")
        if not prof.is_active:
            raise ValidationError("Profissional inativo.", field="professional_id")

        slot = self.rules.validate_booking(request)

        ap = Appointment(
            patient_id=request.patient_id,
            professional_id=prof.id,
            date=slot.date,
            time=slot.time,
            duration_minutes=self.policy.slot_minutes,
            type=request.type,
            status=AppointmentStatus.SCHEDULED,
            # preço congelado: mudanças futuras no valor do profissional não afetam
            price=prof.price,
            payment_status=PaymentStatus.PENDING,
            notes=request.notes,
        )
        self.appointment_repo.add(ap)

        get_logger().bind(
            appointment_id=ap.id,
            patient_id=ap.patient_id,
            professional_id=ap.professional_id,
            date=request.date,
            time=request.time,
        ).info("appointment.scheduled")
        return ap
