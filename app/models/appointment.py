from __future__ import annotations

import datetime as dt
import enum
from decimal import Decimal

from sqlalchemy import (
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base_class import Base


class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    WAITING = "waiting"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    NO_SHOW = "no_show"
    CANCELLED_BY_PATIENT = "cancelled_by_patient"
    CANCELLED_BY_CLINIC = "cancelled_by_clinic"
    RESCHEDULED = "rescheduled"


class AppointmentType(str, enum.Enum):
    PRESENCIAL = "presencial"
    ONLINE = "online"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


# Status que liberam o horário para nova reserva
RELEASED_STATUSES = frozenset(
    {
        AppointmentStatus.CANCELLED_BY_PATIENT,
        AppointmentStatus.CANCELLED_BY_CLINIC,
        AppointmentStatus.NO_SHOW,
    }
)
ACTIVE_STATUSES = tuple(s for s in AppointmentStatus if s not in RELEASED_STATUSES)

_ACTIVE_WHERE = text(
    "status NOT IN ('cancelled_by_patient', 'cancelled_by_clinic', 'no_show')"
)


def _values(e: type[enum.Enum]) -> list[str]:
    return [m.value for m in e]


class Appointment(Base):
    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    patient_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    professional_id: Mapped[int] = mapped_column(
        ForeignKey("professionals.id", ondelete="RESTRICT"), nullable=False
    )
    # data/hora locais da clínica (relógio de parede)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    type: Mapped[AppointmentType] = mapped_column(
        Enum(AppointmentType, name="appointment_type_enum", values_callable=_values),
        nullable=False,
        default=AppointmentType.PRESENCIAL,
    )
    status: Mapped[AppointmentStatus] = mapped_column(
        Enum(
            AppointmentStatus, name="appointment_status_enum", values_callable=_values
        ),
        nullable=False,
        default=AppointmentStatus.SCHEDULED,
    )
    # congelado no momento do agendamento
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, name="payment_status_enum", values_callable=_values),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    notes: Mapped[str | None] = mapped_column(Text)
    cancellation_reason: Mapped[str | None] = mapped_column(String(255))
    cancelled_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )

    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: dt.datetime.now(tz=dt.UTC),
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: dt.datetime.now(tz=dt.UTC),
        onupdate=lambda: dt.datetime.now(tz=dt.UTC),
    )

    patient = relationship("User", foreign_keys=[patient_id])
    professional = relationship("Professional")

    __table_args__ = (
        # Backstop da corrida "valida-depois-grava": só vale para status ativos
        Index(
            "ux_appt_prof_slot_active",
            "professional_id",
            "date",
            "time",
            unique=True,
            postgresql_where=_ACTIVE_WHERE,
            sqlite_where=_ACTIVE_WHERE,
        ),
        Index(
            "ux_appt_patient_prof_day_active",
            "patient_id",
            "professional_id",
            "date",
            unique=True,
            postgresql_where=_ACTIVE_WHERE,
            sqlite_where=_ACTIVE_WHERE,
        ),
        Index("ix_appt_professional_id", "professional_id"),
        Index("ix_appt_patient_id", "patient_id"),
    )
