from __future__ import annotations

import datetime as dt

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Time,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base_class import Base


class AvailabilityRule(Base):
    """
    Janela semanal recorrente em horário local da clínica.
    day_of_week: 0=domingo ... 6=sábado. Desativada em vez de apagada.
    """

    __tablename__ = "availabilities"
    __table_args__ = (
        CheckConstraint(
            "day_of_week >= 0 AND day_of_week <= 6", name="ck_availability_weekday"
        ),
        CheckConstraint("end_time > start_time", name="ck_availability_time_order"),
        Index("ix_availability_prof_day", "professional_id", "day_of_week"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    professional_id: Mapped[int] = mapped_column(
        ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False
    )
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[dt.time] = mapped_column(Time(), nullable=False)
    end_time: Mapped[dt.time] = mapped_column(Time(), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: dt.datetime.now(tz=dt.UTC),
        nullable=False,
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: dt.datetime.now(tz=dt.UTC),
        onupdate=lambda: dt.datetime.now(tz=dt.UTC),
        nullable=False,
    )
