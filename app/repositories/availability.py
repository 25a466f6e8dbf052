from __future__ import annotations

from collections.abc import Iterable
from datetime import date, time

from sqlalchemy import and_
from sqlalchemy.orm import Session

from app.models.appointment import ACTIVE_STATUSES, Appointment
from app.models.availability import AvailabilityRule
from app.services.scheduling.validators import day_of_week, slot_fits


class AvailabilityRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, rule_id: int) -> AvailabilityRule | None:
        return self.db.get(AvailabilityRule, rule_id)

    def list_active(self, professional_id: int) -> list[AvailabilityRule]:
        return (
            self.db.query(AvailabilityRule)
            .filter(
                and_(
                    AvailabilityRule.professional_id == professional_id,
                    AvailabilityRule.is_active.is_(True),
                )
            )
            .order_by(AvailabilityRule.day_of_week.asc(), AvailabilityRule.start_time.asc())
            .all()
        )

    def list_active_for_weekday(
        self, professional_id: int, weekday: int
    ) -> list[AvailabilityRule]:
        return (
            self.db.query(AvailabilityRule)
            .filter(
                and_(
                    AvailabilityRule.professional_id == professional_id,
                    AvailabilityRule.day_of_week == weekday,
                    AvailabilityRule.is_active.is_(True),
                )
            )
            .order_by(AvailabilityRule.start_time.asc())
            .all()
        )

    def has_any_active(self, professional_id: int) -> bool:
        return (
            self.db.query(AvailabilityRule.id)
            .filter(
                and_(
                    AvailabilityRule.professional_id == professional_id,
                    AvailabilityRule.is_active.is_(True),
                )
            )
            .first()
            is not None
        )

    def add_many(self, rules: Iterable[AvailabilityRule]) -> list[AvailabilityRule]:
        rows = list(rules)
        self.db.add_all(rows)
        self.db.flush()
        return rows

    def deactivate(self, rule: AvailabilityRule) -> AvailabilityRule:
        rule.is_active = False
        self.db.flush()
        return rule

    def is_professional_available(
        self,
        professional_id: int,
        on: date,
        at: time,
        slot_minutes: int,
        exclude_appointment_id: int | None = None,
    ) -> bool:
        """
        True se existe janela ativa que comporta o slot naquele dia da semana
        e nenhum OUTRO agendamento ativo ocupa (profissional, data, hora).
        """
        rules = self.list_active_for_weekday(professional_id, day_of_week(on))
        if not any(slot_fits(r.start_time, r.end_time, at, slot_minutes) for r in rules):
            return False

        q = self.db.query(Appointment.id).filter(
            and_(
                Appointment.professional_id == professional_id,
                Appointment.date == on,
                Appointment.time == at,
                Appointment.status.in_(ACTIVE_STATUSES),
            )
        )
        if exclude_appointment_id is not None:
            q = q.filter(Appointment.id != exclude_appointment_id)
        return q.first() is None
