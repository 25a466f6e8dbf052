"""
Geração de slots a partir das regras semanais e conciliação com a agenda.

Os slots são derivados (nunca persistidos) e regenerados a cada request.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta
from typing import Protocol

from app.core.logging import get_logger
from app.models.appointment import RELEASED_STATUSES, AppointmentStatus
from app.models.availability import AvailabilityRule
from app.services.scheduling.policy import SchedulingPolicy
from app.services.scheduling.validators import (
    day_of_week,
    is_allowed_weekday,
    is_within_working_hours,
)
from app.utils.tz import Clock, combine_local, system_clock

# data-base arbitrária só para aritmética de horários
_ANCHOR_DAY = date(2000, 1, 3)


@dataclass(frozen=True)
class Slot:
    professional_id: int
    date: date
    time: time
    is_available: bool = True


class _BookedLike(Protocol):
    professional_id: int
    date: date
    time: time
    status: AppointmentStatus


def rule_slot_times(start: time, end: time, slot_minutes: int) -> Iterator[time]:
    """Horários de início a cada `slot_minutes`; slot parcial no fim é descartado."""
    step = timedelta(minutes=slot_minutes)
    cur = datetime.combine(_ANCHOR_DAY, start)
    limit = datetime.combine(_ANCHOR_DAY, end)
    while cur + step <= limit:
        yield cur.time()
        cur += step


def expand_rules(
    rules: Iterable[AvailabilityRule],
    start_date: date,
    days_ahead: int,
    slot_minutes: int,
    professional_id: int,
) -> Iterator[Slot]:
    by_weekday: dict[int, list[AvailabilityRule]] = defaultdict(list)
    for rule in rules:
        if rule.is_active:
            by_weekday[rule.day_of_week].append(rule)

    for offset in range(max(days_ahead, 0)):
        day = start_date + timedelta(days=offset)
        day_rules = by_weekday.get(day_of_week(day), ())
        # regras sobrepostas geram candidatos repetidos: dedup por (data, hora)
        times = {
            t
            for rule in day_rules
            for t in rule_slot_times(rule.start_time, rule.end_time, slot_minutes)
        }
        for t in sorted(times):
            yield Slot(professional_id=professional_id, date=day, time=t)


class SlotSeries:
    """
    Sequência finita, preguiçosa e reiniciável: cada iteração recomeça do zero.

    Com `policy`, só passam candidatos que o agendamento aceitaria: dia de
    atendimento, dentro do expediente e a partir de `not_before`.
    """

    def __init__(
        self,
        rules: Sequence[AvailabilityRule],
        start_date: date,
        days_ahead: int,
        slot_minutes: int,
        professional_id: int,
        policy: SchedulingPolicy | None = None,
        not_before: datetime | None = None,
    ):
        self.rules = tuple(rules)
        self.start_date = start_date
        self.days_ahead = days_ahead
        self.slot_minutes = slot_minutes
        self.professional_id = professional_id
        self.policy = policy
        self.not_before = not_before

    def _bookable(self, slot: Slot) -> bool:
        p = self.policy
        if not is_allowed_weekday(slot.date, p.closed_weekdays):
            return False
        if not is_within_working_hours(slot.time, p.work_start, p.work_end):
            return False
        if self.not_before is not None:
            return combine_local(slot.date, slot.time, p.tz) >= self.not_before
        return True

    def __iter__(self) -> Iterator[Slot]:
        slots = expand_rules(
            self.rules,
            self.start_date,
            self.days_ahead,
            self.slot_minutes,
            self.professional_id,
        )
        if self.policy is None:
            return slots
        return (s for s in slots if self._bookable(s))


class SlotGenerator:
    def __init__(self, availability_repo, policy: SchedulingPolicy, clock: Clock | None = None):
        self.availability_repo = availability_repo
        self.policy = policy
        self.clock = clock or system_clock(policy.tz)

    def generate(self, professional_id: int, days_ahead: int) -> SlotSeries:
        rules = self.availability_repo.list_active(professional_id)
        now = self.clock()
        p = self.policy
        # menor antecedência entre os tipos: o slot listado aceita ao menos um deles
        earliest = now + timedelta(
            hours=min(p.min_lead_hours_presencial, p.min_lead_hours_online)
        )
        get_logger().bind(
            professional_id=professional_id, days_ahead=days_ahead, rules=len(rules)
        ).debug("slots.generated")
        return SlotSeries(
            rules,
            start_date=now.date(),
            days_ahead=days_ahead,
            slot_minutes=p.slot_minutes,
            professional_id=professional_id,
            policy=p,
            not_before=earliest,
        )


def reconcile(slots: Iterable[Slot], appointments: Iterable[_BookedLike]) -> list[Slot]:
    """Marca como indisponíveis os slots ocupados por agendamentos ativos."""
    taken = {
        (ap.professional_id, ap.date, ap.time)
        for ap in appointments
        if ap.status not in RELEASED_STATUSES
    }
    return [
        replace(s, is_available=False)
        if (s.professional_id, s.date, s.time) in taken
        else s
        for s in slots
    ]
