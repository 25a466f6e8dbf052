from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import time

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.core.logging import get_logger
from app.models.availability import AvailabilityRule
from app.models.professional import Professional
from app.services.scheduling.policy import SchedulingPolicy
from app.services.scheduling.slots import Slot, SlotGenerator, reconcile
from app.services.scheduling.validators import format_time
from app.utils.tz import Clock


@dataclass(frozen=True)
class RuleInput:
    day_of_week: int
    start_time: time
    end_time: time


def _overlaps(a_start: time, a_end: time, b_start: time, b_end: time) -> bool:
    # intervalo [start, end) — fim exclusivo
    return not (a_end <= b_start or a_start >= b_end)


class AvailabilityService:
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
        self.availability_repo = availability_repo
        self.appointment_repo = appointment_repo
        self.generator = SlotGenerator(availability_repo, policy, clock=clock)

    def _professional(self, professional_id: int) -> Professional:
        prof = self.professional_repo.get(professional_id)
        if prof is None:
            raise NotFoundError("Profissional não encontrado.", field="professional_id")
        return prof

    def list_slots(self, professional_id: int, days_ahead: int) -> list[Slot]:
        self._professional(professional_id)
        slots = list(self.generator.generate(professional_id, days_ahead))
        if not slots:
            return []
        booked = self.appointment_repo.list_for_professional_between(
            professional_id, slots[0].date, slots[-1].date
        )
        return reconcile(slots, booked)

    def list_rules(self, professional_id: int) -> list[AvailabilityRule]:
        self._professional(professional_id)
        return self.availability_repo.list_active(professional_id)

    def create_rules(
        self, professional_id: int, items: Sequence[RuleInput]
    ) -> list[AvailabilityRule]:
        prof = self._professional(professional_id)
        if not items:
            raise ValidationError(
                "Informe ao menos uma janela de disponibilidade.",
                field="availabilities",
            )

        grouped: dict[int, list[RuleInput]] = {}
        for i, it in enumerate(items):
            if not 0 <= it.day_of_week <= 6:
                raise ValidationError(
                    f"Item {i}: day_of_week deve estar entre 0 e 6.", field="day_of_week"
                )
            if it.start_time >= it.end_time:
                raise ValidationError(
                    f"Item {i}: janela inválida ({format_time(it.start_time)}-"
                    f"{format_time(it.end_time)}); início deve ser antes do fim.",
                    field="start_time",
                )
            p = self.policy
            if it.day_of_week in p.closed_weekdays:
                raise ValidationError(
                    f"Item {i}: a clínica não atende neste dia da semana "
                    f"(day_of_week={it.day_of_week}).",
                    field="day_of_week",
                )
            if it.start_time < p.work_start or it.end_time > p.work_end:
                raise ValidationError(
                    f"Item {i}: janela fora do expediente ({format_time(p.work_start)} "
                    f"às {format_time(p.work_end)}).",
                    field="start_time",
                )
            grouped.setdefault(it.day_of_week, []).append(it)

        for dow, windows in grouped.items():
            windows.sort(key=lambda w: w.start_time)
            # overlap dentro do lote
            for prev, cur in zip(windows, windows[1:]):
                if cur.start_time < prev.end_time:
                    raise ConflictError(
                        f"Sobreposição no lote (day_of_week={dow}).",
                        field="availabilities",
                        code="AVAILABILITY_OVERLAP",
                    )
            # overlap com o que já está ativo
            existing = self.availability_repo.list_active_for_weekday(prof.id, dow)
            for w in windows:
                if any(
                    _overlaps(r.start_time, r.end_time, w.start_time, w.end_time)
                    for r in existing
                ):
                    raise ConflictError(
                        f"Sobreposição com janela existente (day_of_week={dow}).",
                        field="availabilities",
                        code="AVAILABILITY_OVERLAP",
                    )

        rows = self.availability_repo.add_many(
            AvailabilityRule(
                professional_id=prof.id,
                day_of_week=it.day_of_week,
                start_time=it.start_time,
                end_time=it.end_time,
                is_active=True,
            )
            for it in items
        )
        get_logger().bind(professional_id=prof.id, count=len(rows)).info(
            "availability.rules_created"
        )
        return rows

    def deactivate_rule(self, professional_id: int, rule_id: int) -> AvailabilityRule:
        self._professional(professional_id)
        rule = self.availability_repo.get(rule_id)
        if rule is None or rule.professional_id != professional_id or not rule.is_active:
            raise NotFoundError("Janela de disponibilidade não encontrada.")
        return self.availability_repo.deactivate(rule)
