from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from app.audit.helpers import record_audit
from app.core.errors import ForbiddenError
from app.db import get_db
from app.deps import (
    get_availability_service,
    get_current_user,
    get_policy,
    require_roles,
)
from app.models.user import Role, User
from app.repositories.professionals import ProfessionalRepository
from app.schemas.availability import (
    AvailabilityBatchIn,
    AvailabilityRuleOut,
    SlotOut,
)
from app.services.scheduling.availability import AvailabilityService, RuleInput
from app.services.scheduling.policy import SchedulingPolicy
from app.services.scheduling.validators import parse_time

router = APIRouter(prefix="/professionals", tags=["professionals"])

_rule_managers = require_roles(Role.HEALTH_PROFESSIONAL, Role.ADMIN)


def _ensure_can_manage_rules(db: Session, user: User, professional_id: int) -> None:
    # ADMIN pode tudo; HEALTH_PROFESSIONAL só a própria grade
    if user.role == Role.ADMIN:
        return
    if user.role == Role.HEALTH_PROFESSIONAL:
        prof = ProfessionalRepository(db).get_by_user_id(user.id)
        if prof is not None and prof.id == professional_id:
            return
    raise ForbiddenError("Você não pode alterar a disponibilidade deste profissional.")


@router.get("/{professional_id}/availability", response_model=list[SlotOut])
def list_availability(
    professional_id: int,
    days_ahead: int = Query(7),
    service: AvailabilityService = Depends(get_availability_service),  # noqa: B008
    policy: SchedulingPolicy = Depends(get_policy),  # noqa: B008
    current_user: Annotated[User, Depends(get_current_user)] = None,
) -> list[SlotOut]:
    # clamp em vez de 422: a UI manda o que o usuário escolheu
    days = min(max(days_ahead, 1), policy.max_horizon_days)
    return [SlotOut.from_slot(s) for s in service.list_slots(professional_id, days)]


@router.get("/{professional_id}/availability-rules", response_model=list[AvailabilityRuleOut])
def list_rules(
    professional_id: int,
    service: AvailabilityService = Depends(get_availability_service),  # noqa: B008
    current_user: Annotated[User, Depends(get_current_user)] = None,
) -> list[AvailabilityRuleOut]:
    return [AvailabilityRuleOut.from_model(r) for r in service.list_rules(professional_id)]


@router.post(
    "/{professional_id}/availability-rules",
    response_model=list[AvailabilityRuleOut],
    status_code=status.HTTP_201_CREATED,
)
def create_rules(
    professional_id: int,
    payload: AvailabilityBatchIn,
    request: Request,
    db: Session = Depends(get_db),  # noqa: B008
    service: AvailabilityService = Depends(get_availability_service),  # noqa: B008
    current_user: Annotated[User, Depends(_rule_managers)] = None,
) -> list[AvailabilityRuleOut]:
    _ensure_can_manage_rules(db, current_user, professional_id)

    items = [
        RuleInput(
            day_of_week=it.day_of_week,
            start_time=parse_time(it.start_time),
            end_time=parse_time(it.end_time),
        )
        for it in payload.availabilities
    ]
    rows = service.create_rules(professional_id, items)

    record_audit(
        db,
        request=request,
        user_id=current_user.id,
        action="CREATE",
        entity="availability",
        entity_id=professional_id,
        details={"rule_ids": [r.id for r in rows]},
    )
    db.commit()
    for r in rows:
        db.refresh(r)
    return [AvailabilityRuleOut.from_model(r) for r in rows]


@router.delete(
    "/{professional_id}/availability-rules/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_rule(
    professional_id: int,
    rule_id: int,
    request: Request,
    db: Session = Depends(get_db),  # noqa: B008
    service: AvailabilityService = Depends(get_availability_service),  # noqa: B008
    current_user: Annotated[User, Depends(_rule_managers)] = None,
) -> Response:
    _ensure_can_manage_rules(db, current_user, professional_id)
    service.deactivate_rule(professional_id, rule_id)
    record_audit(
        db,
        request=request,
        user_id=current_user.id,
        action="DEACTIVATE",
        entity="availability",
        entity_id=rule_id,
    )
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
