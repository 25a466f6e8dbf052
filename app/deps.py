from __future__ import annotations

from collections.abc import Callable
from functools import lru_cache

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.core.security import decode_token
from app.core.settings import settings
from app.db import get_db
from app.models.user import Role, User
from app.repositories.appointments import AppointmentRepository
from app.repositories.availability import AvailabilityRepository
from app.repositories.professionals import ProfessionalRepository
from app.services.scheduling.availability import AvailabilityService
from app.services.scheduling.booking import BookingService
from app.services.scheduling.policy import SchedulingPolicy
from app.services.scheduling.status import AppointmentWorkflow, Requester
from app.utils.tz import Clock, system_clock


def _extract_token_from_request(request: Request) -> str | None:
    auth = request.headers.get("Authorization")
    if auth and auth.lower().startswith("bearer "):
        return auth.split(" ", 1)[1]
    return None


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:  # noqa: B008
    token = _extract_token_from_request(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Não autenticado"
        )

    try:
        payload = decode_token(token, expected_type="access")
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token inválido ou expirado",
        ) from e

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Token malformado"
        )

    user: User | None = db.get(User, int(user_id))
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Usuário inativo ou inexistente",
        )

    get_logger().bind(user_id=user.id).debug("auth.user_resolved")
    return user


def require_roles(*allowed: Role) -> Callable[[Request, Session], User]:
    def wrapper(request: Request, db: Session = Depends(get_db)) -> User:  # noqa: B008
        user = get_current_user(request, db)
        if user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Sem permissão"
            )
        return user

    return wrapper


def as_requester(user: User) -> Requester:
    return Requester(id=user.id, role=Role(user.role))


# ---------- política / relógio (sobrescritos nos testes) ----------


@lru_cache(1)
def get_policy() -> SchedulingPolicy:
    return SchedulingPolicy.from_settings(settings)


def get_clock(policy: SchedulingPolicy = Depends(get_policy)) -> Clock:  # noqa: B008
    return system_clock(policy.tz)


# ---------- serviços por request ----------


def get_booking_service(
    db: Session = Depends(get_db),  # noqa: B008
    policy: SchedulingPolicy = Depends(get_policy),  # noqa: B008
    clock: Clock = Depends(get_clock),  # noqa: B008
) -> BookingService:
    return BookingService(
        policy,
        ProfessionalRepository(db),
        AvailabilityRepository(db),
        AppointmentRepository(db),
        clock=clock,
    )


def get_availability_service(
    db: Session = Depends(get_db),  # noqa: B008
    policy: SchedulingPolicy = Depends(get_policy),  # noqa: B008
    clock: Clock = Depends(get_clock),  # noqa: B008
) -> AvailabilityService:
    return AvailabilityService(
        policy,
        ProfessionalRepository(db),
        AvailabilityRepository(db),
        AppointmentRepository(db),
        clock=clock,
    )


def get_workflow(db: Session = Depends(get_db)) -> AppointmentWorkflow:  # noqa: B008
    return AppointmentWorkflow(AppointmentRepository(db), ProfessionalRepository(db))
