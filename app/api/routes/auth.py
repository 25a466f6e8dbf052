from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    verify_password,
)
from app.db import get_db
from app.deps import get_current_user
from app.models.user import User
from app.repositories.professionals import ProfessionalRepository
from app.schemas.auth import LoginIn, LoginOut, MeOut

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginOut)
def api_login(payload: LoginIn, db: Session = Depends(get_db)) -> LoginOut:  # noqa: B008
    email = payload.email.strip().lower()
    user: User | None = db.query(User).filter(User.email == email).one_or_none()
    if not user or not user.is_active or not verify_password(payload.password, user.password_hash):
        get_logger().bind(email=email).info("auth.login_failed")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Credenciais inválidas")

    get_logger().bind(user_id=user.id).info("auth.login")
    return LoginOut(
        access_token=create_access_token(str(user.id), role=user.role.value),
        refresh_token=create_refresh_token(str(user.id)),
    )


@router.get("/me", response_model=MeOut)
def api_me(
    db: Session = Depends(get_db),  # noqa: B008
    user: User = Depends(get_current_user),  # noqa: B008
) -> MeOut:
    prof = ProfessionalRepository(db).get_by_user_id(user.id)
    return MeOut(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role.value,
        is_active=user.is_active,
        professional_id=prof.id if prof else None,
    )


@router.post("/refresh", response_model=LoginOut)
def api_refresh(request: Request) -> LoginOut:
    # refresh token no Authorization: Bearer <token>
    auth = request.headers.get("Authorization")
    token: str | None = None
    if auth and auth.lower().startswith("bearer "):
        token = auth.split(" ", 1)[1]
    if not token:
        raise HTTPException(status_code=401, detail="Refresh token ausente")

    try:
        payload = decode_token(token, expected_type="refresh")
    except ValueError as e:
        raise HTTPException(status_code=401, detail="Refresh token inválido") from e

    sub = payload.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail="Refresh token malformado")

    return LoginOut(
        access_token=create_access_token(str(sub)),
        refresh_token=create_refresh_token(str(sub)),
    )
