from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.settings import settings

# argon2 para hashes novos; bcrypt só para verificar hashes antigos
pwd_context = CryptContext(schemes=["argon2", "bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    return pwd_context.verify(plain_password, password_hash)


def _now() -> datetime:
    return datetime.now(UTC)


def create_token(
    sub: str, type_: str, expires_delta: timedelta, extra: dict[str, Any] | None = None
) -> str:
    now = _now()
    payload: dict[str, Any] = {
        **(extra or {}),
        "sub": sub,  # id do usuário (string)
        "type": type_,  # "access" | "refresh"
        "iat": int(now.timestamp()),
        "exp": int((now + expires_delta).timestamp()),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def create_access_token(sub: str, role: str | None = None) -> str:
    # role vai no token só como dica para o front; a API sempre relê o usuário
    return create_token(
        sub,
        "access",
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        extra={"role": role} if role else None,
    )


def create_refresh_token(sub: str) -> str:
    return create_token(
        sub, "refresh", timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    )


def decode_token(token: str, expected_type: str) -> dict:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except JWTError as e:
        raise ValueError("Token inválido.") from e
    if payload.get("type") != expected_type:
        raise ValueError("Tipo de token inválido.")
    return payload
