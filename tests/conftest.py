import os

# precisa vir antes de qualquer import do app (settings é lido no import)
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("LOG_JSON", "false")

from datetime import datetime, time
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.db.base  # noqa: F401  (registra todos os models)
from app.core.security import create_access_token, hash_password
from app.db.base_class import Base
from app.models.appointment import (
    Appointment,
    AppointmentStatus,
    AppointmentType,
    PaymentStatus,
)
from app.models.availability import AvailabilityRule
from app.models.professional import Professional
from app.models.user import Role, User
from app.services.scheduling.policy import SchedulingPolicy

BR = ZoneInfo("America/Sao_Paulo")

# segunda-feira, 2026-03-02 09:00 no horário da clínica
FIXED_NOW = datetime(2026, 3, 2, 9, 0, tzinfo=BR)

PASSWORD = "TestPass123!"
_PASSWORD_HASH = None


def _password_hash() -> str:
    # argon2 é lento: calcula uma vez por sessão de testes
    global _PASSWORD_HASH
    if _PASSWORD_HASH is None:
        _PASSWORD_HASH = hash_password(PASSWORD)
    return _PASSWORD_HASH


@pytest.fixture
def engine():
    """SQLite em memória, um banco novo por teste."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def TestingSessionLocal(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def db_session(TestingSessionLocal):
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def clock(now):
    return lambda: now


@pytest.fixture
def policy():
    return SchedulingPolicy(tz=BR)


@pytest.fixture
def client(TestingSessionLocal, clock, policy):
    """TestClient com banco de teste, relógio fixo e política padrão."""
    from fastapi.testclient import TestClient

    from app.db import get_db
    from app.deps import get_clock, get_policy
    from app.main import app

    def _override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_policy] = lambda: policy

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


def _make_user(db_session, *, name: str, email: str, role: Role) -> User:
    user = User(
        name=name,
        email=email,
        password_hash=_password_hash(),
        role=role,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def patient(db_session):
    return _make_user(db_session, name="Paciente Um", email="paciente@example.com", role=Role.PATIENT)


@pytest.fixture
def other_patient(db_session):
    return _make_user(
        db_session, name="Paciente Dois", email="paciente2@example.com", role=Role.PATIENT
    )


@pytest.fixture
def professional_user(db_session):
    return _make_user(
        db_session,
        name="Dra. Ana",
        email="ana@example.com",
        role=Role.HEALTH_PROFESSIONAL,
    )


@pytest.fixture
def receptionist(db_session):
    return _make_user(
        db_session, name="Recepção", email="recepcao@example.com", role=Role.RECEPTIONIST
    )


@pytest.fixture
def admin(db_session):
    return _make_user(db_session, name="Admin", email="admin@example.com", role=Role.ADMIN)


@pytest.fixture
def professional(db_session, professional_user):
    prof = Professional(
        user_id=professional_user.id,
        name="Dra. Ana",
        specialty="Psicologia",
        price=Decimal("150.00"),
        is_active=True,
    )
    db_session.add(prof)
    db_session.commit()
    db_session.refresh(prof)
    return prof


@pytest.fixture
def other_professional(db_session):
    user = _make_user(
        db_session, name="Dr. Bruno", email="bruno@example.com", role=Role.HEALTH_PROFESSIONAL
    )
    prof = Professional(
        user_id=user.id, name="Dr. Bruno", price=Decimal("200.00"), is_active=True
    )
    db_session.add(prof)
    db_session.commit()
    db_session.refresh(prof)
    return prof


# seg 08-12, ter 14-18, qua 08-12, sex 08-12 (0=domingo)
WEEKLY_RULES = [
    (1, time(8), time(12)),
    (2, time(14), time(18)),
    (3, time(8), time(12)),
    (5, time(8), time(12)),
]


@pytest.fixture
def rules(db_session, professional):
    rows = [
        AvailabilityRule(
            professional_id=professional.id,
            day_of_week=dow,
            start_time=start,
            end_time=end,
            is_active=True,
        )
        for dow, start, end in WEEKLY_RULES
    ]
    db_session.add_all(rows)
    db_session.commit()
    return rows


@pytest.fixture
def make_appointment(db_session):
    """Grava um agendamento direto no banco (sem passar pelas regras)."""

    def _make(
        patient,
        professional,
        on,
        at,
        status=AppointmentStatus.SCHEDULED,
        type_=AppointmentType.PRESENCIAL,
    ) -> Appointment:
        ap = Appointment(
            patient_id=patient.id,
            professional_id=professional.id,
            date=on,
            time=at,
            duration_minutes=50,
            type=type_,
            status=status,
            price=professional.price,
            payment_status=PaymentStatus.PENDING,
        )
        db_session.add(ap)
        db_session.commit()
        db_session.refresh(ap)
        return ap

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}

    return _headers
