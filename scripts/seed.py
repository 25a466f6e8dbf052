# scripts/seed.py
from __future__ import annotations

import os
from datetime import time
from decimal import Decimal

from sqlalchemy import select, text
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.orm import Session

from app.core.errors import AppError
from app.core.security import hash_password
from app.core.settings import settings
from app.db import get_db
from app.models.professional import Professional
from app.models.user import Role, User
from app.repositories.appointments import AppointmentRepository
from app.repositories.availability import AvailabilityRepository
from app.repositories.professionals import ProfessionalRepository
from app.services.scheduling.availability import AvailabilityService, RuleInput
from app.services.scheduling.booking import BookingService
from app.services.scheduling.policy import SchedulingPolicy
from app.services.scheduling.rules import BookingRequest
from app.services.scheduling.validators import format_time

# ---------------- Configuráveis por ENV ----------------
SEED_PASSWORD = os.getenv("SEED_PASSWORD", "secret")
SEED_DAYS = int(os.getenv("SEED_DAYS", "14"))

# ---------------- Dados de Exemplo ----------------
PROFESSIONALS_DATA = [
    {"name": "Dra. Ana Souza", "specialty": "Psicologia", "price": Decimal("150.00")},
    {"name": "Dr. Bruno Lima", "specialty": "Clínica Geral", "price": Decimal("200.00")},
    {"name": "Dra. Carla Dias", "specialty": "Nutrição", "price": Decimal("120.00")},
]

PATIENTS_DATA = [
    "Marcos Lima",
    "Patrícia Alves",
    "Roberta Dias",
    "Carlos Nogueira",
]

# 0=domingo ... 6=sábado (horário local da clínica)
RULES = [
    (1, time(8), time(12)),  # Segunda
    (2, time(13), time(18)),  # Terça
    (3, time(8), time(12)),  # Quarta
    (4, time(13), time(18)),  # Quinta
    (5, time(8), time(12)),  # Sexta
]


def get_session() -> Session:
    gen = get_db()
    session: Session = next(gen)
    return session


# ---------------- Funções de Seed ----------------
def ensure_user(
    db: Session, *, name: str, email: str, role: Role, password: str
) -> User:
    user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if user:
        return user

    user = User(
        name=name,
        email=email,
        role=role,
        password_hash=hash_password(password),
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    print(f"[Seed] User criado: {user.name} ({user.email}) - Role: {user.role.value}")
    return user


def ensure_staff(db: Session) -> None:
    ensure_user(
        db, name="Administração", email="admin@example.com", role=Role.ADMIN,
        password=SEED_PASSWORD,
    )
    ensure_user(
        db, name="Recepção", email="recepcao@example.com", role=Role.RECEPTIONIST,
        password=SEED_PASSWORD,
    )


def ensure_professionals(db: Session) -> list[Professional]:
    professionals = []
    for i, data in enumerate(PROFESSIONALS_DATA):
        user = ensure_user(
            db,
            name=data["name"],
            email=f"prof{i + 1}@example.com",
            role=Role.HEALTH_PROFESSIONAL,
            password=SEED_PASSWORD,
        )
        professional = ProfessionalRepository(db).get_by_user_id(user.id)
        if not professional:
            professional = Professional(
                user_id=user.id,
                name=data["name"],
                specialty=data["specialty"],
                price=data["price"],
                is_active=True,
            )
            db.add(professional)
            db.commit()
            db.refresh(professional)
            print(f"[Seed] Profissional criado: {professional.name}")
        professionals.append(professional)
    return professionals


def ensure_availability(
    db: Session, policy: SchedulingPolicy, professionals: list[Professional]
) -> None:
    service = AvailabilityService(
        policy,
        ProfessionalRepository(db),
        AvailabilityRepository(db),
        AppointmentRepository(db),
    )
    for prof in professionals:
        if AvailabilityRepository(db).has_any_active(prof.id):
            continue
        rows = [
            RuleInput(day_of_week=dow, start_time=start, end_time=end)
            for dow, start, end in RULES
        ]
        service.create_rules(prof.id, rows)
        db.commit()
    print("[Seed] Janelas de disponibilidade criadas para os profissionais.")


def ensure_patients(db: Session) -> list[User]:
    return [
        ensure_user(
            db,
            name=name,
            email=f"paciente{i + 1}@example.com",
            role=Role.PATIENT,
            password=SEED_PASSWORD,
        )
        for i, name in enumerate(PATIENTS_DATA)
    ]


def ensure_appointments(
    db: Session,
    policy: SchedulingPolicy,
    professionals: list[Professional],
    patients: list[User],
) -> None:
    """Agenda o primeiro slot livre de cada profissional para cada paciente."""
    availability = AvailabilityService(
        policy,
        ProfessionalRepository(db),
        AvailabilityRepository(db),
        AppointmentRepository(db),
    )
    booking = BookingService(
        policy,
        ProfessionalRepository(db),
        AvailabilityRepository(db),
        AppointmentRepository(db),
    )
    total = 0
    for prof in professionals:
        free = (s for s in availability.list_slots(prof.id, SEED_DAYS) if s.is_available)
        for patient in patients:
            for slot in free:
                try:
                    booking.schedule(
                        BookingRequest(
                            patient_id=patient.id,
                            professional_id=prof.id,
                            date=slot.date.isoformat(),
                            time=format_time(slot.time),
                        )
                    )
                except AppError as e:
                    # slot muito próximo ou paciente já tem consulta no dia
                    db.rollback()
                    print(f"[Seed] Pulando {slot.date} {format_time(slot.time)}: {e.message}")
                    continue
                db.commit()
                total += 1
                break
    print(f"[Seed] {total} agendamentos criados.")


def check_tables_exist(db: Session) -> bool:
    required_tables = ["users", "professionals", "availabilities", "appointments"]
    try:
        for table in required_tables:
            db.execute(text(f"SELECT 1 FROM {table} LIMIT 1"))
        return True
    except (ProgrammingError, OperationalError):
        db.rollback()
        return False


def main():
    print("[Seed] Iniciando seed do banco de dados...")
    policy = SchedulingPolicy.from_settings(settings)
    db = get_session()
    try:
        if not check_tables_exist(db):
            print("[Seed] Erro: as tabelas ainda não foram criadas.")
            print("[Seed] Rode as migrações primeiro: alembic upgrade head")
            return

        ensure_staff(db)
        professionals = ensure_professionals(db)
        ensure_availability(db, policy, professionals)
        patients = ensure_patients(db)
        ensure_appointments(db, policy, professionals, patients)

        print("\n[Seed] Concluído!")
        print("-------------------------------------------------")
        print(f"Usuários criados (senha padrão: '{SEED_PASSWORD}'):")
        print("- admin@example.com (Administração)")
        print("- recepcao@example.com (Recepção)")
        for i in range(len(PROFESSIONALS_DATA)):
            print(f"- prof{i + 1}@example.com (Profissional)")
        for i in range(len(PATIENTS_DATA)):
            print(f"- paciente{i + 1}@example.com (Paciente)")
        print("-------------------------------------------------")
    finally:
        db.close()


if __name__ == "__main__":
    main()
