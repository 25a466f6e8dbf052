from decimal import Decimal
from enum import Enum

from pydantic_settings import BaseSettings, SettingsConfigDict


class Env(str, Enum):
    DEV = "dev"
    HML = "hml"
    PROD = "prod"


class Settings(BaseSettings):
    APP_ENV: Env = Env.DEV
    DEBUG: bool = False

    JWT_SECRET: str = "change-me"
    JWT_ALG: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    DATABASE_URL: str = "sqlite:///./clinica.db"

    ALLOWED_HOSTS: str = "localhost,127.0.0.1"

    LOG_JSON: bool = True
    LOG_LEVEL: str = "INFO"

    # Fuso da clínica: datas/horários de agenda são "relógio de parede" local
    CLINIC_TZ: str = "America/Sao_Paulo"

    # --- Política de agenda
    SLOT_MINUTES: int = 50
    WORK_START: str = "08:00"
    WORK_END: str = "18:00"  # exclusivo
    # lista "0,6" etc. (0=domingo ... 6=sábado)
    CLOSED_WEEKDAYS: str = "0"
    MIN_LEAD_HOURS_PRESENCIAL: float = 2
    MIN_LEAD_HOURS_ONLINE: float = 1
    MAX_HORIZON_DAYS: int = 90
    RESCHEDULE_FREE_WINDOW_HOURS: float = 24
    RESCHEDULE_FEE_AMOUNT: Decimal = Decimal("30.00")
    # Profissional sem nenhuma regra cadastrada => agenda "aberta"
    OPEN_AVAILABILITY_WHEN_NO_RULES: bool = True
    # Se False, horário fora da grade só gera log (não bloqueia o agendamento)
    ENFORCE_AVAILABILITY_ON_BOOKING: bool = False

    model_config = SettingsConfigDict(
        env_file=".env.dev",
        env_file_encoding="utf-8",
        extra="ignore",
        ser_json_timedelta="iso8601",
        ser_json_tz="utc",
    )


# cria instância global
settings = Settings()
