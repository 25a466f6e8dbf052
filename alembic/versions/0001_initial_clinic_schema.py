"""initial clinic schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-03-01 10:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ACTIVE_WHERE = "status NOT IN ('cancelled_by_patient', 'cancelled_by_clinic', 'no_show')"

role_enum = sa.Enum(
    "patient", "health_professional", "receptionist", "admin", name="role_enum"
)
appointment_type_enum = sa.Enum("presencial", "online", name="appointment_type_enum")
appointment_status_enum = sa.Enum(
    "scheduled",
    "confirmed",
    "waiting",
    "in_progress",
    "completed",
    "no_show",
    "cancelled_by_patient",
    "cancelled_by_clinic",
    "rescheduled",
    name="appointment_status_enum",
)
payment_status_enum = sa.Enum(
    "pending",
    "processing",
    "paid",
    "failed",
    "refunded",
    "partially_refunded",
    name="payment_status_enum",
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("password_hash", sa.String(length=512), nullable=False),
        sa.Column("role", role_enum, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "professionals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("specialty", sa.String(length=120)),
        sa.Column("registration_number", sa.String(length=40)),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index(
        "ix_professionals_user_id", "professionals", ["user_id"], unique=True
    )

    op.create_table(
        "availabilities",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "professional_id",
            sa.Integer(),
            sa.ForeignKey("professionals.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "day_of_week >= 0 AND day_of_week <= 6", name="ck_availability_weekday"
        ),
        sa.CheckConstraint("end_time > start_time", name="ck_availability_time_order"),
    )
    op.create_index(
        "ix_availability_prof_day", "availabilities", ["professional_id", "day_of_week"]
    )

    op.create_table(
        "appointments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "patient_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "professional_id",
            sa.Integer(),
            sa.ForeignKey("professionals.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.Time(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("type", appointment_type_enum, nullable=False),
        sa.Column("status", appointment_status_enum, nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("payment_status", payment_status_enum, nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("cancellation_reason", sa.String(length=255)),
        sa.Column(
            "cancelled_by",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
        ),
        *_timestamps(),
    )
    op.create_index("ix_appt_professional_id", "appointments", ["professional_id"])
    op.create_index("ix_appt_patient_id", "appointments", ["patient_id"])

    # únicos PARCIAIS: cancelados/faltas liberam o horário
    op.create_index(
        "ux_appt_prof_slot_active",
        "appointments",
        ["professional_id", "date", "time"],
        unique=True,
        postgresql_where=sa.text(ACTIVE_WHERE),
        sqlite_where=sa.text(ACTIVE_WHERE),
    )
    op.create_index(
        "ux_appt_patient_prof_day_active",
        "appointments",
        ["patient_id", "professional_id", "date"],
        unique=True,
        postgresql_where=sa.text(ACTIVE_WHERE),
        sqlite_where=sa.text(ACTIVE_WHERE),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
        ),
        sa.Column("action", sa.String(length=80), nullable=False),
        sa.Column("entity", sa.String(length=80), nullable=False),
        sa.Column("entity_id", sa.Integer()),
        sa.Column("details", sa.JSON()),
        sa.Column("timestamp_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ip", sa.String(length=45)),
    )
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])
    op.create_index("ix_audit_timestamp_utc", "audit_logs", ["timestamp_utc"])
    op.create_index("ix_audit_entity", "audit_logs", ["entity", "entity_id"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_index("ux_appt_patient_prof_day_active", table_name="appointments")
    op.drop_index("ux_appt_prof_slot_active", table_name="appointments")
    op.drop_table("appointments")
    op.drop_table("availabilities")
    op.drop_table("professionals")
    op.drop_table("users")

    bind = op.get_bind()
    for enum in (
        payment_status_enum,
        appointment_status_enum,
        appointment_type_enum,
        role_enum,
    ):
        enum.drop(bind, checkfirst=True)
