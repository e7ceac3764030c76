"""Initial schema: patients, clinics, appointments, response logs, reservation holds.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "patients",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_patients_email"), "patients", ["email"], unique=True)

    op.create_table(
        "clinics",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("hours", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "appointments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("patient_id", sa.Integer(), nullable=False),
        sa.Column("clinic_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("appointment_type", sa.String(), nullable=False),
        sa.Column("requested_date", sa.Date(), nullable=False),
        sa.Column("requested_time", sa.Time(), nullable=False),
        sa.Column("requested_duration", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(), nullable=False),
        sa.Column("requested_at", sa.DateTime(), nullable=False),
        sa.Column("slot_date", sa.Date(), nullable=False),
        sa.Column("slot_time", sa.Time(), nullable=False),
        sa.Column("slot_duration", sa.Integer(), nullable=False),
        sa.Column("confirmed_date", sa.Date(), nullable=True),
        sa.Column("confirmed_time", sa.Time(), nullable=True),
        sa.Column("confirmed_duration", sa.Integer(), nullable=True),
        sa.Column("cancelled_by", sa.String(), nullable=True),
        sa.Column("cancellation_reason", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["patient_id"], ["patients.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["clinic_id"], ["clinics.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_appointments_patient_id"), "appointments", ["patient_id"], unique=False)
    op.create_index(op.f("ix_appointments_clinic_id"), "appointments", ["clinic_id"], unique=False)
    op.create_index(op.f("ix_appointments_status"), "appointments", ["status"], unique=False)
    op.create_index(op.f("ix_appointments_slot_date"), "appointments", ["slot_date"], unique=False)

    for table in ("clinic_responses", "patient_responses"):
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("appointment_id", sa.Integer(), nullable=True),
            sa.Column("response_type", sa.String(), nullable=False),
            sa.Column("proposed_date", sa.Date(), nullable=True),
            sa.Column("proposed_time", sa.Time(), nullable=True),
            sa.Column("proposed_duration", sa.Integer(), nullable=True),
            sa.Column("message", sa.String(), nullable=table == "patient_responses"),
            sa.Column("responded_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["appointment_id"], ["appointments.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(op.f(f"ix_{table}_appointment_id"), table, ["appointment_id"], unique=False)

    op.create_table(
        "reservation_holds",
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("clinic_id", sa.Integer(), nullable=False),
        sa.Column("patient_id", sa.Integer(), nullable=False),
        sa.Column("start", sa.DateTime(), nullable=False),
        sa.Column("end", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["clinic_id"], ["clinics.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["patient_id"], ["patients.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("clinic_id", "start", name="uq_reservation_holds_clinic_start"),
    )
    op.create_index(op.f("ix_reservation_holds_clinic_id"), "reservation_holds", ["clinic_id"], unique=False)
    op.create_index(op.f("ix_reservation_holds_patient_id"), "reservation_holds", ["patient_id"], unique=False)
    op.create_index(op.f("ix_reservation_holds_expires_at"), "reservation_holds", ["expires_at"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_reservation_holds_expires_at"), table_name="reservation_holds")
    op.drop_index(op.f("ix_reservation_holds_patient_id"), table_name="reservation_holds")
    op.drop_index(op.f("ix_reservation_holds_clinic_id"), table_name="reservation_holds")
    op.drop_table("reservation_holds")
    for table in ("patient_responses", "clinic_responses"):
        op.drop_index(op.f(f"ix_{table}_appointment_id"), table_name=table)
        op.drop_table(table)
    op.drop_index(op.f("ix_appointments_slot_date"), table_name="appointments")
    op.drop_index(op.f("ix_appointments_status"), table_name="appointments")
    op.drop_index(op.f("ix_appointments_clinic_id"), table_name="appointments")
    op.drop_index(op.f("ix_appointments_patient_id"), table_name="appointments")
    op.drop_table("appointments")
    op.drop_table("clinics")
    op.drop_index(op.f("ix_patients_email"), table_name="patients")
    op.drop_table("patients")
