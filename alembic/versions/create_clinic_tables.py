"""create_clinic_tables

Revision ID: create_clinic_tables
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "create_clinic_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _str_enum(name: str, *values: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False, length=32)


def _timestamps(*names: str) -> list[sa.Column]:
    return [
        sa.Column(
            name,
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        )
        for name in names
    ]


def upgrade() -> None:
    op.create_table(
        "doctor_schedules",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("doctor_name", sa.String(length=150), nullable=False),
        sa.Column("department_name", sa.String(length=150), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("max_appointments", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps("created_at", "updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "doctor_name",
            "department_name",
            "day_of_week",
            "start_time",
            "end_time",
            name="uq_doctor_schedules_window",
        ),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_doctor_schedules_day_of_week"),
        sa.CheckConstraint("start_time < end_time", name="ck_doctor_schedules_time_order"),
        sa.CheckConstraint("max_appointments >= 1", name="ck_doctor_schedules_capacity"),
    )
    op.create_index("ix_doctor_schedules_doctor_name", "doctor_schedules", ["doctor_name"])
    op.create_index("ix_doctor_schedules_department_name", "doctor_schedules", ["department_name"])

    op.create_table(
        "appointments",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("booking_id", sa.String(length=40), nullable=False),
        sa.Column("patient_name", sa.String(length=200), nullable=False),
        sa.Column("patient_email", sa.String(length=255), nullable=True),
        sa.Column("phone_number", sa.String(length=50), nullable=True),
        sa.Column("service_name", sa.String(length=150), nullable=True),
        sa.Column("visit_type", sa.String(length=100), nullable=True),
        sa.Column("visit_reason", sa.String(length=1000), nullable=True),
        sa.Column("doctor_name", sa.String(length=150), nullable=False),
        sa.Column("department_name", sa.String(length=150), nullable=False),
        sa.Column("appointment_date", sa.Date(), nullable=False),
        sa.Column("preferred_time", sa.Time(), nullable=False),
        sa.Column(
            "status",
            _str_enum(
                "appointment_status_enum",
                "New",
                "Pending",
                "Confirmed",
                "Accepted",
                "Awaiting",
                "Canceled",
            ),
            nullable=False,
            server_default=sa.text("'Pending'"),
        ),
        *_timestamps("created_at", "updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_appointments_booking_id", "appointments", ["booking_id"], unique=True)
    op.create_index("ix_appointments_doctor_name", "appointments", ["doctor_name"])
    op.create_index("ix_appointments_appointment_date", "appointments", ["appointment_date"])

    op.create_table(
        "checkup_visits",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("visit_code", sa.String(length=40), nullable=False),
        sa.Column("patient_name", sa.String(length=200), nullable=False),
        sa.Column(
            "source",
            _str_enum(
                "visit_source_enum",
                "appointment_confirmed",
                "walkin_triage_completed",
                "waiting_for_doctor",
            ),
            nullable=False,
        ),
        sa.Column(
            "status",
            _str_enum(
                "visit_status_enum",
                "intake",
                "queue",
                "doctor_assigned",
                "in_consultation",
                "lab_requested",
                "pharmacy",
                "completed",
                "archived",
            ),
            nullable=False,
            server_default=sa.text("'intake'"),
        ),
        sa.Column("chief_complaint", sa.String(length=1000), nullable=True),
        sa.Column("assigned_doctor", sa.String(length=150), nullable=True),
        sa.Column("diagnosis", sa.Text(), nullable=True),
        sa.Column("clinical_notes", sa.Text(), nullable=True),
        sa.Column("consultation_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("follow_up_date", sa.Date(), nullable=True),
        sa.Column("lab_requested", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("lab_result_ready", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("prescription_created", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("prescription_dispensed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_emergency", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps("created_at", "updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("version >= 1", name="ck_checkup_visits_version"),
    )
    op.create_index("ix_checkup_visits_visit_code", "checkup_visits", ["visit_code"], unique=True)
    op.create_index("ix_checkup_visits_status", "checkup_visits", ["status"])

    op.create_table(
        "lab_requests",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("visit_code", sa.String(length=40), nullable=True),
        sa.Column("patient_name", sa.String(length=200), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column(
            "priority",
            _str_enum("lab_priority_enum", "Normal", "Urgent", "STAT"),
            nullable=False,
        ),
        sa.Column("requested_by_doctor", sa.String(length=150), nullable=False),
        sa.Column("tests", sa.JSON(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "status",
            _str_enum(
                "lab_status_enum",
                "Pending",
                "In Progress",
                "Result Ready",
                "Completed",
                "Cancelled",
            ),
            nullable=False,
            server_default=sa.text("'Pending'"),
        ),
        sa.Column("assigned_lab_staff", sa.String(length=150), nullable=True),
        sa.Column("sample_collected", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sample_collected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("specimen_type", sa.String(length=100), nullable=True),
        sa.Column("processing_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("encoded_values", sa.JSON(), nullable=False),
        sa.Column("result_summary", sa.Text(), nullable=True),
        sa.Column("attachment_name", sa.String(length=255), nullable=True),
        sa.Column("result_encoded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verified_by", sa.String(length=150), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("released_by", sa.String(length=150), nullable=True),
        sa.Column("released_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.String(length=500), nullable=True),
        sa.Column("resample_flag", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps("requested_at", "updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_lab_requests_visit_code", "lab_requests", ["visit_code"])
    op.create_index("ix_lab_requests_status", "lab_requests", ["status"])

    op.create_table(
        "lab_activity_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("request_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("details", sa.String(length=1000), nullable=False),
        sa.Column("actor", sa.String(length=150), nullable=False),
        *_timestamps("created_at"),
        sa.ForeignKeyConstraint(["request_id"], ["lab_requests.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_lab_activity_logs_request_id", "lab_activity_logs", ["request_id"])

    op.create_table(
        "medicines",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("medicine_name", sa.String(length=255), nullable=False),
        sa.Column("brand_name", sa.String(length=255), nullable=True),
        sa.Column("generic_name", sa.String(length=255), nullable=True),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("dosage_strength", sa.String(length=100), nullable=True),
        sa.Column("unit_of_measure", sa.String(length=100), nullable=True),
        sa.Column("supplier_name", sa.String(length=255), nullable=True),
        sa.Column("batch_lot_no", sa.String(length=100), nullable=True),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("stock_on_hand", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("stock_capacity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("reorder_level", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("low_stock_threshold", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps("created_at", "updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("stock_on_hand >= 0", name="ck_medicines_stock_non_negative"),
    )
    op.create_index("ix_medicines_sku", "medicines", ["sku"], unique=True)

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("medicine_id", sa.Uuid(), nullable=False),
        sa.Column(
            "movement_type",
            _str_enum(
                "stock_movement_type_enum",
                "initial",
                "restock",
                "dispense",
                "adjustment",
                "fulfillment",
                "archive",
            ),
            nullable=False,
        ),
        sa.Column("quantity_change", sa.Integer(), nullable=False),
        sa.Column("quantity_before", sa.Integer(), nullable=False),
        sa.Column("quantity_after", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=500), nullable=True),
        sa.Column("reference", sa.String(length=150), nullable=True),
        sa.Column("actor", sa.String(length=150), nullable=False),
        *_timestamps("created_at"),
        sa.ForeignKeyConstraint(["medicine_id"], ["medicines.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "quantity_after = quantity_before + quantity_change",
            name="ck_stock_movements_balance",
        ),
        sa.CheckConstraint("quantity_after >= 0", name="ck_stock_movements_after_non_negative"),
    )
    op.create_index("ix_stock_movements_medicine_id", "stock_movements", ["medicine_id"])

    op.create_table(
        "dispense_requests",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("medicine_id", sa.Uuid(), nullable=False),
        sa.Column("patient_name", sa.String(length=200), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.Column("prescription_reference", sa.String(length=150), nullable=False),
        sa.Column("dispense_reason", sa.String(length=255), nullable=True),
        sa.Column(
            "status",
            _str_enum("dispense_request_status_enum", "Pending", "Fulfilled", "Cancelled"),
            nullable=False,
            server_default=sa.text("'Pending'"),
        ),
        *_timestamps("requested_at"),
        sa.Column("fulfilled_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["medicine_id"], ["medicines.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_dispense_requests_medicine_id", "dispense_requests", ["medicine_id"])

    op.create_table(
        "pharmacy_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("detail", sa.String(length=1000), nullable=False),
        sa.Column("actor", sa.String(length=150), nullable=False),
        sa.Column(
            "tone",
            _str_enum("pharmacy_log_tone_enum", "success", "warning", "info", "error"),
            nullable=False,
        ),
        *_timestamps("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("pharmacy_logs")
    op.drop_index("ix_dispense_requests_medicine_id", table_name="dispense_requests")
    op.drop_table("dispense_requests")
    op.drop_index("ix_stock_movements_medicine_id", table_name="stock_movements")
    op.drop_table("stock_movements")
    op.drop_index("ix_medicines_sku", table_name="medicines")
    op.drop_table("medicines")
    op.drop_index("ix_lab_activity_logs_request_id", table_name="lab_activity_logs")
    op.drop_table("lab_activity_logs")
    op.drop_index("ix_lab_requests_status", table_name="lab_requests")
    op.drop_index("ix_lab_requests_visit_code", table_name="lab_requests")
    op.drop_table("lab_requests")
    op.drop_index("ix_checkup_visits_status", table_name="checkup_visits")
    op.drop_index("ix_checkup_visits_visit_code", table_name="checkup_visits")
    op.drop_table("checkup_visits")
    op.drop_index("ix_appointments_appointment_date", table_name="appointments")
    op.drop_index("ix_appointments_doctor_name", table_name="appointments")
    op.drop_index("ix_appointments_booking_id", table_name="appointments")
    op.drop_table("appointments")
    op.drop_index("ix_doctor_schedules_department_name", table_name="doctor_schedules")
    op.drop_index("ix_doctor_schedules_doctor_name", table_name="doctor_schedules")
    op.drop_table("doctor_schedules")
