# clinicflow/models/visit.py
import uuid
from datetime import date, datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Integer,
    String,
    Text,
    Uuid,
    false,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from clinicflow.models.base import Base, str_enum
from clinicflow.utils.datetime_utils import utc_now


class VisitStatus(str, PyEnum):
    INTAKE = "intake"
    QUEUE = "queue"
    DOCTOR_ASSIGNED = "doctor_assigned"
    IN_CONSULTATION = "in_consultation"
    LAB_REQUESTED = "lab_requested"
    PHARMACY = "pharmacy"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class VisitSource(str, PyEnum):
    APPOINTMENT_CONFIRMED = "appointment_confirmed"
    WALKIN_TRIAGE_COMPLETED = "walkin_triage_completed"
    WAITING_FOR_DOCTOR = "waiting_for_doctor"


VISIT_STATUS_ENUM = str_enum(VisitStatus, "visit_status_enum")
VISIT_SOURCE_ENUM = str_enum(VisitSource, "visit_source_enum")


class CheckupVisit(Base):
    """
    A check-up consultation moving from intake to archive.

    ``version`` is the optimistic-concurrency counter: every accepted
    mutation bumps it by exactly one, and writers compare-and-swap on it.
    """

    __tablename__ = "checkup_visits"
    __table_args__ = (
        CheckConstraint("version >= 1", name="ck_checkup_visits_version"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    visit_code: Mapped[str] = mapped_column(String(40), nullable=False, unique=True, index=True)

    patient_name: Mapped[str] = mapped_column(String(200), nullable=False)
    source: Mapped[VisitSource] = mapped_column(
        VISIT_SOURCE_ENUM,
        nullable=False,
        default=VisitSource.WAITING_FOR_DOCTOR,
    )
    status: Mapped[VisitStatus] = mapped_column(
        VISIT_STATUS_ENUM,
        nullable=False,
        default=VisitStatus.INTAKE,
        server_default=text("'intake'"),
        index=True,
    )

    # Clinical fields
    chief_complaint: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    assigned_doctor: Mapped[str | None] = mapped_column(String(150), nullable=True)
    diagnosis: Mapped[str | None] = mapped_column(Text, nullable=True)
    clinical_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    consultation_started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    follow_up_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Workflow flags
    lab_requested: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    lab_result_ready: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    prescription_created: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    prescription_dispensed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    is_emergency: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        server_default=text("1"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )
