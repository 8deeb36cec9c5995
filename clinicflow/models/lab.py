# clinicflow/models/lab.py
import uuid
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
    false,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinicflow.models.base import Base, str_enum
from clinicflow.utils.datetime_utils import utc_now


class LabStatus(str, PyEnum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    RESULT_READY = "Result Ready"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (LabStatus.COMPLETED, LabStatus.CANCELLED)


class LabPriority(str, PyEnum):
    NORMAL = "Normal"
    URGENT = "Urgent"
    STAT = "STAT"


LAB_STATUS_ENUM = str_enum(LabStatus, "lab_status_enum")
LAB_PRIORITY_ENUM = str_enum(LabPriority, "lab_priority_enum")


class LabRequest(Base):
    """
    A diagnostic request raised by a doctor (or the patient portal) and
    worked by laboratory staff until the report is released.
    """

    __tablename__ = "lab_requests"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # Request
    visit_code: Mapped[str | None] = mapped_column(String(40), nullable=True, index=True)
    patient_name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    priority: Mapped[LabPriority] = mapped_column(
        LAB_PRIORITY_ENUM,
        nullable=False,
        default=LabPriority.NORMAL,
    )
    requested_by_doctor: Mapped[str] = mapped_column(String(150), nullable=False)
    tests: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[LabStatus] = mapped_column(
        LAB_STATUS_ENUM,
        nullable=False,
        default=LabStatus.PENDING,
        server_default=text("'Pending'"),
        index=True,
    )

    # Processing
    assigned_lab_staff: Mapped[str | None] = mapped_column(String(150), nullable=True)
    sample_collected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    sample_collected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    specimen_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    processing_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Results
    encoded_values: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    result_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    attachment_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    result_encoded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    verified_by: Mapped[str | None] = mapped_column(String(150), nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Release / rejection
    released_by: Mapped[str | None] = mapped_column(String(150), nullable=True)
    released_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    resample_flag: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())

    requested_at: Mapped[datetime] = mapped_column(
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
        onupdate=utc_now,
    )

    activity: Mapped[list["LabActivityLog"]] = relationship(
        "LabActivityLog",
        back_populates="request",
        order_by="LabActivityLog.id",
        cascade="all, delete-orphan",
    )


class LabActivityLog(Base):
    """Append-only audit trail of everything that happened to a lab request."""

    __tablename__ = "lab_activity_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("lab_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    details: Mapped[str] = mapped_column(String(1000), nullable=False, default="")
    actor: Mapped[str] = mapped_column(String(150), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    request: Mapped["LabRequest"] = relationship("LabRequest", back_populates="activity")
