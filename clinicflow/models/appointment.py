# clinicflow/models/appointment.py
import uuid
from datetime import date, datetime, time
from enum import Enum as PyEnum

from sqlalchemy import (
    Date,
    DateTime,
    String,
    Time,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from clinicflow.models.base import Base, str_enum
from clinicflow.utils.datetime_utils import utc_now


class AppointmentStatus(str, PyEnum):
    NEW = "New"
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    ACCEPTED = "Accepted"
    AWAITING = "Awaiting"
    CANCELED = "Canceled"

    @classmethod
    def parse(cls, value: "str | AppointmentStatus") -> "AppointmentStatus":
        """
        Case-insensitive lookup; the British spelling "cancelled" is
        accepted as Canceled.

        Raises:
            ValueError: for an unknown status
        """
        if isinstance(value, cls):
            return value
        lowered = (value or "").strip().lower()
        if lowered == "cancelled":
            return cls.CANCELED
        for member in cls:
            if member.value.lower() == lowered:
                return member
        raise ValueError(f"Unknown appointment status '{value}'.")


APPOINTMENT_STATUS_ENUM = str_enum(AppointmentStatus, "appointment_status_enum")


class Appointment(Base):
    __tablename__ = "appointments"

    # Primary Key
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    booking_id: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        unique=True,
        index=True,
        doc="Human-facing booking reference, e.g. APT-20260314-7KQ2ZD",
    )

    # Patient Details
    patient_name: Mapped[str] = mapped_column(String(200), nullable=False)
    patient_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Booking Details
    service_name: Mapped[str | None] = mapped_column(String(150), nullable=True)
    visit_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    visit_reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    doctor_name: Mapped[str] = mapped_column(String(150), nullable=False, index=True)
    department_name: Mapped[str] = mapped_column(String(150), nullable=False)
    appointment_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    preferred_time: Mapped[time] = mapped_column(Time, nullable=False)

    status: Mapped[AppointmentStatus] = mapped_column(
        APPOINTMENT_STATUS_ENUM,
        nullable=False,
        default=AppointmentStatus.PENDING,
        server_default=text("'Pending'"),
    )

    # Timestamps
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
        onupdate=utc_now,
    )
