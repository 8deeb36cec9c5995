# clinicflow/models/schedule.py
import uuid
from datetime import datetime, time

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
    String,
    Time,
    UniqueConstraint,
    Uuid,
    text,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column

from clinicflow.models.base import Base
from clinicflow.utils.datetime_utils import utc_now


class DoctorSchedule(Base):
    """
    One weekly recurring availability window for a doctor in a department.

    A window accepts at most ``max_appointments`` non-canceled bookings on
    any given date whose weekday matches ``day_of_week`` (0 = Sunday).
    """

    __tablename__ = "doctor_schedules"
    __table_args__ = (
        UniqueConstraint(
            "doctor_name",
            "department_name",
            "day_of_week",
            "start_time",
            "end_time",
            name="uq_doctor_schedules_window",
        ),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_doctor_schedules_day_of_week"),
        CheckConstraint("start_time < end_time", name="ck_doctor_schedules_time_order"),
        CheckConstraint("max_appointments >= 1", name="ck_doctor_schedules_capacity"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    doctor_name: Mapped[str] = mapped_column(String(150), nullable=False, index=True)
    department_name: Mapped[str] = mapped_column(String(150), nullable=False, index=True)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    max_appointments: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=true(),
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
        onupdate=utc_now,
    )

    def contains(self, clock_time: time) -> bool:
        """True when clock_time falls in [start_time, end_time)."""
        return self.start_time <= clock_time < self.end_time
