# clinicflow/schemas/schedule.py
from datetime import datetime, time
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class DoctorScheduleUpsert(BaseModel):
    """
    Create or update the window identified by
    (doctor_name, department_name, day_of_week, start_time, end_time).

    Times are "HH:MM" strings; they are parsed by the service so that a bad
    value is reported the same way as any other validation failure.
    """

    doctor_name: str
    department_name: str
    day_of_week: int = Field(description="0 = Sunday ... 6 = Saturday")
    start_time: str
    end_time: str
    max_appointments: int = 1
    is_active: bool = True
    actor: str | None = None


class DoctorScheduleResponse(BaseModel):
    id: UUID
    doctor_name: str
    department_name: str
    day_of_week: int
    start_time: time
    end_time: time
    max_appointments: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("start_time", "end_time")
    def _hhmm(self, value: time) -> str:
        return value.strftime("%H:%M")
