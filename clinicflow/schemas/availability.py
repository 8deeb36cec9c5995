# clinicflow/schemas/availability.py
from datetime import date, time
from uuid import UUID

from pydantic import BaseModel, field_serializer


class AvailabilitySlot(BaseModel):
    """One schedule window with its booking count for a specific date."""

    id: UUID
    start_time: time
    end_time: time
    max_appointments: int
    booked_appointments: int
    remaining_appointments: int
    is_open: bool

    @field_serializer("start_time", "end_time")
    def _hhmm(self, value: time) -> str:
        return value.strftime("%H:%M")


class AvailabilityResult(BaseModel):
    doctor_name: str
    department_name: str
    appointment_date: date
    is_available: bool
    reason: str
    slots: list[AvailabilitySlot] = []
    recommended_times: list[str] = []


class DoctorTimeCatalog(BaseModel):
    """Every scheduled doctor's availability in a department for one date."""

    appointment_date: date
    department_name: str
    allowed_times: list[str] = []
    doctors: list[AvailabilityResult] = []
