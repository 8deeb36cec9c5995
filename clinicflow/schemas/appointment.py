# clinicflow/schemas/appointment.py
from datetime import date, datetime, time
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_serializer, field_validator

from clinicflow.models.appointment import AppointmentStatus


class AppointmentCreate(BaseModel):
    """
    Booking request. Required fields are checked by the booking gate so
    that every rejection (missing doctor, full slot, ...) comes back in
    the same shape.
    """

    booking_id: str | None = None
    patient_name: str | None = None
    patient_email: str | None = None
    phone_number: str | None = None
    service_name: str | None = None
    visit_type: str | None = None
    visit_reason: str | None = None
    doctor_name: str | None = None
    department_name: str | None = None
    appointment_date: date | None = None
    preferred_time: str | None = None
    status: str | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator(
        "booking_id",
        "patient_email",
        "phone_number",
        "service_name",
        "visit_type",
        "visit_reason",
        "status",
        mode="before",
    )
    @classmethod
    def empty_str_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class AppointmentUpdate(BaseModel):
    """
    Partial update (PATCH). Fields left as None keep their stored value.
    """

    status: str | None = None
    doctor_name: str | None = None
    department_name: str | None = None
    visit_type: str | None = None
    appointment_date: date | None = None
    preferred_time: str | None = None
    visit_reason: str | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("*", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class AppointmentResponse(BaseModel):
    id: UUID
    booking_id: str
    patient_name: str
    patient_email: str | None = None
    phone_number: str | None = None
    service_name: str | None = None
    visit_type: str | None = None
    visit_reason: str | None = None
    doctor_name: str
    department_name: str
    appointment_date: date
    preferred_time: time
    status: AppointmentStatus
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("preferred_time")
    def _hhmm(self, value: time) -> str:
        return value.strftime("%H:%M")


class AppointmentListResponse(BaseModel):
    items: list[AppointmentResponse]
    total: int
    page: int
    page_size: int
