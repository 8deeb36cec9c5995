# clinicflow/api/v1/endpoints/appointments.py
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from clinicflow.core.config import get_settings
from clinicflow.core.database import get_db
from clinicflow.schemas.appointment import (
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentUpdate,
)
from clinicflow.services import appointment_service

router = APIRouter()
settings = get_settings()


@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    payload: AppointmentCreate,
    db: Session = Depends(get_db),
) -> AppointmentResponse:
    """
    Book an appointment. Rejected when the doctor has no open window for
    the preferred time.
    """
    appointment = appointment_service.create_appointment(db, payload=payload)
    return AppointmentResponse.model_validate(appointment)


@router.get("", response_model=AppointmentListResponse)
def list_appointments(
    search: Optional[str] = Query(None, description="Booking ID, patient, doctor or service"),
    status_filter: Optional[str] = Query(None, alias="status"),
    doctor_name: Optional[str] = Query(None),
    department_name: Optional[str] = Query(None),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
) -> AppointmentListResponse:
    items, total = appointment_service.list_appointments(
        db,
        search=search,
        status=status_filter,
        doctor_name=doctor_name,
        department_name=department_name,
        from_date=from_date,
        to_date=to_date,
        page=page,
        page_size=page_size,
    )
    return AppointmentListResponse(
        items=[AppointmentResponse.model_validate(a) for a in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{booking_id}", response_model=AppointmentResponse)
def get_appointment(
    booking_id: str,
    db: Session = Depends(get_db),
) -> AppointmentResponse:
    appointment = appointment_service.get_appointment(db, booking_id=booking_id)
    return AppointmentResponse.model_validate(appointment)


@router.patch("/{booking_id}", response_model=AppointmentResponse)
def update_appointment(
    booking_id: str,
    payload: AppointmentUpdate,
    db: Session = Depends(get_db),
) -> AppointmentResponse:
    """
    Reschedule or change status. Cancelling always succeeds; anything else
    re-checks the target slot.
    """
    appointment = appointment_service.update_appointment(db, booking_id=booking_id, payload=payload)
    return AppointmentResponse.model_validate(appointment)
