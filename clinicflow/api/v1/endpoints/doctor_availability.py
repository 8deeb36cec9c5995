# clinicflow/api/v1/endpoints/doctor_availability.py
from __future__ import annotations

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from clinicflow.core.database import get_db
from clinicflow.schemas.availability import AvailabilityResult, DoctorTimeCatalog
from clinicflow.schemas.schedule import DoctorScheduleResponse, DoctorScheduleUpsert
from clinicflow.services import availability_service, schedule_service

router = APIRouter()


@router.get("", response_model=AvailabilityResult)
def get_doctor_availability(
    doctor_name: str = Query(..., min_length=1),
    department_name: str = Query(..., min_length=1),
    appointment_date: date = Query(...),
    preferred_time: Optional[str] = Query(None, description="HH:MM"),
    exclude_booking_id: Optional[str] = Query(None, description="Booking being rescheduled"),
    db: Session = Depends(get_db),
) -> AvailabilityResult:
    """
    Open windows, remaining capacity and recommended times for a doctor
    on one date.
    """
    return availability_service.resolve_availability(
        db,
        doctor_name=doctor_name,
        department_name=department_name,
        appointment_date=appointment_date,
        preferred_time=preferred_time,
        exclude_booking_id=exclude_booking_id,
    )


@router.get("/times", response_model=DoctorTimeCatalog)
def get_time_catalog(
    department_name: str = Query(..., min_length=1),
    appointment_date: date = Query(...),
    doctor_name: Optional[str] = Query(None),
    db: Session = Depends(get_db),
) -> DoctorTimeCatalog:
    return availability_service.build_time_catalog(
        db,
        department_name=department_name,
        appointment_date=appointment_date,
        doctor_name=doctor_name,
    )


@router.get("/schedules", response_model=list[DoctorScheduleResponse])
def list_doctor_schedules(
    doctor_name: Optional[str] = Query(None),
    department_name: Optional[str] = Query(None),
    include_inactive: bool = Query(True),
    db: Session = Depends(get_db),
) -> list[DoctorScheduleResponse]:
    schedules = schedule_service.list_schedules(
        db,
        doctor_name=doctor_name,
        department_name=department_name,
        include_inactive=include_inactive,
    )
    return [DoctorScheduleResponse.model_validate(s) for s in schedules]


@router.post("/schedules", response_model=DoctorScheduleResponse)
def upsert_doctor_schedule(
    payload: DoctorScheduleUpsert,
    db: Session = Depends(get_db),
) -> DoctorScheduleResponse:
    schedule = schedule_service.upsert_schedule(db, payload=payload)
    return DoctorScheduleResponse.model_validate(schedule)


@router.delete("/schedules/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_doctor_schedule(
    schedule_id: UUID,
    actor: Optional[str] = Query(None),
    db: Session = Depends(get_db),
) -> None:
    schedule_service.delete_schedule(db, schedule_id=schedule_id, actor=actor)
