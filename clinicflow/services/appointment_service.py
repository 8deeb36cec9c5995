# clinicflow/services/appointment_service.py
"""
Booking admission gate.

Every create, and every update that leaves an appointment non-canceled,
passes through the slot resolver twice: once read-only for a fast,
lock-free rejection, then again under the doctor's schedule row locks in
the same transaction that writes the appointment.
"""
from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinicflow.models.appointment import Appointment, AppointmentStatus
from clinicflow.schemas.appointment import AppointmentCreate, AppointmentUpdate
from clinicflow.schemas.availability import AvailabilityResult
from clinicflow.services.availability_service import (
    REASON_DAY_FULL,
    REASON_WINDOW_FULL,
    coerce_clock_time,
    lock_doctor_day,
    resolve_availability,
)
from clinicflow.services.errors import (
    CapacityError,
    ClinicError,
    ConflictError,
    NotFoundError,
    SlotTakenError,
    ValidationError,
)
from clinicflow.utils.id_generators import generate_booking_id

logger = logging.getLogger(__name__)

_FULL_REASONS = (REASON_WINDOW_FULL, REASON_DAY_FULL)


def _parse_status(value: str | AppointmentStatus | None, default: AppointmentStatus) -> AppointmentStatus:
    if value is None:
        return default
    try:
        return AppointmentStatus.parse(value)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


def _raise_if_unavailable(availability: AvailabilityResult) -> None:
    if availability.is_available:
        return
    if availability.reason in _FULL_REASONS:
        raise CapacityError(availability.reason)
    raise ValidationError(availability.reason)


def get_appointment(db: Session, *, booking_id: str) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.booking_id == booking_id).first()
    if not appointment:
        raise NotFoundError("Appointment not found.")
    return appointment


def list_appointments(
    db: Session,
    *,
    search: str | None = None,
    status: str | AppointmentStatus | None = None,
    doctor_name: str | None = None,
    department_name: str | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
    page: int = 1,
    page_size: int = 10,
) -> tuple[list[Appointment], int]:
    """
    Basic appointment listing helper with optional filters.

    Returns:
        (items for the requested page, total matching rows)
    """
    query = db.query(Appointment)

    if search and search.strip():
        term = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Appointment.booking_id.ilike(term),
                Appointment.patient_name.ilike(term),
                Appointment.doctor_name.ilike(term),
                Appointment.service_name.ilike(term),
            )
        )
    if status is not None and str(status).strip().lower() != "all":
        query = query.filter(Appointment.status == _parse_status(status, AppointmentStatus.PENDING))
    if doctor_name and doctor_name.strip():
        query = query.filter(Appointment.doctor_name == doctor_name.strip())
    if department_name and department_name.strip():
        query = query.filter(Appointment.department_name == department_name.strip())
    if from_date is not None:
        query = query.filter(Appointment.appointment_date >= from_date)
    if to_date is not None:
        query = query.filter(Appointment.appointment_date <= to_date)

    total = query.count()
    items = (
        query.order_by(Appointment.appointment_date.desc(), Appointment.preferred_time.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return items, total


def create_appointment(db: Session, *, payload: AppointmentCreate) -> Appointment:
    """
    Admit a booking.

    Rules:
    - patient, doctor, department, date and preferred time are required
    - the preferred time must fall in an open window of the doctor's schedule
    - a booking cannot be created already canceled
    """
    errors: list[str] = []
    if not (payload.patient_name or "").strip():
        errors.append("Patient name is required")
    if not (payload.doctor_name or "").strip():
        errors.append("Doctor name is required")
    if not (payload.department_name or "").strip():
        errors.append("Department name is required")
    if payload.appointment_date is None:
        errors.append("Appointment date is required")
    if not (payload.preferred_time or "").strip():
        errors.append("Preferred time is required")
    if errors:
        raise ValidationError("; ".join(errors))

    status = _parse_status(payload.status, AppointmentStatus.PENDING)
    if status == AppointmentStatus.CANCELED:
        raise ValidationError("A new appointment cannot be created as Canceled.")

    doctor_name = payload.doctor_name.strip()
    department_name = payload.department_name.strip()
    preferred_time = coerce_clock_time(payload.preferred_time)

    # Lock-free pre-check: most rejections end here.
    availability = resolve_availability(
        db,
        doctor_name=doctor_name,
        department_name=department_name,
        appointment_date=payload.appointment_date,
        preferred_time=preferred_time,
    )
    _raise_if_unavailable(availability)

    booking_id = payload.booking_id.strip() if payload.booking_id else generate_booking_id(payload.appointment_date)

    try:
        lock_doctor_day(db, doctor_name=doctor_name, appointment_date=payload.appointment_date)
        availability = resolve_availability(
            db,
            doctor_name=doctor_name,
            department_name=department_name,
            appointment_date=payload.appointment_date,
            preferred_time=preferred_time,
        )
        if not availability.is_available:
            if availability.reason in _FULL_REASONS:
                raise SlotTakenError(f"{availability.reason} The slot was just taken, refresh and pick another time.")
            raise ValidationError(availability.reason)

        if db.query(Appointment.id).filter(Appointment.booking_id == booking_id).first():
            raise ValidationError(f"Booking ID '{booking_id}' already exists.")

        appointment = Appointment(
            booking_id=booking_id,
            patient_name=payload.patient_name.strip(),
            patient_email=payload.patient_email,
            phone_number=payload.phone_number,
            service_name=payload.service_name,
            visit_type=payload.visit_type,
            visit_reason=payload.visit_reason,
            doctor_name=doctor_name,
            department_name=department_name,
            appointment_date=payload.appointment_date,
            preferred_time=preferred_time,
            status=status,
        )
        db.add(appointment)
        db.flush()
        db.commit()
    except ClinicError:
        db.rollback()
        raise
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(f"Booking ID '{booking_id}' was taken by another request, retry.") from exc
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info(
        "Appointment booked booking_id=%s doctor=%s date=%s time=%s",
        booking_id,
        doctor_name,
        payload.appointment_date,
        preferred_time,
    )
    db.refresh(appointment)
    return appointment


def update_appointment(db: Session, *, booking_id: str, payload: AppointmentUpdate) -> Appointment:
    """
    Reschedule and/or change status.

    Cancellation is always allowed. Any other resulting status re-validates
    the slot the appointment will occupy after the update, not counting the
    appointment itself.
    """
    try:
        appointment = (
            db.query(Appointment)
            .filter(Appointment.booking_id == booking_id)
            .with_for_update()
            .first()
        )
        if not appointment:
            raise NotFoundError("Appointment not found.")

        new_status = _parse_status(payload.status, appointment.status)
        doctor_name = (payload.doctor_name or appointment.doctor_name).strip()
        department_name = (payload.department_name or appointment.department_name).strip()
        appointment_date = payload.appointment_date or appointment.appointment_date
        preferred_time = coerce_clock_time(payload.preferred_time) or appointment.preferred_time

        if new_status != AppointmentStatus.CANCELED:
            lock_doctor_day(db, doctor_name=doctor_name, appointment_date=appointment_date)
            availability = resolve_availability(
                db,
                doctor_name=doctor_name,
                department_name=department_name,
                appointment_date=appointment_date,
                preferred_time=preferred_time,
                exclude_booking_id=booking_id,
            )
            _raise_if_unavailable(availability)

        appointment.status = new_status
        appointment.doctor_name = doctor_name
        appointment.department_name = department_name
        appointment.appointment_date = appointment_date
        appointment.preferred_time = preferred_time
        if payload.visit_type is not None:
            appointment.visit_type = payload.visit_type
        if payload.visit_reason is not None:
            appointment.visit_reason = payload.visit_reason

        db.commit()
    except ClinicError:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info(
        "Appointment updated booking_id=%s status=%s doctor=%s date=%s time=%s",
        booking_id,
        new_status.value,
        doctor_name,
        appointment_date,
        preferred_time,
    )
    db.refresh(appointment)
    return appointment
