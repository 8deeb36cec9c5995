# clinicflow/services/availability_service.py
"""
Slot calendar resolver.

Answers "can doctor D in department P take a booking on date T (at time H)?"
from the persisted DoctorSchedule and Appointment rows. Nothing here writes;
the booking gate re-runs the same resolution under a row lock before it
inserts, which is what closes the check-then-insert race.
"""
from __future__ import annotations

import logging
from datetime import date, time

from sqlalchemy.orm import Session

from clinicflow.core.config import get_settings
from clinicflow.models.appointment import Appointment, AppointmentStatus
from clinicflow.models.schedule import DoctorSchedule
from clinicflow.schemas.availability import AvailabilityResult, AvailabilitySlot, DoctorTimeCatalog
from clinicflow.services.errors import ValidationError
from clinicflow.utils.datetime_utils import (
    clinic_day_of_week,
    format_clock_time,
    iter_clock_steps,
    parse_clock_time,
)

logger = logging.getLogger(__name__)

REASON_AVAILABLE = "Doctor is available."
REASON_NO_SCHEDULE = "Doctor has no active schedule for this date."
REASON_OUTSIDE_SCHEDULE = "Preferred time is outside the doctor's schedule."
REASON_WINDOW_FULL = "Doctor schedule is full for this window."
REASON_DAY_FULL = "Doctor schedule is full for this date."


def coerce_clock_time(value: str | time | None, *, field: str = "preferred_time") -> time | None:
    """Parse an optional "HH:MM" value, reporting bad input as a ValidationError."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return parse_clock_time(value)
    except ValueError as exc:
        raise ValidationError(f"{field}: {exc}") from exc


def get_active_windows(
    db: Session,
    *,
    doctor_name: str,
    department_name: str,
    appointment_date: date,
) -> list[DoctorSchedule]:
    return (
        db.query(DoctorSchedule)
        .filter(
            DoctorSchedule.doctor_name == doctor_name,
            DoctorSchedule.department_name == department_name,
            DoctorSchedule.day_of_week == clinic_day_of_week(appointment_date),
            DoctorSchedule.is_active.is_(True),
        )
        .order_by(DoctorSchedule.start_time.asc())
        .all()
    )


def lock_doctor_day(db: Session, *, doctor_name: str, appointment_date: date) -> None:
    """
    Take row locks on every schedule window the doctor has on that weekday.

    Concurrent bookings for the same doctor/day serialize here, so the
    count-then-insert that follows sees every committed competitor.
    SQLite has no row locks; there the transaction already holds the
    database write lock from its first statement (see
    clinicflow.core.database.enable_sqlite_write_locks).
    """
    (
        db.query(DoctorSchedule.id)
        .filter(
            DoctorSchedule.doctor_name == doctor_name,
            DoctorSchedule.day_of_week == clinic_day_of_week(appointment_date),
        )
        .with_for_update()
        .all()
    )


def _booked_times(
    db: Session,
    *,
    doctor_name: str,
    appointment_date: date,
    exclude_booking_id: str | None,
) -> list[time]:
    query = db.query(Appointment.preferred_time).filter(
        Appointment.doctor_name == doctor_name,
        Appointment.appointment_date == appointment_date,
        Appointment.status != AppointmentStatus.CANCELED,
    )
    if exclude_booking_id:
        query = query.filter(Appointment.booking_id != exclude_booking_id)
    return [parse_clock_time(t) for (t,) in query.all()]


def resolve_availability(
    db: Session,
    *,
    doctor_name: str,
    department_name: str,
    appointment_date: date,
    preferred_time: str | time | None = None,
    exclude_booking_id: str | None = None,
) -> AvailabilityResult:
    """
    Compute bookable windows for a doctor on a date.

    Args:
        doctor_name: doctor the booking is for
        department_name: department whose schedule applies
        appointment_date: calendar date of the booking
        preferred_time: optional "HH:MM"; when given, that exact time must
            fall in an open window
        exclude_booking_id: booking that should not count against its own
            slot (reschedules)

    Returns:
        AvailabilityResult with per-window counts and recommended times
    """
    doctor_name = (doctor_name or "").strip()
    department_name = (department_name or "").strip()
    if not doctor_name:
        raise ValidationError("Doctor name is required.")
    if not department_name:
        raise ValidationError("Department name is required.")
    if appointment_date is None:
        raise ValidationError("Appointment date is required.")

    wanted = coerce_clock_time(preferred_time)
    settings = get_settings()

    windows = get_active_windows(
        db,
        doctor_name=doctor_name,
        department_name=department_name,
        appointment_date=appointment_date,
    )

    result = AvailabilityResult(
        doctor_name=doctor_name,
        department_name=department_name,
        appointment_date=appointment_date,
        is_available=False,
        reason=REASON_NO_SCHEDULE,
    )
    if not windows:
        return result

    booked = _booked_times(
        db,
        doctor_name=doctor_name,
        appointment_date=appointment_date,
        exclude_booking_id=exclude_booking_id,
    )

    slots: list[AvailabilitySlot] = []
    recommended: set[time] = set()
    for window in windows:
        window_start = parse_clock_time(window.start_time)
        window_end = parse_clock_time(window.end_time)
        booked_count = sum(1 for t in booked if window.contains(t))
        remaining = max(0, window.max_appointments - booked_count)
        is_open = remaining > 0

        slots.append(
            AvailabilitySlot(
                id=window.id,
                start_time=window_start,
                end_time=window_end,
                max_appointments=window.max_appointments,
                booked_appointments=booked_count,
                remaining_appointments=remaining,
                is_open=is_open,
            )
        )
        if is_open:
            recommended.update(
                iter_clock_steps(
                    window_start,
                    window_end,
                    settings.slot_step_minutes,
                    settings.max_recommended_times_per_window,
                )
            )

    result.slots = slots
    result.recommended_times = [format_clock_time(t) for t in sorted(recommended)]

    if wanted is not None:
        containing = [s for s in slots if s.start_time <= wanted < s.end_time]
        if not containing:
            result.reason = REASON_OUTSIDE_SCHEDULE
            return result
        if not any(s.is_open for s in containing):
            result.reason = REASON_WINDOW_FULL
            return result
    elif not any(s.is_open for s in slots):
        result.reason = REASON_DAY_FULL
        return result

    result.is_available = True
    result.reason = REASON_AVAILABLE
    return result


def build_time_catalog(
    db: Session,
    *,
    department_name: str,
    appointment_date: date,
    doctor_name: str | None = None,
) -> DoctorTimeCatalog:
    """
    Availability of every doctor holding an active schedule in the
    department on that weekday, plus the union of their open times.
    """
    department_name = (department_name or "").strip()
    if not department_name:
        raise ValidationError("Department name is required.")

    query = db.query(DoctorSchedule.doctor_name).filter(
        DoctorSchedule.department_name == department_name,
        DoctorSchedule.day_of_week == clinic_day_of_week(appointment_date),
        DoctorSchedule.is_active.is_(True),
    )
    if doctor_name and doctor_name.strip():
        query = query.filter(DoctorSchedule.doctor_name == doctor_name.strip())

    doctor_names = sorted({name for (name,) in query.distinct().all()})

    doctors = [
        resolve_availability(
            db,
            doctor_name=name,
            department_name=department_name,
            appointment_date=appointment_date,
        )
        for name in doctor_names
    ]
    allowed = sorted({t for d in doctors for t in d.recommended_times})

    logger.debug(
        "Time catalog department=%s date=%s doctors=%d times=%d",
        department_name,
        appointment_date,
        len(doctors),
        len(allowed),
    )
    return DoctorTimeCatalog(
        appointment_date=appointment_date,
        department_name=department_name,
        allowed_times=allowed,
        doctors=doctors,
    )
