# clinicflow/services/schedule_service.py
from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinicflow.models.schedule import DoctorSchedule
from clinicflow.schemas.schedule import DoctorScheduleUpsert
from clinicflow.services.availability_service import coerce_clock_time
from clinicflow.services.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def list_schedules(
    db: Session,
    *,
    doctor_name: str | None = None,
    department_name: str | None = None,
    include_inactive: bool = True,
) -> list[DoctorSchedule]:
    query = db.query(DoctorSchedule)

    if doctor_name and doctor_name.strip():
        query = query.filter(DoctorSchedule.doctor_name == doctor_name.strip())
    if department_name and department_name.strip():
        query = query.filter(DoctorSchedule.department_name == department_name.strip())
    if not include_inactive:
        query = query.filter(DoctorSchedule.is_active.is_(True))

    return query.order_by(
        DoctorSchedule.doctor_name.asc(),
        DoctorSchedule.day_of_week.asc(),
        DoctorSchedule.start_time.asc(),
    ).all()


def upsert_schedule(db: Session, *, payload: DoctorScheduleUpsert) -> DoctorSchedule:
    """
    Create the weekly window, or update capacity / active flag of the
    existing window with the same (doctor, department, day, start, end).
    """
    doctor_name = (payload.doctor_name or "").strip()
    department_name = (payload.department_name or "").strip()

    errors: list[str] = []
    if not doctor_name:
        errors.append("Doctor name is required")
    if not department_name:
        errors.append("Department name is required")
    if not 0 <= payload.day_of_week <= 6:
        errors.append("Day of week must be between 0 (Sunday) and 6 (Saturday)")
    if payload.max_appointments < 1:
        errors.append("Max appointments must be at least 1")
    if errors:
        raise ValidationError("; ".join(errors))

    start_time = coerce_clock_time(payload.start_time, field="start_time")
    end_time = coerce_clock_time(payload.end_time, field="end_time")
    if start_time is None or end_time is None:
        raise ValidationError("Start time and end time are required.")
    if start_time >= end_time:
        raise ValidationError("Start time must be before end time.")

    schedule = (
        db.query(DoctorSchedule)
        .filter(
            DoctorSchedule.doctor_name == doctor_name,
            DoctorSchedule.department_name == department_name,
            DoctorSchedule.day_of_week == payload.day_of_week,
            DoctorSchedule.start_time == start_time,
            DoctorSchedule.end_time == end_time,
        )
        .with_for_update()
        .first()
    )

    created = schedule is None
    if created:
        schedule = DoctorSchedule(
            doctor_name=doctor_name,
            department_name=department_name,
            day_of_week=payload.day_of_week,
            start_time=start_time,
            end_time=end_time,
        )
        db.add(schedule)

    schedule.max_appointments = payload.max_appointments
    schedule.is_active = payload.is_active

    try:
        db.flush()
        schedule_id = schedule.id
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("This schedule window was saved by another user, refresh and retry.") from exc
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info(
        "Doctor schedule %s id=%s doctor=%s department=%s day=%s %s-%s max=%s active=%s actor=%s",
        "created" if created else "updated",
        schedule_id,
        doctor_name,
        department_name,
        payload.day_of_week,
        start_time,
        end_time,
        payload.max_appointments,
        payload.is_active,
        payload.actor or "Admin",
    )
    db.refresh(schedule)
    return schedule


def delete_schedule(db: Session, *, schedule_id: UUID, actor: str | None = None) -> None:
    """
    Physically remove a window. Existing appointments are untouched; they
    simply stop counting against any window.
    """
    schedule = db.query(DoctorSchedule).filter(DoctorSchedule.id == schedule_id).first()
    if not schedule:
        raise NotFoundError("Doctor schedule not found.")

    try:
        db.delete(schedule)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info("Doctor schedule deleted id=%s actor=%s", schedule_id, actor or "Admin")
