"""
Tests for the slot calendar resolver and schedule administration.
"""

from datetime import date, time, timedelta

import pytest

from clinicflow.schemas.appointment import AppointmentCreate
from clinicflow.schemas.schedule import DoctorScheduleUpsert
from clinicflow.services import appointment_service, schedule_service
from clinicflow.services.availability_service import (
    REASON_AVAILABLE,
    REASON_DAY_FULL,
    REASON_NO_SCHEDULE,
    REASON_OUTSIDE_SCHEDULE,
    REASON_WINDOW_FULL,
    build_time_catalog,
    resolve_availability,
)
from clinicflow.services.errors import NotFoundError, ValidationError
from clinicflow.utils.datetime_utils import clinic_day_of_week, parse_clock_time


DOCTOR = "Dr. Maria Santos"
DEPARTMENT = "General Medicine"


def _book(db, appointment_date: date, preferred_time: str, doctor_name: str = DOCTOR):
    return appointment_service.create_appointment(
        db,
        payload=AppointmentCreate(
            patient_name="Juan Dela Cruz",
            doctor_name=doctor_name,
            department_name=DEPARTMENT,
            appointment_date=appointment_date,
            preferred_time=preferred_time,
        ),
    )


class TestClinicDayOfWeek:
    def test_sunday_is_zero(self):
        assert clinic_day_of_week(date(2026, 10, 18)) == 0

    def test_saturday_is_six(self):
        assert clinic_day_of_week(date(2026, 10, 24)) == 6

    def test_parse_clock_time_drops_seconds(self):
        assert parse_clock_time("09:15:42") == time(9, 15)

    def test_parse_clock_time_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_clock_time("quarter past nine")


class TestResolveAvailability:
    def test_no_schedule(self, db, clinic_day):
        result = resolve_availability(
            db,
            doctor_name=DOCTOR,
            department_name=DEPARTMENT,
            appointment_date=clinic_day,
        )

        assert result.is_available is False
        assert result.reason == REASON_NO_SCHEDULE
        assert result.slots == []
        assert result.recommended_times == []

    def test_inactive_window_is_ignored(self, db, clinic_day, make_schedule):
        make_schedule(clinic_day, is_active=False)

        result = resolve_availability(
            db,
            doctor_name=DOCTOR,
            department_name=DEPARTMENT,
            appointment_date=clinic_day,
            preferred_time="09:15",
        )

        assert result.reason == REASON_NO_SCHEDULE

    def test_open_window_recommends_half_hour_steps(self, db, clinic_day, make_schedule):
        make_schedule(clinic_day, max_appointments=2)

        result = resolve_availability(
            db,
            doctor_name=DOCTOR,
            department_name=DEPARTMENT,
            appointment_date=clinic_day,
        )

        assert result.is_available is True
        assert result.reason == REASON_AVAILABLE
        assert result.recommended_times == ["09:00", "09:30"]
        assert len(result.slots) == 1
        assert result.slots[0].remaining_appointments == 2

    def test_window_end_is_exclusive(self, db, clinic_day, make_schedule):
        make_schedule(clinic_day)

        result = resolve_availability(
            db,
            doctor_name=DOCTOR,
            department_name=DEPARTMENT,
            appointment_date=clinic_day,
            preferred_time="10:00",
        )

        assert result.is_available is False
        assert result.reason == REASON_OUTSIDE_SCHEDULE

    def test_full_window_with_preferred_time(self, db, clinic_day, make_schedule):
        make_schedule(clinic_day)
        _book(db, clinic_day, "09:15")

        result = resolve_availability(
            db,
            doctor_name=DOCTOR,
            department_name=DEPARTMENT,
            appointment_date=clinic_day,
            preferred_time="09:30",
        )

        assert result.is_available is False
        assert result.reason == REASON_WINDOW_FULL
        assert result.slots[0].booked_appointments == 1
        assert result.slots[0].is_open is False

    def test_full_day_without_preferred_time(self, db, clinic_day, make_schedule):
        make_schedule(clinic_day)
        _book(db, clinic_day, "09:00")

        result = resolve_availability(
            db,
            doctor_name=DOCTOR,
            department_name=DEPARTMENT,
            appointment_date=clinic_day,
        )

        assert result.is_available is False
        assert result.reason == REASON_DAY_FULL
        assert result.recommended_times == []

    def test_other_window_still_open(self, db, clinic_day, make_schedule):
        make_schedule(clinic_day, "09:00", "10:00")
        make_schedule(clinic_day, "13:00", "14:00")
        _book(db, clinic_day, "09:15")

        result = resolve_availability(
            db,
            doctor_name=DOCTOR,
            department_name=DEPARTMENT,
            appointment_date=clinic_day,
            preferred_time="13:30",
        )

        assert result.is_available is True
        assert result.recommended_times == ["13:00", "13:30"]

    def test_booking_at_window_end_counts_in_next_window(self, db, clinic_day, make_schedule):
        make_schedule(clinic_day, "09:00", "10:00")
        make_schedule(clinic_day, "10:00", "11:00")
        _book(db, clinic_day, "10:00")

        result = resolve_availability(
            db,
            doctor_name=DOCTOR,
            department_name=DEPARTMENT,
            appointment_date=clinic_day,
            preferred_time="09:30",
        )

        assert result.is_available is True
        assert [(s.start_time, s.booked_appointments) for s in result.slots] == [
            (time(9, 0), 0),
            (time(10, 0), 1),
        ]

    def test_excluded_booking_does_not_count(self, db, clinic_day, make_schedule):
        make_schedule(clinic_day)
        appointment = _book(db, clinic_day, "09:15")

        result = resolve_availability(
            db,
            doctor_name=DOCTOR,
            department_name=DEPARTMENT,
            appointment_date=clinic_day,
            preferred_time="09:45",
            exclude_booking_id=appointment.booking_id,
        )

        assert result.is_available is True

    def test_invalid_preferred_time(self, db, clinic_day, make_schedule):
        make_schedule(clinic_day)

        with pytest.raises(ValidationError):
            resolve_availability(
                db,
                doctor_name=DOCTOR,
                department_name=DEPARTMENT,
                appointment_date=clinic_day,
                preferred_time="25:99",
            )

    def test_doctor_required(self, db, clinic_day):
        with pytest.raises(ValidationError, match="Doctor name is required"):
            resolve_availability(
                db,
                doctor_name="  ",
                department_name=DEPARTMENT,
                appointment_date=clinic_day,
            )


class TestTimeCatalog:
    def test_union_of_open_times(self, db, clinic_day, make_schedule):
        make_schedule(clinic_day, "09:00", "10:00")
        make_schedule(clinic_day, "09:30", "10:30", doctor_name="Dr. Ana Cruz")

        catalog = build_time_catalog(db, department_name=DEPARTMENT, appointment_date=clinic_day)

        assert [d.doctor_name for d in catalog.doctors] == ["Dr. Ana Cruz", DOCTOR]
        assert catalog.allowed_times == ["09:00", "09:30", "10:00"]

    def test_other_weekday_is_empty(self, db, clinic_day, make_schedule):
        make_schedule(clinic_day)

        catalog = build_time_catalog(
            db,
            department_name=DEPARTMENT,
            appointment_date=clinic_day + timedelta(days=1),
        )

        assert catalog.doctors == []
        assert catalog.allowed_times == []


class TestScheduleAdmin:
    def test_upsert_updates_existing_window(self, db, clinic_day, make_schedule):
        first = make_schedule(clinic_day, max_appointments=1)
        second = make_schedule(clinic_day, max_appointments=3)

        assert second.id == first.id
        assert second.max_appointments == 3
        assert len(schedule_service.list_schedules(db, doctor_name=DOCTOR)) == 1

    def test_start_must_precede_end(self, db):
        with pytest.raises(ValidationError, match="before end time"):
            schedule_service.upsert_schedule(
                db,
                payload=DoctorScheduleUpsert(
                    doctor_name=DOCTOR,
                    department_name=DEPARTMENT,
                    day_of_week=1,
                    start_time="10:00",
                    end_time="09:00",
                ),
            )

    def test_day_of_week_range(self, db):
        with pytest.raises(ValidationError, match="Day of week"):
            schedule_service.upsert_schedule(
                db,
                payload=DoctorScheduleUpsert(
                    doctor_name=DOCTOR,
                    department_name=DEPARTMENT,
                    day_of_week=7,
                    start_time="09:00",
                    end_time="10:00",
                ),
            )

    def test_list_excludes_inactive_on_request(self, db, clinic_day, make_schedule):
        make_schedule(clinic_day, "09:00", "10:00")
        make_schedule(clinic_day, "13:00", "14:00", is_active=False)

        assert len(schedule_service.list_schedules(db)) == 2
        assert len(schedule_service.list_schedules(db, include_inactive=False)) == 1

    def test_delete(self, db, clinic_day, make_schedule):
        schedule = make_schedule(clinic_day)

        schedule_service.delete_schedule(db, schedule_id=schedule.id, actor="Admin")

        assert schedule_service.list_schedules(db) == []
        with pytest.raises(NotFoundError):
            schedule_service.delete_schedule(db, schedule_id=schedule.id)
