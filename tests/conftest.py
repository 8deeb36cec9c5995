"""
Shared pytest fixtures.

Every test gets a fresh in-memory SQLite database built from the model
metadata. StaticPool keeps the single connection alive across sessions and
across the TestClient's worker thread.
"""

import os

# Settings are read at import time by clinicflow.core.database.
os.environ["DATABASE_URL"] = "sqlite://"

from datetime import date, timedelta  # noqa: E402
from typing import Generator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from clinicflow.core.database import enable_sqlite_write_locks, get_db  # noqa: E402
from clinicflow.main import app  # noqa: E402
from clinicflow.models.all_models import Base  # noqa: E402
from clinicflow.schemas.schedule import DoctorScheduleUpsert  # noqa: E402
from clinicflow.services import schedule_service  # noqa: E402
from clinicflow.utils.datetime_utils import clinic_day_of_week  # noqa: E402

DOCTOR = "Dr. Maria Santos"
DEPARTMENT = "General Medicine"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_write_locks(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """
    File-backed SQLite with a real connection pool, for tests that run
    several sessions on separate threads.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'clinic.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    enable_sqlite_write_locks(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine) -> Generator[Session, None, None]:
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db: Session) -> Generator[TestClient, None, None]:
    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def clinic_day() -> date:
    """A Monday in the future; schedules in tests are keyed to its weekday."""
    day = date.today() + timedelta(days=7)
    while day.weekday() != 0:
        day += timedelta(days=1)
    return day


@pytest.fixture
def make_schedule(db: Session):
    def _make(
        appointment_date: date,
        start_time: str = "09:00",
        end_time: str = "10:00",
        max_appointments: int = 1,
        doctor_name: str = DOCTOR,
        department_name: str = DEPARTMENT,
        is_active: bool = True,
    ):
        return schedule_service.upsert_schedule(
            db,
            payload=DoctorScheduleUpsert(
                doctor_name=doctor_name,
                department_name=department_name,
                day_of_week=clinic_day_of_week(appointment_date),
                start_time=start_time,
                end_time=end_time,
                max_appointments=max_appointments,
                is_active=is_active,
            ),
        )

    return _make
