# clinicflow/models/all_models.py
"""
Import every ORM model so Base.metadata is complete.

Used by Alembic autogenerate and by the test database bootstrap.
"""

from clinicflow.models.appointment import Appointment
from clinicflow.models.base import Base
from clinicflow.models.lab import LabActivityLog, LabRequest
from clinicflow.models.schedule import DoctorSchedule
from clinicflow.models.stock import DispenseRequest, Medicine, PharmacyLog, StockMovement
from clinicflow.models.visit import CheckupVisit

__all__ = [
    "Appointment",
    "Base",
    "CheckupVisit",
    "DispenseRequest",
    "DoctorSchedule",
    "LabActivityLog",
    "LabRequest",
    "Medicine",
    "PharmacyLog",
    "StockMovement",
]
