# clinicflow/api/v1/router.py
from fastapi import APIRouter

from clinicflow.api.v1.endpoints import (
    doctor_availability,
    appointments,
    checkups,
    laboratory,
    pharmacy,
)

api_router = APIRouter()

api_router.include_router(doctor_availability.router, prefix="/doctor-availability", tags=["doctor-availability"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["appointments"])
api_router.include_router(checkups.router, prefix="/checkups", tags=["checkups"])
api_router.include_router(laboratory.router, prefix="/laboratory", tags=["laboratory"])
api_router.include_router(pharmacy.router, prefix="/pharmacy", tags=["pharmacy"])
