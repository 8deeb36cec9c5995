#!/usr/bin/env python3
# scripts/seed_demo_data.py
"""
Clinic demo data seeder.

Seeds, through the same services the API uses:
- weekly schedules for a handful of doctors (Mon-Fri mornings, Sat half-day)
- a pharmacy catalogue with opening stock (written as ledger movements)
- a few check-up visits and laboratory requests

Schedules are upserts and medicines are skipped when their SKU exists, so
running --seed twice is safe.

Run:
  python -m scripts.seed_demo_data --seed
"""
from __future__ import annotations

import argparse
import logging
from datetime import date, timedelta

from sqlalchemy.orm import Session

from clinicflow.core.database import session_scope
from clinicflow.models.stock import Medicine
from clinicflow.schemas.lab import LabRequestCreate
from clinicflow.schemas.schedule import DoctorScheduleUpsert
from clinicflow.schemas.stock import MedicineCreate
from clinicflow.schemas.visit import VisitCreate
from clinicflow.models.visit import VisitSource
from clinicflow.services import lab_service, schedule_service, stock_service, visit_service

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

DEMO_ACTOR = "Demo Seeder"

# doctor, department, [(day_of_week, start, end, max_appointments)]
DEMO_SCHEDULES: list[tuple[str, str, list[tuple[int, str, str, int]]]] = [
    (
        "Dr. Maria Santos",
        "General Medicine",
        [(d, "09:00", "12:00", 6) for d in range(1, 6)] + [(6, "09:00", "11:00", 4)],
    ),
    (
        "Dr. Paolo Reyes",
        "Pediatrics",
        [(d, "13:00", "16:00", 5) for d in (1, 3, 5)],
    ),
    (
        "Dr. Ana Cruz",
        "General Medicine",
        [(d, "14:00", "17:00", 4) for d in (2, 4)],
    ),
]

DEMO_MEDICINES: list[dict] = [
    {
        "sku": "MED-PARA-500",
        "medicine_name": "Paracetamol 500mg",
        "generic_name": "Paracetamol",
        "category": "Analgesic",
        "dosage_strength": "500 mg",
        "unit_of_measure": "tablet",
        "stock_on_hand": 400,
        "stock_capacity": 1000,
        "reorder_level": 100,
        "expiry_days": 365,
    },
    {
        "sku": "MED-AMOX-500",
        "medicine_name": "Amoxicillin 500mg",
        "generic_name": "Amoxicillin",
        "category": "Antibiotic",
        "dosage_strength": "500 mg",
        "unit_of_measure": "capsule",
        "stock_on_hand": 60,
        "stock_capacity": 500,
        "reorder_level": 80,
        "expiry_days": 200,
    },
    {
        "sku": "MED-ORS-SACHET",
        "medicine_name": "Oral Rehydration Salts",
        "category": "Electrolyte",
        "unit_of_measure": "sachet",
        "stock_on_hand": 120,
        "stock_capacity": 300,
        "reorder_level": 30,
        "expiry_days": 20,
    },
]


def seed_schedules(db: Session) -> int:
    count = 0
    for doctor_name, department_name, windows in DEMO_SCHEDULES:
        for day_of_week, start, end, max_appointments in windows:
            schedule_service.upsert_schedule(
                db,
                payload=DoctorScheduleUpsert(
                    doctor_name=doctor_name,
                    department_name=department_name,
                    day_of_week=day_of_week,
                    start_time=start,
                    end_time=end,
                    max_appointments=max_appointments,
                    actor=DEMO_ACTOR,
                ),
            )
            count += 1
    return count


def seed_medicines(db: Session, today: date) -> int:
    count = 0
    for item in DEMO_MEDICINES:
        if db.query(Medicine.id).filter(Medicine.sku == item["sku"]).first():
            logger.info("Medicine %s already present, skipping", item["sku"])
            continue
        fields = {k: v for k, v in item.items() if k != "expiry_days"}
        stock_service.create_medicine(
            db,
            payload=MedicineCreate(
                **fields,
                expiry_date=today + timedelta(days=item["expiry_days"]),
                actor=DEMO_ACTOR,
            ),
        )
        count += 1
    return count


def seed_workflows(db: Session) -> None:
    visit = visit_service.create_visit(
        db,
        payload=VisitCreate(
            patient_name="Juan Dela Cruz",
            source=VisitSource.APPOINTMENT_CONFIRMED,
            chief_complaint="Fever for three days",
        ),
    )
    visit_service.create_visit(
        db,
        payload=VisitCreate(
            patient_name="Lea Bautista",
            source=VisitSource.WALKIN_TRIAGE_COMPLETED,
            chief_complaint="Shortness of breath",
            is_emergency=True,
        ),
    )
    lab_service.create_lab_request(
        db,
        payload=LabRequestCreate(
            patient_name=visit.patient_name,
            visit_code=visit.visit_code,
            category="Hematology",
            requested_by_doctor="Dr. Maria Santos",
            tests=["Complete Blood Count", "Platelet Count"],
        ),
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed clinic demo data")
    parser.add_argument("--seed", action="store_true", help="Seed schedules, medicines and sample workflows")
    parser.add_argument("--skip-workflows", action="store_true", help="Only seed schedules and medicines")
    args = parser.parse_args()

    if not args.seed:
        parser.print_help()
        raise SystemExit(1)

    today = date.today()
    with session_scope() as db:
        schedules = seed_schedules(db)
        medicines = seed_medicines(db, today)
        if not args.skip_workflows:
            seed_workflows(db)

    logger.info("Seed done: %s schedule windows, %s new medicines", schedules, medicines)


if __name__ == "__main__":
    main()
