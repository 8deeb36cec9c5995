import secrets
import string
from datetime import date

from sqlalchemy.orm import Session

from clinicflow.models.visit import CheckupVisit

_BOOKING_ALPHABET = string.ascii_uppercase + string.digits


def generate_booking_id(appointment_date: date) -> str:
    """
    Generate a booking reference in format: APT-{yyyymmdd}-{random}

    Where:
    - {yyyymmdd} = the appointment date
    - {random} = 6 uppercase alphanumerics

    Example: APT-20260314-7KQ2ZD

    Uniqueness is enforced by the unique index on appointments.booking_id;
    a collision surfaces as an integrity error at insert time.
    """
    suffix = "".join(secrets.choice(_BOOKING_ALPHABET) for _ in range(6))
    return f"APT-{appointment_date:%Y%m%d}-{suffix}"


def generate_visit_code(db: Session, year: int) -> str:
    """
    Generate a check-up visit code in format: VISIT-{year}-{sequential}

    Where:
    - {year} = calendar year of intake
    - {sequential} = sequential number (zero-padded to 4 digits)

    Example: VISIT-2026-0001, VISIT-2026-0002, etc.
    """
    prefix = f"VISIT-{year}-"

    # Query for existing codes with this prefix
    existing_codes = (
        db.query(CheckupVisit.visit_code)
        .filter(CheckupVisit.visit_code.like(f"{prefix}%"))
        .all()
    )

    # Extract sequence numbers
    max_seq = 0
    for (code,) in existing_codes:
        if code and code.startswith(prefix):
            try:
                seq_num = int(code[len(prefix) :])
                max_seq = max(max_seq, seq_num)
            except ValueError:
                continue

    # Increment and format
    next_seq = max_seq + 1
    return f"{prefix}{next_seq:04d}"
