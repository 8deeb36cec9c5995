# clinicflow/services/visit_service.py
"""
Check-up visit state machine.

The allowed moves live in one table keyed by (current status, action).
A guard/effect function per action validates the payload and returns the
column changes; the write itself is a compare-and-swap on ``version``.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Callable
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinicflow.models.visit import CheckupVisit, VisitStatus
from clinicflow.schemas.visit import VisitAction, VisitActionRequest, VisitCreate
from clinicflow.services.errors import (
    ClinicError,
    ConflictError,
    NotFoundError,
    StateTransitionError,
    ValidationError,
)
from clinicflow.utils.datetime_utils import utc_now
from clinicflow.utils.id_generators import generate_visit_code

logger = logging.getLogger(__name__)

S = VisitStatus
A = VisitAction

# (action, allowed source statuses, target status or None for "unchanged")
_TRANSITION_RULES: list[tuple[VisitAction, tuple[VisitStatus, ...], VisitStatus | None]] = [
    (A.QUEUE, (S.INTAKE,), S.QUEUE),
    (A.ASSIGN_DOCTOR, (S.QUEUE,), S.DOCTOR_ASSIGNED),
    (A.ASSIGN_DOCTOR, (S.DOCTOR_ASSIGNED, S.IN_CONSULTATION), None),
    (A.START_CONSULTATION, (S.DOCTOR_ASSIGNED, S.QUEUE), S.IN_CONSULTATION),
    (A.SAVE_CONSULTATION, (S.IN_CONSULTATION, S.LAB_REQUESTED), None),
    (A.REQUEST_LAB, (S.IN_CONSULTATION, S.DOCTOR_ASSIGNED), S.LAB_REQUESTED),
    (A.MARK_LAB_READY, (S.LAB_REQUESTED,), S.IN_CONSULTATION),
    (A.SEND_PHARMACY, (S.IN_CONSULTATION, S.DOCTOR_ASSIGNED), S.PHARMACY),
    (A.MARK_DISPENSED, (S.PHARMACY,), None),
    (A.COMPLETE, (S.IN_CONSULTATION, S.PHARMACY), S.COMPLETED),
    (A.ARCHIVE, (S.COMPLETED,), S.ARCHIVED),
    (A.REOPEN, (S.COMPLETED, S.ARCHIVED), S.IN_CONSULTATION),
    (A.ESCALATE_EMERGENCY, tuple(s for s in S if s != S.ARCHIVED), S.IN_CONSULTATION),
]

TRANSITIONS: dict[tuple[VisitStatus, VisitAction], VisitStatus | None] = {
    (source, action): target
    for action, sources, target in _TRANSITION_RULES
    for source in sources
}


def required_sources(action: VisitAction) -> list[VisitStatus]:
    """Statuses from which ``action`` is allowed, in lifecycle order."""
    allowed = {source for (source, act) in TRANSITIONS if act == action}
    return [s for s in S if s in allowed]


def _clean(value: str | None) -> str:
    return (value or "").strip()


# -------------------------
# Guards / effects
# -------------------------
def _no_changes(visit: CheckupVisit, payload: VisitActionRequest) -> dict:
    return {}


def _assign_doctor(visit: CheckupVisit, payload: VisitActionRequest) -> dict:
    doctor = _clean(payload.assigned_doctor)
    if not doctor:
        raise ValidationError("Assigned doctor is required.")
    return {"assigned_doctor": doctor}


def _start_consultation(visit: CheckupVisit, payload: VisitActionRequest) -> dict:
    changes: dict = {"consultation_started_at": visit.consultation_started_at or utc_now()}
    doctor = _clean(payload.assigned_doctor)
    if doctor:
        changes["assigned_doctor"] = doctor
    return changes


def _consultation_fields(visit: CheckupVisit, payload: VisitActionRequest, message: str) -> dict:
    diagnosis = _clean(payload.diagnosis) or _clean(visit.diagnosis)
    notes = _clean(payload.clinical_notes) or _clean(visit.clinical_notes)
    if not diagnosis or not notes:
        raise ValidationError(message)

    changes: dict = {"diagnosis": diagnosis, "clinical_notes": notes}
    if payload.follow_up_date is not None:
        changes["follow_up_date"] = payload.follow_up_date
    return changes


def _save_consultation(visit: CheckupVisit, payload: VisitActionRequest) -> dict:
    return _consultation_fields(visit, payload, "Diagnosis and clinical notes are required.")


def _request_lab(visit: CheckupVisit, payload: VisitActionRequest) -> dict:
    return {"lab_requested": True, "lab_result_ready": False}


def _mark_lab_ready(visit: CheckupVisit, payload: VisitActionRequest) -> dict:
    return {"lab_result_ready": True}


def _send_pharmacy(visit: CheckupVisit, payload: VisitActionRequest) -> dict:
    return {"prescription_created": True}


def _mark_dispensed(visit: CheckupVisit, payload: VisitActionRequest) -> dict:
    return {"prescription_dispensed": True}


def _complete(visit: CheckupVisit, payload: VisitActionRequest) -> dict:
    changes = _consultation_fields(
        visit,
        payload,
        "Diagnosis and clinical notes are required before completing the visit.",
    )
    if visit.lab_requested and not visit.lab_result_ready:
        raise ValidationError("Lab result must be ready before completing the visit.")
    return changes


def _escalate_emergency(visit: CheckupVisit, payload: VisitActionRequest) -> dict:
    return {"is_emergency": True}


ACTION_EFFECTS: dict[VisitAction, Callable[[CheckupVisit, VisitActionRequest], dict]] = {
    A.QUEUE: _no_changes,
    A.ASSIGN_DOCTOR: _assign_doctor,
    A.START_CONSULTATION: _start_consultation,
    A.SAVE_CONSULTATION: _save_consultation,
    A.REQUEST_LAB: _request_lab,
    A.MARK_LAB_READY: _mark_lab_ready,
    A.SEND_PHARMACY: _send_pharmacy,
    A.MARK_DISPENSED: _mark_dispensed,
    A.COMPLETE: _complete,
    A.ARCHIVE: _no_changes,
    A.REOPEN: _no_changes,
    A.ESCALATE_EMERGENCY: _escalate_emergency,
}


# -------------------------
# Storage primitive
# -------------------------
def compare_and_swap(db: Session, *, visit_id: UUID, expected_version: int, changes: dict) -> None:
    """
    Apply ``changes`` and bump the version, only if the stored version is
    still ``expected_version``. Does NOT commit.

    Raises:
        ConflictError: another writer got there first
    """
    values = dict(changes)
    values["version"] = expected_version + 1
    values["updated_at"] = utc_now()

    affected = (
        db.query(CheckupVisit)
        .filter(CheckupVisit.id == visit_id, CheckupVisit.version == expected_version)
        .update(values, synchronize_session=False)
    )
    if affected != 1:
        raise ConflictError("This visit was updated by another user, refresh and try again.")


# -------------------------
# Operations
# -------------------------
def get_visit(db: Session, *, visit_id: UUID) -> CheckupVisit:
    visit = (
        db.query(CheckupVisit)
        .populate_existing()
        .filter(CheckupVisit.id == visit_id)
        .first()
    )
    if not visit:
        raise NotFoundError("Check-up visit not found.")
    return visit


def list_visits(
    db: Session,
    *,
    search: str | None = None,
    status: VisitStatus | None = None,
    page: int = 1,
    page_size: int = 10,
) -> tuple[list[CheckupVisit], int]:
    query = db.query(CheckupVisit)

    if search and search.strip():
        term = f"%{search.strip()}%"
        query = query.filter(
            or_(
                CheckupVisit.visit_code.ilike(term),
                CheckupVisit.patient_name.ilike(term),
                CheckupVisit.assigned_doctor.ilike(term),
                CheckupVisit.chief_complaint.ilike(term),
            )
        )
    if status is not None:
        query = query.filter(CheckupVisit.status == status)

    total = query.count()
    items = (
        query.order_by(CheckupVisit.is_emergency.desc(), CheckupVisit.updated_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return items, total


def create_visit(db: Session, *, payload: VisitCreate, today: date | None = None) -> CheckupVisit:
    """Open a visit at intake, version 1."""
    patient_name = _clean(payload.patient_name)
    if not patient_name:
        raise ValidationError("Patient name is required.")

    year = (today or utc_now().date()).year
    try:
        visit = CheckupVisit(
            visit_code=generate_visit_code(db, year),
            patient_name=patient_name,
            source=payload.source,
            chief_complaint=_clean(payload.chief_complaint) or None,
            is_emergency=payload.is_emergency,
            status=VisitStatus.INTAKE,
            version=1,
        )
        db.add(visit)
        db.flush()
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Another intake took this visit code at the same time, retry.") from exc
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info("Check-up visit opened visit_code=%s emergency=%s", visit.visit_code, visit.is_emergency)
    db.refresh(visit)
    return visit


def apply_visit_action(db: Session, *, visit_id: UUID, payload: VisitActionRequest) -> CheckupVisit:
    """
    Validate ``payload.action`` against the visit's current status and apply it.

    Raises:
        NotFoundError: unknown visit
        ConflictError: expected_version is stale, or a concurrent writer won
        StateTransitionError: action not allowed from the current status
        ValidationError: the action's guard rejected the payload
    """
    visit = get_visit(db, visit_id=visit_id)
    action = payload.action
    current = visit.status
    loaded_version = visit.version

    try:
        if payload.expected_version is not None and payload.expected_version != loaded_version:
            raise ConflictError("This visit was updated by another user, refresh and try again.")

        if (current, action) not in TRANSITIONS:
            if action == A.ESCALATE_EMERGENCY and current == S.ARCHIVED:
                raise StateTransitionError("Archived visits cannot be escalated.")
            allowed = " or ".join(s.value for s in required_sources(action))
            raise StateTransitionError(
                f"Action '{action.value}' requires status {allowed}; current status is {current.value}."
            )

        target = TRANSITIONS[(current, action)]
        changes = ACTION_EFFECTS[action](visit, payload)
        if target is not None:
            changes["status"] = target

        compare_and_swap(db, visit_id=visit.id, expected_version=loaded_version, changes=changes)
        db.commit()
    except ClinicError:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        raise

    visit = get_visit(db, visit_id=visit_id)
    logger.info(
        "Check-up action applied visit=%s action=%s %s -> %s version=%s",
        visit.visit_code,
        action.value,
        current.value,
        visit.status.value,
        visit.version,
    )
    return visit
