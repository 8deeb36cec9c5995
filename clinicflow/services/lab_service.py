# clinicflow/services/lab_service.py
"""
Laboratory request state machine.

Pending -> In Progress -> Result Ready -> Completed, with Cancelled
reachable from any non-terminal status. Each accepted step writes the
request and one activity-log row in the same transaction.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum as PyEnum
from typing import Callable
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinicflow.models.lab import LabActivityLog, LabPriority, LabRequest, LabStatus
from clinicflow.schemas.lab import LabAction, LabActionRequest, LabRequestCreate
from clinicflow.services.errors import (
    ClinicError,
    NotFoundError,
    StateTransitionError,
    ValidationError,
)
from clinicflow.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)

DEFAULT_ACTOR = "Lab Staff"


class LabStep(str, PyEnum):
    """
    Internal transition keys. ``save_results`` splits in two depending on
    ``finalize`` so that each key has exactly one target status.
    """

    START_PROCESSING = "start_processing"
    SAVE_DRAFT = "save_draft"
    FINALIZE_RESULTS = "finalize_results"
    RELEASE = "release"
    REJECT = "reject"


_OPEN_STATUSES = tuple(s for s in LabStatus if not s.is_terminal)

_TRANSITION_RULES: list[tuple[LabStep, tuple[LabStatus, ...], LabStatus]] = [
    (LabStep.START_PROCESSING, (LabStatus.PENDING,), LabStatus.IN_PROGRESS),
    (LabStep.SAVE_DRAFT, (LabStatus.IN_PROGRESS,), LabStatus.IN_PROGRESS),
    (LabStep.FINALIZE_RESULTS, (LabStatus.IN_PROGRESS,), LabStatus.RESULT_READY),
    (LabStep.RELEASE, (LabStatus.RESULT_READY,), LabStatus.COMPLETED),
    (LabStep.REJECT, _OPEN_STATUSES, LabStatus.CANCELLED),
]

TRANSITIONS: dict[tuple[LabStatus, LabStep], LabStatus] = {
    (source, step): target
    for step, sources, target in _TRANSITION_RULES
    for source in sources
}


def _step_for(payload: LabActionRequest) -> LabStep:
    if payload.action == LabAction.SAVE_RESULTS:
        return LabStep.FINALIZE_RESULTS if payload.finalize else LabStep.SAVE_DRAFT
    return LabStep(payload.action.value)


def required_sources(step: LabStep) -> list[LabStatus]:
    allowed = {source for (source, s) in TRANSITIONS if s == step}
    return [s for s in LabStatus if s in allowed]


@dataclass
class _Effect:
    changes: dict
    log_action: str
    log_details: str
    actor: str


def _actor(payload: LabActionRequest, *fallbacks: str | None) -> str:
    for candidate in (payload.actor, *fallbacks):
        if candidate and candidate.strip():
            return candidate.strip()
    return DEFAULT_ACTOR


# -------------------------
# Guards / effects
# -------------------------
def _start_processing(request: LabRequest, payload: LabActionRequest) -> _Effect:
    staff = (payload.lab_staff or "").strip() or request.assigned_lab_staff
    now = utc_now()
    changes = {
        "assigned_lab_staff": staff,
        "sample_collected": payload.sample_collected,
        "sample_collected_at": (payload.sample_collected_at or now) if payload.sample_collected else None,
        "processing_started_at": payload.processing_started_at or now,
    }
    if payload.specimen_type is not None:
        changes["specimen_type"] = payload.specimen_type.strip() or None

    details = (
        "Sample collected and processing started."
        if payload.sample_collected
        else "Processing started; sample not yet collected."
    )
    return _Effect(changes, "Processing Started", details, _actor(payload, staff))


def _result_changes(request: LabRequest, payload: LabActionRequest) -> dict:
    changes: dict = {}
    if payload.encoded_values is not None:
        changes["encoded_values"] = dict(payload.encoded_values)
    if payload.summary is not None:
        changes["result_summary"] = payload.summary.strip() or None
    if payload.attachment_name and payload.attachment_name.strip():
        changes["attachment_name"] = payload.attachment_name.strip()
    return changes


def _save_draft(request: LabRequest, payload: LabActionRequest) -> _Effect:
    changes = _result_changes(request, payload)
    details = (payload.summary or "").strip() or "Encoded result draft saved."
    return _Effect(changes, "Draft Saved", details, _actor(payload, request.assigned_lab_staff))


def _finalize_results(request: LabRequest, payload: LabActionRequest) -> _Effect:
    changes = _result_changes(request, payload)
    verifier = (payload.verified_by or "").strip() or _actor(payload, request.assigned_lab_staff)

    changes["result_encoded_at"] = payload.result_encoded_at or utc_now()
    changes["verified_by"] = verifier
    changes["verified_at"] = utc_now()

    details = (payload.summary or "").strip() or "Result is now ready for release."
    return _Effect(changes, "Result Finalized", details, verifier)


def _release(request: LabRequest, payload: LabActionRequest) -> _Effect:
    releaser = _actor(payload)
    changes = {
        "released_at": payload.released_at or utc_now(),
        "released_by": releaser,
    }
    return _Effect(changes, "Report Released", "Lab report released to doctor/check-up.", releaser)


def _reject(request: LabRequest, payload: LabActionRequest) -> _Effect:
    reason = (payload.reason or "").strip()
    if not reason:
        raise ValidationError("A rejection reason is required.")

    changes = {"rejection_reason": reason, "resample_flag": payload.resample}
    details = f"{reason} (resample requested)" if payload.resample else reason
    return _Effect(changes, "Request Rejected", details, _actor(payload, request.assigned_lab_staff))


STEP_EFFECTS: dict[LabStep, Callable[[LabRequest, LabActionRequest], _Effect]] = {
    LabStep.START_PROCESSING: _start_processing,
    LabStep.SAVE_DRAFT: _save_draft,
    LabStep.FINALIZE_RESULTS: _finalize_results,
    LabStep.RELEASE: _release,
    LabStep.REJECT: _reject,
}


def _add_log(db: Session, *, request_id: UUID, action: str, details: str, actor: str) -> LabActivityLog:
    entry = LabActivityLog(
        request_id=request_id,
        action=action,
        details=details,
        actor=actor,
        created_at=utc_now(),
    )
    db.add(entry)
    return entry


# -------------------------
# Operations
# -------------------------
def parse_priority(value: str | LabPriority | None) -> LabPriority:
    if isinstance(value, LabPriority):
        return value
    lowered = (value or LabPriority.NORMAL.value).strip().lower()
    for member in LabPriority:
        if member.value.lower() == lowered:
            return member
    allowed = ", ".join(p.value for p in LabPriority)
    raise ValidationError(f"Invalid priority '{value}'. Expected one of: {allowed}.")


def get_lab_request(db: Session, *, request_id: UUID) -> LabRequest:
    request = (
        db.query(LabRequest)
        .populate_existing()
        .filter(LabRequest.id == request_id)
        .first()
    )
    if not request:
        raise NotFoundError("Laboratory request not found.")
    return request


def create_lab_request(db: Session, *, payload: LabRequestCreate) -> LabRequest:
    errors: list[str] = []
    if not payload.patient_name.strip():
        errors.append("Patient name is required")
    if not payload.category.strip():
        errors.append("Category is required")
    if not payload.requested_by_doctor.strip():
        errors.append("Requesting doctor is required")
    if errors:
        raise ValidationError("; ".join(errors))

    priority = parse_priority(payload.priority)
    tests = [t.strip() for t in payload.tests if t and t.strip()]

    try:
        request = LabRequest(
            visit_code=(payload.visit_code or "").strip() or None,
            patient_name=payload.patient_name.strip(),
            category=payload.category.strip(),
            priority=priority,
            requested_by_doctor=payload.requested_by_doctor.strip(),
            tests=tests,
            notes=(payload.notes or "").strip() or None,
            status=LabStatus.PENDING,
            encoded_values={},
        )
        db.add(request)
        db.flush()
        _add_log(
            db,
            request_id=request.id,
            action="Request Created",
            details="Doctor submitted a new laboratory request.",
            actor=request.requested_by_doctor,
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info("Lab request created id=%s category=%s priority=%s", request.id, request.category, priority.value)
    db.refresh(request)
    return request


def list_lab_queue(
    db: Session,
    *,
    search: str | None = None,
    status: str | None = None,
    category: str | None = None,
    priority: str | None = None,
    doctor: str | None = None,
) -> list[LabRequest]:
    """
    Queue view. ``status`` is a group: pending, in_progress (In Progress
    and Result Ready), completed, cancelled, or all.
    """
    query = db.query(LabRequest)

    group = (status or "").strip().lower()
    if group == "pending":
        query = query.filter(LabRequest.status == LabStatus.PENDING)
    elif group == "in_progress":
        query = query.filter(LabRequest.status.in_([LabStatus.IN_PROGRESS, LabStatus.RESULT_READY]))
    elif group == "completed":
        query = query.filter(LabRequest.status == LabStatus.COMPLETED)
    elif group == "cancelled":
        query = query.filter(LabRequest.status == LabStatus.CANCELLED)

    if category and category.strip() and category.strip().lower() != "all":
        query = query.filter(LabRequest.category.ilike(category.strip()))
    if priority and priority.strip() and priority.strip().lower() != "all":
        query = query.filter(LabRequest.priority == parse_priority(priority))
    if doctor and doctor.strip() and doctor.strip().lower() != "all":
        query = query.filter(LabRequest.requested_by_doctor.ilike(doctor.strip()))
    if search and search.strip():
        term = f"%{search.strip()}%"
        query = query.filter(
            or_(
                LabRequest.patient_name.ilike(term),
                LabRequest.visit_code.ilike(term),
                LabRequest.category.ilike(term),
                LabRequest.requested_by_doctor.ilike(term),
            )
        )

    return query.order_by(LabRequest.requested_at.desc()).all()


def list_lab_activity(db: Session, *, request_id: UUID) -> list[LabActivityLog]:
    """Activity for one request, oldest first (audit replay order)."""
    get_lab_request(db, request_id=request_id)
    return (
        db.query(LabActivityLog)
        .filter(LabActivityLog.request_id == request_id)
        .order_by(LabActivityLog.created_at.asc(), LabActivityLog.id.asc())
        .all()
    )


def apply_lab_action(db: Session, *, request_id: UUID, payload: LabActionRequest) -> LabRequest:
    """
    Validate the action against the request's current status and apply it.

    Raises:
        NotFoundError: unknown request
        StateTransitionError: action not allowed from the current status
        ValidationError: the action's guard rejected the payload
    """
    step = _step_for(payload)

    try:
        request = (
            db.query(LabRequest)
            .populate_existing()
            .filter(LabRequest.id == request_id)
            .with_for_update()
            .first()
        )
        if not request:
            raise NotFoundError("Laboratory request not found.")

        current = request.status
        if (current, step) not in TRANSITIONS:
            if step == LabStep.RELEASE and current == LabStatus.COMPLETED:
                raise StateTransitionError("Lab report has already been released.")
            if current.is_terminal:
                raise StateTransitionError(f"Laboratory request is already {current.value}. No further actions are allowed.")
            allowed = " or ".join(s.value for s in required_sources(step))
            raise StateTransitionError(
                f"Action '{payload.action.value}' requires status {allowed}; current status is {current.value}."
            )

        effect = STEP_EFFECTS[step](request, payload)
        for field, value in effect.changes.items():
            setattr(request, field, value)
        request.status = TRANSITIONS[(current, step)]

        _add_log(
            db,
            request_id=request.id,
            action=effect.log_action,
            details=effect.log_details,
            actor=effect.actor,
        )
        db.commit()
    except ClinicError:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info(
        "Lab action applied id=%s action=%s %s -> %s actor=%s",
        request_id,
        step.value,
        current.value,
        request.status.value,
        effect.actor,
    )
    db.refresh(request)
    return request
