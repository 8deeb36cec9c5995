# clinicflow/schemas/visit.py
from datetime import date, datetime
from enum import Enum as PyEnum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from clinicflow.models.visit import VisitSource, VisitStatus


class VisitAction(str, PyEnum):
    QUEUE = "queue"
    ASSIGN_DOCTOR = "assign_doctor"
    START_CONSULTATION = "start_consultation"
    SAVE_CONSULTATION = "save_consultation"
    REQUEST_LAB = "request_lab"
    MARK_LAB_READY = "mark_lab_ready"
    SEND_PHARMACY = "send_pharmacy"
    MARK_DISPENSED = "mark_dispensed"
    COMPLETE = "complete"
    ARCHIVE = "archive"
    REOPEN = "reopen"
    ESCALATE_EMERGENCY = "escalate_emergency"


class VisitCreate(BaseModel):
    patient_name: str
    source: VisitSource = VisitSource.WAITING_FOR_DOCTOR
    chief_complaint: str | None = None
    is_emergency: bool = False


class VisitActionRequest(BaseModel):
    """
    One state-machine action against a check-up visit.

    expected_version: the version the caller last saw; when it no longer
    matches, the action is rejected with a conflict.
    """

    action: VisitAction
    expected_version: int | None = Field(default=None, ge=1)
    assigned_doctor: str | None = None
    diagnosis: str | None = None
    clinical_notes: str | None = None
    follow_up_date: date | None = None


class VisitResponse(BaseModel):
    id: UUID
    visit_code: str
    patient_name: str
    source: VisitSource
    status: VisitStatus
    chief_complaint: str | None = None
    assigned_doctor: str | None = None
    diagnosis: str | None = None
    clinical_notes: str | None = None
    consultation_started_at: datetime | None = None
    follow_up_date: date | None = None
    lab_requested: bool
    lab_result_ready: bool
    prescription_created: bool
    prescription_dispensed: bool
    is_emergency: bool
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class VisitListResponse(BaseModel):
    items: list[VisitResponse]
    total: int
    page: int
    page_size: int
