# clinicflow/schemas/lab.py
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from clinicflow.models.lab import LabPriority, LabStatus


class LabAction(str, PyEnum):
    START_PROCESSING = "start_processing"
    SAVE_RESULTS = "save_results"
    RELEASE = "release"
    REJECT = "reject"


class LabRequestCreate(BaseModel):
    """
    New laboratory request. ``priority`` is a plain string here so an
    unknown value is reported by the service as a validation error.
    """

    patient_name: str
    category: str
    requested_by_doctor: str
    priority: str = LabPriority.NORMAL.value
    visit_code: str | None = None
    tests: list[str] = []
    notes: str | None = None


class LabActionRequest(BaseModel):
    action: LabAction
    actor: str | None = None

    # start_processing
    lab_staff: str | None = None
    sample_collected: bool = False
    sample_collected_at: datetime | None = None
    specimen_type: str | None = None
    processing_started_at: datetime | None = None

    # save_results
    encoded_values: dict[str, Any] | None = None
    summary: str | None = None
    attachment_name: str | None = None
    finalize: bool = False
    result_encoded_at: datetime | None = None
    verified_by: str | None = None

    # release
    released_at: datetime | None = None

    # reject
    reason: str | None = None
    resample: bool = False


class LabRequestResponse(BaseModel):
    id: UUID
    visit_code: str | None = None
    patient_name: str
    category: str
    priority: LabPriority
    status: LabStatus
    requested_by_doctor: str
    tests: list[str]
    notes: str | None = None
    assigned_lab_staff: str | None = None
    sample_collected: bool
    sample_collected_at: datetime | None = None
    specimen_type: str | None = None
    processing_started_at: datetime | None = None
    encoded_values: dict[str, Any]
    result_summary: str | None = None
    attachment_name: str | None = None
    result_encoded_at: datetime | None = None
    verified_by: str | None = None
    verified_at: datetime | None = None
    released_by: str | None = None
    released_at: datetime | None = None
    rejection_reason: str | None = None
    resample_flag: bool
    requested_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LabActivityResponse(BaseModel):
    id: int
    request_id: UUID
    action: str
    details: str
    actor: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
