# clinicflow/api/v1/endpoints/laboratory.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from clinicflow.core.database import get_db
from clinicflow.schemas.lab import (
    LabActionRequest,
    LabActivityResponse,
    LabRequestCreate,
    LabRequestResponse,
)
from clinicflow.services import lab_service

router = APIRouter()


@router.post("", response_model=LabRequestResponse, status_code=status.HTTP_201_CREATED)
def create_lab_request(
    payload: LabRequestCreate,
    db: Session = Depends(get_db),
) -> LabRequestResponse:
    request = lab_service.create_lab_request(db, payload=payload)
    return LabRequestResponse.model_validate(request)


@router.get("", response_model=list[LabRequestResponse])
def list_lab_queue(
    search: Optional[str] = Query(None),
    status_group: Optional[str] = Query(
        None,
        alias="status",
        description="pending, in_progress, completed, cancelled or all",
    ),
    category: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    doctor: Optional[str] = Query(None),
    db: Session = Depends(get_db),
) -> list[LabRequestResponse]:
    requests = lab_service.list_lab_queue(
        db,
        search=search,
        status=status_group,
        category=category,
        priority=priority,
        doctor=doctor,
    )
    return [LabRequestResponse.model_validate(r) for r in requests]


@router.get("/{request_id}", response_model=LabRequestResponse)
def get_lab_request(
    request_id: UUID,
    db: Session = Depends(get_db),
) -> LabRequestResponse:
    request = lab_service.get_lab_request(db, request_id=request_id)
    return LabRequestResponse.model_validate(request)


@router.get("/{request_id}/activity", response_model=list[LabActivityResponse])
def list_lab_activity(
    request_id: UUID,
    db: Session = Depends(get_db),
) -> list[LabActivityResponse]:
    entries = lab_service.list_lab_activity(db, request_id=request_id)
    return [LabActivityResponse.model_validate(e) for e in entries]


@router.post("/{request_id}/actions", response_model=LabRequestResponse)
def apply_lab_action(
    request_id: UUID,
    payload: LabActionRequest,
    db: Session = Depends(get_db),
) -> LabRequestResponse:
    request = lab_service.apply_lab_action(db, request_id=request_id, payload=payload)
    return LabRequestResponse.model_validate(request)
