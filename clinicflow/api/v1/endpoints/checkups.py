# clinicflow/api/v1/endpoints/checkups.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from clinicflow.core.config import get_settings
from clinicflow.core.database import get_db
from clinicflow.models.visit import VisitStatus
from clinicflow.schemas.visit import (
    VisitActionRequest,
    VisitCreate,
    VisitListResponse,
    VisitResponse,
)
from clinicflow.services import visit_service

router = APIRouter()
settings = get_settings()


@router.post("", response_model=VisitResponse, status_code=status.HTTP_201_CREATED)
def create_visit(
    payload: VisitCreate,
    db: Session = Depends(get_db),
) -> VisitResponse:
    visit = visit_service.create_visit(db, payload=payload)
    return VisitResponse.model_validate(visit)


@router.get("", response_model=VisitListResponse)
def list_visits(
    search: Optional[str] = Query(None, description="Visit code, patient, doctor or complaint"),
    status_filter: Optional[VisitStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
) -> VisitListResponse:
    """
    Check-up queue, emergencies first, then most recently updated.
    """
    items, total = visit_service.list_visits(
        db,
        search=search,
        status=status_filter,
        page=page,
        page_size=page_size,
    )
    return VisitListResponse(
        items=[VisitResponse.model_validate(v) for v in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{visit_id}", response_model=VisitResponse)
def get_visit(
    visit_id: UUID,
    db: Session = Depends(get_db),
) -> VisitResponse:
    visit = visit_service.get_visit(db, visit_id=visit_id)
    return VisitResponse.model_validate(visit)


@router.post("/{visit_id}/actions", response_model=VisitResponse)
def apply_visit_action(
    visit_id: UUID,
    payload: VisitActionRequest,
    db: Session = Depends(get_db),
) -> VisitResponse:
    """
    Move the visit through its workflow. Send the ``version`` you last saw
    as ``expected_version`` to get a 409 instead of overwriting someone
    else's change.
    """
    visit = visit_service.apply_visit_action(db, visit_id=visit_id, payload=payload)
    return VisitResponse.model_validate(visit)
