# clinicflow/api/v1/endpoints/pharmacy.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from clinicflow.core.database import get_db
from clinicflow.schemas.stock import (
    DispenseRequestCreate,
    DispenseRequestResponse,
    FulfillRequest,
    MedicineCreate,
    MedicineResponse,
    PharmacySnapshot,
    StockActionRequest,
    StockActionResult,
    StockMovementResponse,
)
from clinicflow.services import stock_service

router = APIRouter()


@router.get("", response_model=PharmacySnapshot)
def get_pharmacy_snapshot(
    log_limit: int = Query(50, ge=1, le=500),
    movement_limit: int = Query(200, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> PharmacySnapshot:
    """
    Medicines, dispense requests, recent pharmacy log lines and stock
    movements in one payload.
    """
    return stock_service.get_pharmacy_snapshot(db, log_limit=log_limit, movement_limit=movement_limit)


@router.get("/medicines", response_model=list[MedicineResponse])
def list_medicines(
    include_archived: bool = Query(False),
    db: Session = Depends(get_db),
) -> list[MedicineResponse]:
    medicines = stock_service.list_medicines(db, include_archived=include_archived)
    return [MedicineResponse.model_validate(m) for m in medicines]


@router.post("/medicines", response_model=StockActionResult, status_code=status.HTTP_201_CREATED)
def create_medicine(
    payload: MedicineCreate,
    db: Session = Depends(get_db),
) -> StockActionResult:
    return stock_service.create_medicine(db, payload=payload)


@router.get("/medicines/{medicine_id}/movements", response_model=list[StockMovementResponse])
def list_medicine_movements(
    medicine_id: UUID,
    limit: int = Query(200, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> list[StockMovementResponse]:
    stock_service.get_medicine(db, medicine_id=medicine_id)
    movements = stock_service.list_stock_movements(db, medicine_id=medicine_id, limit=limit)
    return [StockMovementResponse.model_validate(m) for m in movements]


@router.post("/medicines/{medicine_id}/actions", response_model=StockActionResult)
def apply_stock_action(
    medicine_id: UUID,
    payload: StockActionRequest,
    db: Session = Depends(get_db),
) -> StockActionResult:
    """
    restock, dispense, adjust_stock or archive_medicine. The response
    carries the ledger movement and any stock alerts it raised.
    """
    return stock_service.apply_stock_action(db, medicine_id=medicine_id, payload=payload)


@router.post("/requests", response_model=DispenseRequestResponse, status_code=status.HTTP_201_CREATED)
def create_dispense_request(
    payload: DispenseRequestCreate,
    db: Session = Depends(get_db),
) -> DispenseRequestResponse:
    request = stock_service.create_dispense_request(db, payload=payload)
    return DispenseRequestResponse.model_validate(request)


@router.post("/requests/{request_id}/fulfill", response_model=StockActionResult)
def fulfill_dispense_request(
    request_id: UUID,
    payload: Optional[FulfillRequest] = None,
    db: Session = Depends(get_db),
) -> StockActionResult:
    actor = payload.actor if payload else None
    return stock_service.fulfill_request(db, request_id=request_id, actor=actor)


@router.post("/requests/{request_id}/cancel", response_model=DispenseRequestResponse)
def cancel_dispense_request(
    request_id: UUID,
    payload: Optional[FulfillRequest] = None,
    db: Session = Depends(get_db),
) -> DispenseRequestResponse:
    actor = payload.actor if payload else None
    request = stock_service.cancel_dispense_request(db, request_id=request_id, actor=actor)
    return DispenseRequestResponse.model_validate(request)
