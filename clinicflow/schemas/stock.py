# schemas/stock.py
from __future__ import annotations

from datetime import date, datetime
from enum import Enum as PyEnum
from typing import Annotated, Any
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    field_validator,
)

from clinicflow.models.stock import DispenseRequestStatus, LogTone, MovementType

SkuStr = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=1, max_length=64),
]

NameStr = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=1, max_length=255),
]

OptStr100 = (
    Annotated[
        str,
        StringConstraints(strip_whitespace=True, max_length=100),
    ]
    | None
)

OptStr255 = (
    Annotated[
        str,
        StringConstraints(strip_whitespace=True, max_length=255),
    ]
    | None
)


class StockAction(str, PyEnum):
    RESTOCK = "restock"
    DISPENSE = "dispense"
    ADJUST_STOCK = "adjust_stock"
    ARCHIVE_MEDICINE = "archive_medicine"


class MedicineCreate(BaseModel):
    """
    Used when creating a new medicine.

    - Optional strings accept None and are limited in length when present.
    - Empty strings from UI are normalized to None.
    - ``stock_on_hand`` is the opening balance; it is written through the
      ledger as an ``initial`` movement.
    """

    sku: SkuStr
    medicine_name: NameStr

    brand_name: OptStr255 = None
    generic_name: OptStr255 = None
    category: OptStr100 = None
    dosage_strength: OptStr100 = None
    unit_of_measure: OptStr100 = None
    supplier_name: OptStr255 = None
    batch_lot_no: OptStr100 = None
    expiry_date: date | None = None

    stock_on_hand: int = Field(default=0, ge=0)
    stock_capacity: int = Field(default=0, ge=0)
    reorder_level: int = Field(default=0, ge=0)
    low_stock_threshold: int = Field(default=0, ge=0)

    actor: str | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator(
        "brand_name",
        "generic_name",
        "category",
        "dosage_strength",
        "unit_of_measure",
        "supplier_name",
        "batch_lot_no",
        mode="before",
    )
    @classmethod
    def empty_str_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class StockActionRequest(BaseModel):
    """
    One ledger action against a medicine.

    - restock: ``quantity`` > 0
    - dispense: ``quantity`` > 0, ``patient_name`` and ``prescription_reference``
    - adjust_stock: signed ``quantity_change`` and a ``reason``
    - archive_medicine: optional ``reason``

    Quantities are checked by the ledger rather than by Field constraints so
    the rejection message matches the other stock rules.
    """

    action: StockAction
    quantity: int | None = None
    quantity_change: int | None = None
    patient_name: str | None = None
    prescription_reference: str | None = None
    reason: str | None = None
    actor: str | None = None

    model_config = ConfigDict(extra="forbid")


class DispenseRequestCreate(BaseModel):
    medicine_id: UUID
    patient_name: str
    quantity: int
    prescription_reference: str
    notes: str | None = None
    dispense_reason: str | None = None


class FulfillRequest(BaseModel):
    actor: str | None = None


class MedicineResponse(BaseModel):
    id: UUID
    sku: str
    medicine_name: str
    brand_name: str | None = None
    generic_name: str | None = None
    category: str | None = None
    dosage_strength: str | None = None
    unit_of_measure: str | None = None
    supplier_name: str | None = None
    batch_lot_no: str | None = None
    expiry_date: date | None = None
    stock_on_hand: int
    stock_capacity: int
    reorder_level: int
    low_stock_threshold: int
    is_archived: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StockMovementResponse(BaseModel):
    id: int
    medicine_id: UUID
    movement_type: MovementType
    quantity_change: int
    quantity_before: int
    quantity_after: int
    reason: str | None = None
    reference: str | None = None
    actor: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DispenseRequestResponse(BaseModel):
    id: UUID
    medicine_id: UUID
    patient_name: str
    quantity: int
    notes: str | None = None
    prescription_reference: str
    dispense_reason: str | None = None
    status: DispenseRequestStatus
    requested_at: datetime
    fulfilled_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class PharmacyLogResponse(BaseModel):
    id: int
    detail: str
    actor: str
    tone: LogTone
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StockAlert(BaseModel):
    kind: str  # out_of_stock, low_stock, expiry_warning
    message: str


class StockActionResult(BaseModel):
    medicine: MedicineResponse
    movement: StockMovementResponse
    alerts: list[StockAlert] = []
    dispense_request: DispenseRequestResponse | None = None


class PharmacySnapshot(BaseModel):
    medicines: list[MedicineResponse]
    requests: list[DispenseRequestResponse]
    logs: list[PharmacyLogResponse]
    movements: list[StockMovementResponse]
