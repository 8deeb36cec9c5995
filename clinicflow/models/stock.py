# clinicflow/models/stock.py
import uuid
from datetime import date, datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Uuid,
    false,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinicflow.models.base import Base, str_enum
from clinicflow.utils.datetime_utils import utc_now


class MovementType(str, PyEnum):
    INITIAL = "initial"
    RESTOCK = "restock"
    DISPENSE = "dispense"
    ADJUSTMENT = "adjustment"
    FULFILLMENT = "fulfillment"
    ARCHIVE = "archive"


class DispenseRequestStatus(str, PyEnum):
    PENDING = "Pending"
    FULFILLED = "Fulfilled"
    CANCELLED = "Cancelled"


class LogTone(str, PyEnum):
    SUCCESS = "success"
    WARNING = "warning"
    INFO = "info"
    ERROR = "error"


MOVEMENT_TYPE_ENUM = str_enum(MovementType, "stock_movement_type_enum")
DISPENSE_REQUEST_STATUS_ENUM = str_enum(DispenseRequestStatus, "dispense_request_status_enum")
LOG_TONE_ENUM = str_enum(LogTone, "pharmacy_log_tone_enum")


class Medicine(Base):
    """
    Represents a medicine in the pharmacy's inventory.

    ``stock_on_hand`` is only ever changed through the stock ledger,
    which pairs every change with one StockMovement row.
    """

    __tablename__ = "medicines"
    __table_args__ = (
        CheckConstraint("stock_on_hand >= 0", name="ck_medicines_stock_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    sku: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    medicine_name: Mapped[str] = mapped_column(String(255), nullable=False)
    brand_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    generic_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    dosage_strength: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        doc="e.g., 500mg, 5mg/ml",
    )
    unit_of_measure: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        doc="e.g., tablet, ml, bottle, vial, etc.",
    )
    supplier_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    batch_lot_no: Mapped[str | None] = mapped_column(String(100), nullable=True)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    stock_on_hand: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )
    stock_capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    reorder_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    low_stock_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=utc_now,
    )


class StockMovement(Base):
    """Immutable ledger row for a single change to a medicine's on-hand quantity."""

    __tablename__ = "stock_movements"
    __table_args__ = (
        CheckConstraint(
            "quantity_after = quantity_before + quantity_change",
            name="ck_stock_movements_balance",
        ),
        CheckConstraint("quantity_after >= 0", name="ck_stock_movements_after_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    medicine_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("medicines.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    movement_type: Mapped[MovementType] = mapped_column(MOVEMENT_TYPE_ENUM, nullable=False)
    quantity_change: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_before: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_after: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    reference: Mapped[str | None] = mapped_column(
        String(150),
        nullable=True,
        doc="Prescription reference or dispense request id.",
    )
    actor: Mapped[str] = mapped_column(String(150), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    medicine: Mapped["Medicine"] = relationship("Medicine")


class DispenseRequest(Base):
    __tablename__ = "dispense_requests"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    medicine_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("medicines.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    patient_name: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)
    prescription_reference: Mapped[str] = mapped_column(String(150), nullable=False)
    dispense_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[DispenseRequestStatus] = mapped_column(
        DISPENSE_REQUEST_STATUS_ENUM,
        nullable=False,
        default=DispenseRequestStatus.PENDING,
        server_default=text("'Pending'"),
    )
    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    fulfilled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    medicine: Mapped["Medicine"] = relationship("Medicine")


class PharmacyLog(Base):
    """Human-readable pharmacy activity feed (movements and alerts)."""

    __tablename__ = "pharmacy_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    detail: Mapped[str] = mapped_column(String(1000), nullable=False)
    actor: Mapped[str] = mapped_column(String(150), nullable=False)
    tone: Mapped[LogTone] = mapped_column(LOG_TONE_ENUM, nullable=False, default=LogTone.INFO)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )
