# clinicflow/services/stock_service.py
"""
Pharmacy stock ledger.

Every change to ``Medicine.stock_on_hand`` happens inside one transaction
that locks the medicine row, writes the new balance, appends exactly one
StockMovement (before / change / after) and one PharmacyLog line. Alerts
are evaluated after the commit and never undo or block the movement.
"""
from __future__ import annotations

import logging
from datetime import date
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinicflow.core.config import get_settings
from clinicflow.models.stock import (
    DispenseRequest,
    DispenseRequestStatus,
    LogTone,
    Medicine,
    MovementType,
    PharmacyLog,
    StockMovement,
)
from clinicflow.schemas.stock import (
    DispenseRequestCreate,
    DispenseRequestResponse,
    MedicineCreate,
    MedicineResponse,
    PharmacyLogResponse,
    PharmacySnapshot,
    StockAction,
    StockActionRequest,
    StockActionResult,
    StockAlert,
    StockMovementResponse,
)
from clinicflow.services.errors import (
    CapacityError,
    ClinicError,
    ConflictError,
    NotFoundError,
    StateTransitionError,
    ValidationError,
)
from clinicflow.utils.datetime_utils import days_until, utc_now

logger = logging.getLogger(__name__)

DEFAULT_ACTOR = "Pharmacist"


def _actor(value: str | None) -> str:
    return (value or "").strip() or DEFAULT_ACTOR


# -------------------------
# Ledger primitives
# -------------------------
def _lock_medicine(db: Session, medicine_id: UUID) -> Medicine:
    medicine = (
        db.query(Medicine)
        .populate_existing()
        .filter(Medicine.id == medicine_id)
        .with_for_update()
        .first()
    )
    if not medicine:
        raise NotFoundError("Medicine not found.")
    return medicine


def _require_active(medicine: Medicine) -> None:
    if medicine.is_archived:
        raise ValidationError(f"Medicine '{medicine.medicine_name}' is archived.")


def _record_movement(
    db: Session,
    *,
    medicine: Medicine,
    movement_type: MovementType,
    quantity_after: int,
    actor: str,
    reason: str | None = None,
    reference: str | None = None,
) -> StockMovement:
    """
    Move ``medicine`` to ``quantity_after`` and append the matching ledger
    row. Does NOT commit.
    """
    quantity_before = medicine.stock_on_hand
    if quantity_after < 0:
        raise ValidationError(f"Stock cannot go negative. Available: {quantity_before}")

    movement = StockMovement(
        medicine_id=medicine.id,
        movement_type=movement_type,
        quantity_change=quantity_after - quantity_before,
        quantity_before=quantity_before,
        quantity_after=quantity_after,
        reason=reason,
        reference=reference,
        actor=actor,
        created_at=utc_now(),
    )
    medicine.stock_on_hand = quantity_after
    db.add(movement)
    return movement


def _add_log(db: Session, *, detail: str, actor: str, tone: LogTone = LogTone.INFO) -> None:
    db.add(PharmacyLog(detail=detail, actor=actor, tone=tone, created_at=utc_now()))


def _require_dispense_fields(quantity: int | None, patient_name: str | None, prescription_reference: str | None) -> None:
    errors: list[str] = []
    if quantity is None or quantity <= 0:
        errors.append("Quantity must be greater than zero")
    if not (patient_name or "").strip():
        errors.append("Patient name is required")
    if not (prescription_reference or "").strip():
        errors.append("Prescription reference is required")
    if errors:
        raise ValidationError("; ".join(errors))


def _check_available(medicine: Medicine, quantity: int) -> None:
    if medicine.stock_on_hand - quantity < 0:
        raise CapacityError(f"Insufficient stock. Available: {medicine.stock_on_hand}")


# -------------------------
# Alerts
# -------------------------
def evaluate_alerts(medicine: Medicine, *, today: date | None = None) -> list[StockAlert]:
    """
    Out-of-stock when nothing is left, otherwise low-stock at or below the
    reorder level; independently an expiry warning inside the warning window.
    """
    alerts: list[StockAlert] = []
    name = medicine.medicine_name

    if medicine.stock_on_hand == 0:
        alerts.append(StockAlert(kind="out_of_stock", message=f"{name} is out of stock."))
    elif medicine.stock_on_hand <= medicine.reorder_level:
        alerts.append(
            StockAlert(
                kind="low_stock",
                message=(
                    f"{name} is low on stock ({medicine.stock_on_hand} left, "
                    f"reorder level {medicine.reorder_level})."
                ),
            )
        )

    if medicine.expiry_date is not None:
        remaining = days_until(medicine.expiry_date, today)
        if remaining <= get_settings().expiry_warning_days:
            if remaining < 0:
                message = f"{name} expired on {medicine.expiry_date.isoformat()}."
            else:
                message = f"{name} expires on {medicine.expiry_date.isoformat()} ({remaining} days)."
            alerts.append(StockAlert(kind="expiry_warning", message=message))

    return alerts


def _publish_alerts(db: Session, medicine: Medicine, actor: str) -> list[StockAlert]:
    """Best-effort: write alerts to the pharmacy log (never fail the action)."""
    alerts = evaluate_alerts(medicine)
    if not alerts:
        return alerts

    for alert in alerts:
        logger.warning("Stock alert sku=%s kind=%s: %s", medicine.sku, alert.kind, alert.message)

    try:
        for alert in alerts:
            tone = LogTone.ERROR if alert.kind == "out_of_stock" else LogTone.WARNING
            _add_log(db, detail=alert.message, actor=actor, tone=tone)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to record stock alerts sku=%s", medicine.sku)

    return alerts


def _result(
    db: Session,
    medicine: Medicine,
    movement: StockMovement,
    actor: str,
    dispense_request: DispenseRequest | None = None,
) -> StockActionResult:
    db.refresh(medicine)
    db.refresh(movement)
    medicine_out = MedicineResponse.model_validate(medicine)
    movement_out = StockMovementResponse.model_validate(movement)
    request_out = DispenseRequestResponse.model_validate(dispense_request) if dispense_request is not None else None

    return StockActionResult(
        medicine=medicine_out,
        movement=movement_out,
        alerts=_publish_alerts(db, medicine, actor),
        dispense_request=request_out,
    )


# -------------------------
# Reads
# -------------------------
def list_medicines(db: Session, *, include_archived: bool = False) -> list[Medicine]:
    query = db.query(Medicine)
    if not include_archived:
        query = query.filter(Medicine.is_archived.is_(False))
    return query.order_by(Medicine.medicine_name.asc()).all()


def get_medicine(db: Session, *, medicine_id: UUID) -> Medicine:
    medicine = db.query(Medicine).filter(Medicine.id == medicine_id).first()
    if not medicine:
        raise NotFoundError("Medicine not found.")
    return medicine


def list_stock_movements(db: Session, *, medicine_id: UUID | None = None, limit: int = 200) -> list[StockMovement]:
    query = db.query(StockMovement)
    if medicine_id is not None:
        query = query.filter(StockMovement.medicine_id == medicine_id)
    return query.order_by(StockMovement.id.desc()).limit(limit).all()


def get_pharmacy_snapshot(db: Session, *, log_limit: int = 50, movement_limit: int = 200) -> PharmacySnapshot:
    requests = db.query(DispenseRequest).order_by(DispenseRequest.requested_at.desc()).all()
    logs = db.query(PharmacyLog).order_by(PharmacyLog.id.desc()).limit(log_limit).all()
    return PharmacySnapshot(
        medicines=[MedicineResponse.model_validate(m) for m in list_medicines(db, include_archived=True)],
        requests=[DispenseRequestResponse.model_validate(r) for r in requests],
        logs=[PharmacyLogResponse.model_validate(entry) for entry in logs],
        movements=[StockMovementResponse.model_validate(m) for m in list_stock_movements(db, limit=movement_limit)],
    )


# -------------------------
# Ledger actions
# -------------------------
def create_medicine(db: Session, *, payload: MedicineCreate) -> StockActionResult:
    """Register a medicine; its opening balance is an ``initial`` movement."""
    actor = _actor(payload.actor)

    if db.query(Medicine.id).filter(Medicine.sku == payload.sku).first():
        raise ValidationError(f"A medicine with SKU '{payload.sku}' already exists.")

    try:
        medicine = Medicine(
            sku=payload.sku,
            medicine_name=payload.medicine_name,
            brand_name=payload.brand_name,
            generic_name=payload.generic_name,
            category=payload.category,
            dosage_strength=payload.dosage_strength,
            unit_of_measure=payload.unit_of_measure,
            supplier_name=payload.supplier_name,
            batch_lot_no=payload.batch_lot_no,
            expiry_date=payload.expiry_date,
            stock_on_hand=0,
            stock_capacity=payload.stock_capacity,
            reorder_level=payload.reorder_level,
            low_stock_threshold=payload.low_stock_threshold,
        )
        db.add(medicine)
        db.flush()  # assigns medicine.id

        movement = _record_movement(
            db,
            medicine=medicine,
            movement_type=MovementType.INITIAL,
            quantity_after=payload.stock_on_hand,
            actor=actor,
            reason="Initial stock",
        )
        _add_log(
            db,
            detail=f"Added {medicine.medicine_name} ({medicine.sku}) with {payload.stock_on_hand} in stock.",
            actor=actor,
            tone=LogTone.SUCCESS,
        )
        db.commit()
    except ClinicError:
        db.rollback()
        raise
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(f"A medicine with SKU '{payload.sku}' was just created by another user.") from exc
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info("Medicine created sku=%s stock=%s", payload.sku, payload.stock_on_hand)
    return _result(db, medicine, movement, actor)


def _restock(db: Session, medicine: Medicine, payload: StockActionRequest, actor: str) -> StockMovement:
    if payload.quantity is None or payload.quantity <= 0:
        raise ValidationError("Quantity must be greater than zero")
    _require_active(medicine)

    before = medicine.stock_on_hand
    movement = _record_movement(
        db,
        medicine=medicine,
        movement_type=MovementType.RESTOCK,
        quantity_after=before + payload.quantity,
        actor=actor,
        reason=(payload.reason or "").strip() or "Restock",
    )
    _add_log(
        db,
        detail=f"Restocked {payload.quantity} x {medicine.medicine_name}. Stock {before} -> {medicine.stock_on_hand}.",
        actor=actor,
        tone=LogTone.SUCCESS,
    )
    return movement


def _dispense(db: Session, medicine: Medicine, payload: StockActionRequest, actor: str) -> StockMovement:
    _require_dispense_fields(payload.quantity, payload.patient_name, payload.prescription_reference)
    _require_active(medicine)
    _check_available(medicine, payload.quantity)

    before = medicine.stock_on_hand
    patient_name = payload.patient_name.strip()
    reference = payload.prescription_reference.strip()
    movement = _record_movement(
        db,
        medicine=medicine,
        movement_type=MovementType.DISPENSE,
        quantity_after=before - payload.quantity,
        actor=actor,
        reason=(payload.reason or "").strip() or f"Dispensed to {patient_name}",
        reference=reference,
    )
    _add_log(
        db,
        detail=(
            f"Dispensed {payload.quantity} x {medicine.medicine_name} to {patient_name} "
            f"(Rx {reference}). Stock {before} -> {medicine.stock_on_hand}."
        ),
        actor=actor,
        tone=LogTone.SUCCESS,
    )
    return movement


def _adjust_stock(db: Session, medicine: Medicine, payload: StockActionRequest, actor: str) -> StockMovement:
    reason = (payload.reason or "").strip()
    if not payload.quantity_change:
        raise ValidationError("Quantity change must be a non-zero number")
    if not reason:
        raise ValidationError("A reason is required for stock adjustments")
    _require_active(medicine)

    before = medicine.stock_on_hand
    after = before + payload.quantity_change
    if after < 0:
        raise ValidationError(f"Adjustment would make stock negative. Available: {before}")

    movement = _record_movement(
        db,
        medicine=medicine,
        movement_type=MovementType.ADJUSTMENT,
        quantity_after=after,
        actor=actor,
        reason=reason,
    )
    _add_log(
        db,
        detail=f"Adjusted {medicine.medicine_name} by {payload.quantity_change:+d} ({reason}). Stock {before} -> {after}.",
        actor=actor,
        tone=LogTone.INFO,
    )
    return movement


def _archive_medicine(db: Session, medicine: Medicine, payload: StockActionRequest, actor: str) -> StockMovement:
    if medicine.is_archived:
        raise StateTransitionError(f"Medicine '{medicine.medicine_name}' is already archived.")

    medicine.is_archived = True
    movement = _record_movement(
        db,
        medicine=medicine,
        movement_type=MovementType.ARCHIVE,
        quantity_after=medicine.stock_on_hand,
        actor=actor,
        reason=(payload.reason or "").strip() or "Archived",
    )
    _add_log(
        db,
        detail=f"Archived {medicine.medicine_name} ({medicine.sku}) with {medicine.stock_on_hand} on hand.",
        actor=actor,
        tone=LogTone.WARNING,
    )
    return movement


_MEDICINE_ACTIONS = {
    StockAction.RESTOCK: _restock,
    StockAction.DISPENSE: _dispense,
    StockAction.ADJUST_STOCK: _adjust_stock,
    StockAction.ARCHIVE_MEDICINE: _archive_medicine,
}


def apply_stock_action(db: Session, *, medicine_id: UUID, payload: StockActionRequest) -> StockActionResult:
    """
    Run one ledger action against a medicine as a single transaction.

    Raises:
        NotFoundError: unknown medicine
        CapacityError: dispense larger than the stock on hand
        StateTransitionError: archiving an archived medicine
        ValidationError: bad quantities / missing references, archived medicine
    """
    actor = _actor(payload.actor)
    handler = _MEDICINE_ACTIONS[payload.action]

    try:
        medicine = _lock_medicine(db, medicine_id)
        movement = handler(db, medicine, payload, actor)
        db.flush()
        db.commit()
    except ClinicError:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info(
        "Stock action applied sku=%s action=%s change=%+d stock=%s",
        medicine.sku,
        payload.action.value,
        movement.quantity_change,
        movement.quantity_after,
    )
    return _result(db, medicine, movement, actor)


# -------------------------
# Dispense requests
# -------------------------
def get_dispense_request(db: Session, *, request_id: UUID) -> DispenseRequest:
    request = db.query(DispenseRequest).filter(DispenseRequest.id == request_id).first()
    if not request:
        raise NotFoundError("Dispense request not found.")
    return request


def create_dispense_request(db: Session, *, payload: DispenseRequestCreate) -> DispenseRequest:
    _require_dispense_fields(payload.quantity, payload.patient_name, payload.prescription_reference)
    medicine = get_medicine(db, medicine_id=payload.medicine_id)
    _require_active(medicine)

    try:
        request = DispenseRequest(
            medicine_id=medicine.id,
            patient_name=payload.patient_name.strip(),
            quantity=payload.quantity,
            notes=(payload.notes or "").strip() or None,
            prescription_reference=payload.prescription_reference.strip(),
            dispense_reason=(payload.dispense_reason or "").strip() or None,
            status=DispenseRequestStatus.PENDING,
        )
        db.add(request)
        db.flush()
        _add_log(
            db,
            detail=f"Dispense request for {payload.quantity} x {medicine.medicine_name} ({request.patient_name}).",
            actor=request.patient_name,
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(request)
    return request


def fulfill_request(db: Session, *, request_id: UUID, actor: str | None = None) -> StockActionResult:
    """
    Dispense a Pending request exactly once: decrement stock and mark the
    request Fulfilled in the same transaction.
    """
    actor = _actor(actor)

    try:
        request = (
            db.query(DispenseRequest)
            .populate_existing()
            .filter(DispenseRequest.id == request_id)
            .with_for_update()
            .first()
        )
        if not request:
            raise NotFoundError("Dispense request not found.")
        if request.status != DispenseRequestStatus.PENDING:
            raise StateTransitionError(
                f"Dispense request is already {request.status.value}. Only Pending requests can be fulfilled."
            )
        _require_dispense_fields(request.quantity, request.patient_name, request.prescription_reference)

        medicine = _lock_medicine(db, request.medicine_id)
        _require_active(medicine)
        _check_available(medicine, request.quantity)

        before = medicine.stock_on_hand
        movement = _record_movement(
            db,
            medicine=medicine,
            movement_type=MovementType.FULFILLMENT,
            quantity_after=before - request.quantity,
            actor=actor,
            reason=f"Fulfilled dispense request for {request.patient_name}",
            reference=request.prescription_reference,
        )
        request.status = DispenseRequestStatus.FULFILLED
        request.fulfilled_at = utc_now()
        _add_log(
            db,
            detail=(
                f"Fulfilled request: {request.quantity} x {medicine.medicine_name} to {request.patient_name} "
                f"(Rx {request.prescription_reference}). Stock {before} -> {medicine.stock_on_hand}."
            ),
            actor=actor,
            tone=LogTone.SUCCESS,
        )
        db.flush()
        db.commit()
    except ClinicError:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info("Dispense request fulfilled id=%s sku=%s qty=%s", request_id, medicine.sku, movement.quantity_change)
    db.refresh(request)
    return _result(db, medicine, movement, actor, dispense_request=request)


def cancel_dispense_request(db: Session, *, request_id: UUID, actor: str | None = None) -> DispenseRequest:
    actor = _actor(actor)

    try:
        request = (
            db.query(DispenseRequest)
            .populate_existing()
            .filter(DispenseRequest.id == request_id)
            .with_for_update()
            .first()
        )
        if not request:
            raise NotFoundError("Dispense request not found.")
        if request.status != DispenseRequestStatus.PENDING:
            raise StateTransitionError(
                f"Dispense request is already {request.status.value}. Only Pending requests can be cancelled."
            )
        request.status = DispenseRequestStatus.CANCELLED
        _add_log(db, detail=f"Cancelled dispense request for {request.patient_name}.", actor=actor, tone=LogTone.WARNING)
        db.commit()
    except ClinicError:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(request)
    return request
