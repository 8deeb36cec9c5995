"""
Tests for the pharmacy stock ledger.
"""

import uuid
from datetime import date, timedelta

import pytest

from clinicflow.models.stock import (
    DispenseRequestStatus,
    LogTone,
    Medicine,
    MovementType,
    PharmacyLog,
    StockMovement,
)
from clinicflow.schemas.stock import (
    DispenseRequestCreate,
    MedicineCreate,
    StockAction,
    StockActionRequest,
)
from clinicflow.services import stock_service
from clinicflow.services.errors import (
    CapacityError,
    NotFoundError,
    StateTransitionError,
    ValidationError,
)


def _create_medicine(db, stock_on_hand: int = 5, **overrides):
    fields = {
        "sku": "MED-PARA-500",
        "medicine_name": "Paracetamol 500mg",
        "stock_on_hand": stock_on_hand,
        "stock_capacity": 500,
        "reorder_level": 0,
    }
    fields.update(overrides)
    return stock_service.create_medicine(db, payload=MedicineCreate(**fields))


def _apply(db, medicine_id, action: StockAction, **fields):
    return stock_service.apply_stock_action(
        db,
        medicine_id=medicine_id,
        payload=StockActionRequest(action=action, **fields),
    )


def _dispense(db, medicine_id, quantity: int, **fields):
    fields.setdefault("patient_name", "Juan Dela Cruz")
    fields.setdefault("prescription_reference", "RX-0001")
    return _apply(db, medicine_id, StockAction.DISPENSE, quantity=quantity, **fields)


def _movements(db, medicine_id) -> list[StockMovement]:
    return db.query(StockMovement).filter(StockMovement.medicine_id == medicine_id).order_by(StockMovement.id).all()


class TestCreateMedicine:
    def test_opening_balance_is_a_movement(self, db):
        result = _create_medicine(db, stock_on_hand=40)

        assert result.medicine.stock_on_hand == 40
        assert result.movement.movement_type == MovementType.INITIAL
        assert (result.movement.quantity_before, result.movement.quantity_change, result.movement.quantity_after) == (
            0,
            40,
            40,
        )

    def test_column_lengths_match_create_schema(self, db):
        result = _create_medicine(db, dosage_strength="5" * 100, unit_of_measure="u" * 100)

        assert Medicine.__table__.c.dosage_strength.type.length == 100
        assert Medicine.__table__.c.unit_of_measure.type.length == 100
        assert result.medicine.dosage_strength == "5" * 100

    def test_duplicate_sku(self, db):
        _create_medicine(db)

        with pytest.raises(ValidationError, match="already exists"):
            _create_medicine(db, medicine_name="Another")


class TestDispense:
    def test_insufficient_stock_changes_nothing(self, db):
        medicine_id = _create_medicine(db, stock_on_hand=5).medicine.id

        with pytest.raises(CapacityError) as exc_info:
            _dispense(db, medicine_id, 10)

        assert exc_info.value.message == "Insufficient stock. Available: 5"
        assert stock_service.get_medicine(db, medicine_id=medicine_id).stock_on_hand == 5
        assert len(_movements(db, medicine_id)) == 1

    def test_dispense_writes_one_balanced_movement(self, db):
        medicine_id = _create_medicine(db, stock_on_hand=5).medicine.id

        result = _dispense(db, medicine_id, 3)

        assert result.medicine.stock_on_hand == 2
        assert result.movement.movement_type == MovementType.DISPENSE
        assert (result.movement.quantity_before, result.movement.quantity_change, result.movement.quantity_after) == (
            5,
            -3,
            2,
        )
        assert result.movement.reference == "RX-0001"

    def test_dispense_exact_stock(self, db):
        medicine_id = _create_medicine(db, stock_on_hand=5).medicine.id

        result = _dispense(db, medicine_id, 5)

        assert result.medicine.stock_on_hand == 0
        assert [a.kind for a in result.alerts] == ["out_of_stock"]

    @pytest.mark.parametrize(
        ("fields", "message"),
        [
            ({"quantity": 0}, "Quantity must be greater than zero"),
            ({"quantity": 1, "patient_name": " "}, "Patient name is required"),
            ({"quantity": 1, "prescription_reference": ""}, "Prescription reference is required"),
        ],
    )
    def test_dispense_requires_fields(self, db, fields, message):
        medicine_id = _create_medicine(db).medicine.id
        fields = dict(fields)
        quantity = fields.pop("quantity")

        with pytest.raises(ValidationError, match=message):
            _dispense(db, medicine_id, quantity, **fields)

        assert len(_movements(db, medicine_id)) == 1


class TestLedgerInvariants:
    def test_every_movement_balances_and_chains(self, db):
        medicine_id = _create_medicine(db, stock_on_hand=10).medicine.id

        _apply(db, medicine_id, StockAction.RESTOCK, quantity=15)
        _dispense(db, medicine_id, 7)
        _apply(db, medicine_id, StockAction.ADJUST_STOCK, quantity_change=-3, reason="Damaged blister packs")
        _apply(db, medicine_id, StockAction.ADJUST_STOCK, quantity_change=2, reason="Recount")

        movements = _movements(db, medicine_id)
        assert [m.movement_type for m in movements] == [
            MovementType.INITIAL,
            MovementType.RESTOCK,
            MovementType.DISPENSE,
            MovementType.ADJUSTMENT,
            MovementType.ADJUSTMENT,
        ]
        for movement in movements:
            assert movement.quantity_before + movement.quantity_change == movement.quantity_after
            assert movement.quantity_after >= 0
        for previous, current in zip(movements, movements[1:]):
            assert current.quantity_before == previous.quantity_after

        assert stock_service.get_medicine(db, medicine_id=medicine_id).stock_on_hand == movements[-1].quantity_after == 17

    def test_every_action_writes_a_pharmacy_log_line(self, db):
        medicine_id = _create_medicine(db, stock_on_hand=50).medicine.id
        _apply(db, medicine_id, StockAction.RESTOCK, quantity=10)
        _dispense(db, medicine_id, 1)

        assert db.query(PharmacyLog).count() == 3

    def test_adjustment_cannot_go_negative(self, db):
        medicine_id = _create_medicine(db, stock_on_hand=2).medicine.id

        with pytest.raises(ValidationError, match="negative"):
            _apply(db, medicine_id, StockAction.ADJUST_STOCK, quantity_change=-3, reason="Expired")

        assert stock_service.get_medicine(db, medicine_id=medicine_id).stock_on_hand == 2

    def test_adjustment_requires_reason(self, db):
        medicine_id = _create_medicine(db).medicine.id

        with pytest.raises(ValidationError, match="reason is required"):
            _apply(db, medicine_id, StockAction.ADJUST_STOCK, quantity_change=1)

    def test_restock_requires_positive_quantity(self, db):
        medicine_id = _create_medicine(db).medicine.id

        with pytest.raises(ValidationError):
            _apply(db, medicine_id, StockAction.RESTOCK, quantity=-4)

    def test_unknown_medicine(self, db):
        with pytest.raises(NotFoundError):
            _apply(db, uuid.uuid4(), StockAction.RESTOCK, quantity=1)


class TestArchive:
    def test_archived_medicine_rejects_movements(self, db):
        medicine_id = _create_medicine(db).medicine.id

        result = _apply(db, medicine_id, StockAction.ARCHIVE_MEDICINE, reason="Discontinued")
        assert result.medicine.is_archived is True
        assert result.movement.movement_type == MovementType.ARCHIVE
        assert result.movement.quantity_change == 0

        with pytest.raises(ValidationError, match="archived"):
            _apply(db, medicine_id, StockAction.RESTOCK, quantity=5)
        with pytest.raises(StateTransitionError):
            _apply(db, medicine_id, StockAction.ARCHIVE_MEDICINE)


class TestDispenseRequests:
    def _request(self, db, medicine_id, quantity: int = 2):
        return stock_service.create_dispense_request(
            db,
            payload=DispenseRequestCreate(
                medicine_id=medicine_id,
                patient_name="Lea Bautista",
                quantity=quantity,
                prescription_reference="RX-0042",
            ),
        )

    def test_fulfilled_exactly_once(self, db):
        medicine_id = _create_medicine(db, stock_on_hand=5).medicine.id
        request = self._request(db, medicine_id)

        result = stock_service.fulfill_request(db, request_id=request.id, actor="Pharm. Cruz")

        assert result.dispense_request.status == DispenseRequestStatus.FULFILLED
        assert result.dispense_request.fulfilled_at is not None
        assert result.movement.movement_type == MovementType.FULFILLMENT
        assert result.medicine.stock_on_hand == 3

        with pytest.raises(StateTransitionError, match="already Fulfilled"):
            stock_service.fulfill_request(db, request_id=request.id)

        assert stock_service.get_medicine(db, medicine_id=medicine_id).stock_on_hand == 3
        assert len(_movements(db, medicine_id)) == 2

    def test_fulfill_with_insufficient_stock_stays_pending(self, db):
        medicine_id = _create_medicine(db, stock_on_hand=1).medicine.id
        request = self._request(db, medicine_id, quantity=4)

        with pytest.raises(CapacityError, match="Insufficient stock. Available: 1"):
            stock_service.fulfill_request(db, request_id=request.id)

        request = stock_service.get_dispense_request(db, request_id=request.id)
        assert request.status == DispenseRequestStatus.PENDING

    def test_cancelled_request_cannot_be_fulfilled(self, db):
        medicine_id = _create_medicine(db).medicine.id
        request = self._request(db, medicine_id)

        stock_service.cancel_dispense_request(db, request_id=request.id)

        with pytest.raises(StateTransitionError):
            stock_service.fulfill_request(db, request_id=request.id)


class TestAlerts:
    def test_low_stock_alert_is_logged(self, db):
        medicine_id = _create_medicine(db, stock_on_hand=10, reorder_level=5).medicine.id

        result = _dispense(db, medicine_id, 6)

        assert [a.kind for a in result.alerts] == ["low_stock"]
        warnings = db.query(PharmacyLog).filter(PharmacyLog.tone == LogTone.WARNING).all()
        assert len(warnings) == 1
        assert "low on stock" in warnings[0].detail

    def test_no_alert_above_reorder_level(self, db):
        medicine_id = _create_medicine(db, stock_on_hand=10, reorder_level=5).medicine.id

        result = _dispense(db, medicine_id, 1)

        assert result.alerts == []

    def test_evaluate_alerts(self):
        today = date(2026, 10, 19)
        medicine = Medicine(
            sku="MED-ORS",
            medicine_name="Oral Rehydration Salts",
            stock_on_hand=0,
            reorder_level=10,
            expiry_date=today + timedelta(days=12),
        )

        alerts = stock_service.evaluate_alerts(medicine, today=today)

        assert [a.kind for a in alerts] == ["out_of_stock", "expiry_warning"]
        assert "12 days" in alerts[1].message

    def test_expired_medicine(self):
        today = date(2026, 10, 19)
        medicine = Medicine(
            sku="MED-OLD",
            medicine_name="Old Syrup",
            stock_on_hand=50,
            reorder_level=10,
            expiry_date=today - timedelta(days=1),
        )

        alerts = stock_service.evaluate_alerts(medicine, today=today)

        assert [a.kind for a in alerts] == ["expiry_warning"]
        assert "expired" in alerts[0].message


class TestPharmacySnapshot:
    def test_snapshot_lists_everything(self, db):
        medicine_id = _create_medicine(db).medicine.id
        _dispense(db, medicine_id, 1)
        stock_service.create_dispense_request(
            db,
            payload=DispenseRequestCreate(
                medicine_id=medicine_id,
                patient_name="Lea Bautista",
                quantity=1,
                prescription_reference="RX-0042",
            ),
        )

        snapshot = stock_service.get_pharmacy_snapshot(db)

        assert [m.id for m in snapshot.medicines] == [medicine_id]
        assert len(snapshot.requests) == 1
        assert len(snapshot.movements) == 2
        assert snapshot.movements[0].movement_type == MovementType.DISPENSE
        assert len(snapshot.logs) == 3
