"""
Stock ledger tests.

Verifies:
- 0 <= reserved <= current holds after every primitive
- Each primitive writes exactly one StockHistory row
- Failures leave the item untouched (unit of work rolls back)
- Weighted average price and manual adjustments
"""

import pytest

from wms.errors import (
    InsufficientAvailableStock,
    InsufficientReservedStock,
    InsufficientStock,
    OverRelease,
    ValidationError,
)
from wms.extensions import db
from wms.models import Item, StockHistory, StockTransaction, TransactionSource, TransactionType
from wms.services import ledger_service
from wms.services.concurrency import UnitOfWork, unit_of_work


def _reload(item_id):
    db.session.expire_all()
    return db.session.get(Item, item_id)


def _history_count(item_id):
    return db.session.query(StockHistory).filter_by(item_id=item_id).count()


# =============================================================================
# RESERVATION
# =============================================================================


class TestReserve:

    def test_reserve_then_over_reserve(self, make_item):
        item = make_item(current=100)

        with unit_of_work() as uow:
            ledger_service.reserve_stock(uow, item.id, 30, 1, "SPK/2026/02/001")

        item = _reload(item.id)
        assert item.reserved_stock == 30
        assert item.current_stock == 100
        assert item.available_stock == 70

        with pytest.raises(InsufficientAvailableStock) as exc:
            with unit_of_work() as uow:
                ledger_service.reserve_stock(uow, item.id, 80, 1, "SPK/2026/02/002")

        assert exc.value.available == 70
        assert exc.value.requested == 80
        assert exc.value.shortfall == 10
        assert _reload(item.id).reserved_stock == 30

    def test_reserve_writes_tagged_history_with_zero_delta(self, make_item):
        item = make_item(current=10)

        with unit_of_work() as uow:
            result = ledger_service.reserve_stock(uow, item.id, 4, 1, "hold for customer")

        entry = db.session.get(StockHistory, result.history_id)
        assert entry.quantity == 0
        assert entry.previous_reserved == 0
        assert entry.new_reserved == 4
        assert entry.reason.startswith("[RESERVE]")
        assert _history_count(item.id) == 1

    def test_release_round_trip_restores_reserved(self, make_item):
        item = make_item(current=10)

        with unit_of_work() as uow:
            ledger_service.reserve_stock(uow, item.id, 6, 1, "hold")
            ledger_service.release_stock(uow, item.id, 6, 1, "cancel")

        item = _reload(item.id)
        assert item.reserved_stock == 0
        assert item.current_stock == 10
        assert _history_count(item.id) == 2

    def test_over_release_rejected(self, make_item):
        item = make_item(current=10, reserved=2)

        with pytest.raises(OverRelease):
            with unit_of_work() as uow:
                ledger_service.release_stock(uow, item.id, 3, 1, "too much")

        assert _reload(item.id).reserved_stock == 2
        assert _history_count(item.id) == 0


# =============================================================================
# ADJUST / FULFILL
# =============================================================================


class TestAdjustAndFulfill:

    def test_adjust_in_out(self, make_item):
        item = make_item(current=5)

        with unit_of_work() as uow:
            ledger_service.adjust_stock(uow, item.id, 2.5, TransactionType.IN, 1, "count")
            result = ledger_service.adjust_stock(uow, item.id, 1.25, TransactionType.OUT, 1, "scrap")

        assert result.previous_stock == 7.5
        assert result.new_stock == 6.25
        assert _reload(item.id).current_stock == 6.25

    def test_adjust_out_below_zero_rejected(self, make_item):
        item = make_item(current=3)

        with pytest.raises(InsufficientStock) as exc:
            with unit_of_work() as uow:
                ledger_service.adjust_stock(uow, item.id, 4, TransactionType.OUT, 1, "oops")

        assert exc.value.available == 3
        assert exc.value.requested == 4
        assert _reload(item.id).current_stock == 3

    def test_adjust_out_cannot_eat_reservation(self, make_item):
        item = make_item(current=10, reserved=8)

        with pytest.raises(InsufficientStock) as exc:
            with unit_of_work() as uow:
                ledger_service.adjust_stock(uow, item.id, 5, TransactionType.OUT, 1, "write off")

        assert exc.value.available == 2

    def test_fulfill_moves_both_fields(self, make_item):
        item = make_item(current=20, reserved=10)

        with unit_of_work() as uow:
            ledger_service.fulfill_from_reservation(uow, item.id, 10, 1, "delivered")

        item = _reload(item.id)
        assert item.current_stock == 10
        assert item.reserved_stock == 0

    def test_fulfill_more_than_reserved_rejected(self, make_item):
        item = make_item(current=20, reserved=5)

        with pytest.raises(InsufficientReservedStock):
            with unit_of_work() as uow:
                ledger_service.fulfill_from_reservation(uow, item.id, 6, 1, "delivered")

    def test_reason_required(self, make_item):
        item = make_item(current=20)

        with pytest.raises(ValidationError):
            with unit_of_work() as uow:
                ledger_service.adjust_stock(uow, item.id, 1, TransactionType.IN, 1, "   ")

    @pytest.mark.parametrize("qty", [0, -1, True, "1e3", "abc", None])
    def test_invalid_quantity_rejected(self, make_item, qty):
        item = make_item(current=20)

        with pytest.raises(ValidationError):
            with unit_of_work() as uow:
                ledger_service.reserve_stock(uow, item.id, qty, 1, "bad")

    def test_fractional_quantities_do_not_leave_residue(self, make_item):
        item = make_item(current=0.3, unit="KG")

        with unit_of_work() as uow:
            for _ in range(3):
                ledger_service.adjust_stock(uow, item.id, 0.1, TransactionType.OUT, 1, "cut")

        assert _reload(item.id).current_stock == 0.0

    def test_primitives_require_unit_of_work(self, make_item):
        item = make_item(current=1)
        with pytest.raises(TypeError):
            ledger_service.adjust_stock(db.session, item.id, 1, TransactionType.IN, 1, "x")

    def test_failure_rolls_back_earlier_steps(self, make_item):
        item = make_item(current=10)

        with pytest.raises(InsufficientAvailableStock):
            with unit_of_work() as uow:
                ledger_service.adjust_stock(uow, item.id, 5, TransactionType.IN, 1, "receipt")
                ledger_service.reserve_stock(uow, item.id, 100, 1, "too much")

        item = _reload(item.id)
        assert item.current_stock == 10
        assert _history_count(item.id) == 0

    def test_available_stock(self, make_item):
        item = make_item(current=9, reserved=4)
        uow = UnitOfWork(db.session)
        assert ledger_service.available_stock(uow, item.id) == 5


# =============================================================================
# VALUATION / MANUAL ADJUSTMENT
# =============================================================================


class TestValuation:

    def test_weighted_average_price(self, make_item):
        item = make_item(current=0, unit_price=999.0)

        with unit_of_work() as uow:
            ledger_service.post_manual_adjustment(
                uow, item_id=item.id, quantity=10, direction="IN",
                reason="receipt 1", actor_id=1, price=100.0,
            )
            ledger_service.post_manual_adjustment(
                uow, item_id=item.id, quantity=30, direction="IN",
                reason="receipt 2", actor_id=1, price=200.0,
            )

        assert ledger_service.weighted_average_price(item.id) == 175.0
        summary = ledger_service.get_stock_summary(item.id)
        assert summary["current_stock"] == 40
        assert summary["stock_value"] == 7000.0

    def test_weighted_average_falls_back_to_unit_price(self, make_item):
        item = make_item(current=5, unit_price=42.0)
        assert ledger_service.weighted_average_price(item.id) == 42.0

    def test_manual_adjustment_links_transaction_and_history(self, make_item):
        item = make_item(current=10)

        with unit_of_work() as uow:
            result = ledger_service.post_manual_adjustment(
                uow, item_id=item.id, quantity=4, direction="out",
                reason="Cycle count", actor_id=1,
            )

        tx = db.session.get(StockTransaction, result["transaction"]["id"])
        history = db.session.get(StockHistory, result["ledger"]["history_id"])
        assert tx.source == TransactionSource.ADJUSTMENT
        assert tx.type == TransactionType.OUT
        assert history.transaction_id == tx.id
        assert history.quantity == -4

    def test_manual_adjustment_rejects_price_on_out(self, make_item):
        item = make_item(current=10)

        with pytest.raises(ValidationError):
            with unit_of_work() as uow:
                ledger_service.post_manual_adjustment(
                    uow, item_id=item.id, quantity=1, direction="OUT",
                    reason="x", actor_id=1, price=5.0,
                )
