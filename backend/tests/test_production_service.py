"""
Production request lifecycle and production output tests.

Verifies:
- Approval debits raw material; exact-stock boundary succeeds, one unit less fails
- A failed approval leaves every line untouched
- Rejection unlinks items and returns an untouched order to QUEUE
- Output drives PRODUCTION items to DONE and posts finished goods IN
"""

import pytest

from wms.errors import InsufficientStock, InvalidState, ValidationError
from wms.extensions import db
from wms.models import (
    FulfillmentStatus,
    Item,
    ItemCategory,
    OrderItem,
    OrderStatus,
    ProductionRequest,
    ProductionRequestStatus,
    StockTransaction,
    TransactionSource,
    TransactionType,
    WorkOrder,
)
from wms.services import fulfillment_service, production_service
from wms.services.concurrency import unit_of_work

from conftest import ADMIN_ID


@pytest.fixture
def production_order(make_item, make_order):
    steel = make_item(name="Steel sheet", current=40, unit="KG", category=ItemCategory.RAW_MATERIAL)
    paint = make_item(name="Paint", current=5, unit="KG", category=ItemCategory.RAW_MATERIAL)
    rack = make_item(name="Rack", current=0)
    order = make_order([
        {"item_id": rack.id, "qty": 4, "fulfillment_method": "PRODUCTION"},
    ])
    return steel, paint, rack, order


def _request(order, lines, memo="Batch 1"):
    with unit_of_work() as uow:
        req = production_service.create_production_request(
            uow, order_id=order.id, lines=lines, memo=memo, actor_id=ADMIN_ID
        )
        return req.id


class TestCreateRequest:

    def test_links_items_and_moves_order_in_progress(self, production_order):
        steel, _, _, order = production_order
        request_id = _request(order, [{"item_id": steel.id, "quantity": 10}])

        order = db.session.get(WorkOrder, order.id)
        order_item = order.items[0]
        assert order_item.production_request_id == request_id
        assert order_item.fulfillment_status == FulfillmentStatus.IN_PROGRESS
        assert order.inventory_approved is True
        assert order.status == OrderStatus.IN_PROGRESS

    def test_memo_required(self, production_order):
        steel, _, _, order = production_order
        with pytest.raises(ValidationError):
            _request(order, [{"item_id": steel.id, "quantity": 1}], memo="  ")

    def test_order_without_production_items_rejected(self, make_item, make_order):
        item = make_item(current=10)
        order = make_order([{"item_id": item.id, "qty": 1}])
        with pytest.raises(InvalidState):
            _request(order, [{"item_id": item.id, "quantity": 1}])


class TestApproveRequest:

    def test_exact_stock_boundary_succeeds(self, production_order):
        steel, paint, _, order = production_order
        request_id = _request(order, [
            {"item_id": steel.id, "quantity": 40},
            {"item_id": paint.id, "quantity": 5},
        ])

        with unit_of_work() as uow:
            result = production_service.approve_production_request(uow, request_id, ADMIN_ID)

        assert result["request"]["status"] == ProductionRequestStatus.APPROVED.value
        assert db.session.get(Item, steel.id).current_stock == 0
        assert db.session.get(Item, paint.id).current_stock == 0

        txs = db.session.query(StockTransaction).order_by(StockTransaction.id).all()
        assert [(t.type, t.source, t.destination) for t in txs] == [
            (TransactionType.OUT, TransactionSource.RAW_MATERIAL, "Production"),
        ] * 2

    def test_one_unit_short_fails_and_debits_nothing(self, production_order):
        steel, paint, _, order = production_order
        request_id = _request(order, [
            {"item_id": steel.id, "quantity": 40},
            {"item_id": paint.id, "quantity": 6},
        ])

        with pytest.raises(InsufficientStock) as exc:
            with unit_of_work() as uow:
                production_service.approve_production_request(uow, request_id, ADMIN_ID)

        assert exc.value.item_name == "Paint"
        assert exc.value.available == 5
        assert exc.value.requested == 6
        assert db.session.get(Item, steel.id).current_stock == 40
        assert db.session.get(ProductionRequest, request_id).status == ProductionRequestStatus.PENDING
        assert db.session.query(StockTransaction).count() == 0

    def test_approve_twice_rejected(self, production_order):
        steel, _, _, order = production_order
        request_id = _request(order, [{"item_id": steel.id, "quantity": 1}])

        with unit_of_work() as uow:
            production_service.approve_production_request(uow, request_id, ADMIN_ID)
        with pytest.raises(InvalidState):
            with unit_of_work() as uow:
                production_service.approve_production_request(uow, request_id, ADMIN_ID)

    def test_complete_after_approve(self, production_order):
        steel, _, _, order = production_order
        request_id = _request(order, [{"item_id": steel.id, "quantity": 1}])

        with pytest.raises(InvalidState):
            with unit_of_work() as uow:
                production_service.complete_production_request(uow, request_id, ADMIN_ID)

        with unit_of_work() as uow:
            production_service.approve_production_request(uow, request_id, ADMIN_ID)
        with unit_of_work() as uow:
            production_service.complete_production_request(uow, request_id, ADMIN_ID)

        assert db.session.get(ProductionRequest, request_id).status == ProductionRequestStatus.COMPLETED


class TestRejectRequest:

    def test_reject_unlinks_and_returns_order_to_queue(self, production_order):
        steel, _, _, order = production_order
        request_id = _request(order, [{"item_id": steel.id, "quantity": 10}])

        with unit_of_work() as uow:
            production_service.reject_production_request(uow, request_id, ADMIN_ID, reason="Wrong drawing")

        req = db.session.get(ProductionRequest, request_id)
        assert req.status == ProductionRequestStatus.REJECTED
        assert req.rejection_reason == "Wrong drawing"

        order = db.session.get(WorkOrder, order.id)
        assert order.items[0].production_request_id is None
        assert order.items[0].fulfillment_status == FulfillmentStatus.PENDING
        assert order.status == OrderStatus.QUEUE
        assert db.session.get(Item, steel.id).current_stock == 40

    def test_cannot_reject_approved(self, production_order):
        steel, _, _, order = production_order
        request_id = _request(order, [{"item_id": steel.id, "quantity": 1}])
        with unit_of_work() as uow:
            production_service.approve_production_request(uow, request_id, ADMIN_ID)

        with pytest.raises(InvalidState):
            with unit_of_work() as uow:
                production_service.reject_production_request(uow, request_id, ADMIN_ID)


class TestProductionOutput:

    def test_partial_then_full_output(self, production_order):
        _, _, rack, order = production_order
        order_item_id = order.items[0].id

        with unit_of_work() as uow:
            result = production_service.record_production_output(uow, order.id, order_item_id, 3, ADMIN_ID)
        assert result["order_item"]["fulfillment_status"] == FulfillmentStatus.IN_PROGRESS.value
        assert result["order_status"] == OrderStatus.IN_PROGRESS.value

        with unit_of_work() as uow:
            result = production_service.record_production_output(uow, order.id, order_item_id, 1, ADMIN_ID)
        assert result["order_item"]["fulfillment_status"] == FulfillmentStatus.DONE.value
        assert result["order_status"] == OrderStatus.READY_TO_SHIP.value

        order_item = db.session.get(OrderItem, order_item_id)
        assert order_item.produced_qty == 4
        assert order_item.ready_qty == 4
        assert db.session.get(Item, rack.id).current_stock == 4
        assert db.session.get(WorkOrder, order.id).inventory_approved is True

    def test_overproduction_rejected(self, production_order):
        _, _, _, order = production_order
        with pytest.raises(ValidationError):
            with unit_of_work() as uow:
                production_service.record_production_output(uow, order.id, order.items[0].id, 5, ADMIN_ID)

    def test_done_item_approval_completes_it(self, production_order):
        _, _, _, order = production_order
        order_item_id = order.items[0].id
        with unit_of_work() as uow:
            production_service.record_production_output(uow, order.id, order_item_id, 4, ADMIN_ID)

        with unit_of_work() as uow:
            fulfillment_service.approve_items(
                uow, order.id, [{"order_item_id": order_item_id, "qty": 4}], ADMIN_ID
            )

        assert db.session.get(OrderItem, order_item_id).fulfillment_status == FulfillmentStatus.COMPLETED
