"""
Shipment return tests (REPACK / RECYCLE, in transit and after arrival,
for FROM_STOCK, PRODUCTION and TRADING items).
"""

import pytest

from wms.errors import NotFound, ValidationError
from wms.extensions import db
from wms.models import (
    FulfillmentStatus,
    Item,
    ItemCategory,
    OrderItem,
    OrderStatus,
    ReturnReason,
    ShipmentLine,
    ShipmentReturn,
    StockTransaction,
    TransactionSource,
    TransactionType,
    WasteStock,
    WorkOrder,
)
from wms.services import fulfillment_service, production_service, return_service, shipping_service
from wms.services.concurrency import unit_of_work

from conftest import ADMIN_ID, DRIVER_ID


def _line_id(shipment):
    return shipment["lines"][0]["id"]


def _return(line_id, qty, reason, notes=None):
    with unit_of_work() as uow:
        return return_service.return_shipment_line(uow, line_id, qty, reason, ADMIN_ID, notes=notes)


def _arrive(shipment_id):
    with unit_of_work() as uow:
        return shipping_service.confirm_arrival(
            uow, shipment_id, receiver_name="Budi", actor_id=ADMIN_ID
        )


class TestInTransitReturns:

    def test_repack_then_arrival_is_partial(self, dispatched):
        item, order, shipment = dispatched
        line_id = _line_id(shipment)

        result = _return(line_id, 20, "REPACK", notes="Crushed corner")

        assert result["return"]["was_in_transit"] is True
        assert result["shipment_line"]["quantity"] == 30
        assert result["order_item"]["ready_qty"] == 20
        assert result["order_item"]["approved_qty"] == 50
        assert result["waste"] is None

        arrival = _arrive(shipment["id"])

        order_item = db.session.get(OrderItem, order.items[0].id)
        assert order_item.shipped_qty == 30
        assert order_item.fulfillment_status == FulfillmentStatus.RESERVED
        assert arrival["order_statuses"][order.id] == OrderStatus.PARTIAL.value

        item = db.session.get(Item, item.id)
        assert item.current_stock == 70
        assert item.reserved_stock == 20

    def test_recycle_from_stock_debits_and_writes_waste(self, dispatched):
        item, order, shipment = dispatched

        result = _return(_line_id(shipment), 20, ReturnReason.RECYCLE)

        item = db.session.get(Item, item.id)
        assert item.current_stock == 80
        assert item.reserved_stock == 30

        order_item = db.session.get(OrderItem, order.items[0].id)
        assert order_item.approved_qty == 30
        assert order_item.recycled_qty == 20
        assert order_item.fulfillment_status == FulfillmentStatus.PENDING

        waste = db.session.query(WasteStock).all()
        assert len(waste) == 1
        assert waste[0].quantity == 20
        assert waste[0].material_id == item.id
        assert result["waste"]["id"] == waste[0].id

        tx = db.session.query(StockTransaction).filter_by(source=TransactionSource.RECYCLE).one()
        assert tx.type == TransactionType.OUT
        assert tx.quantity == 20

    def test_full_recycle_zeroes_reservation(self, dispatched):
        item, order, shipment = dispatched

        _return(_line_id(shipment), 50, "RECYCLE")

        item = db.session.get(Item, item.id)
        assert item.current_stock == 50
        assert item.reserved_stock == 0
        assert db.session.query(WasteStock).one().quantity == 50
        assert db.session.get(ShipmentLine, _line_id(shipment)).quantity == 0

    def test_each_recycle_writes_its_own_waste_entry(self, dispatched):
        _, order, shipment = dispatched

        first = _return(_line_id(shipment), 5, "RECYCLE", notes="dent")
        second = _return(_line_id(shipment), 5, "RECYCLE", notes="scratch")

        entries = db.session.query(WasteStock).order_by(WasteStock.id).all()
        assert [e.quantity for e in entries] == [5, 5]
        assert all(e.order_id == order.id for e in entries)
        assert "dent" in entries[0].notes
        assert "scratch" in entries[1].notes
        assert first["waste"]["id"] != second["waste"]["id"]
        assert db.session.query(ShipmentReturn).count() == 2


class TestArrivedReturns:

    def test_repack_after_arrival_restocks_and_rereserves(self, dispatched):
        item, order, shipment = dispatched
        _arrive(shipment["id"])

        result = _return(_line_id(shipment), 10, "REPACK")

        assert result["return"]["was_in_transit"] is False
        assert result["order_status"] == OrderStatus.PARTIAL.value

        item = db.session.get(Item, item.id)
        assert item.current_stock == 60
        assert item.reserved_stock == 10

        order_item = db.session.get(OrderItem, order.items[0].id)
        assert order_item.shipped_qty == 40
        assert order_item.ready_qty == 10
        assert order_item.fulfillment_status == FulfillmentStatus.RESERVED

        tx = db.session.query(StockTransaction).filter_by(source=TransactionSource.RETURN).one()
        assert tx.type == TransactionType.IN

    def test_recycle_after_arrival_does_not_debit_again(self, dispatched):
        item, order, shipment = dispatched
        _arrive(shipment["id"])

        _return(_line_id(shipment), 10, "RECYCLE")

        item = db.session.get(Item, item.id)
        assert item.current_stock == 50
        assert item.reserved_stock == 0
        assert db.session.query(WasteStock).one().quantity == 10
        assert db.session.get(WorkOrder, order.id).status == OrderStatus.PARTIAL


class TestProductionReturns:

    @pytest.fixture
    def production_dispatched(self, make_item, make_order):
        """PRODUCTION order for 50, fully produced, approved and on one truck."""
        steel = make_item(name="Steel sheet", current=100, unit="KG", category=ItemCategory.RAW_MATERIAL)
        cabinet = make_item(name="Cabinet", current=0)
        order = make_order([
            {"item_id": cabinet.id, "qty": 50, "fulfillment_method": "PRODUCTION"},
        ])
        order_item_id = order.items[0].id

        with unit_of_work() as uow:
            request = production_service.create_production_request(
                uow, order_id=order.id, lines=[{"item_id": steel.id, "quantity": 10}],
                memo="Cabinet batch", actor_id=ADMIN_ID,
            )
            request_id = request.id
        with unit_of_work() as uow:
            production_service.record_production_output(uow, order.id, order_item_id, 50, ADMIN_ID)
        with unit_of_work() as uow:
            fulfillment_service.approve_items(
                uow, order.id, [{"order_item_id": order_item_id, "qty": 50}], ADMIN_ID
            )
        with unit_of_work() as uow:
            result = shipping_service.dispatch_shipment(
                uow, order_ids=[order.id], driver_id=DRIVER_ID,
                lines=[{"order_item_id": order_item_id, "qty": 50}], actor_id=ADMIN_ID,
            )
        return cabinet, order, request_id, result["shipment"]

    def test_recycle_reopens_production(self, production_dispatched):
        cabinet, order, request_id, shipment = production_dispatched
        order_item_id = order.items[0].id
        assert db.session.get(OrderItem, order_item_id).production_request_id == request_id

        result = _return(_line_id(shipment), 20, "RECYCLE")

        order_item = db.session.get(OrderItem, order_item_id)
        assert order_item.produced_qty == 30
        assert order_item.approved_qty == 30
        assert order_item.recycled_qty == 20
        assert order_item.production_request_id is None
        assert order_item.fulfillment_status == FulfillmentStatus.IN_PROGRESS
        assert db.session.get(Item, cabinet.id).current_stock == 30
        assert result["waste"]["material_id"] == cabinet.id

        arrival = _arrive(shipment["id"])

        order_item = db.session.get(OrderItem, order_item_id)
        assert order_item.shipped_qty == 30
        assert arrival["order_statuses"][order.id] == OrderStatus.PARTIAL.value
        assert db.session.get(Item, cabinet.id).current_stock == 0

    def test_repack_keeps_production_finished(self, production_dispatched):
        cabinet, order, request_id, shipment = production_dispatched

        result = _return(_line_id(shipment), 10, "REPACK")

        order_item = db.session.get(OrderItem, order.items[0].id)
        assert order_item.ready_qty == 10
        assert order_item.approved_qty == 50
        assert order_item.produced_qty == 50
        assert order_item.production_request_id == request_id
        assert order_item.fulfillment_status == FulfillmentStatus.COMPLETED
        assert db.session.get(Item, cabinet.id).current_stock == 50
        assert result["waste"] is None

        _arrive(shipment["id"])

        assert db.session.get(OrderItem, order.items[0].id).shipped_qty == 40
        assert db.session.get(Item, cabinet.id).current_stock == 10


class TestTradingReturns:

    @pytest.fixture
    def trading_dispatched(self, make_item, make_order, approve_purchase_order):
        """TRADING order for 20, received from the vendor, approved and on one truck."""
        chair = make_item(name="Office chair", current=0)
        order = make_order([
            {"item_id": chair.id, "qty": 20, "fulfillment_method": "TRADING"},
        ])
        order_item_id = order.items[0].id
        approve_purchase_order(order)

        with unit_of_work() as uow:
            fulfillment_service.receive_trading_goods(uow, order.id, order_item_id, 20, ADMIN_ID, price=75)
        with unit_of_work() as uow:
            fulfillment_service.approve_items(
                uow, order.id, [{"order_item_id": order_item_id, "qty": 20}], ADMIN_ID
            )
        with unit_of_work() as uow:
            result = shipping_service.dispatch_shipment(
                uow, order_ids=[order.id], driver_id=DRIVER_ID,
                lines=[{"order_item_id": order_item_id, "qty": 20}], actor_id=ADMIN_ID,
            )
        return chair, order, result["shipment"]

    def test_recycle_debits_stock_and_reopens(self, trading_dispatched):
        chair, order, shipment = trading_dispatched

        _return(_line_id(shipment), 5, "RECYCLE")

        order_item = db.session.get(OrderItem, order.items[0].id)
        assert order_item.approved_qty == 15
        assert order_item.recycled_qty == 5
        assert order_item.fulfillment_status == FulfillmentStatus.PENDING
        assert db.session.get(Item, chair.id).current_stock == 15
        assert db.session.query(WasteStock).one().quantity == 5

        tx = db.session.query(StockTransaction).filter_by(source=TransactionSource.RECYCLE).one()
        assert tx.item_id == chair.id
        assert tx.type == TransactionType.OUT

    def test_repack_returns_goods_to_ready(self, trading_dispatched):
        chair, order, shipment = trading_dispatched

        result = _return(_line_id(shipment), 5, "REPACK")

        order_item = db.session.get(OrderItem, order.items[0].id)
        assert order_item.ready_qty == 5
        assert order_item.approved_qty == 20
        assert order_item.fulfillment_status == FulfillmentStatus.PENDING
        assert result["shipment_line"]["quantity"] == 15
        assert db.session.get(Item, chair.id).current_stock == 20
        assert db.session.query(WasteStock).count() == 0


class TestReturnValidation:

    def test_more_than_line_rejected(self, dispatched):
        _, _, shipment = dispatched
        with pytest.raises(ValidationError):
            _return(_line_id(shipment), 51, "REPACK")
        assert db.session.query(ShipmentReturn).count() == 0

    def test_unknown_reason_rejected(self, dispatched):
        _, _, shipment = dispatched
        with pytest.raises(ValidationError):
            _return(_line_id(shipment), 1, "LOST")

    def test_missing_line(self, db_session):
        with pytest.raises(NotFound):
            _return(999, 1, "REPACK")
