# Overview: Service-layer operations for shipments; staged dispatch and arrival confirmation.

"""
Shipping Coordinator

LIFECYCLE (Shipment):
    CREATED  (arrived_at NULL, lines are on the truck)
    ARRIVED  (arrived_at set once; immutable afterwards)

Two-stage flow:
1. Dispatch: ready_qty drops at departure. The goods are off the shelf and
   cannot be reallocated, but the ledger is untouched.
2. Arrival: the ledger is debited (fulfill_from_reservation for FROM_STOCK,
   adjust_stock OUT otherwise) and shipped_qty is recomputed from every
   arrived line.

Arrival is best-effort by business rule: when physical (or, for FROM_STOCK,
reserved) stock has drifted below a line's quantity, only what is truly there
is debited. Every such clamp is logged as a warning and returned in the
result; it is never silent.
"""

from __future__ import annotations

from flask import current_app

from ..errors import InvalidState, NotFound, ValidationError
from ..extensions import db
from ..models import (
    FulfillmentMethod,
    Item,
    OrderItem,
    OrderStatus,
    Shipment,
    ShipmentLine,
    ShipmentState,
    TransactionSource,
    TransactionType,
    WorkOrder,
)
from ..time_utils import utcnow
from ..validation import parse_id_list, parse_int_id, parse_optional_text, parse_quantity, require_fields
from . import ledger_service
from .concurrency import require_uow
from .document_service import next_shipment_number
from .fulfillment_service import on_truck_qty, on_truck_totals, recompute_shipped_qty
from .lifecycle_service import SHIPMENT_TRANSITIONS, ensure_transition
from .order_status_service import refresh_order_status


QUEUE_STATUSES = (
    OrderStatus.READY_TO_SHIP,
    OrderStatus.PARTIAL,
    OrderStatus.SHIPPING,
    OrderStatus.DONE,
)

DEFAULT_DESTINATION = "Customer"


def _q(value) -> float:
    return round(float(value or 0), ledger_service.QTY_PRECISION)


def _arrival_source(order_item: OrderItem) -> TransactionSource:
    if order_item.fulfillment_method == FulfillmentMethod.PRODUCTION:
        return TransactionSource.PRODUCTION
    if order_item.fulfillment_method == FulfillmentMethod.TRADING:
        return TransactionSource.TRADING
    return TransactionSource.CUSTOMER_ORDER


def dispatch_shipment(
    uow,
    *,
    order_ids,
    driver_id,
    lines,
    actor_id: int | None,
    estimated_arrival=None,
    notes: str | None = None,
) -> dict:
    """
    Load ready quantity onto a new shipment.

    Per line: qty = min(requested, approved - shipped - on_truck, ready_qty).
    A line that caps to zero rejects the dispatch (InvalidState).
    """
    require_uow(uow)
    order_ids = parse_id_list(order_ids, "order_ids")
    if driver_id in (None, ""):
        raise ValidationError("driver_id is required")
    driver_id = parse_int_id(driver_id, "driver_id")
    if not isinstance(lines, list) or not lines:
        raise ValidationError("lines must be a non-empty list")
    notes = parse_optional_text(notes, "notes")

    orders = {}
    for order_id in dict.fromkeys(order_ids):
        orders[order_id] = uow.get(WorkOrder, order_id, for_update=True, label="Order")

    shipment = Shipment(
        document_number=next_shipment_number(uow),
        driver_id=driver_id,
        departed_at=utcnow(),
        estimated_arrival=estimated_arrival,
        notes=notes,
        created_by_user_id=actor_id,
    )
    uow.add(shipment)
    uow.flush()

    loaded_orders = set()
    capped = []
    for idx, raw in enumerate(lines):
        if not isinstance(raw, dict):
            raise ValidationError(f"lines[{idx}] must be an object")
        require_fields(raw, ("order_item_id", "qty"))
        order_item_id = parse_int_id(raw["order_item_id"], f"lines[{idx}].order_item_id")
        requested = parse_quantity(raw["qty"], f"lines[{idx}].qty")

        order_item = uow.get(OrderItem, order_item_id, for_update=True, label="Order item")
        if order_item.order_id not in orders:
            raise ValidationError(
                f"Order item {order_item_id} does not belong to the dispatched orders",
                order_item_id=order_item_id,
            )

        on_truck = on_truck_qty(uow, order_item.id)
        authorized_remaining = _q(order_item.approved_qty - order_item.shipped_qty - on_truck)
        qty = _q(min(requested, authorized_remaining, order_item.ready_qty))
        if qty <= 0:
            raise InvalidState(
                f"Nothing dispatchable for {order_item.name}: "
                f"authorized remaining {max(authorized_remaining, 0)}, ready {order_item.ready_qty}",
                order_item_id=order_item.id,
                authorized_remaining=authorized_remaining,
                ready_qty=order_item.ready_qty,
            )
        if qty < requested:
            capped.append({"order_item_id": order_item.id, "requested": requested, "dispatched": qty})

        uow.add(ShipmentLine(
            shipment_id=shipment.id,
            order_item_id=order_item.id,
            quantity=qty,
            dispatched_quantity=qty,
        ))
        order_item.ready_qty = _q(order_item.ready_qty - qty)
        loaded_orders.add(order_item.order_id)
        uow.flush()

    empty = [orders[oid].order_number for oid in orders if oid not in loaded_orders]
    if empty:
        raise ValidationError(f"No lines for order(s): {', '.join(empty)}")

    shipment.orders = list(orders.values())
    uow.flush()
    for order_id in orders:
        refresh_order_status(uow, order_id)

    current_app.logger.info(
        "Dispatched shipment %s (driver %s, %s line(s)) by actor %s",
        shipment.document_number, driver_id, len(lines), actor_id,
    )
    return {"shipment": shipment.to_dict(), "capped_lines": capped}


def confirm_arrival(
    uow,
    shipment_id: int,
    *,
    receiver_name: str,
    actor_id: int | None,
    arrived_at=None,
    notes: str | None = None,
    photo_url: str | None = None,
) -> dict:
    """
    Mark a shipment ARRIVED and debit the ledger for every line.

    effective_qty = min(line qty, current_stock, reserved_stock if FROM_STOCK);
    non-FROM_STOCK lines are capped by unreserved stock so other orders'
    reservations stay covered.
    """
    require_uow(uow)
    receiver_name = parse_optional_text(receiver_name, "receiver_name", max_length=255)
    if not receiver_name:
        raise ValidationError("receiver_name is required")

    shipment = uow.get(Shipment, shipment_id, for_update=True, label="Shipment")
    if shipment.arrived_at is not None:
        raise InvalidState(
            f"Shipment {shipment.document_number} already arrived",
            arrived_at=shipment.arrived_at.isoformat(),
        )
    ensure_transition(shipment.state, ShipmentState.ARRIVED, SHIPMENT_TRANSITIONS, entity="shipment")

    shipment.arrived_at = arrived_at or utcnow()
    shipment.receiver_name = receiver_name
    shipment.arrival_notes = parse_optional_text(notes, "notes")
    shipment.photo_url = parse_optional_text(photo_url, "photo_url", max_length=1024)
    shipment.arrival_confirmed_by_user_id = actor_id
    uow.flush()

    clamps = []
    affected_orders = {}
    for line in shipment.lines:
        order_item = uow.get(OrderItem, line.order_item_id, for_update=True, label="Order item")
        order = order_item.order
        affected_orders[order.id] = order
        qty = _q(line.quantity)

        if qty > 0 and order_item.item_id is not None:
            memo = (
                f"Delivered {order.order_number} - {order_item.name} "
                f"(receiver: {receiver_name})"
            )
            tx = ledger_service.record_stock_transaction(
                uow,
                item_id=order_item.item_id,
                type=TransactionType.OUT,
                source=_arrival_source(order_item),
                quantity=qty,
                destination=order.customer_name or DEFAULT_DESTINATION,
                order_number=order.order_number,
                memo=memo,
                actor_id=actor_id,
            )

            sku = uow.get(Item, order_item.item_id, for_update=True, label="Item")
            from_stock = order_item.fulfillment_method == FulfillmentMethod.FROM_STOCK
            if from_stock:
                effective = _q(min(qty, sku.current_stock, sku.reserved_stock))
            else:
                effective = _q(min(qty, sku.current_stock - sku.reserved_stock))
            effective = max(effective, 0.0)

            if effective < qty:
                current_app.logger.warning(
                    "Arrival clamp on shipment %s line %s (%s): nominal=%s effective=%s "
                    "current=%s reserved=%s",
                    shipment.document_number, line.id, order_item.name, qty, effective,
                    sku.current_stock, sku.reserved_stock,
                )
                clamps.append({
                    "shipment_line_id": line.id,
                    "order_item_id": order_item.id,
                    "item_id": sku.id,
                    "nominal_qty": qty,
                    "effective_qty": effective,
                })

            if effective > 0:
                if from_stock:
                    ledger_service.fulfill_from_reservation(
                        uow, sku.id, effective, actor_id, memo, transaction_id=tx.id
                    )
                else:
                    ledger_service.adjust_stock(
                        uow, sku.id, effective, TransactionType.OUT, actor_id, memo, transaction_id=tx.id
                    )

        recompute_shipped_qty(uow, order_item)

    statuses = {}
    for order_id in affected_orders:
        statuses[order_id] = refresh_order_status(uow, order_id).value

    current_app.logger.info(
        "Shipment %s arrived (receiver %s) confirmed by actor %s",
        shipment.document_number, receiver_name, actor_id,
    )
    return {
        "shipment": shipment.to_dict(),
        "order_statuses": statuses,
        "clamped_lines": clamps,
    }


def get_shipment(shipment_id: int) -> Shipment:
    shipment = db.session.get(Shipment, shipment_id)
    if shipment is None:
        raise NotFound(f"Shipment {shipment_id} not found")
    return shipment


def get_shipment_summary(shipment_id: int) -> dict:
    shipment = get_shipment(shipment_id)
    data = shipment.to_dict()
    for line_data, line in zip(data["lines"], shipment.lines):
        line_data["returns"] = [r.to_dict() for r in line.returns]
    data["total_quantity"] = _q(sum(line.quantity for line in shipment.lines))
    return data


def list_shipping_queue() -> list[dict]:
    """
    Orders visible to the shipping desk: warehouse-approved (or already
    shipping/done) and in a shippable status, with per-item on-truck quantity.
    """
    orders = (
        db.session.query(WorkOrder)
        .filter(
            db.or_(
                WorkOrder.warehouse_approved.is_(True),
                WorkOrder.status.in_((OrderStatus.SHIPPING, OrderStatus.DONE)),
            ),
            WorkOrder.status.in_(QUEUE_STATUSES),
        )
        .order_by(WorkOrder.updated_at.desc(), WorkOrder.id.desc())
        .all()
    )

    item_ids = [item.id for order in orders for item in order.items]
    on_truck = on_truck_totals(db.session, item_ids)

    result = []
    for order in orders:
        data = order.to_dict(include_items=True)
        for item in data["items"]:
            item["on_truck_qty"] = on_truck.get(item["id"], 0.0)
        data["shipments"] = [s.to_dict(include_lines=False) for s in order.shipments]
        result.append(data)
    return result
