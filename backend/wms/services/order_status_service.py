# Overview: Service-layer operations for order status; pure recomputation from item and shipment state.

"""
Order Status Aggregation

The work order status is DERIVED, never stored from input. After every
item-level mutation the caller runs refresh_order_status(), which rebuilds the
status from the order's items and their shipment lines:

    total_on_truck > 0                       -> SHIPPING
    total_shipped >= total_qty - eps         -> DONE
    total_shipped > 0                        -> PARTIAL
    any PRODUCTION item with produced < qty  -> IN_PROGRESS
    otherwise                                -> READY_TO_SHIP

compute_order_status() is a pure function over plain snapshots: running it
twice with the same inputs gives the same answer, and input order does not
matter.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..models import (
    FulfillmentMethod,
    OrderItem,
    OrderStatus,
    Shipment,
    ShipmentLine,
    WorkOrder,
)
from .concurrency import DEFAULT_QTY_TOLERANCE, require_uow


@dataclass(frozen=True)
class ItemSnapshot:
    qty: float
    approved_qty: float
    shipped_qty: float
    produced_qty: float
    fulfillment_method: FulfillmentMethod

    @classmethod
    def from_order_item(cls, item: OrderItem) -> "ItemSnapshot":
        return cls(
            qty=item.qty or 0,
            approved_qty=item.approved_qty or 0,
            shipped_qty=item.shipped_qty or 0,
            produced_qty=item.produced_qty or 0,
            fulfillment_method=item.fulfillment_method,
        )


@dataclass(frozen=True)
class LineSnapshot:
    quantity: float
    arrived: bool


def compute_order_status(
    items: Iterable[ItemSnapshot],
    lines: Iterable[LineSnapshot],
    tolerance: float = DEFAULT_QTY_TOLERANCE,
) -> OrderStatus:
    items = list(items)
    if not items:
        return OrderStatus.QUEUE

    total_qty = sum(i.qty for i in items)
    total_shipped = sum(i.shipped_qty for i in items)
    total_on_truck = sum(line.quantity for line in lines if not line.arrived)

    if total_on_truck > 0:
        return OrderStatus.SHIPPING
    if total_shipped >= total_qty - tolerance:
        return OrderStatus.DONE
    if total_shipped > 0:
        return OrderStatus.PARTIAL

    production_items = [i for i in items if i.fulfillment_method == FulfillmentMethod.PRODUCTION]
    if production_items and not all(i.produced_qty >= i.qty - tolerance for i in production_items):
        return OrderStatus.IN_PROGRESS
    return OrderStatus.READY_TO_SHIP


def snapshot_order(uow, order: WorkOrder) -> tuple[list[ItemSnapshot], list[LineSnapshot]]:
    items = [ItemSnapshot.from_order_item(i) for i in order.items]
    rows = (
        uow.query(ShipmentLine.quantity, Shipment.arrived_at)
        .join(Shipment, Shipment.id == ShipmentLine.shipment_id)
        .join(OrderItem, OrderItem.id == ShipmentLine.order_item_id)
        .filter(OrderItem.order_id == order.id)
        .all()
    )
    lines = [LineSnapshot(quantity=qty or 0, arrived=arrived_at is not None) for qty, arrived_at in rows]
    return items, lines


def refresh_order_status(uow, order_id: int) -> OrderStatus:
    """Recompute and persist the order's status. Idempotent."""
    require_uow(uow)
    uow.flush()
    order = uow.get(WorkOrder, order_id, for_update=True, label="Order")
    items, lines = snapshot_order(uow, order)
    status = compute_order_status(items, lines, uow.tolerance)
    if order.status != status:
        order.status = status
    return status


def order_totals(order: WorkOrder) -> dict:
    return {
        "total_qty": sum(i.qty or 0 for i in order.items),
        "total_approved": sum(i.approved_qty or 0 for i in order.items),
        "total_shipped": sum(i.shipped_qty or 0 for i in order.items),
    }


def refresh_approval_flags(uow, order: WorkOrder) -> None:
    """warehouse_approved once approvals cover the whole order (within tolerance)."""
    totals = order_totals(order)
    order.warehouse_approved = totals["total_approved"] >= totals["total_qty"] - uow.tolerance
