# Overview: Service-layer operations for order fulfillment; owns order item quantities and their transitions.

"""
Fulfillment Tracker

Per order item:
- fulfillment_method is fixed at creation (FROM_STOCK, PRODUCTION, TRADING)
- fulfillment_status moves only through lifecycle_service.transition_order_item
- shipped_qty is recomputed from arrived shipment lines, never incremented

Approval authorizes quantity for shipment. It does not move physical stock;
that happens at dispatch (ready_qty) and arrival (ledger debit).

Approval cap (hard constraint):
    approved_qty <= qty
    approved_qty <= ready_qty + on_truck + shipped_qty

Drift that returns can legitimately cause is reported by find_anomalies(),
never raised.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..errors import InvalidState, NotFound, ValidationError
from ..extensions import db
from ..models import (
    FulfillmentMethod,
    FulfillmentStatus,
    Item,
    OrderItem,
    PurchaseOrder,
    PurchaseOrderStatus,
    Shipment,
    ShipmentLine,
    StockTransaction,
    TransactionSource,
    TransactionType,
    WorkOrder,
)
from ..validation import parse_int_id, parse_optional_text, parse_quantity, require_fields
from . import ledger_service
from .concurrency import require_uow
from .document_service import next_order_number
from .lifecycle_service import transition_order_item
from .order_status_service import refresh_approval_flags, refresh_order_status


PRODUCTION_FINISHED_STATUSES = {
    FulfillmentStatus.DONE,
    FulfillmentStatus.COMPLETED,
    FulfillmentStatus.FULFILLED,
}

APPROVED_PO_STATUSES = (PurchaseOrderStatus.APPROVED, PurchaseOrderStatus.DONE)


def _q(value) -> float:
    return round(float(value or 0), ledger_service.QTY_PRECISION)


# =============================================================================
# SHIPMENT LINE SUMS
# =============================================================================

def on_truck_totals(session, order_item_ids) -> dict[int, float]:
    """order_item_id -> quantity on shipments that have not arrived yet."""
    ids = list(order_item_ids)
    if not ids:
        return {}
    rows = (
        session.query(ShipmentLine.order_item_id, func.coalesce(func.sum(ShipmentLine.quantity), 0))
        .join(Shipment, Shipment.id == ShipmentLine.shipment_id)
        .filter(ShipmentLine.order_item_id.in_(ids), Shipment.arrived_at.is_(None))
        .group_by(ShipmentLine.order_item_id)
        .all()
    )
    return {item_id: _q(total) for item_id, total in rows}


def on_truck_qty(uow, order_item_id: int) -> float:
    require_uow(uow)
    uow.flush()
    return on_truck_totals(uow.session, [order_item_id]).get(order_item_id, 0.0)


def arrived_qty(uow, order_item_id: int) -> float:
    total = (
        uow.query(func.coalesce(func.sum(ShipmentLine.quantity), 0))
        .join(Shipment, Shipment.id == ShipmentLine.shipment_id)
        .filter(ShipmentLine.order_item_id == order_item_id, Shipment.arrived_at.isnot(None))
        .scalar()
    )
    return _q(total)


def recompute_shipped_qty(uow, order_item: OrderItem) -> float:
    """
    shipped_qty = sum of arrived shipment lines for the item.

    Idempotent. Marks the item FULFILLED once shipped covers qty.
    """
    require_uow(uow)
    uow.flush()
    shipped = arrived_qty(uow, order_item.id)
    order_item.shipped_qty = shipped
    if shipped > 0 and shipped >= order_item.qty - uow.tolerance:
        transition_order_item(order_item, FulfillmentStatus.FULFILLED)
    return shipped


# =============================================================================
# WORK ORDER CREATION
# =============================================================================

def _parse_order_item(raw, index: int) -> dict:
    if not isinstance(raw, dict):
        raise ValidationError(f"items[{index}] must be an object")

    method_raw = raw.get("fulfillment_method") or FulfillmentMethod.FROM_STOCK.value
    if isinstance(method_raw, FulfillmentMethod):
        method_raw = method_raw.value
    try:
        method = FulfillmentMethod(str(method_raw).upper())
    except ValueError:
        raise ValidationError(f"items[{index}].fulfillment_method is invalid: {method_raw}")

    item_id = raw.get("item_id")
    return {
        "name": parse_optional_text(raw.get("name"), f"items[{index}].name", max_length=255),
        "qty": parse_quantity(raw.get("qty"), f"items[{index}].qty"),
        "unit": parse_optional_text(raw.get("unit"), f"items[{index}].unit", max_length=32),
        "item_id": parse_int_id(item_id, f"items[{index}].item_id") if item_id not in (None, "") else None,
        "fulfillment_method": method,
    }


def create_work_order(
    uow,
    *,
    customer_name: str,
    items: list,
    actor_id: int | None,
    deadline=None,
    notes: str | None = None,
) -> WorkOrder:
    """
    Create an SPK in QUEUE with all items PENDING, then reserve stock for every
    FROM_STOCK item that has a backing SKU (those become RESERVED and ready).

    Reservation failure (not enough available stock) rejects the whole order.
    """
    require_uow(uow)
    customer_name = parse_optional_text(customer_name, "customer_name", max_length=255)
    if not customer_name:
        raise ValidationError("customer_name is required")
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    parsed = [_parse_order_item(raw, idx) for idx, raw in enumerate(items)]

    order = WorkOrder(
        order_number=next_order_number(uow),
        customer_name=customer_name,
        deadline=deadline,
        notes=notes,
        created_by_user_id=actor_id,
    )
    uow.add(order)
    uow.flush()

    for entry in parsed:
        sku = uow.get(Item, entry["item_id"], label="Item") if entry["item_id"] else None
        name = entry["name"] or (sku.name if sku else None)
        if not name:
            raise ValidationError("Each item needs a name or an item_id")
        uow.add(OrderItem(
            order_id=order.id,
            item_id=sku.id if sku else None,
            name=name,
            unit=entry["unit"] or (sku.unit if sku else "PCS"),
            qty=entry["qty"],
            fulfillment_method=entry["fulfillment_method"],
            fulfillment_status=FulfillmentStatus.PENDING,
        ))
    uow.flush()

    for order_item in order.items:
        if order_item.fulfillment_method != FulfillmentMethod.FROM_STOCK or order_item.item_id is None:
            continue
        ledger_service.reserve_stock(
            uow,
            order_item.item_id,
            order_item.qty,
            actor_id,
            f"Reserve for {order.order_number} (QUEUE) - {order_item.name}",
        )
        transition_order_item(order_item, FulfillmentStatus.RESERVED)
        order_item.ready_qty = order_item.qty

    uow.flush()
    return order


def get_order(order_id: int) -> WorkOrder:
    order = db.session.get(WorkOrder, order_id)
    if order is None:
        raise NotFound(f"Order {order_id} not found")
    return order


def order_to_dict(order: WorkOrder) -> dict:
    data = order.to_dict(include_items=True)
    on_truck = on_truck_totals(db.session, [i.id for i in order.items])
    for item in data["items"]:
        item["on_truck_qty"] = on_truck.get(item["id"], 0.0)
    return data


# =============================================================================
# APPROVAL
# =============================================================================

def purchase_order_approved(order: WorkOrder) -> bool:
    return any(po.status in APPROVED_PO_STATUSES for po in order.purchase_orders)


def can_approve(order_item: OrderItem, purchase_order_ok: bool) -> bool:
    """
    ready_qty > 0
    AND (method != TRADING or purchase order approved)
    AND (method != PRODUCTION or status in DONE/COMPLETED/FULFILLED)
    """
    if (order_item.ready_qty or 0) <= 0:
        return False
    if order_item.fulfillment_method == FulfillmentMethod.TRADING and not purchase_order_ok:
        return False
    if (
        order_item.fulfillment_method == FulfillmentMethod.PRODUCTION
        and order_item.fulfillment_status not in PRODUCTION_FINISHED_STATUSES
    ):
        return False
    return True


def _approval_blocker(order_item: OrderItem, purchase_order_ok: bool) -> str | None:
    if (order_item.ready_qty or 0) <= 0:
        return "Nothing ready to ship"
    if order_item.fulfillment_method == FulfillmentMethod.TRADING and not purchase_order_ok:
        return "Purchase order not approved"
    if (
        order_item.fulfillment_method == FulfillmentMethod.PRODUCTION
        and order_item.fulfillment_status not in PRODUCTION_FINISHED_STATUSES
    ):
        return "Production not finished"
    return None


def approval_check(order_id: int) -> dict:
    """Per-item eligibility for authorization (read-only)."""
    order = get_order(order_id)
    po_ok = purchase_order_approved(order)
    on_truck = on_truck_totals(db.session, [i.id for i in order.items])
    items = []
    for item in order.items:
        blocker = _approval_blocker(item, po_ok)
        authorizable = min(item.qty, item.ready_qty + on_truck.get(item.id, 0.0) + item.shipped_qty)
        items.append({
            "order_item_id": item.id,
            "name": item.name,
            "fulfillment_method": item.fulfillment_method.value,
            "fulfillment_status": item.fulfillment_status.value,
            "ready_qty": item.ready_qty,
            "approved_qty": item.approved_qty,
            "approvable_qty": max(_q(authorizable - item.approved_qty), 0.0),
            "can_approve": blocker is None,
            "reason": blocker,
        })
    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "purchase_order_approved": po_ok,
        "can_approve": any(i["can_approve"] for i in items),
        "items": items,
    }


def approve_items(uow, order_id: int, approvals: list, actor_id: int | None) -> dict:
    """
    Authorize quantities for shipment.

    Each approval is {order_item_id, qty}. The granted delta is capped so that
    approved_qty <= qty and approved_qty <= ready + on_truck + shipped.
    PRODUCTION items at DONE become COMPLETED.
    """
    require_uow(uow)
    if not isinstance(approvals, list) or not approvals:
        raise ValidationError("approvals must be a non-empty list")

    order = uow.get(WorkOrder, order_id, for_update=True, label="Order")
    po_ok = purchase_order_approved(order)
    results = []

    for idx, raw in enumerate(approvals):
        if not isinstance(raw, dict):
            raise ValidationError(f"approvals[{idx}] must be an object")
        require_fields(raw, ("order_item_id", "qty"))
        order_item_id = parse_int_id(raw["order_item_id"], "order_item_id")
        requested = parse_quantity(raw["qty"], f"approvals[{idx}].qty")

        order_item = uow.get(OrderItem, order_item_id, for_update=True, label="Order item")
        if order_item.order_id != order.id:
            raise ValidationError(
                f"Order item {order_item_id} does not belong to order {order.order_number}"
            )

        blocker = _approval_blocker(order_item, po_ok)
        if blocker:
            raise InvalidState(
                f"Item {order_item.name} cannot be approved: {blocker}",
                order_item_id=order_item.id,
            )

        on_truck = on_truck_qty(uow, order_item.id)
        ceiling = min(order_item.qty, order_item.ready_qty + on_truck + order_item.shipped_qty)
        remaining = _q(ceiling - order_item.approved_qty)
        granted = _q(min(requested, remaining))
        if granted <= 0:
            raise InvalidState(
                f"Item {order_item.name} has no quantity left to approve",
                order_item_id=order_item.id,
                approved_qty=order_item.approved_qty,
                ceiling=ceiling,
            )

        order_item.approved_qty = _q(order_item.approved_qty + granted)
        if (
            order_item.fulfillment_method == FulfillmentMethod.PRODUCTION
            and order_item.fulfillment_status == FulfillmentStatus.DONE
        ):
            transition_order_item(order_item, FulfillmentStatus.COMPLETED)

        if granted < requested:
            current_app.logger.info(
                "Approval capped for order item %s: requested=%s granted=%s",
                order_item.id, requested, granted,
            )
        results.append({
            "order_item_id": order_item.id,
            "requested_qty": requested,
            "granted_qty": granted,
            "approved_qty": order_item.approved_qty,
        })

    refresh_approval_flags(uow, order)
    status = refresh_order_status(uow, order.id)
    current_app.logger.info(
        "Approved %s item(s) on %s by actor %s", len(results), order.order_number, actor_id
    )
    return {
        "order_id": order.id,
        "order_status": status.value,
        "warehouse_approved": order.warehouse_approved,
        "items": results,
    }


# =============================================================================
# TRADING RECEIPT
# =============================================================================

def receive_trading_goods(
    uow,
    order_id: int,
    order_item_id: int,
    quantity,
    actor_id: int | None,
    price: float | None = None,
) -> dict:
    """
    Goods bought from a vendor for a TRADING item arrived at the warehouse.

    Requires an approved purchase order. Posts an IN movement (source TRADING)
    and ledger IN on the backing SKU, and makes the quantity ready to ship.
    """
    require_uow(uow)
    qty = parse_quantity(quantity, "qty")
    order = uow.get(WorkOrder, order_id, for_update=True, label="Order")
    order_item = uow.get(OrderItem, order_item_id, for_update=True, label="Order item")
    if order_item.order_id != order.id:
        raise ValidationError(f"Order item {order_item_id} does not belong to order {order.order_number}")
    if order_item.fulfillment_method != FulfillmentMethod.TRADING:
        raise InvalidState(f"Item {order_item.name} is not a TRADING item")
    if not purchase_order_approved(order):
        raise InvalidState("Purchase order not approved")

    outstanding = _q(order_item.qty - order_item.ready_qty - on_truck_qty(uow, order_item.id) - order_item.shipped_qty)
    if qty > outstanding + uow.tolerance:
        raise ValidationError(
            f"Receipt of {qty} exceeds outstanding quantity {outstanding} for {order_item.name}",
            outstanding=outstanding,
            requested=qty,
        )

    tx: StockTransaction | None = None
    if order_item.item_id is not None:
        memo = f"Goods in {order.order_number} - {order_item.name} (TRADING)"
        tx = ledger_service.record_stock_transaction(
            uow,
            item_id=order_item.item_id,
            type=TransactionType.IN,
            source=TransactionSource.TRADING,
            quantity=qty,
            price=price,
            order_number=order.order_number,
            memo=memo,
            actor_id=actor_id,
        )
        ledger_service.adjust_stock(
            uow, order_item.item_id, qty, TransactionType.IN, actor_id, memo, transaction_id=tx.id
        )

    order_item.ready_qty = _q(order_item.ready_qty + qty)
    status = refresh_order_status(uow, order.id)
    return {
        "order_item": order_item.to_dict(),
        "order_status": status.value,
        "transaction": tx.to_dict() if tx else None,
    }


# =============================================================================
# ANOMALIES
# =============================================================================

def find_anomalies(order_id: int | None = None, tolerance: float | None = None) -> list[dict]:
    """
    Items whose quantities drifted:
    - ready + on_truck + shipped > qty
    - approved > qty
    - shipped > approved
    Logged as warnings; never raised.
    """
    if tolerance is None:
        tolerance = float(current_app.config.get("QTY_TOLERANCE", 0.01))

    query = db.session.query(OrderItem).join(WorkOrder, WorkOrder.id == OrderItem.order_id)
    if order_id is not None:
        query = query.filter(OrderItem.order_id == order_id)
    items = query.order_by(OrderItem.id).all()
    on_truck = on_truck_totals(db.session, [i.id for i in items])

    anomalies = []
    for item in items:
        truck = on_truck.get(item.id, 0.0)
        problems = []
        accounted = _q(item.ready_qty + truck + item.shipped_qty)
        if accounted > item.qty + tolerance:
            problems.append(f"ready+on_truck+shipped ({accounted}) exceeds qty ({item.qty})")
        if item.approved_qty > item.qty + tolerance:
            problems.append(f"approved ({item.approved_qty}) exceeds qty ({item.qty})")
        if item.shipped_qty > item.approved_qty + tolerance:
            problems.append(f"shipped ({item.shipped_qty}) exceeds approved ({item.approved_qty})")
        if not problems:
            continue
        current_app.logger.warning(
            "Quantity anomaly on %s item %s (%s): %s",
            item.order.order_number, item.id, item.name, "; ".join(problems),
        )
        anomalies.append({
            "order_id": item.order_id,
            "order_number": item.order.order_number,
            "order_item_id": item.id,
            "name": item.name,
            "qty": item.qty,
            "approved_qty": item.approved_qty,
            "ready_qty": item.ready_qty,
            "on_truck_qty": truck,
            "shipped_qty": item.shipped_qty,
            "problems": problems,
        })
    return anomalies
