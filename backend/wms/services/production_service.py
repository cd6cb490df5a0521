# Overview: Service-layer operations for production requests and production output.

"""
Production Allocator

LIFECYCLE (ProductionRequest):
    PENDING -> APPROVED -> COMPLETED
    PENDING -> REJECTED

Approval consumes raw material outright through ledger_service.adjust_stock
(OUT). It does not reserve: material handed to the factory floor is gone.

The availability check before the debit is advisory (fast fail with the
short item's name). The ledger primitive re-checks at write time, and any
failure rolls back the whole approval.
"""

from __future__ import annotations

from flask import current_app

from ..errors import InsufficientStock, InvalidState, ValidationError
from ..models import (
    FulfillmentMethod,
    FulfillmentStatus,
    Item,
    OrderItem,
    OrderStatus,
    ProductionRequest,
    ProductionRequestLine,
    ProductionRequestStatus,
    TransactionSource,
    TransactionType,
    WorkOrder,
)
from ..time_utils import utcnow
from ..validation import parse_int_id, parse_optional_text, parse_quantity, require_fields
from . import ledger_service
from .concurrency import require_uow
from .lifecycle_service import transition_order_item, transition_production_request
from .order_status_service import refresh_order_status


PRODUCTION_DESTINATION = "Production"


def _q(value) -> float:
    return round(float(value or 0), ledger_service.QTY_PRECISION)


def _get_request(uow, request_id: int) -> ProductionRequest:
    return uow.get(ProductionRequest, request_id, for_update=True, label="Production request")


def create_production_request(
    uow,
    *,
    order_id: int,
    lines: list,
    memo: str,
    actor_id: int | None,
) -> ProductionRequest:
    """
    Request raw material for an order's PRODUCTION items.

    memo is mandatory. Links every PRODUCTION item without an open request and
    moves it to IN_PROGRESS; the order becomes inventory-approved.
    """
    require_uow(uow)
    memo = parse_optional_text(memo, "memo")
    if not memo:
        raise ValidationError("memo is required for a production request")
    if not isinstance(lines, list) or not lines:
        raise ValidationError("lines must be a non-empty list")

    order = uow.get(WorkOrder, order_id, for_update=True, label="Order")
    production_items = [
        i for i in order.items if i.fulfillment_method == FulfillmentMethod.PRODUCTION
    ]
    if not production_items:
        raise InvalidState(f"Order {order.order_number} has no PRODUCTION items")

    request = ProductionRequest(order_id=order.id, memo=memo, created_by_user_id=actor_id)
    uow.add(request)
    uow.flush()

    for idx, raw in enumerate(lines):
        if not isinstance(raw, dict):
            raise ValidationError(f"lines[{idx}] must be an object")
        require_fields(raw, ("item_id", "quantity"))
        item_id = parse_int_id(raw["item_id"], f"lines[{idx}].item_id")
        quantity = parse_quantity(raw["quantity"], f"lines[{idx}].quantity")
        uow.get(Item, item_id, label="Item")
        uow.add(ProductionRequestLine(request_id=request.id, item_id=item_id, quantity=quantity))

    for order_item in production_items:
        if order_item.production_request_id is None:
            order_item.production_request_id = request.id
        if order_item.fulfillment_status == FulfillmentStatus.PENDING:
            transition_order_item(order_item, FulfillmentStatus.IN_PROGRESS)

    if not order.inventory_approved:
        order.inventory_approved = True
        order.inventory_approved_at = utcnow()

    uow.flush()
    refresh_order_status(uow, order.id)
    return request


def approve_production_request(uow, request_id: int, actor_id: int | None) -> dict:
    """
    PENDING -> APPROVED; debit every raw-material line.

    Raises:
        NotFound: request missing
        InvalidState: request not PENDING
        InsufficientStock: first short line (name, available, requested)
    """
    require_uow(uow)
    request = _get_request(uow, request_id)
    if request.status != ProductionRequestStatus.PENDING:
        raise InvalidState(
            f"Production request {request.id} is {request.status.value}, expected PENDING",
            current_status=request.status.value,
        )

    # Advisory pre-check; adjust_stock re-validates under the row lock
    for line in request.lines:
        item = line.item
        if (item.current_stock or 0) < line.quantity:
            raise InsufficientStock(
                f"Insufficient stock for {item.name}: available {item.current_stock}, "
                f"requested {line.quantity}",
                item_id=item.id,
                item_name=item.name,
                available=item.current_stock,
                requested=line.quantity,
            )

    transition_production_request(request, ProductionRequestStatus.APPROVED)
    request.approved_at = utcnow()
    request.approved_by_user_id = actor_id

    order_number = request.order.order_number
    memo = f"Production request {order_number}: {request.memo}"
    transactions = []
    for line in request.lines:
        tx = ledger_service.record_stock_transaction(
            uow,
            item_id=line.item_id,
            type=TransactionType.OUT,
            source=TransactionSource.RAW_MATERIAL,
            quantity=line.quantity,
            destination=PRODUCTION_DESTINATION,
            order_number=order_number,
            memo=memo,
            actor_id=actor_id,
        )
        ledger_service.adjust_stock(
            uow,
            line.item_id,
            line.quantity,
            TransactionType.OUT,
            actor_id,
            memo,
            transaction_id=tx.id,
        )
        transactions.append(tx)

    current_app.logger.info(
        "Production request %s approved by actor %s (%s line(s))",
        request.id, actor_id, len(transactions),
    )
    return {"request": request.to_dict(), "transactions": [t.to_dict() for t in transactions]}


def reject_production_request(uow, request_id: int, actor_id: int | None, reason: str | None = None) -> ProductionRequest:
    """
    PENDING -> REJECTED. Nothing was debited, so no stock moves.

    Linked items are unlinked; untouched ones go back to PENDING. The order
    returns to QUEUE when nothing else on it has progressed.
    """
    require_uow(uow)
    request = _get_request(uow, request_id)
    transition_production_request(request, ProductionRequestStatus.REJECTED)
    request.rejected_at = utcnow()
    request.rejected_by_user_id = actor_id
    request.rejection_reason = parse_optional_text(reason, "reason")

    order = uow.get(WorkOrder, request.order_id, for_update=True, label="Order")
    for order_item in order.items:
        if order_item.production_request_id != request.id:
            continue
        order_item.production_request_id = None
        if (
            order_item.fulfillment_status == FulfillmentStatus.IN_PROGRESS
            and (order_item.produced_qty or 0) <= 0
        ):
            transition_order_item(order_item, FulfillmentStatus.PENDING)

    other_open = any(
        r.id != request.id
        and r.status in (ProductionRequestStatus.PENDING, ProductionRequestStatus.APPROVED)
        for r in order.production_requests
    )
    progressed = other_open or order.shipments or any(
        (i.produced_qty or 0) > 0 or (i.approved_qty or 0) > 0 or (i.shipped_qty or 0) > 0
        for i in order.items
    )
    uow.flush()
    if progressed:
        refresh_order_status(uow, order.id)
    else:
        order.status = OrderStatus.QUEUE
    return request


def complete_production_request(uow, request_id: int, actor_id: int | None) -> ProductionRequest:
    require_uow(uow)
    request = _get_request(uow, request_id)
    transition_production_request(request, ProductionRequestStatus.COMPLETED)
    request.completed_at = utcnow()
    request.completed_by_user_id = actor_id
    return request


def record_production_output(
    uow,
    order_id: int,
    order_item_id: int,
    additional_qty,
    actor_id: int | None,
) -> dict:
    """
    Report finished units for a PRODUCTION item.

    produced_qty and ready_qty grow by the reported amount; the backing
    finished-good SKU receives a PRODUCTION IN movement. The item is DONE once
    produced covers qty. Output beyond qty is rejected.
    """
    require_uow(uow)
    qty = parse_quantity(additional_qty, "additional_qty")
    order = uow.get(WorkOrder, order_id, for_update=True, label="Order")
    order_item = uow.get(OrderItem, order_item_id, for_update=True, label="Order item")
    if order_item.order_id != order.id:
        raise ValidationError(f"Order item {order_item_id} does not belong to order {order.order_number}")
    if order_item.fulfillment_method != FulfillmentMethod.PRODUCTION:
        raise InvalidState(f"Item {order_item.name} is not a PRODUCTION item")

    new_produced = _q(order_item.produced_qty + qty)
    if new_produced > order_item.qty + uow.tolerance:
        raise ValidationError(
            f"Output of {qty} would exceed ordered quantity {order_item.qty} "
            f"(already produced {order_item.produced_qty})",
            produced_qty=order_item.produced_qty,
            requested=qty,
        )

    order_item.produced_qty = new_produced
    order_item.ready_qty = _q(order_item.ready_qty + qty)
    if new_produced >= order_item.qty - uow.tolerance:
        transition_order_item(order_item, FulfillmentStatus.DONE)
    else:
        transition_order_item(order_item, FulfillmentStatus.IN_PROGRESS)

    tx = None
    if order_item.item_id is not None:
        memo = f"Production output in: {order_item.name} ({order.order_number})"
        tx = ledger_service.record_stock_transaction(
            uow,
            item_id=order_item.item_id,
            type=TransactionType.IN,
            source=TransactionSource.PRODUCTION,
            quantity=qty,
            order_number=order.order_number,
            memo=memo,
            actor_id=actor_id,
        )
        ledger_service.adjust_stock(
            uow, order_item.item_id, qty, TransactionType.IN, actor_id, memo, transaction_id=tx.id
        )

    if order.status == OrderStatus.QUEUE and not order.inventory_approved:
        order.inventory_approved = True
        order.inventory_approved_at = utcnow()

    status = refresh_order_status(uow, order.id)
    return {
        "order_item": order_item.to_dict(),
        "order_status": status.value,
        "transaction": tx.to_dict() if tx else None,
    }
