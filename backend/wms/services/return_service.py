# Overview: Service-layer operations for shipment returns (repack / recycle), before or after arrival.

"""
Return Processor

A return takes quantity off a shipment line. The ShipmentLine row is kept
(its quantity shrinks) and a ShipmentReturn row records what happened.

REASONS:
- REPACK:  goods go back on the shelf, still authorized (approved_qty kept)
- RECYCLE: goods are scrap; authorization is withdrawn (approved_qty drops),
           a WasteStock entry is written and the item is reopened

STOCK REVERSAL depends on where the goods are:

  In transit (shipment.arrived_at is NULL): the ledger was never debited.
    REPACK   ready_qty += qty. Reservation untouched.
    RECYCLE  FROM_STOCK: release reservation (capped to what is reserved),
             then adjust OUT. PRODUCTION / TRADING: adjust OUT.
             Plus a RECYCLE OUT movement.

  Arrived: arrival already debited the ledger.
    REPACK   compensating adjust IN + RETURN IN movement; FROM_STOCK
             re-reserves the quantity so reserved stock covers ready_qty.
    RECYCLE  no further debit (the goods already left); waste + reopen only.

Either way shipped_qty is recomputed from arrived lines, then the order
status is re-derived.
"""

from __future__ import annotations

from flask import current_app

from ..errors import ValidationError
from ..models import (
    FulfillmentMethod,
    FulfillmentStatus,
    Item,
    OrderItem,
    ReturnReason,
    ShipmentLine,
    ShipmentReturn,
    TransactionSource,
    TransactionType,
    WorkOrder,
)
from ..time_utils import utcnow
from ..validation import parse_optional_text, parse_quantity
from . import ledger_service
from .concurrency import require_uow
from .fulfillment_service import recompute_shipped_qty
from .lifecycle_service import transition_order_item
from .order_status_service import refresh_approval_flags, refresh_order_status
from .waste_service import record_waste


def _q(value) -> float:
    return round(float(value or 0), ledger_service.QTY_PRECISION)


def _parse_reason(reason) -> ReturnReason:
    if isinstance(reason, ReturnReason):
        return reason
    try:
        return ReturnReason(str(reason or "").strip().upper())
    except ValueError:
        raise ValidationError(
            f"reason must be one of: {', '.join(r.value for r in ReturnReason)}"
        )


def _repack_status(order_item: OrderItem) -> FulfillmentStatus:
    """Ready-to-ship state for the item's method."""
    method = order_item.fulfillment_method
    if method == FulfillmentMethod.FROM_STOCK:
        return FulfillmentStatus.RESERVED if order_item.item_id is not None else FulfillmentStatus.PENDING
    if method == FulfillmentMethod.PRODUCTION:
        if order_item.fulfillment_status == FulfillmentStatus.FULFILLED:
            return FulfillmentStatus.COMPLETED
        return order_item.fulfillment_status
    return FulfillmentStatus.PENDING


def _reopen_after_recycle(order_item: OrderItem, qty: float) -> None:
    if order_item.fulfillment_method == FulfillmentMethod.PRODUCTION:
        order_item.produced_qty = max(_q(order_item.produced_qty - qty), 0.0)
        # Shortfall shows up again as production needed
        order_item.production_request_id = None
        transition_order_item(order_item, FulfillmentStatus.IN_PROGRESS)
    else:
        transition_order_item(order_item, FulfillmentStatus.PENDING)
    order_item.recycled_qty = _q(order_item.recycled_qty + qty)


def _reverse_in_transit(uow, order_item, order, qty, reason, memo, actor_id) -> None:
    sku_id = order_item.item_id

    if reason == ReturnReason.REPACK:
        order_item.ready_qty = _q(order_item.ready_qty + qty)
        transition_order_item(order_item, _repack_status(order_item))
        return

    if sku_id is not None:
        if order_item.fulfillment_method == FulfillmentMethod.FROM_STOCK:
            sku = uow.get(Item, sku_id, for_update=True, label="Item")
            releasable = _q(min(qty, sku.reserved_stock))
            if releasable > 0:
                ledger_service.release_stock(uow, sku_id, releasable, actor_id, memo)
            if releasable < qty:
                current_app.logger.warning(
                    "Recycle of %s on %s released only %s of %s reserved",
                    order_item.name, order.order_number, releasable, qty,
                )
        tx = ledger_service.record_stock_transaction(
            uow,
            item_id=sku_id,
            type=TransactionType.OUT,
            source=TransactionSource.RECYCLE,
            quantity=qty,
            order_number=order.order_number,
            memo=memo,
            actor_id=actor_id,
        )
        ledger_service.adjust_stock(
            uow, sku_id, qty, TransactionType.OUT, actor_id, memo, transaction_id=tx.id
        )

    _reopen_after_recycle(order_item, qty)


def _reverse_arrived(uow, order_item, order, qty, reason, memo, actor_id) -> None:
    sku_id = order_item.item_id

    if reason == ReturnReason.REPACK:
        if sku_id is not None:
            tx = ledger_service.record_stock_transaction(
                uow,
                item_id=sku_id,
                type=TransactionType.IN,
                source=TransactionSource.RETURN,
                quantity=qty,
                order_number=order.order_number,
                memo=memo,
                actor_id=actor_id,
            )
            ledger_service.adjust_stock(
                uow, sku_id, qty, TransactionType.IN, actor_id, memo, transaction_id=tx.id
            )
            if order_item.fulfillment_method == FulfillmentMethod.FROM_STOCK:
                ledger_service.reserve_stock(uow, sku_id, qty, actor_id, memo)
        order_item.ready_qty = _q(order_item.ready_qty + qty)
        transition_order_item(order_item, _repack_status(order_item))
        return

    _reopen_after_recycle(order_item, qty)


def return_shipment_line(
    uow,
    shipment_line_id: int,
    qty,
    reason,
    actor_id: int | None,
    notes: str | None = None,
) -> dict:
    """
    Take qty off a shipment line as REPACK or RECYCLE.

    Raises:
        NotFound: shipment line missing
        ValidationError: qty not in (0, line quantity], unknown reason
    """
    require_uow(uow)
    qty = parse_quantity(qty, "qty")
    reason = _parse_reason(reason)
    notes = parse_optional_text(notes, "notes")

    line = uow.get(ShipmentLine, shipment_line_id, for_update=True, label="Shipment line")
    if qty > _q(line.quantity):
        raise ValidationError(
            f"Return quantity {qty} exceeds shipment line quantity {line.quantity}",
            line_quantity=line.quantity,
            requested=qty,
        )

    order_item = uow.get(OrderItem, line.order_item_id, for_update=True, label="Order item")
    order = uow.get(WorkOrder, order_item.order_id, for_update=True, label="Order")
    in_transit = line.shipment.arrived_at is None

    record = ShipmentReturn(
        shipment_line_id=line.id,
        quantity=qty,
        reason=reason,
        notes=notes,
        was_in_transit=in_transit,
        created_by_user_id=actor_id,
    )
    uow.add(record)
    line.quantity = _q(line.quantity - qty)

    if reason != ReturnReason.REPACK:
        order_item.approved_qty = max(_q(order_item.approved_qty - qty), 0.0)

    memo = f"Return ({reason.value}) {order.order_number} - {order_item.name}"
    if notes:
        memo = f"{memo}: {notes}"
    if in_transit:
        _reverse_in_transit(uow, order_item, order, qty, reason, memo, actor_id)
    else:
        _reverse_arrived(uow, order_item, order, qty, reason, memo, actor_id)

    waste = None
    if reason == ReturnReason.RECYCLE and order_item.item_id is not None:
        waste = record_waste(
            uow,
            material_id=order_item.item_id,
            order_id=order.id,
            quantity=qty,
            notes=memo,
        )

    uow.flush()
    recompute_shipped_qty(uow, order_item)

    status = refresh_order_status(uow, order.id)
    if not order.inventory_approved:
        order.inventory_approved = True
        order.inventory_approved_at = order.inventory_approved_at or utcnow()
    refresh_approval_flags(uow, order)

    current_app.logger.info(
        "Return %s of %s on shipment line %s (%s) by actor %s",
        reason.value, qty, line.id, "in transit" if in_transit else "arrived", actor_id,
    )
    return {
        "return": record.to_dict(),
        "shipment_line": line.to_dict(),
        "order_item": order_item.to_dict(),
        "order_status": status.value,
        "waste": waste.to_dict() if waste else None,
    }
