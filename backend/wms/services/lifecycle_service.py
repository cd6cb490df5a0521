# Overview: Service-layer operations for lifecycle; explicit state transition tables.

"""
Warehouse Lifecycle Service

================================================================================
PURPOSE: One place that says which state changes are legal
================================================================================

Every status column is an enum (models/enums.py). Services never compare or
assign raw strings; they call ensure_transition() before assigning a new
state, so an illegal move raises InvalidState instead of silently corrupting
the state machine.

ORDER ITEM FULFILLMENT (method-dependent):

    FROM_STOCK:  PENDING -> RESERVED -> FULFILLED
    PRODUCTION:  PENDING -> IN_PROGRESS -> DONE -> COMPLETED -> FULFILLED
    TRADING:     PENDING -> FULFILLED

    Returns reopen items:
      RECYCLE:   RESERVED/FULFILLED -> PENDING            (FROM_STOCK, TRADING)
                 DONE/COMPLETED/FULFILLED -> IN_PROGRESS  (PRODUCTION)
      REPACK:    FULFILLED -> RESERVED / COMPLETED

PRODUCTION REQUEST:
    PENDING -> APPROVED -> COMPLETED
    PENDING -> REJECTED

SHIPMENT:
    CREATED -> ARRIVED (terminal, arrived_at set once)

Self-transitions are always allowed (no-op).
================================================================================
"""

from __future__ import annotations

from ..errors import InvalidState
from ..models import (
    FulfillmentMethod,
    FulfillmentStatus,
    ProductionRequestStatus,
    ShipmentState,
)


FULFILLMENT_TRANSITIONS = {
    FulfillmentStatus.PENDING: {
        FulfillmentStatus.RESERVED,
        FulfillmentStatus.IN_PROGRESS,
        FulfillmentStatus.DONE,
        FulfillmentStatus.FULFILLED,
    },
    FulfillmentStatus.RESERVED: {
        FulfillmentStatus.FULFILLED,
        FulfillmentStatus.PENDING,
    },
    FulfillmentStatus.IN_PROGRESS: {
        FulfillmentStatus.DONE,
        FulfillmentStatus.PENDING,
        FulfillmentStatus.FULFILLED,
    },
    FulfillmentStatus.DONE: {
        FulfillmentStatus.COMPLETED,
        FulfillmentStatus.IN_PROGRESS,
        FulfillmentStatus.FULFILLED,
    },
    FulfillmentStatus.COMPLETED: {
        FulfillmentStatus.FULFILLED,
        FulfillmentStatus.IN_PROGRESS,
    },
    # Return-driven reopen
    FulfillmentStatus.FULFILLED: {
        FulfillmentStatus.PENDING,
        FulfillmentStatus.IN_PROGRESS,
        FulfillmentStatus.RESERVED,
        FulfillmentStatus.COMPLETED,
    },
}

# States an item may occupy for each fulfillment method
METHOD_STATUSES = {
    FulfillmentMethod.FROM_STOCK: {
        FulfillmentStatus.PENDING,
        FulfillmentStatus.RESERVED,
        FulfillmentStatus.FULFILLED,
    },
    FulfillmentMethod.PRODUCTION: {
        FulfillmentStatus.PENDING,
        FulfillmentStatus.IN_PROGRESS,
        FulfillmentStatus.DONE,
        FulfillmentStatus.COMPLETED,
        FulfillmentStatus.FULFILLED,
    },
    FulfillmentMethod.TRADING: {
        FulfillmentStatus.PENDING,
        FulfillmentStatus.FULFILLED,
    },
}

PRODUCTION_REQUEST_TRANSITIONS = {
    ProductionRequestStatus.PENDING: {
        ProductionRequestStatus.APPROVED,
        ProductionRequestStatus.REJECTED,
    },
    ProductionRequestStatus.APPROVED: {ProductionRequestStatus.COMPLETED},
    ProductionRequestStatus.REJECTED: set(),
    ProductionRequestStatus.COMPLETED: set(),
}

SHIPMENT_TRANSITIONS = {
    ShipmentState.CREATED: {ShipmentState.ARRIVED},
    ShipmentState.ARRIVED: set(),
}


def can_transition(current, target, table: dict) -> bool:
    if current == target:
        return True
    return target in table.get(current, set())


def ensure_transition(current, target, table: dict, *, entity: str = "record") -> None:
    if not can_transition(current, target, table):
        raise InvalidState(
            f"Cannot move {entity} from {current.value} to {target.value}",
            current_status=current.value,
            target_status=target.value,
        )


def transition_order_item(order_item, target: FulfillmentStatus) -> None:
    """Validate and apply a fulfillment status change on an OrderItem."""
    if target not in METHOD_STATUSES[order_item.fulfillment_method]:
        raise InvalidState(
            f"Status {target.value} is not valid for "
            f"{order_item.fulfillment_method.value} item {order_item.id}",
            current_status=order_item.fulfillment_status.value,
            target_status=target.value,
        )
    ensure_transition(
        order_item.fulfillment_status,
        target,
        FULFILLMENT_TRANSITIONS,
        entity=f"order item {order_item.id}",
    )
    order_item.fulfillment_status = target


def transition_production_request(request, target: ProductionRequestStatus) -> None:
    ensure_transition(
        request.status,
        target,
        PRODUCTION_REQUEST_TRANSITIONS,
        entity=f"production request {request.id}",
    )
    request.status = target
