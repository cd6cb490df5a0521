# Overview: Flask API routes for shipments; dispatch, arrival confirmation, returns and the shipping queue.

# backend/wms/routes/shipping.py
"""
Shipping API Routes

WHY: Goods move in two stages. Dispatch takes ready quantity off the shelf
onto a truck; arrival debits the ledger. Returns reverse part of a line.

DESIGN:
- One unit of work per request; a failed dispatch leaves no shipment behind
- Arrival clamps are reported back in the response, never hidden

SECURITY:
- DISPATCH_SHIPMENT for dispatch and arrival
- PROCESS_RETURN for returns
- VIEW_STOCK for queue and summaries
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import WmsError
from ..services import return_service, shipping_service
from ..services.concurrency import unit_of_work
from ..validation import parse_optional_datetime
from ..decorators import require_actor, require_permission


shipping_bp = Blueprint("shipping", __name__, url_prefix="/api/shipments")


# =============================================================================
# DISPATCH / ARRIVAL
# =============================================================================

@shipping_bp.post("")
@require_actor
@require_permission("DISPATCH_SHIPMENT")
def dispatch_shipment_route():
    """
    Dispatch a shipment for one or more orders.

    Request body:
    {
        "order_ids": [4, 5],
        "driver_id": 2,
        "estimated_arrival": "2026-02-12T10:00:00Z",  (optional)
        "notes": "Truck B 1234 XY",  (optional)
        "lines": [{"order_item_id": 9, "qty": 10}]
    }

    Returns:
        201: Shipment created; capped_lines lists lines loaded below request
        400: Nothing dispatchable on a line, or invalid input
    """
    try:
        data = request.get_json(silent=True) or {}

        with unit_of_work() as uow:
            result = shipping_service.dispatch_shipment(
                uow,
                order_ids=data.get("order_ids"),
                driver_id=data.get("driver_id"),
                lines=data.get("lines"),
                actor_id=g.actor_id,
                estimated_arrival=parse_optional_datetime(
                    data.get("estimated_arrival"), "estimated_arrival"
                ),
                notes=data.get("notes"),
            )

        return jsonify(result), 201

    except WmsError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to dispatch shipment")
        return jsonify({"error": "Internal server error"}), 500


@shipping_bp.post("/<int:shipment_id>/arrival")
@require_actor
@require_permission("DISPATCH_SHIPMENT")
def confirm_arrival_route(shipment_id: int):
    """
    Confirm a shipment arrived at the customer.

    Request body:
    {
        "receiver_name": "Budi",
        "arrived_at": "2026-02-12T09:41:00Z",  (optional, default now)
        "notes": "...",  (optional)
        "photo_url": "https://..."  (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}

        with unit_of_work() as uow:
            result = shipping_service.confirm_arrival(
                uow,
                shipment_id,
                receiver_name=data.get("receiver_name"),
                actor_id=g.actor_id,
                arrived_at=parse_optional_datetime(data.get("arrived_at"), "arrived_at"),
                notes=data.get("notes"),
                photo_url=data.get("photo_url"),
            )

        return jsonify(result), 200

    except WmsError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to confirm arrival")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# RETURNS
# =============================================================================

@shipping_bp.post("/returns")
@require_actor
@require_permission("PROCESS_RETURN")
def return_shipment_line_route():
    """
    Return part of a shipment line.

    Request body:
    {
        "shipment_line_id": 11,
        "qty": 2,
        "reason": "REPACK" | "RECYCLE",
        "notes": "Crushed corner"  (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}

        shipment_line_id = data.get("shipment_line_id")
        if not isinstance(shipment_line_id, int) or isinstance(shipment_line_id, bool):
            return jsonify({"error": "shipment_line_id required"}), 400

        with unit_of_work() as uow:
            result = return_service.return_shipment_line(
                uow,
                shipment_line_id,
                data.get("qty"),
                data.get("reason"),
                g.actor_id,
                notes=data.get("notes"),
            )

        return jsonify(result), 200

    except WmsError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to process shipment return")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# READ VIEWS
# =============================================================================

@shipping_bp.get("/queue")
@require_actor
@require_permission("VIEW_STOCK")
def shipping_queue_route():
    orders = shipping_service.list_shipping_queue()
    return jsonify({"orders": orders, "count": len(orders)}), 200


@shipping_bp.get("/<int:shipment_id>")
@require_actor
@require_permission("VIEW_STOCK")
def get_shipment_route(shipment_id: int):
    return jsonify({"shipment": shipping_service.get_shipment_summary(shipment_id)}), 200
