# Overview: Flask API routes for work orders; creation, approval, production output and trading receipt.

# backend/wms/routes/orders.py
"""
Work Order API Routes

WHY: Work orders (SPK) are the unit of demand. Everything downstream
(production, shipping, returns) hangs off an order and its items.

DESIGN:
- Routes parse JSON and open exactly one unit of work per request
- Services do all state changes; routes never touch stock fields
- Order status is derived server-side and only ever read here

SECURITY:
- MANAGE_ORDERS for creation, production output and trading receipt
- APPROVE_ITEMS for shipment authorization
- VIEW_STOCK for read-only views
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import WmsError
from ..services import fulfillment_service, production_service
from ..services.concurrency import unit_of_work
from ..validation import parse_optional_datetime, parse_optional_text
from ..decorators import require_actor, require_permission


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


# =============================================================================
# ORDER CREATION / LOOKUP
# =============================================================================

@orders_bp.post("")
@require_actor
@require_permission("MANAGE_ORDERS")
def create_order_route():
    """
    Create a work order. FROM_STOCK items with an item_id are reserved at once.

    Request body:
    {
        "customer_name": "PT Sinar Jaya",
        "deadline": "2026-03-01T00:00:00Z",  (optional)
        "notes": "...",  (optional)
        "items": [
            {"item_id": 1, "qty": 10, "fulfillment_method": "FROM_STOCK"},
            {"name": "Custom crate", "qty": 5, "unit": "PCS", "fulfillment_method": "PRODUCTION"}
        ]
    }

    Returns:
        201: Order created (status QUEUE)
        400: Invalid input or not enough available stock to reserve
    """
    try:
        data = request.get_json(silent=True) or {}

        with unit_of_work() as uow:
            order = fulfillment_service.create_work_order(
                uow,
                customer_name=data.get("customer_name"),
                items=data.get("items"),
                actor_id=g.actor_id,
                deadline=parse_optional_datetime(data.get("deadline"), "deadline"),
                notes=parse_optional_text(data.get("notes"), "notes"),
            )
            order_id = order.id

        order = fulfillment_service.get_order(order_id)
        return jsonify({"order": fulfillment_service.order_to_dict(order)}), 201

    except WmsError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create work order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_actor
@require_permission("VIEW_STOCK")
def get_order_route(order_id: int):
    order = fulfillment_service.get_order(order_id)
    return jsonify({"order": fulfillment_service.order_to_dict(order)}), 200


@orders_bp.get("/anomalies")
@require_actor
@require_permission("VIEW_STOCK")
def list_anomalies_route():
    """Items whose ready/approved/shipped quantities drifted past qty."""
    order_id = request.args.get("order_id", type=int)
    anomalies = fulfillment_service.find_anomalies(order_id=order_id)
    return jsonify({"anomalies": anomalies, "count": len(anomalies)}), 200


# =============================================================================
# SHIPMENT AUTHORIZATION
# =============================================================================

@orders_bp.get("/<int:order_id>/approval-check")
@require_actor
@require_permission("VIEW_STOCK")
def approval_check_route(order_id: int):
    return jsonify(fulfillment_service.approval_check(order_id)), 200


@orders_bp.post("/<int:order_id>/approve-items")
@require_actor
@require_permission("APPROVE_ITEMS")
def approve_items_route(order_id: int):
    """
    Authorize item quantities for shipment.

    Request body:
    {
        "approvals": [{"order_item_id": 3, "qty": 10}]
    }

    Returns:
        200: Granted quantities (capped to qty and ready + on_truck + shipped)
        400: Item not approvable or nothing left to approve
    """
    try:
        data = request.get_json(silent=True) or {}

        with unit_of_work() as uow:
            result = fulfillment_service.approve_items(
                uow, order_id, data.get("approvals"), g.actor_id
            )

        return jsonify(result), 200

    except WmsError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to approve items")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# ITEM PROGRESS
# =============================================================================

@orders_bp.post("/<int:order_id>/items/<int:order_item_id>/production-output")
@require_actor
@require_permission("MANAGE_ORDERS")
def production_output_route(order_id: int, order_item_id: int):
    """
    Report finished units for a PRODUCTION item.

    Request body:
    {
        "additional_qty": 4
    }
    """
    try:
        data = request.get_json(silent=True) or {}

        with unit_of_work() as uow:
            result = production_service.record_production_output(
                uow, order_id, order_item_id, data.get("additional_qty"), g.actor_id
            )

        return jsonify(result), 200

    except WmsError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to record production output")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/items/<int:order_item_id>/receive")
@require_actor
@require_permission("MANAGE_ORDERS")
def receive_trading_goods_route(order_id: int, order_item_id: int):
    """
    Book vendor goods for a TRADING item into the warehouse.

    Request body:
    {
        "qty": 20,
        "price": 12500  (optional, unit purchase price)
    }
    """
    try:
        data = request.get_json(silent=True) or {}

        price = data.get("price")
        if price is not None:
            try:
                price = float(price)
            except (TypeError, ValueError):
                return jsonify({"error": "price must be a number"}), 400

        with unit_of_work() as uow:
            result = fulfillment_service.receive_trading_goods(
                uow, order_id, order_item_id, data.get("qty"), g.actor_id, price=price
            )

        return jsonify(result), 200

    except WmsError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to receive trading goods")
        return jsonify({"error": "Internal server error"}), 500
