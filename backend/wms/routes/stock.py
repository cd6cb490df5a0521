# Overview: Flask API routes for stock levels, ledger history, manual adjustments and waste.

# backend/wms/routes/stock.py
"""
Stock API Routes

WHY: Read access to the ledger and a single audited door for manual
corrections. Every adjustment writes a StockTransaction and a StockHistory
row; there is no way to set current_stock directly.

SECURITY:
- VIEW_STOCK for reads
- ADJUST_STOCK (admin roles) for manual adjustments
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import WmsError
from ..services import ledger_service, waste_service
from ..services.concurrency import unit_of_work
from ..decorators import require_actor, require_permission


stock_bp = Blueprint("stock", __name__, url_prefix="/api")


@stock_bp.get("/stock/items/<int:item_id>")
@require_actor
@require_permission("VIEW_STOCK")
def get_item_stock_route(item_id: int):
    """Stock levels plus weighted average price and stock value."""
    return jsonify({"item": ledger_service.get_stock_summary(item_id)}), 200


@stock_bp.get("/stock/items/<int:item_id>/history")
@require_actor
@require_permission("VIEW_STOCK")
def get_item_history_route(item_id: int):
    limit = request.args.get("limit", 100, type=int)
    limit = max(1, min(limit, 1000))

    ledger_service.get_stock_summary(item_id)
    history = ledger_service.list_stock_history(item_id, limit=limit)
    return jsonify({
        "item_id": item_id,
        "history": [h.to_dict() for h in history],
        "count": len(history),
    }), 200


@stock_bp.post("/stock/adjustments")
@require_actor
@require_permission("ADJUST_STOCK")
def create_adjustment_route():
    """
    Post a manual IN/OUT adjustment.

    Request body:
    {
        "item_id": 3,
        "quantity": 12.5,
        "direction": "IN" | "OUT",
        "reason": "Cycle count correction",
        "price": 9800  (optional, IN only)
    }

    Returns:
        201: Adjustment posted
        400: Missing reason, invalid quantity, or OUT below reserved stock
    """
    try:
        data = request.get_json(silent=True) or {}

        item_id = data.get("item_id")
        if not isinstance(item_id, int) or isinstance(item_id, bool):
            return jsonify({"error": "item_id required"}), 400

        price = data.get("price")
        if price is not None:
            try:
                price = float(price)
            except (TypeError, ValueError):
                return jsonify({"error": "price must be a number"}), 400

        with unit_of_work() as uow:
            result = ledger_service.post_manual_adjustment(
                uow,
                item_id=item_id,
                quantity=data.get("quantity"),
                direction=data.get("direction"),
                reason=data.get("reason"),
                actor_id=g.actor_id,
                price=price,
            )

        return jsonify(result), 201

    except WmsError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to post stock adjustment")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/waste")
@require_actor
@require_permission("VIEW_STOCK")
def list_waste_route():
    material_id = request.args.get("material_id", type=int)
    order_id = request.args.get("order_id", type=int)

    entries = waste_service.list_waste(material_id=material_id, order_id=order_id)
    return jsonify({
        "waste": [w.to_dict() for w in entries],
        "total_quantity": round(sum(w.quantity for w in entries), 6),
        "count": len(entries),
    }), 200
