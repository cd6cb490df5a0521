# Overview: Flask API routes for production requests; raw-material approval workflow.

# backend/wms/routes/production.py
"""
Production Request API Routes

WHY: Raw material leaves the warehouse for the factory floor only through an
approved production request.

SECURITY:
- REQUEST_PRODUCTION to open a request
- APPROVE_PRODUCTION (admin roles) to approve, reject or complete
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import WmsError
from ..services import production_service
from ..services.concurrency import unit_of_work
from ..decorators import require_actor, require_permission


production_bp = Blueprint("production", __name__, url_prefix="/api/production-requests")


@production_bp.post("")
@require_actor
@require_permission("REQUEST_PRODUCTION")
def create_production_request_route():
    """
    Open a production request (status: PENDING).

    Request body:
    {
        "order_id": 7,
        "memo": "Batch for SPK/2026/02/004",
        "lines": [{"item_id": 12, "quantity": 40}]
    }
    """
    try:
        data = request.get_json(silent=True) or {}

        order_id = data.get("order_id")
        if not isinstance(order_id, int) or isinstance(order_id, bool):
            return jsonify({"error": "order_id required"}), 400

        with unit_of_work() as uow:
            req = production_service.create_production_request(
                uow,
                order_id=order_id,
                lines=data.get("lines"),
                memo=data.get("memo"),
                actor_id=g.actor_id,
            )
            payload = req.to_dict()

        return jsonify({"production_request": payload}), 201

    except WmsError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create production request")
        return jsonify({"error": "Internal server error"}), 500


@production_bp.post("/<int:request_id>/approve")
@require_actor
@require_permission("APPROVE_PRODUCTION")
def approve_production_request_route(request_id: int):
    """
    Approve a PENDING request and debit its raw material.

    Returns:
        200: Request APPROVED with the OUT movements posted
        400: Not PENDING, or insufficient stock (item name, available, requested)
        404: Request not found
    """
    try:
        with unit_of_work() as uow:
            result = production_service.approve_production_request(uow, request_id, g.actor_id)

        return jsonify(result), 200

    except WmsError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to approve production request")
        return jsonify({"error": "Internal server error"}), 500


@production_bp.post("/<int:request_id>/reject")
@require_actor
@require_permission("APPROVE_PRODUCTION")
def reject_production_request_route(request_id: int):
    try:
        data = request.get_json(silent=True) or {}

        with unit_of_work() as uow:
            req = production_service.reject_production_request(
                uow, request_id, g.actor_id, reason=data.get("reason")
            )
            payload = req.to_dict()

        return jsonify({"production_request": payload}), 200

    except WmsError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to reject production request")
        return jsonify({"error": "Internal server error"}), 500


@production_bp.post("/<int:request_id>/complete")
@require_actor
@require_permission("APPROVE_PRODUCTION")
def complete_production_request_route(request_id: int):
    try:
        with unit_of_work() as uow:
            req = production_service.complete_production_request(uow, request_id, g.actor_id)
            payload = req.to_dict()

        return jsonify({"production_request": payload}), 200

    except WmsError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to complete production request")
        return jsonify({"error": "Internal server error"}), 500
