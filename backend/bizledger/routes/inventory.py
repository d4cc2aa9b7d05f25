# Overview: Flask API routes for stock adjustments and the movement ledger.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..services import inventory_service
from ..decorators import require_auth, require_permission


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/adjust")
@require_auth
@require_permission("ADJUST_INVENTORY")
def adjust_route():
    """
    Manual stock correction.

    Body: {product_id, direction: "in"|"out", quantity, note}
    An "out" larger than the stock on hand fails with 409 and the deficit.
    """
    data = request.get_json(silent=True) or {}
    if data.get("product_id") is None:
        return jsonify({"error": "product_id required"}), 400
    try:
        product, movement = inventory_service.manual_adjustment(
            org_id=g.org_id,
            product_id=data.get("product_id"),
            direction=data.get("direction"),
            quantity=data.get("quantity"),
            note=data.get("note"),
            actor_user_id=g.current_user.id,
        )
        return jsonify({"product": product.to_dict(), "movement": movement.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/movements")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_movements_route():
    product_id = request.args.get("product_id", type=int)
    limit = min(request.args.get("limit", default=100, type=int), 500)
    movements = inventory_service.list_movements(g.org_id, product_id=product_id, limit=limit)
    return jsonify({"movements": [m.to_dict() for m in movements]}), 200


@inventory_bp.get("/verify")
@require_auth
@require_permission("VIEW_INVENTORY")
def verify_route():
    """Products whose on-hand counter disagrees with their movement sum."""
    mismatches = inventory_service.verify_stock_conservation(g.org_id)
    return jsonify({"ok": not mismatches, "mismatches": mismatches}), 200
