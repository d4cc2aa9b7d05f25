# Overview: Flask API routes for production orders and cost drivers.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..services import production_service
from ..decorators import require_auth, require_permission


production_bp = Blueprint("production", __name__, url_prefix="/api/production")


@production_bp.get("/cost-drivers")
@require_auth
@require_permission("MANAGE_PRODUCTION")
def list_cost_drivers_route():
    drivers = production_service.list_cost_drivers(
        g.org_id,
        active_only=request.args.get("active") in ("1", "true"),
    )
    return jsonify({"cost_drivers": [d.to_dict() for d in drivers]}), 200


@production_bp.post("/cost-drivers")
@require_auth
@require_permission("MANAGE_PRODUCTION")
def save_cost_driver_route():
    """Create, or update when the body carries an id."""
    data = request.get_json(silent=True) or {}
    try:
        driver = production_service.save_cost_driver(org_id=g.org_id, payload=data)
        return jsonify({"cost_driver": driver.to_dict()}), 200 if data.get("id") else 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to save cost driver")
        return jsonify({"error": "Internal server error"}), 500


@production_bp.delete("/cost-drivers/<int:driver_id>")
@require_auth
@require_permission("MANAGE_PRODUCTION")
def delete_cost_driver_route(driver_id: int):
    try:
        deleted = production_service.delete_cost_driver(org_id=g.org_id, driver_id=driver_id)
        return jsonify({"ok": True, "deleted": deleted, "deactivated": not deleted}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@production_bp.post("/orders")
@require_auth
@require_permission("MANAGE_PRODUCTION")
def create_order_route():
    """
    Body: {product_id, quantity, due_date, notes,
           lines: [{product_id, quantity, unit_cost_cents?}],
           costs: [{cost_driver_id?, description?, value_cents?}],
           custom_fields}
    """
    data = request.get_json(silent=True) or {}
    try:
        order = production_service.create_order(
            org_id=g.org_id,
            actor_user_id=g.current_user.id,
            payload=data,
        )
        return jsonify(production_service.get_order_detail(g.org_id, order.id)), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create production order")
        return jsonify({"error": "Internal server error"}), 500


@production_bp.get("/orders")
@require_auth
@require_permission("MANAGE_PRODUCTION")
def list_orders_route():
    orders = production_service.list_orders(g.org_id, status=request.args.get("status"))
    return jsonify({"production_orders": [o.to_dict() for o in orders]}), 200


@production_bp.get("/orders/<int:order_id>")
@require_auth
@require_permission("MANAGE_PRODUCTION")
def get_order_route(order_id: int):
    try:
        return jsonify(production_service.get_order_detail(g.org_id, order_id)), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@production_bp.patch("/orders/<int:order_id>/status")
@require_auth
@require_permission("MANAGE_PRODUCTION")
def update_status_route(order_id: int):
    """Body: {status: planned | in_production | completed}"""
    data = request.get_json(silent=True) or {}
    if not data.get("status"):
        return jsonify({"error": "status required"}), 400
    try:
        production_service.update_status(
            org_id=g.org_id,
            order_id=order_id,
            new_status=data.get("status"),
            actor_user_id=g.current_user.id,
        )
        return jsonify(production_service.get_order_detail(g.org_id, order_id)), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update production order status")
        return jsonify({"error": "Internal server error"}), 500
