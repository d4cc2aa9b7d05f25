# Overview: Flask API routes for service orders; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..services import service_order_service
from ..decorators import require_auth, require_permission


service_orders_bp = Blueprint("service_orders", __name__, url_prefix="/api/service-orders")


def _detail(order_id: int):
    return jsonify(service_order_service.get_order_detail(g.org_id, order_id))


@service_orders_bp.post("")
@require_auth
@require_permission("MANAGE_SERVICE_ORDERS")
def create_order_route():
    """
    Body: {client_id | client_name, equipment, description, priority,
           technician_user_id, discount_cents, items, custom_fields}
    """
    data = request.get_json(silent=True) or {}
    try:
        order = service_order_service.create_order(
            org_id=g.org_id,
            actor_user_id=g.current_user.id,
            payload=data,
        )
        return _detail(order.id), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create service order")
        return jsonify({"error": "Internal server error"}), 500


@service_orders_bp.get("")
@require_auth
@require_permission("MANAGE_SERVICE_ORDERS")
def list_orders_route():
    orders = service_order_service.list_orders(g.org_id, status=request.args.get("status"))
    return jsonify({"service_orders": [o.to_dict() for o in orders]}), 200


@service_orders_bp.get("/<int:order_id>")
@require_auth
@require_permission("MANAGE_SERVICE_ORDERS")
def get_order_route(order_id: int):
    try:
        return _detail(order_id), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@service_orders_bp.put("/<int:order_id>")
@require_auth
@require_permission("MANAGE_SERVICE_ORDERS")
def update_order_route(order_id: int):
    data = request.get_json(silent=True) or {}
    try:
        service_order_service.update_order(
            org_id=g.org_id,
            order_id=order_id,
            actor_user_id=g.current_user.id,
            payload=data,
        )
        return _detail(order_id), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update service order")
        return jsonify({"error": "Internal server error"}), 500


@service_orders_bp.post("/<int:order_id>/items")
@require_auth
@require_permission("MANAGE_SERVICE_ORDERS")
def add_item_route(order_id: int):
    data = request.get_json(silent=True) or {}
    try:
        service_order_service.add_item(org_id=g.org_id, order_id=order_id, payload=data)
        return _detail(order_id), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add service order item")
        return jsonify({"error": "Internal server error"}), 500


@service_orders_bp.delete("/<int:order_id>/items/<int:line_id>")
@require_auth
@require_permission("MANAGE_SERVICE_ORDERS")
def remove_item_route(order_id: int, line_id: int):
    try:
        service_order_service.remove_item(org_id=g.org_id, order_id=order_id, line_id=line_id)
        return _detail(order_id), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to remove service order item")
        return jsonify({"error": "Internal server error"}), 500


@service_orders_bp.patch("/<int:order_id>/status")
@require_auth
@require_permission("MANAGE_SERVICE_ORDERS")
def update_status_route(order_id: int):
    """Body: {status: open | in_progress | completed | cancelled}"""
    data = request.get_json(silent=True) or {}
    if not data.get("status"):
        return jsonify({"error": "status required"}), 400
    try:
        service_order_service.update_status(
            org_id=g.org_id,
            order_id=order_id,
            new_status=data.get("status"),
            actor_user_id=g.current_user.id,
        )
        return _detail(order_id), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update service order status")
        return jsonify({"error": "Internal server error"}), 500
