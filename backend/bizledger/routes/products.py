# Overview: Flask API routes for the product catalog; parses input and returns JSON responses.

"""
Product catalog routes.

MULTI-TENANT: every query is scoped to g.org_id (set by @require_auth).
- Read operations require VIEW_INVENTORY
- Write operations require MANAGE_PRODUCTS
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..services import product_service
from ..decorators import require_auth, require_permission


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_products_route():
    """
    Query params:
    - search: matches name, sku or exact scan code
    - low_stock: "1" to return only items at or below their reorder threshold
    - include_inactive: "1" to include deactivated items
    """
    try:
        products = product_service.list_products(
            g.org_id,
            search=request.args.get("search"),
            low_stock_only=request.args.get("low_stock") in ("1", "true"),
            include_inactive=request.args.get("include_inactive") in ("1", "true"),
        )
        return jsonify({"products": [p.to_dict() for p in products]}), 200
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    payload = request.get_json(silent=True) or {}
    try:
        product = product_service.create_product(
            org_id=g.org_id,
            payload=payload,
            actor_user_id=g.current_user.id,
        )
        return jsonify({"product": product.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_product_route(product_id: int):
    """Product with its 20 most recent movements."""
    try:
        return jsonify(product_service.get_product_detail(g.org_id, product_id)), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        product = product_service.update_product(
            org_id=g.org_id,
            product_id=product_id,
            payload=payload,
            actor_user_id=g.current_user.id,
        )
        return jsonify({"product": product.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/scan/<string:scan_code>")
@require_auth
@require_permission("VIEW_INVENTORY")
def lookup_scan_code_route(scan_code: str):
    try:
        product = product_service.lookup_by_scan_code(g.org_id, scan_code)
        return jsonify({"product": product.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
