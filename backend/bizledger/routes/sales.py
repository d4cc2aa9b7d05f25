# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

"""Sales API routes: one-shot checkout plus the draft lifecycle."""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..services import sales_service
from ..validation import parse_datetime
from ..decorators import require_auth, require_permission


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _sale_payload(sale) -> dict:
    return {
        "sale": sale.to_dict(),
        "lines": [line.to_dict() for line in sale.lines],
    }


@sales_bp.post("/checkout")
@require_auth
@require_permission("CREATE_SALE")
def checkout_route():
    """
    Build and complete a sale in one request.

    Body: {lines: [{product_id, quantity, unit_price_cents?}], client_id,
           discount_cents, payment_method, cash_session_id, notes}
    """
    data = request.get_json(silent=True) or {}
    try:
        sale = sales_service.checkout(org_id=g.org_id, seller_user_id=g.current_user.id, payload=data)
        return jsonify(_sale_payload(sale)), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to check out sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("")
@require_auth
@require_permission("CREATE_SALE")
def create_draft_route():
    data = request.get_json(silent=True) or {}
    try:
        sale = sales_service.create_draft_sale(org_id=g.org_id, seller_user_id=g.current_user.id, payload=data)
        return jsonify(_sale_payload(sale)), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:sale_id>/items")
@require_auth
@require_permission("CREATE_SALE")
def add_item_route(sale_id: int):
    data = request.get_json(silent=True) or {}
    try:
        sale = sales_service.add_sale_item(org_id=g.org_id, sale_id=sale_id, payload=data)
        return jsonify(_sale_payload(sale)), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add sale line")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.delete("/<int:sale_id>/items/<int:line_id>")
@require_auth
@require_permission("CREATE_SALE")
def remove_item_route(sale_id: int, line_id: int):
    try:
        sale = sales_service.remove_sale_item(org_id=g.org_id, sale_id=sale_id, line_id=line_id)
        return jsonify(_sale_payload(sale)), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to remove sale line")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:sale_id>/finish")
@require_auth
@require_permission("CREATE_SALE")
def finish_route(sale_id: int):
    """Body: {payment_method, installments, discount_cents, first_due_date, cash_session_id}"""
    data = request.get_json(silent=True) or {}
    try:
        sale = sales_service.finish_sale(
            org_id=g.org_id,
            sale_id=sale_id,
            actor_user_id=g.current_user.id,
            payload=data,
        )
        return jsonify(_sale_payload(sale)), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to finish sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_auth
@require_permission("VIEW_SALES")
def list_sales_route():
    """Query params: status, client_id, date_from (ISO-8601)"""
    try:
        sales = sales_service.list_sales(
            g.org_id,
            status=request.args.get("status"),
            client_id=request.args.get("client_id", type=int),
            date_from=parse_datetime(request.args.get("date_from"), "date_from"),
        )
        return jsonify({"sales": [s.to_dict() for s in sales]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_permission("VIEW_SALES")
def get_sale_route(sale_id: int):
    try:
        return jsonify(_sale_payload(sales_service.get_sale(g.org_id, sale_id))), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
