# Overview: Flask API routes for quotes and quote conversion.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..services import quote_service
from ..decorators import require_auth, require_permission


quotes_bp = Blueprint("quotes", __name__, url_prefix="/api/quotes")


def _quote_payload(quote) -> dict:
    return {
        "quote": quote.to_dict(),
        "lines": [line.to_dict() for line in quote.lines],
    }


@quotes_bp.post("")
@require_auth
@require_permission("MANAGE_QUOTES")
def create_quote_route():
    data = request.get_json(silent=True) or {}
    try:
        quote = quote_service.create_quote(org_id=g.org_id, actor_user_id=g.current_user.id, payload=data)
        return jsonify(_quote_payload(quote)), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create quote")
        return jsonify({"error": "Internal server error"}), 500


@quotes_bp.get("")
@require_auth
@require_permission("MANAGE_QUOTES")
def list_quotes_route():
    quotes = quote_service.list_quotes(g.org_id, status=request.args.get("status"))
    return jsonify({"quotes": [q.to_dict() for q in quotes]}), 200


@quotes_bp.get("/<int:quote_id>")
@require_auth
@require_permission("MANAGE_QUOTES")
def get_quote_route(quote_id: int):
    try:
        return jsonify(_quote_payload(quote_service.get_quote(g.org_id, quote_id))), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@quotes_bp.delete("/<int:quote_id>")
@require_auth
@require_permission("MANAGE_QUOTES")
def delete_quote_route(quote_id: int):
    try:
        quote_service.delete_quote(org_id=g.org_id, quote_id=quote_id)
        return jsonify({"ok": True}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@quotes_bp.post("/<int:quote_id>/convert")
@require_auth
@require_permission("MANAGE_QUOTES")
def convert_quote_route(quote_id: int):
    """Body: {target: "sale" | "service_order"}"""
    data = request.get_json(silent=True) or {}
    try:
        quote, created = quote_service.convert_quote(
            org_id=g.org_id,
            quote_id=quote_id,
            target=data.get("target"),
            actor_user_id=g.current_user.id,
        )
        return jsonify({
            "quote": quote.to_dict(),
            "target": quote.converted_target,
            "created": created.to_dict(),
            "lines": [line.to_dict() for line in created.lines],
        }), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to convert quote")
        return jsonify({"error": "Internal server error"}), 500
