# Overview: Flask API routes for goods entries; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..services import entry_service
from ..decorators import require_auth, require_permission


entries_bp = Blueprint("entries", __name__, url_prefix="/api/entries")


def _entry_payload(entry) -> dict:
    return {
        "entry": entry.to_dict(),
        "lines": [line.to_dict() for line in entry.lines],
    }


@entries_bp.post("")
@require_auth
@require_permission("RECEIVE_GOODS")
def create_entry_route():
    """
    Body: {supplier_name, invoice_number, invoice_url, entry_date,
           generate_expense, lines: [{product_id, quantity, unit_cost_cents}]}
    """
    data = request.get_json(silent=True) or {}
    try:
        entry = entry_service.create_entry(
            org_id=g.org_id,
            actor_user_id=g.current_user.id,
            header=data,
            lines=data.get("lines") or data.get("items"),
        )
        return jsonify(_entry_payload(entry)), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create goods entry")
        return jsonify({"error": "Internal server error"}), 500


@entries_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_entries_route():
    entries = entry_service.list_entries(g.org_id)
    return jsonify({"entries": [e.to_dict() for e in entries]}), 200


@entries_bp.get("/<int:entry_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_entry_route(entry_id: int):
    try:
        return jsonify(_entry_payload(entry_service.get_entry(g.org_id, entry_id))), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@entries_bp.delete("/<int:entry_id>")
@require_auth
@require_permission("RECEIVE_GOODS")
def delete_entry_route(entry_id: int):
    try:
        entry_service.delete_entry(org_id=g.org_id, entry_id=entry_id, actor_user_id=g.current_user.id)
        return jsonify({"ok": True}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete goods entry")
        return jsonify({"error": "Internal server error"}), 500
