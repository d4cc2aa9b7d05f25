# Overview: Flask API routes for financial transactions and clients.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..services import client_service, finance_service
from ..decorators import require_auth, require_permission


finance_bp = Blueprint("finance", __name__, url_prefix="/api")


@finance_bp.get("/transactions")
@require_auth
@require_permission("VIEW_FINANCE")
def list_transactions_route():
    """Query params: type (income|expense), status (pending|completed)"""
    try:
        rows = finance_service.list_transactions(
            g.org_id,
            type=request.args.get("type"),
            status=request.args.get("status"),
        )
        return jsonify({"transactions": [t.to_dict() for t in rows]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@finance_bp.get("/clients")
@require_auth
@require_permission("MANAGE_CLIENTS")
def list_clients_route():
    clients = client_service.list_clients(g.org_id, search=request.args.get("search"))
    return jsonify({"clients": [c.to_dict() for c in clients]}), 200


@finance_bp.post("/clients")
@require_auth
@require_permission("MANAGE_CLIENTS")
def create_client_route():
    data = request.get_json(silent=True) or {}
    try:
        client = client_service.create_client(org_id=g.org_id, payload=data)
        return jsonify({"client": client.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create client")
        return jsonify({"error": "Internal server error"}), 500
