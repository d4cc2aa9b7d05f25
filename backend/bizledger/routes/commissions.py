# Overview: Flask API routes for seller commissions.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..services import commission_service
from ..decorators import require_auth, require_permission


commissions_bp = Blueprint("commissions", __name__, url_prefix="/api/commissions")


@commissions_bp.get("")
@require_auth
@require_permission("MANAGE_COMMISSIONS")
def list_commissions_route():
    try:
        commissions = commission_service.list_commissions(
            g.org_id,
            status=request.args.get("status"),
            seller_user_id=request.args.get("seller_user_id", type=int),
        )
        return jsonify({"commissions": [c.to_dict() for c in commissions]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@commissions_bp.post("/<int:commission_id>/pay")
@require_auth
@require_permission("MANAGE_COMMISSIONS")
def pay_commission_route(commission_id: int):
    try:
        commission = commission_service.pay_commission(
            org_id=g.org_id,
            commission_id=commission_id,
            actor_user_id=g.current_user.id,
        )
        return jsonify({"commission": commission.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to pay commission")
        return jsonify({"error": "Internal server error"}), 500
