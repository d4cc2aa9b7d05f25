# Overview: Flask API routes for point-of-sale cash sessions.

"""
Cash session routes. The operator is always the authenticated user; one
open session per operator. History is tenant-wide for reviewers.
"""

from datetime import timedelta

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..permissions import role_has_permission
from ..validation import parse_datetime
from ..services import cash_session_service
from ..decorators import require_auth, require_permission


pos_bp = Blueprint("pos", __name__, url_prefix="/api/pos")


@pos_bp.post("/open")
@require_auth
@require_permission("OPERATE_POS")
def open_session_route():
    data = request.get_json(silent=True) or {}
    try:
        session = cash_session_service.open_session(
            org_id=g.org_id,
            operator_user_id=g.current_user.id,
            opening_balance_cents=data.get("opening_balance_cents", 0),
            notes=data.get("notes"),
        )
        return jsonify({"cash_session": session.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to open cash session")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.post("/close")
@require_auth
@require_permission("OPERATE_POS")
def close_session_route():
    data = request.get_json(silent=True) or {}
    try:
        session = cash_session_service.close_session(
            org_id=g.org_id,
            operator_user_id=g.current_user.id,
            closing_balance_cents=data.get("closing_balance_cents"),
            notes=data.get("notes"),
        )
        return jsonify({"cash_session": session.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to close cash session")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.get("/status")
@require_auth
@require_permission("OPERATE_POS")
def status_route():
    session = cash_session_service.get_session_status(g.org_id, g.current_user.id)
    return jsonify({
        "is_open": session is not None,
        "cash_session": session.to_dict() if session else None,
    }), 200


@pos_bp.get("/summary")
@require_auth
@require_permission("OPERATE_POS")
def summary_route():
    try:
        return jsonify(cash_session_service.get_session_summary(g.org_id, g.current_user.id)), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@pos_bp.get("/history")
@require_auth
@require_permission("OPERATE_POS")
def history_route():
    """
    Query params: start_date, end_date (ISO-8601, filter on opened_at), operator_user_id.

    Roles with REVIEW_CASH_SESSIONS see every operator of the tenant; others
    only their own sessions. A bare end_date covers that whole day.
    """
    try:
        operator_user_id = request.args.get("operator_user_id", type=int)
        if not role_has_permission(g.role, "REVIEW_CASH_SESSIONS"):
            operator_user_id = g.current_user.id

        raw_end = request.args.get("end_date")
        opened_before = parse_datetime(raw_end, "end_date")
        if opened_before is not None and len(raw_end.strip()) == 10:
            opened_before += timedelta(days=1)

        sessions = cash_session_service.list_history(
            g.org_id,
            operator_user_id=operator_user_id,
            opened_from=parse_datetime(request.args.get("start_date"), "start_date"),
            opened_before=opened_before,
        )
        return jsonify({"cash_sessions": [s.to_dict() for s in sessions]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
