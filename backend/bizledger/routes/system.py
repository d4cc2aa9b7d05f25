# Overview: Health, custom field, audit and notification endpoints.

import time

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..errors import LedgerError
from ..models import Organization
from ..services import audit_service, custom_field_service, notification_service
from ..decorators import require_auth, require_permission
from bizledger.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__, url_prefix="/api")


@system_bp.get("/health")
def health():
    """Database round-trip check; no authentication."""
    start_time = time.time()
    try:
        db.session.query(Organization.id).limit(1).all()
        status, code = "healthy", 200
    except Exception:
        current_app.logger.exception("Database health check failed")
        status, code = "unhealthy", 503
    return jsonify({
        "status": status,
        "latency_ms": round((time.time() - start_time) * 1000, 2),
        "timestamp": to_utc_z(utcnow()),
    }), code


@system_bp.get("/custom-fields")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_custom_fields_route():
    fields = custom_field_service.list_definitions(g.org_id, module=request.args.get("module"))
    return jsonify({"custom_fields": [f.to_dict() for f in fields]}), 200


@system_bp.post("/custom-fields")
@require_auth
@require_permission("MANAGE_CUSTOM_FIELDS")
def create_custom_field_route():
    data = request.get_json(silent=True) or {}
    try:
        field = custom_field_service.create_definition(org_id=g.org_id, payload=data)
        return jsonify({"custom_field": field.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@system_bp.get("/audit-events")
@require_auth
@require_permission("VIEW_AUDIT_LOG")
def list_audit_events_route():
    events = audit_service.list_events(
        g.org_id,
        entity_type=request.args.get("entity_type"),
        entity_id=request.args.get("entity_id", type=int),
    )
    return jsonify({"events": [e.to_dict() for e in events]}), 200


@system_bp.get("/notifications")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_notifications_route():
    notes = notification_service.list_notifications(
        g.org_id,
        unread_only=request.args.get("unread") in ("1", "true"),
    )
    return jsonify({"notifications": [n.to_dict() for n in notes]}), 200


@system_bp.post("/notifications/<int:notification_id>/read")
@require_auth
@require_permission("VIEW_INVENTORY")
def mark_notification_read_route(notification_id: int):
    try:
        note = notification_service.mark_read(g.org_id, notification_id)
        return jsonify({"notification": note.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
