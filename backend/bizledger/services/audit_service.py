# Overview: Append-only audit trail for financial and status-changing actions.

from __future__ import annotations

from typing import Optional

from ..extensions import db
from ..models import AuditEvent
"""
Audit Invariants

- Append-only: no updates or deletes of existing events.
- Events are written inside the same DB transaction as the action they record.
- No business logic here; callers decide what is worth recording.
"""


def record_event(
    *,
    org_id: int,
    action: str,
    entity_type: str,
    entity_id: int | None,
    actor_user_id: int | None = None,
    note: Optional[str] = None,
    payload: Optional[dict] = None,
) -> AuditEvent:
    ev = AuditEvent(
        org_id=org_id,
        actor_user_id=actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        note=note,
        payload=payload,
    )
    db.session.add(ev)
    return ev


def list_events(org_id: int, *, entity_type: str | None = None, entity_id: int | None = None, limit: int = 100):
    q = db.session.query(AuditEvent).filter(AuditEvent.org_id == org_id)
    if entity_type:
        q = q.filter(AuditEvent.entity_type == entity_type)
    if entity_id is not None:
        q = q.filter(AuditEvent.entity_id == entity_id)
    return q.order_by(AuditEvent.id.desc()).limit(limit).all()
