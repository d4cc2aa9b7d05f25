# Overview: Seller commission payables (pending -> paid).

from __future__ import annotations

from ..extensions import db
from ..errors import CommissionNotFound, ConflictError, ValidationError
from ..models import Commission
from ..models.sales import COMMISSION_PAID, COMMISSION_PENDING
from bizledger.time_utils import utcnow
from .concurrency import lock_for_update, run_atomic
from .audit_service import record_event


def list_commissions(org_id: int, *, status: str | None = None, seller_user_id: int | None = None) -> list[Commission]:
    q = db.session.query(Commission).filter(Commission.org_id == org_id)
    if status:
        if status not in (COMMISSION_PENDING, COMMISSION_PAID):
            raise ValidationError("status must be 'pending' or 'paid'")
        q = q.filter(Commission.status == status)
    if seller_user_id is not None:
        q = q.filter(Commission.seller_user_id == seller_user_id)
    return q.order_by(Commission.created_at.desc(), Commission.id.desc()).all()


def pay_commission(*, org_id: int, commission_id: int, actor_user_id: int | None = None) -> Commission:
    def _op():
        commission = lock_for_update(
            db.session.query(Commission).filter_by(id=commission_id, org_id=org_id)
        ).first()
        if commission is None:
            raise CommissionNotFound(commission_id)
        if commission.status != COMMISSION_PENDING:
            raise ConflictError("Commission already paid", {"commission_id": commission.id})

        commission.status = COMMISSION_PAID
        commission.paid_at = utcnow()
        record_event(
            org_id=org_id,
            actor_user_id=actor_user_id,
            action="commission_paid",
            entity_type="commission",
            entity_id=commission.id,
            payload={"amount_cents": commission.amount_cents},
        )
        return commission

    return run_atomic(_op)
