# Overview: Service-layer operations for point-of-sale cash sessions.

"""
Cash Session Service

LIFECYCLE: open -> closed. One open session per (org, operator); the service
checks first and a partial unique index backs it up under concurrency.

Reconciliation is informational only:
    expected = opening_balance + SUM(total of completed cash-method sales in the session)
Closing records expected and counted amounts; it never touches stock or
financial transactions.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import CashSessionNotFound, ConflictError, NoOpenSession, SessionAlreadyOpen
from ..models import CashSession, Sale
from ..models.sales import CASH_SESSION_CLOSED, CASH_SESSION_OPEN, SALE_STATUS_COMPLETED
from ..validation import parse_cents
from bizledger.time_utils import utcnow
from .concurrency import lock_for_update, run_atomic
from .audit_service import record_event


def cash_payment_methods() -> tuple[str, ...]:
    return tuple(current_app.config.get("CASH_PAYMENT_METHODS", ("cash",)))


def find_open_session(org_id: int, operator_user_id: int, *, lock: bool = False) -> CashSession | None:
    q = db.session.query(CashSession).filter_by(
        org_id=org_id,
        operator_user_id=operator_user_id,
        status=CASH_SESSION_OPEN,
    )
    if lock:
        q = lock_for_update(q)
    return q.first()


def get_session_for_sale(org_id: int, cash_session_id, seller_id: int) -> CashSession:
    """Validate an explicit session reference on a checkout; it must be the seller's own open drawer."""
    session = db.session.query(CashSession).filter_by(id=cash_session_id, org_id=org_id).first()
    if session is None:
        raise CashSessionNotFound(cash_session_id)
    if session.status != CASH_SESSION_OPEN:
        raise ConflictError("Cash session is closed", {"cash_session_id": session.id})
    if session.operator_user_id != seller_id:
        raise ConflictError(
            "Cash session belongs to another operator",
            {"cash_session_id": session.id, "operator_user_id": session.operator_user_id},
        )
    return session


def _sales_totals(session: CashSession) -> dict[str, int]:
    rows = (
        db.session.query(Sale.payment_method, func.coalesce(func.sum(Sale.total_cents), 0))
        .filter(
            Sale.org_id == session.org_id,
            Sale.cash_session_id == session.id,
            Sale.status == SALE_STATUS_COMPLETED,
        )
        .group_by(Sale.payment_method)
        .all()
    )
    return {(method or "unknown"): int(total) for method, total in rows}


def _reconcile(session: CashSession) -> dict:
    by_method = _sales_totals(session)
    cash_methods = cash_payment_methods()
    cash_total = sum(v for k, v in by_method.items() if k.lower() in cash_methods)
    return {
        "by_payment_method": by_method,
        "total_sales_cents": sum(by_method.values()),
        "cash_sales_cents": cash_total,
        "expected_balance_cents": session.opening_balance_cents + cash_total,
    }


def open_session(*, org_id: int, operator_user_id: int, opening_balance_cents=0, notes: str | None = None) -> CashSession:
    opening = parse_cents(opening_balance_cents, "opening_balance_cents", default=0)

    def _op():
        existing = find_open_session(org_id, operator_user_id, lock=True)
        if existing is not None:
            raise SessionAlreadyOpen(existing.id)

        session = CashSession(
            org_id=org_id,
            operator_user_id=operator_user_id,
            status=CASH_SESSION_OPEN,
            opening_balance_cents=opening,
            notes=notes,
            opened_at=utcnow(),
        )
        db.session.add(session)
        try:
            db.session.flush()
        except IntegrityError:
            raise SessionAlreadyOpen()

        record_event(
            org_id=org_id,
            actor_user_id=operator_user_id,
            action="cash_session_opened",
            entity_type="cash_session",
            entity_id=session.id,
            payload={"opening_balance_cents": opening},
        )
        return session

    return run_atomic(_op)


def close_session(*, org_id: int, operator_user_id: int, closing_balance_cents=None, notes: str | None = None) -> CashSession:
    closing = None
    if closing_balance_cents is not None:
        closing = parse_cents(closing_balance_cents, "closing_balance_cents")

    def _op():
        session = find_open_session(org_id, operator_user_id, lock=True)
        if session is None:
            raise NoOpenSession()

        totals = _reconcile(session)
        session.total_sales_cents = totals["total_sales_cents"]
        session.cash_sales_cents = totals["cash_sales_cents"]
        session.expected_balance_cents = totals["expected_balance_cents"]
        session.closing_balance_cents = closing
        session.difference_cents = None if closing is None else closing - totals["expected_balance_cents"]
        if notes:
            session.notes = notes
        session.status = CASH_SESSION_CLOSED
        session.closed_at = utcnow()

        record_event(
            org_id=org_id,
            actor_user_id=operator_user_id,
            action="cash_session_closed",
            entity_type="cash_session",
            entity_id=session.id,
            payload={
                "expected_balance_cents": session.expected_balance_cents,
                "closing_balance_cents": closing,
            },
        )
        return session

    return run_atomic(_op)


def get_session_status(org_id: int, operator_user_id: int) -> CashSession | None:
    return find_open_session(org_id, operator_user_id)


def get_session_summary(org_id: int, operator_user_id: int) -> dict:
    session = find_open_session(org_id, operator_user_id)
    if session is None:
        raise NoOpenSession()
    summary = _reconcile(session)
    summary["session"] = session.to_dict()
    return summary


def list_history(
    org_id: int,
    *,
    operator_user_id: int | None = None,
    opened_from: datetime | None = None,
    opened_before: datetime | None = None,
    limit: int = 50,
) -> list[CashSession]:
    """
    Closed sessions of the tenant, newest close first.

    opened_from is inclusive, opened_before exclusive; both filter on opened_at.
    """
    q = db.session.query(CashSession).filter(
        CashSession.org_id == org_id,
        CashSession.status == CASH_SESSION_CLOSED,
    )
    if operator_user_id is not None:
        q = q.filter(CashSession.operator_user_id == operator_user_id)
    if opened_from is not None:
        q = q.filter(CashSession.opened_at >= opened_from)
    if opened_before is not None:
        q = q.filter(CashSession.opened_at < opened_before)
    return q.order_by(CashSession.closed_at.desc(), CashSession.id.desc()).limit(min(limit, 50)).all()
