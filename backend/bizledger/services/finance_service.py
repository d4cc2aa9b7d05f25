# Overview: Financial transactions mirrored from completed operational events.

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..errors import ValidationError
from ..models import FinancialTransaction
from ..models.finance import TXN_TYPES, TXN_STATUSES
from bizledger.time_utils import utcnow, add_months


def post_transaction(
    *,
    org_id: int,
    type: str,
    status: str,
    amount_cents: int,
    description: str,
    due_date: datetime | None = None,
    category: str | None = None,
    client_id: int | None = None,
    sale_id: int | None = None,
    service_order_id: int | None = None,
    goods_entry_id: int | None = None,
    installment_number: int | None = None,
    installment_count: int | None = None,
    actor_user_id: int | None = None,
) -> FinancialTransaction:
    """
    Add one income/expense row to the caller's transaction (no commit).

    Callers skip posting when the amount is zero.
    """
    if type not in TXN_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(sorted(TXN_TYPES))}")
    if status not in TXN_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(sorted(TXN_STATUSES))}")
    if amount_cents < 0:
        raise ValidationError("amount_cents must be >= 0")

    txn = FinancialTransaction(
        org_id=org_id,
        type=type,
        status=status,
        amount_cents=amount_cents,
        description=description[:255],
        category=category,
        client_id=client_id,
        sale_id=sale_id,
        service_order_id=service_order_id,
        goods_entry_id=goods_entry_id,
        installment_number=installment_number,
        installment_count=installment_count,
        due_date=due_date or utcnow(),
        created_by_user_id=actor_user_id,
    )
    db.session.add(txn)
    db.session.flush()
    return txn


def split_installments(total_cents: int, count: int) -> list[int]:
    """
    Split total_cents into count whole-cent parts; the remainder goes on the first.

    >>> split_installments(1000, 3)
    [334, 333, 333]
    """
    if count < 1:
        raise ValidationError("installments must be >= 1")
    base, remainder = divmod(total_cents, count)
    return [base + remainder] + [base] * (count - 1)


def post_installments(
    *,
    org_id: int,
    total_cents: int,
    count: int,
    description: str,
    first_due: datetime | None = None,
    **links,
) -> list[FinancialTransaction]:
    """Post count pending income rows, one month apart starting at first_due."""
    first_due = first_due or utcnow()
    parts = split_installments(total_cents, count)
    rows = []
    for idx, amount in enumerate(parts):
        label = description if count == 1 else f"{description} ({idx + 1}/{count})"
        rows.append(post_transaction(
            org_id=org_id,
            type="income",
            status="pending",
            amount_cents=amount,
            description=label,
            due_date=add_months(first_due, idx),
            installment_number=idx + 1,
            installment_count=count,
            **links,
        ))
    return rows


def list_transactions(org_id: int, *, type: str | None = None, status: str | None = None, limit: int = 200):
    q = db.session.query(FinancialTransaction).filter(FinancialTransaction.org_id == org_id)
    if type:
        if type not in TXN_TYPES:
            raise ValidationError(f"type must be one of: {', '.join(sorted(TXN_TYPES))}")
        q = q.filter(FinancialTransaction.type == type)
    if status:
        if status not in TXN_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(sorted(TXN_STATUSES))}")
        q = q.filter(FinancialTransaction.status == status)
    return q.order_by(FinancialTransaction.due_date.desc(), FinancialTransaction.id.desc()).limit(limit).all()
