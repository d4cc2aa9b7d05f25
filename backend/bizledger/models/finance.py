from __future__ import annotations

from ..extensions import db
from bizledger.time_utils import to_utc_z

TXN_INCOME = "income"
TXN_EXPENSE = "expense"
TXN_TYPES = {TXN_INCOME, TXN_EXPENSE}

TXN_PENDING = "pending"
TXN_COMPLETED = "completed"
TXN_STATUSES = {TXN_PENDING, TXN_COMPLETED}


class FinancialTransaction(db.Model):
    """
    Receivable/payable mirrored from a completed operational event.

    Exactly one of sale_id / service_order_id / goods_entry_id is set when the
    row was posted by a workflow. Installment sales post one row per
    installment (installment_number of installment_count).
    """
    __tablename__ = "financial_transactions"
    __table_args__ = (
        db.Index("ix_fin_txn_org_type_status", "org_id", "type", "status"),
        db.CheckConstraint("amount_cents >= 0", name="fin_txn_amount_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=TXN_PENDING)
    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=True)

    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    service_order_id = db.Column(db.Integer, db.ForeignKey("service_orders.id"), nullable=True, index=True)
    goods_entry_id = db.Column(db.Integer, nullable=True, index=True)

    installment_number = db.Column(db.Integer, nullable=True)
    installment_count = db.Column(db.Integer, nullable=True)

    due_date = db.Column(db.DateTime(timezone=True), nullable=False)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "type": self.type,
            "status": self.status,
            "amount_cents": self.amount_cents,
            "description": self.description,
            "category": self.category,
            "client_id": self.client_id,
            "sale_id": self.sale_id,
            "service_order_id": self.service_order_id,
            "goods_entry_id": self.goods_entry_id,
            "installment_number": self.installment_number,
            "installment_count": self.installment_count,
            "due_date": to_utc_z(self.due_date),
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
