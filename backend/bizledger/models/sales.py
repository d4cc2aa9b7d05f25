from __future__ import annotations

from ..extensions import db
from bizledger.time_utils import to_utc_z

SALE_STATUS_DRAFT = "draft"
SALE_STATUS_COMPLETED = "completed"

COMMISSION_PENDING = "pending"
COMMISSION_PAID = "paid"

CASH_SESSION_OPEN = "open"
CASH_SESSION_CLOSED = "closed"


class Sale(db.Model):
    """
    Sale document.

    A checkout creates the sale already completed. Drafts accumulate lines
    and are completed later by finish_sale; only completion touches stock,
    commissions and financial transactions.

    total_cents = SUM(line.subtotal_cents) - discount_cents, always recomputed.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_org_status_created", "org_id", "status", "created_at"),
        db.CheckConstraint("discount_cents >= 0", name="sale_discount_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    seller_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_DRAFT, index=True)

    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    commission_cents = db.Column(db.Integer, nullable=False, default=0)

    payment_method = db.Column(db.String(32), nullable=True)
    installments = db.Column(db.Integer, nullable=False, default=1)
    cash_session_id = db.Column(db.Integer, db.ForeignKey("cash_sessions.id"), nullable=True, index=True)

    # Set when the sale was produced by converting a quote
    source_quote_id = db.Column(db.Integer, nullable=True)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    seller = db.relationship("User", foreign_keys=[seller_user_id])
    client = db.relationship("Client")
    lines = db.relationship(
        "SaleLine",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="SaleLine.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "seller_user_id": self.seller_user_id,
            "seller_name": self.seller.name if self.seller else None,
            "client_id": self.client_id,
            "client_name": self.client.name if self.client else None,
            "status": self.status,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "commission_cents": self.commission_cents,
            "payment_method": self.payment_method,
            "installments": self.installments,
            "cash_session_id": self.cash_session_id,
            "source_quote_id": self.source_quote_id,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "completed_at": to_utc_z(self.completed_at),
        }


class SaleLine(db.Model):
    """
    Sale line. product_id is null for free-text lines copied from a quote.
    commission_cents is derived at completion, never supplied by the client.
    """
    __tablename__ = "sale_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="sale_line_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    description = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    commission_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    commission_cents = db.Column(db.Integer, nullable=False, default=0)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "description": self.description or (self.product.name if self.product else None),
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "subtotal_cents": self.subtotal_cents,
            "commission_rate_bps": self.commission_rate_bps,
            "commission_cents": self.commission_cents,
        }


class Commission(db.Model):
    """Payable owed to a seller for one completed sale (pending -> paid)."""
    __tablename__ = "commissions"
    __table_args__ = (
        db.Index("ix_commissions_org_status", "org_id", "status"),
        db.UniqueConstraint("sale_id", name="uq_commissions_sale"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    seller_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False)

    amount_cents = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=COMMISSION_PENDING)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    seller = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "seller_user_id": self.seller_user_id,
            "seller_name": self.seller.name if self.seller else None,
            "sale_id": self.sale_id,
            "amount_cents": self.amount_cents,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "paid_at": to_utc_z(self.paid_at),
        }


class CashSession(db.Model):
    """
    Point-of-sale operator shift.

    INVARIANT: at most one open session per (org, operator), enforced by a
    partial unique index in addition to the service check.

    expected_balance_cents is informational: opening balance plus the totals
    of cash-method sales attached to the session. Closing never mutates stock
    or financial records.
    """
    __tablename__ = "cash_sessions"
    __table_args__ = (
        db.Index(
            "uq_cash_sessions_open_operator",
            "org_id",
            "operator_user_id",
            unique=True,
            sqlite_where=db.text("status = 'open'"),
            postgresql_where=db.text("status = 'open'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    operator_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=CASH_SESSION_OPEN)

    opening_balance_cents = db.Column(db.Integer, nullable=False, default=0)
    total_sales_cents = db.Column(db.Integer, nullable=True)
    cash_sales_cents = db.Column(db.Integer, nullable=True)
    expected_balance_cents = db.Column(db.Integer, nullable=True)
    closing_balance_cents = db.Column(db.Integer, nullable=True)
    difference_cents = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    operator = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "operator_user_id": self.operator_user_id,
            "operator_name": self.operator.name if self.operator is not None else None,
            "status": self.status,
            "opening_balance_cents": self.opening_balance_cents,
            "total_sales_cents": self.total_sales_cents,
            "cash_sales_cents": self.cash_sales_cents,
            "expected_balance_cents": self.expected_balance_cents,
            "closing_balance_cents": self.closing_balance_cents,
            "difference_cents": self.difference_cents,
            "notes": self.notes,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at),
        }
