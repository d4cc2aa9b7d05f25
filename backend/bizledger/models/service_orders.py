from __future__ import annotations

from ..extensions import db
from bizledger.time_utils import to_utc_z

SO_STATUS_OPEN = "open"
SO_STATUS_IN_PROGRESS = "in_progress"
SO_STATUS_COMPLETED = "completed"
SO_STATUS_CANCELLED = "cancelled"
SO_STATUSES = {SO_STATUS_OPEN, SO_STATUS_IN_PROGRESS, SO_STATUS_COMPLETED, SO_STATUS_CANCELLED}

SO_PRIORITIES = {"low", "normal", "high", "urgent"}


class ServiceOrder(db.Model):
    """
    Repair/service ticket.

    LIFECYCLE: open -> in_progress -> completed (cancelled from any non-completed
    state). Only entering completed has side effects: stock is debited for every
    product line and one pending income transaction is posted for total_cents.
    revenue_transaction_id doubles as the exactly-once marker.

    total_cents = SUM(line.subtotal_cents) - discount_cents, recomputed after
    every line mutation.
    """
    __tablename__ = "service_orders"
    __table_args__ = (
        db.Index("ix_service_orders_org_status", "org_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)
    client_name = db.Column(db.String(255), nullable=True)

    equipment = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    priority = db.Column(db.String(16), nullable=False, default="normal")
    technician_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=SO_STATUS_OPEN)

    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    revenue_transaction_id = db.Column(db.Integer, nullable=True)
    source_quote_id = db.Column(db.Integer, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    client = db.relationship("Client")
    lines = db.relationship(
        "ServiceOrderLine",
        backref="order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ServiceOrderLine.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def display_client_name(self):
        if self.client is not None:
            return self.client.name
        return self.client_name

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "client_id": self.client_id,
            "client_name": self.display_client_name,
            "equipment": self.equipment,
            "description": self.description,
            "priority": self.priority,
            "technician_user_id": self.technician_user_id,
            "status": self.status,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "revenue_transaction_id": self.revenue_transaction_id,
            "source_quote_id": self.source_quote_id,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "completed_at": to_utc_z(self.completed_at),
        }


class ServiceOrderLine(db.Model):
    __tablename__ = "service_order_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="so_line_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("service_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    description = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "description": self.description or (self.product.name if self.product else None),
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "subtotal_cents": self.subtotal_cents,
        }
