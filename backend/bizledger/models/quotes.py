from __future__ import annotations

from ..extensions import db
from bizledger.time_utils import to_utc_z

QUOTE_STATUS_DRAFT = "draft"
QUOTE_STATUS_CONVERTED = "converted"

CONVERT_TARGET_SALE = "sale"
CONVERT_TARGET_SERVICE_ORDER = "service_order"


class Quote(db.Model):
    """
    Price quote for a client.

    Conversion is single-use: draft -> converted, recording the target kind
    and id. Only drafts may be converted or deleted.
    """
    __tablename__ = "quotes"
    __table_args__ = (
        db.Index("ix_quotes_org_status", "org_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)
    client_name = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=QUOTE_STATUS_DRAFT)

    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    valid_until = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    converted_target = db.Column(db.String(16), nullable=True)
    converted_target_id = db.Column(db.Integer, nullable=True)
    converted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)

    client = db.relationship("Client")
    lines = db.relationship(
        "QuoteLine",
        backref="quote",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="QuoteLine.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "client_id": self.client_id,
            "client_name": self.client.name if self.client else self.client_name,
            "status": self.status,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "valid_until": to_utc_z(self.valid_until),
            "notes": self.notes,
            "converted_target": self.converted_target,
            "converted_target_id": self.converted_target_id,
            "converted_at": to_utc_z(self.converted_at),
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class QuoteLine(db.Model):
    __tablename__ = "quote_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="quote_line_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    quote_id = db.Column(db.Integer, db.ForeignKey("quotes.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    description = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quote_id": self.quote_id,
            "product_id": self.product_id,
            "description": self.description or (self.product.name if self.product else None),
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "subtotal_cents": self.subtotal_cents,
        }
