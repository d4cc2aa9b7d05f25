from __future__ import annotations

from ..extensions import db
from bizledger.time_utils import to_utc_z

PRODUCT_KIND_PHYSICAL = "physical"
PRODUCT_KIND_SERVICE = "service"
PRODUCT_KINDS = {PRODUCT_KIND_PHYSICAL, PRODUCT_KIND_SERVICE}

DIRECTION_IN = "in"
DIRECTION_OUT = "out"
DIRECTIONS = {DIRECTION_IN, DIRECTION_OUT}

REASON_PURCHASE = "purchase"
REASON_SALE = "sale"
REASON_ADJUSTMENT = "adjustment"
REASON_PRODUCTION = "production"
MOVEMENT_REASONS = {REASON_PURCHASE, REASON_SALE, REASON_ADJUSTMENT, REASON_PRODUCTION}


class Product(db.Model):
    """
    Product master data with a denormalized on-hand counter.

    MULTI-TENANT: Products are scoped to organizations via org_id.

    STOCK DESIGN:
    quantity_on_hand is a cached counter for fast reads. It is mutated only by
    services.inventory_service.record_movement, which writes the matching
    InventoryMovement row in the same transaction, so
        quantity_on_hand == SUM(+quantity for 'in', -quantity for 'out')
    holds after every committed workflow.

    Service-kind products never carry stock (enforced by a CHECK constraint and
    by the ledger primitives).

    COST DESIGN:
    cost_price_cents follows last-cost valuation: goods entries and completed
    production orders overwrite it; nothing averages it.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("org_id", "scan_code", name="uq_products_org_scan_code"),
        db.Index("ix_products_org_name", "org_id", "name"),
        db.CheckConstraint(
            "kind = 'physical' OR quantity_on_hand = 0",
            name="service_no_stock",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    sku = db.Column(db.String(64), nullable=True)
    unit = db.Column(db.String(16), nullable=False, default="un")
    category = db.Column(db.String(120), nullable=True)

    # physical | service
    kind = db.Column(db.String(16), nullable=False, default=PRODUCT_KIND_PHYSICAL)

    sale_price_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)

    quantity_on_hand = db.Column(db.Integer, nullable=False, default=0)
    # Reorder threshold; low-stock alerts fire at or below it
    min_stock = db.Column(db.Integer, nullable=False, default=5)

    # Basis points; null defers to the seller's default rate
    commission_rate_bps = db.Column(db.Integer, nullable=True)

    # Optional barcode, unique within the tenant
    scan_code = db.Column(db.String(128), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    organization = db.relationship("Organization", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_physical(self) -> bool:
        return self.kind == PRODUCT_KIND_PHYSICAL

    @property
    def is_low_stock(self) -> bool:
        return self.is_physical and self.quantity_on_hand <= self.min_stock

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} kind={self.kind} qty={self.quantity_on_hand}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "description": self.description,
            "sku": self.sku,
            "unit": self.unit,
            "category": self.category,
            "kind": self.kind,
            "sale_price_cents": self.sale_price_cents,
            "cost_price_cents": self.cost_price_cents,
            "profit_margin_cents": self.sale_price_cents - self.cost_price_cents,
            "quantity_on_hand": self.quantity_on_hand,
            "min_stock": self.min_stock,
            "low_stock": self.is_low_stock,
            "commission_rate_bps": self.commission_rate_bps,
            "scan_code": self.scan_code,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryMovement(db.Model):
    """
    Append-only stock ledger entry.

    IMMUTABLE: rows are inserted by record_movement and never updated or
    deleted. quantity is always positive; direction carries the sign.
    source_type/source_id point back at the document that caused the move
    (goods_entry, sale, service_order, production_order).
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.Index("ix_movements_org_product_occurred", "org_id", "product_id", "occurred_at"),
        db.Index("ix_movements_source", "source_type", "source_id"),
        db.CheckConstraint("quantity > 0", name="movement_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    direction = db.Column(db.String(8), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(32), nullable=False, index=True)
    note = db.Column(db.String(255), nullable=True)

    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    source_type = db.Column(db.String(32), nullable=True)
    source_id = db.Column(db.Integer, nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    product = db.relationship("Product")

    @property
    def signed_quantity(self) -> int:
        return self.quantity if self.direction == DIRECTION_IN else -self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "product_id": self.product_id,
            "direction": self.direction,
            "quantity": self.quantity,
            "reason": self.reason,
            "note": self.note,
            "actor_user_id": self.actor_user_id,
            "source_type": self.source_type,
            "source_id": self.source_id,
            "occurred_at": to_utc_z(self.occurred_at),
        }


# =============================================================================
# GOODS ENTRY (incoming stock from suppliers)
# =============================================================================

class GoodsEntry(db.Model):
    """
    Goods entry header: one supplier invoice received into stock.

    Creating an entry posts every line at once (stock in, cost price
    overwritten). Deleting it reverses the stock through outbound adjustment
    movements; the original movements stay in the ledger.
    """
    __tablename__ = "goods_entries"
    __table_args__ = (
        db.Index("ix_goods_entries_org_date", "org_id", "entry_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    supplier_name = db.Column(db.String(255), nullable=True)
    invoice_number = db.Column(db.String(128), nullable=True)
    invoice_url = db.Column(db.String(512), nullable=True)
    entry_date = db.Column(db.DateTime(timezone=True), nullable=False)

    total_cents = db.Column(db.Integer, nullable=False, default=0)

    expense_transaction_id = db.Column(db.Integer, db.ForeignKey("financial_transactions.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    lines = db.relationship(
        "GoodsEntryLine",
        backref="entry",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="GoodsEntryLine.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "created_by_user_id": self.created_by_user_id,
            "supplier_name": self.supplier_name,
            "invoice_number": self.invoice_number,
            "invoice_url": self.invoice_url,
            "entry_date": to_utc_z(self.entry_date),
            "total_cents": self.total_cents,
            "expense_transaction_id": self.expense_transaction_id,
            "created_at": to_utc_z(self.created_at),
        }


class GoodsEntryLine(db.Model):
    __tablename__ = "goods_entry_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    entry_id = db.Column(db.Integer, db.ForeignKey("goods_entries.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entry_id": self.entry_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_cost_cents": self.unit_cost_cents,
            "subtotal_cents": self.subtotal_cents,
        }
