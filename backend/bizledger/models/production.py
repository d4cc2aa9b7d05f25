from __future__ import annotations

from ..extensions import db
from bizledger.time_utils import to_utc_z

PO_STATUS_PLANNED = "planned"
PO_STATUS_IN_PRODUCTION = "in_production"
PO_STATUS_COMPLETED = "completed"
PO_STATUSES = {PO_STATUS_PLANNED, PO_STATUS_IN_PRODUCTION, PO_STATUS_COMPLETED}


class CostDriver(db.Model):
    """Named operation cost (labor hour, energy, machine time) with a default value."""
    __tablename__ = "cost_drivers"
    __table_args__ = (
        db.UniqueConstraint("org_id", "name", name="uq_cost_drivers_org_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    name = db.Column(db.String(120), nullable=False)
    unit = db.Column(db.String(32), nullable=True)
    default_value_cents = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "unit": self.unit,
            "default_value_cents": self.default_value_cents,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class ProductionOrder(db.Model):
    """
    Production order: consumes inputs, produces `quantity` of `product_id`.

    COST ROLLUP (computed once at creation):
        raw_material_cost_cents = SUM(line.quantity * line.unit_cost_cents)
        operation_cost_cents    = SUM(cost.value_cents)
        total_cost_cents        = raw + operation
        unit_cost_cents         = total / quantity (half-up), 0 when quantity <= 0

    LIFECYCLE: planned -> in_production -> completed. Completion debits every
    consumption line, credits the target product and overwrites its cost price
    with unit_cost_cents, exactly once.
    """
    __tablename__ = "production_orders"
    __table_args__ = (
        db.Index("ix_production_orders_org_status", "org_id", "status"),
        db.CheckConstraint("quantity >= 0", name="po_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=PO_STATUS_PLANNED)

    raw_material_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    operation_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    unit_cost_cents = db.Column(db.Integer, nullable=False, default=0)

    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product")
    lines = db.relationship(
        "ProductionOrderLine",
        backref="order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ProductionOrderLine.id",
    )
    costs = db.relationship(
        "ProductionOrderCost",
        backref="order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ProductionOrderCost.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "status": self.status,
            "raw_material_cost_cents": self.raw_material_cost_cents,
            "operation_cost_cents": self.operation_cost_cents,
            "total_cost_cents": self.total_cost_cents,
            "unit_cost_cents": self.unit_cost_cents,
            "due_date": to_utc_z(self.due_date),
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "started_at": to_utc_z(self.started_at),
            "completed_at": to_utc_z(self.completed_at),
        }


class ProductionOrderLine(db.Model):
    """Raw-material consumption line."""
    __tablename__ = "production_order_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="po_line_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("production_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_cost_cents": self.unit_cost_cents,
            "subtotal_cents": self.subtotal_cents,
        }


class ProductionOrderCost(db.Model):
    """Operation cost line, optionally tied to a CostDriver."""
    __tablename__ = "production_order_costs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("production_orders.id"), nullable=False, index=True)
    cost_driver_id = db.Column(db.Integer, db.ForeignKey("cost_drivers.id"), nullable=True)

    description = db.Column(db.String(255), nullable=True)
    value_cents = db.Column(db.Integer, nullable=False)

    cost_driver = db.relationship("CostDriver")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "cost_driver_id": self.cost_driver_id,
            "description": self.description or (self.cost_driver.name if self.cost_driver else None),
            "value_cents": self.value_cents,
        }
