# Overview: Service-layer operations for production orders and cost drivers.

"""
Production Service

COST ROLLUP (at creation, via costing_service):
    raw_material = SUM(line.quantity * line.unit_cost_cents)
    operation    = SUM(cost.value_cents)
    unit_cost    = (raw_material + operation) / quantity, half-up; 0 if quantity <= 0

Consumption unit cost defaults to the input product's current cost price.

LIFECYCLE: planned -> in_production -> completed (terminal). Moves only go
forward; planned -> completed may skip in_production.
Completion, exactly once:
- debit every consumption line (reason production) through the guarded primitive
- credit the target product by quantity (reason production)
- overwrite the target product's cost price with unit_cost (last-cost valuation)
"""

from __future__ import annotations

from ..extensions import db
from ..errors import (
    InvalidStatusTransition,
    NotFoundError,
    OrderNotFound,
    ProductNotFound,
    ServiceItemStockError,
    ValidationError,
)
from ..models import CostDriver, Product, ProductionOrder, ProductionOrderCost, ProductionOrderLine
from ..models.customization import MODULE_PRODUCTION
from ..models.inventory import DIRECTION_IN, REASON_PRODUCTION
from ..models.production import (
    PO_STATUSES,
    PO_STATUS_COMPLETED,
    PO_STATUS_IN_PRODUCTION,
    PO_STATUS_PLANNED,
)
from ..validation import coerce_int, parse_cents, parse_datetime, parse_optional_id, parse_quantity
from bizledger.time_utils import utcnow
from .concurrency import lock_for_update, lock_products, run_atomic
from .costing_service import compute_production_unit_cost
from .inventory_service import debit_lines, record_movement
from .custom_field_service import get_values, save_values
from .audit_service import record_event

STATUS_ORDER = {PO_STATUS_PLANNED: 0, PO_STATUS_IN_PRODUCTION: 1, PO_STATUS_COMPLETED: 2}


# =============================================================================
# Cost drivers
# =============================================================================

def list_cost_drivers(org_id: int, *, active_only: bool = False) -> list[CostDriver]:
    q = db.session.query(CostDriver).filter(CostDriver.org_id == org_id)
    if active_only:
        q = q.filter(CostDriver.is_active.is_(True))
    return q.order_by(CostDriver.name).all()


def save_cost_driver(*, org_id: int, payload: dict) -> CostDriver:
    """Create a driver, or update it when payload carries an id."""
    payload = payload or {}
    driver_id = parse_optional_id(payload.get("id"), "id")
    name = (payload.get("name") or "").strip()
    if driver_id is None and not name:
        raise ValidationError("name is required")

    def _op():
        if driver_id is not None:
            driver = db.session.query(CostDriver).filter_by(id=driver_id, org_id=org_id).first()
            if driver is None:
                raise NotFoundError("Cost driver not found", {"cost_driver_id": driver_id})
        else:
            driver = CostDriver(org_id=org_id)
            db.session.add(driver)

        if name:
            driver.name = name
        if "unit" in payload:
            driver.unit = payload.get("unit")
        if "default_value_cents" in payload or driver_id is None:
            driver.default_value_cents = parse_cents(payload.get("default_value_cents"), "default_value_cents", default=0)
        if "is_active" in payload:
            driver.is_active = bool(payload.get("is_active"))
        db.session.flush()
        return driver

    return run_atomic(_op)


def delete_cost_driver(*, org_id: int, driver_id: int) -> bool:
    """
    Delete a driver. A driver already used by an order is deactivated instead.

    Returns True when the row was deleted.
    """
    def _op():
        driver = db.session.query(CostDriver).filter_by(id=driver_id, org_id=org_id).first()
        if driver is None:
            raise NotFoundError("Cost driver not found", {"cost_driver_id": driver_id})
        in_use = db.session.query(ProductionOrderCost.id).filter_by(cost_driver_id=driver.id).first()
        if in_use:
            driver.is_active = False
            return False
        db.session.delete(driver)
        return True

    return run_atomic(_op)


# =============================================================================
# Production orders
# =============================================================================

def _parse_order_quantity(value) -> int:
    if value is None:
        raise ValidationError("quantity is required")
    qty = coerce_int(value, "quantity")
    if qty < 0:
        raise ValidationError("quantity must be >= 0")
    return qty


def _parse_consumption(lines) -> list[dict]:
    if lines is None:
        return []
    if not isinstance(lines, list):
        raise ValidationError("lines must be a list")
    parsed = []
    for idx, raw in enumerate(lines):
        if not isinstance(raw, dict) or raw.get("product_id") is None:
            raise ValidationError(f"lines[{idx}].product_id is required")
        unit_cost = raw.get("unit_cost_cents")
        parsed.append({
            "product_id": coerce_int(raw.get("product_id"), f"lines[{idx}].product_id"),
            "quantity": parse_quantity(raw.get("quantity")),
            "unit_cost_cents": None if unit_cost is None else parse_cents(unit_cost, f"lines[{idx}].unit_cost_cents"),
        })
    return parsed


def _parse_costs(costs) -> list[dict]:
    if costs is None:
        return []
    if not isinstance(costs, list):
        raise ValidationError("costs must be a list")
    parsed = []
    for idx, raw in enumerate(costs):
        if not isinstance(raw, dict):
            raise ValidationError(f"costs[{idx}] must be an object")
        value = raw.get("value_cents")
        parsed.append({
            "cost_driver_id": parse_optional_id(raw.get("cost_driver_id"), f"costs[{idx}].cost_driver_id"),
            "description": (raw.get("description") or "").strip() or None,
            "value_cents": None if value is None else parse_cents(value, f"costs[{idx}].value_cents"),
        })
    return parsed


def _get_order(org_id: int, order_id: int, *, lock: bool = False) -> ProductionOrder:
    q = db.session.query(ProductionOrder).filter_by(id=order_id, org_id=org_id)
    if lock:
        q = lock_for_update(q).populate_existing()
    order = q.first()
    if order is None:
        raise OrderNotFound(order_id, kind="production_order")
    return order


def create_order(*, org_id: int, actor_user_id: int | None, payload: dict) -> ProductionOrder:
    payload = payload or {}
    if payload.get("product_id") is None:
        raise ValidationError("product_id is required")
    target_id = coerce_int(payload.get("product_id"), "product_id")
    quantity = _parse_order_quantity(payload.get("quantity"))
    consumption = _parse_consumption(payload.get("lines") or payload.get("items"))
    costs = _parse_costs(payload.get("costs"))
    due_date = parse_datetime(payload.get("due_date"), "due_date")

    def _op():
        target = db.session.query(Product).filter_by(id=target_id, org_id=org_id).first()
        if target is None:
            raise ProductNotFound(target_id)
        if not target.is_physical:
            raise ServiceItemStockError(target.id)

        order = ProductionOrder(
            org_id=org_id,
            product_id=target.id,
            quantity=quantity,
            status=PO_STATUS_PLANNED,
            due_date=due_date,
            notes=payload.get("notes"),
            created_by_user_id=actor_user_id,
        )
        db.session.add(order)

        raw_total = 0
        for line in consumption:
            product = db.session.query(Product).filter_by(id=line["product_id"], org_id=org_id).first()
            if product is None:
                raise ProductNotFound(line["product_id"])
            if not product.is_physical:
                raise ServiceItemStockError(product.id)
            unit_cost = line["unit_cost_cents"]
            if unit_cost is None:
                unit_cost = product.cost_price_cents
            subtotal = unit_cost * line["quantity"]
            order.lines.append(ProductionOrderLine(
                product_id=product.id,
                quantity=line["quantity"],
                unit_cost_cents=unit_cost,
                subtotal_cents=subtotal,
            ))
            raw_total += subtotal

        operation_total = 0
        for cost in costs:
            driver = None
            if cost["cost_driver_id"] is not None:
                driver = db.session.query(CostDriver).filter_by(id=cost["cost_driver_id"], org_id=org_id).first()
                if driver is None:
                    raise NotFoundError("Cost driver not found", {"cost_driver_id": cost["cost_driver_id"]})
            value = cost["value_cents"]
            if value is None:
                if driver is None:
                    raise ValidationError("value_cents is required for costs without a cost driver")
                value = driver.default_value_cents
            order.costs.append(ProductionOrderCost(
                cost_driver_id=driver.id if driver else None,
                description=cost["description"],
                value_cents=value,
            ))
            operation_total += value

        order.raw_material_cost_cents = raw_total
        order.operation_cost_cents = operation_total
        order.total_cost_cents = raw_total + operation_total
        order.unit_cost_cents = compute_production_unit_cost(raw_total, operation_total, quantity)
        db.session.flush()

        save_values(
            org_id=org_id,
            module=MODULE_PRODUCTION,
            entity_id=order.id,
            values=payload.get("custom_fields"),
            require_all=True,
        )
        record_event(
            org_id=org_id,
            actor_user_id=actor_user_id,
            action="production_order_created",
            entity_type="production_order",
            entity_id=order.id,
            payload={"total_cost_cents": order.total_cost_cents, "unit_cost_cents": order.unit_cost_cents},
        )
        return order

    return run_atomic(_op)


def update_status(*, org_id: int, order_id: int, new_status: str, actor_user_id: int | None = None) -> ProductionOrder:
    """
    Move an order to new_status; completed -> completed is a no-op, leaving
    completed or moving backwards raises InvalidStatusTransition.
    """
    if new_status not in PO_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(sorted(PO_STATUSES))}")

    def _op():
        order = _get_order(org_id, order_id, lock=True)
        current = order.status

        if current == PO_STATUS_COMPLETED:
            if new_status == PO_STATUS_COMPLETED:
                return order
            raise InvalidStatusTransition(current, new_status)

        if STATUS_ORDER[new_status] < STATUS_ORDER[current]:
            raise InvalidStatusTransition(current, new_status)

        if new_status == PO_STATUS_COMPLETED:
            _complete(order, actor_user_id=actor_user_id)
        else:
            if new_status == PO_STATUS_IN_PRODUCTION and order.started_at is None:
                order.started_at = utcnow()
            order.status = new_status

        record_event(
            org_id=org_id,
            actor_user_id=actor_user_id,
            action="production_order_status_changed",
            entity_type="production_order",
            entity_id=order.id,
            payload={"from": current, "to": new_status},
        )
        return order

    return run_atomic(_op)


def _complete(order: ProductionOrder, *, actor_user_id: int | None) -> None:
    if order.quantity <= 0:
        raise ValidationError("quantity must be > 0 to complete a production order", {"order_id": order.id})

    products = lock_products(order.org_id, [order.product_id] + [ln.product_id for ln in order.lines])
    note = f"Production order #{order.id}"

    debit_lines(
        org_id=order.org_id,
        products=products,
        lines=order.lines,
        reason=REASON_PRODUCTION,
        note=note,
        actor_user_id=actor_user_id,
        source_type="production_order",
        source_id=order.id,
    )

    target = products[order.product_id]
    record_movement(
        org_id=order.org_id,
        product=target,
        direction=DIRECTION_IN,
        quantity=order.quantity,
        reason=REASON_PRODUCTION,
        note=note,
        actor_user_id=actor_user_id,
        source_type="production_order",
        source_id=order.id,
    )
    target.cost_price_cents = order.unit_cost_cents

    if order.started_at is None:
        order.started_at = utcnow()
    order.status = PO_STATUS_COMPLETED
    order.completed_at = utcnow()


def get_order(org_id: int, order_id: int) -> ProductionOrder:
    return _get_order(org_id, order_id)


def get_order_detail(org_id: int, order_id: int) -> dict:
    order = _get_order(org_id, order_id)
    return {
        "production_order": order.to_dict(),
        "lines": [line.to_dict() for line in order.lines],
        "costs": [cost.to_dict() for cost in order.costs],
        "custom_fields": [v.to_dict() for v in get_values(org_id, MODULE_PRODUCTION, order.id)],
    }


def list_orders(org_id: int, *, status: str | None = None, limit: int = 100) -> list[ProductionOrder]:
    q = db.session.query(ProductionOrder).filter(ProductionOrder.org_id == org_id)
    if status:
        q = q.filter(ProductionOrder.status == status)
    return q.order_by(ProductionOrder.created_at.desc(), ProductionOrder.id.desc()).limit(limit).all()
