# Overview: Service-layer operations for service orders (repair tickets).

"""
Service Order Service

LIFECYCLE: open -> in_progress -> completed; cancelled from any state but
completed. completed and cancelled are terminal. Moves only go forward:
open -> completed may skip in_progress, in_progress -> open is
refused.

- Lines may only change while the order is open or in_progress; the total is
  recomputed from the lines after every change (never incremented).
- Entering completed is the only transition with side effects: every product
  line is debited through the guarded primitive (reason sale) and one pending
  income transaction is posted for the total. The order row is locked first
  and the status re-read, so completing twice applies the effects once.
"""

from __future__ import annotations

from ..extensions import db
from ..errors import ConflictError, InvalidStatusTransition, NotFoundError, OrderNotFound, ProductNotFound, ValidationError
from ..models import Product, ServiceOrder, ServiceOrderLine, User
from ..models.customization import MODULE_SERVICE_ORDER
from ..models.inventory import REASON_SALE
from ..models.service_orders import (
    SO_PRIORITIES,
    SO_STATUSES,
    SO_STATUS_CANCELLED,
    SO_STATUS_COMPLETED,
    SO_STATUS_IN_PROGRESS,
    SO_STATUS_OPEN,
)
from ..validation import parse_cents, parse_optional_id
from bizledger.time_utils import utcnow
from .concurrency import lock_for_update, lock_products, run_atomic
from .inventory_service import debit_lines
from .finance_service import post_transaction
from .client_service import resolve_client_id
from .custom_field_service import get_values, save_values
from .sales_service import line_values, parse_sale_lines
from .audit_service import record_event

TERMINAL_STATUSES = {SO_STATUS_COMPLETED, SO_STATUS_CANCELLED}
STATUS_ORDER = {SO_STATUS_OPEN: 0, SO_STATUS_IN_PROGRESS: 1, SO_STATUS_COMPLETED: 2}


def _get_order(org_id: int, order_id: int, *, lock: bool = False) -> ServiceOrder:
    q = db.session.query(ServiceOrder).filter_by(id=order_id, org_id=org_id)
    if lock:
        q = lock_for_update(q).populate_existing()
    order = q.first()
    if order is None:
        raise OrderNotFound(order_id, kind="service_order")
    return order


def _require_editable(order: ServiceOrder) -> None:
    if order.status in TERMINAL_STATUSES:
        raise ConflictError(
            "Service order can no longer be changed",
            {"order_id": order.id, "status": order.status},
        )


def recompute_order_total(order: ServiceOrder) -> int:
    gross = sum(line.subtotal_cents for line in order.lines)
    total = gross - (order.discount_cents or 0)
    if total < 0:
        raise ValidationError(
            "discount_cents cannot exceed the sum of line subtotals",
            {"discount_cents": order.discount_cents, "gross_cents": gross},
        )
    order.total_cents = total
    return total


def append_line(order: ServiceOrder, line: dict, product: Product | None) -> ServiceOrderLine:
    unit_price, subtotal = line_values(line, product)
    row = ServiceOrderLine(
        product_id=product.id if product else None,
        description=line.get("description"),
        quantity=line["quantity"],
        unit_price_cents=unit_price,
        subtotal_cents=subtotal,
    )
    order.lines.append(row)
    return row


def _load_line_products(org_id: int, lines: list[dict]) -> dict[int, Product]:
    ids = {line["product_id"] for line in lines if line["product_id"] is not None}
    if not ids:
        return {}
    found = {p.id: p for p in db.session.query(Product).filter(Product.org_id == org_id, Product.id.in_(ids)).all()}
    for pid in sorted(ids):
        if pid not in found:
            raise ProductNotFound(pid)
    return found


def _parse_header(payload: dict, *, partial: bool) -> dict:
    header = {}
    if "equipment" in payload or not partial:
        equipment = (payload.get("equipment") or "").strip()
        if not equipment:
            raise ValidationError("equipment is required")
        header["equipment"] = equipment
    if "description" in payload:
        header["description"] = payload.get("description")
    if "priority" in payload:
        priority = payload.get("priority") or "normal"
        if priority not in SO_PRIORITIES:
            raise ValidationError(f"priority must be one of: {', '.join(sorted(SO_PRIORITIES))}")
        header["priority"] = priority
    if "technician_user_id" in payload:
        header["technician_user_id"] = parse_optional_id(payload.get("technician_user_id"), "technician_user_id")
    if "discount_cents" in payload:
        header["discount_cents"] = parse_cents(payload.get("discount_cents"), "discount_cents", default=0)
    return header


def _validate_technician(org_id: int, user_id: int | None) -> None:
    if user_id is None:
        return
    if not db.session.query(User.id).filter_by(id=user_id, org_id=org_id).first():
        raise NotFoundError("Technician not found", {"user_id": user_id})


def build_order(
    *,
    org_id: int,
    actor_user_id: int | None,
    header: dict,
    client_id: int | None,
    client_name: str | None,
    lines: list[dict],
    products: dict[int, Product],
) -> ServiceOrder:
    """Create an open order with its lines and recomputed total (flushed)."""
    order = ServiceOrder(
        org_id=org_id,
        client_id=client_id,
        client_name=client_name,
        status=SO_STATUS_OPEN,
        discount_cents=header.get("discount_cents", 0),
        total_cents=0,
        created_by_user_id=actor_user_id,
        equipment=header["equipment"],
        description=header.get("description"),
        priority=header.get("priority", "normal"),
        technician_user_id=header.get("technician_user_id"),
    )
    db.session.add(order)
    for line in lines:
        product = products.get(line["product_id"]) if line["product_id"] is not None else None
        append_line(order, line, product)
    recompute_order_total(order)
    db.session.flush()
    return order


def create_order(*, org_id: int, actor_user_id: int | None, payload: dict) -> ServiceOrder:
    payload = payload or {}
    header = _parse_header(payload, partial=False)
    client_name = (payload.get("client_name") or "").strip() or None
    raw_items = payload.get("items") or payload.get("lines") or []
    lines = parse_sale_lines(raw_items, allow_free_text=True) if raw_items else []

    def _op():
        client_id = resolve_client_id(org_id, payload.get("client_id"))
        if client_id is None and not client_name:
            raise ValidationError("client_id or client_name is required")
        _validate_technician(org_id, header.get("technician_user_id"))

        order = build_order(
            org_id=org_id,
            actor_user_id=actor_user_id,
            header=header,
            client_id=client_id,
            client_name=client_name,
            lines=lines,
            products=_load_line_products(org_id, lines),
        )
        save_values(
            org_id=org_id,
            module=MODULE_SERVICE_ORDER,
            entity_id=order.id,
            values=payload.get("custom_fields"),
            require_all=True,
        )
        record_event(
            org_id=org_id,
            actor_user_id=actor_user_id,
            action="service_order_created",
            entity_type="service_order",
            entity_id=order.id,
        )
        return order

    return run_atomic(_op)


def update_order(*, org_id: int, order_id: int, actor_user_id: int | None, payload: dict) -> ServiceOrder:
    payload = payload or {}
    header = _parse_header(payload, partial=True)

    def _op():
        order = _get_order(org_id, order_id)
        if "discount_cents" in header:
            _require_editable(order)
        _validate_technician(org_id, header.get("technician_user_id"))
        for key, value in header.items():
            setattr(order, key, value)
        if "discount_cents" in header:
            recompute_order_total(order)
        save_values(
            org_id=org_id,
            module=MODULE_SERVICE_ORDER,
            entity_id=order.id,
            values=payload.get("custom_fields"),
        )
        return order

    return run_atomic(_op)


def add_item(*, org_id: int, order_id: int, payload: dict) -> ServiceOrder:
    line = parse_sale_lines([payload or {}], allow_free_text=True)[0]

    def _op():
        order = _get_order(org_id, order_id, lock=True)
        _require_editable(order)
        products = _load_line_products(org_id, [line])
        append_line(order, line, products.get(line["product_id"]))
        recompute_order_total(order)
        return order

    return run_atomic(_op)


def remove_item(*, org_id: int, order_id: int, line_id: int) -> ServiceOrder:
    def _op():
        order = _get_order(org_id, order_id, lock=True)
        _require_editable(order)
        line = next((ln for ln in order.lines if ln.id == line_id), None)
        if line is None:
            raise NotFoundError("Service order line not found", {"line_id": line_id})
        order.lines.remove(line)
        recompute_order_total(order)
        return order

    return run_atomic(_op)


def update_status(*, org_id: int, order_id: int, new_status: str, actor_user_id: int | None = None) -> ServiceOrder:
    """
    Move an order to new_status.

    completed -> completed is a no-op returning the order; leaving a terminal
    status or moving backwards raises InvalidStatusTransition.
    """
    if new_status not in SO_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(sorted(SO_STATUSES))}")

    def _op():
        order = _get_order(org_id, order_id, lock=True)
        current = order.status

        if current == new_status and current in TERMINAL_STATUSES:
            return order
        if current in TERMINAL_STATUSES:
            raise InvalidStatusTransition(current, new_status)
        if new_status in STATUS_ORDER and STATUS_ORDER[new_status] < STATUS_ORDER[current]:
            raise InvalidStatusTransition(current, new_status)

        if new_status == SO_STATUS_COMPLETED:
            _complete(order, actor_user_id=actor_user_id)
        else:
            order.status = new_status

        record_event(
            org_id=org_id,
            actor_user_id=actor_user_id,
            action="service_order_status_changed",
            entity_type="service_order",
            entity_id=order.id,
            payload={"from": current, "to": new_status},
        )
        return order

    return run_atomic(_op)


def _complete(order: ServiceOrder, *, actor_user_id: int | None) -> None:
    products = lock_products(order.org_id, [ln.product_id for ln in order.lines])
    debit_lines(
        org_id=order.org_id,
        products=products,
        lines=order.lines,
        reason=REASON_SALE,
        note=f"Service order #{order.id}",
        actor_user_id=actor_user_id,
        source_type="service_order",
        source_id=order.id,
    )

    total = recompute_order_total(order)
    if total > 0 and order.revenue_transaction_id is None:
        txn = post_transaction(
            org_id=order.org_id,
            type="income",
            status="pending",
            amount_cents=total,
            description=f"Service order #{order.id} - {order.equipment}",
            category="service",
            client_id=order.client_id,
            service_order_id=order.id,
            actor_user_id=actor_user_id,
        )
        order.revenue_transaction_id = txn.id

    order.status = SO_STATUS_COMPLETED
    order.completed_at = utcnow()


def get_order(org_id: int, order_id: int) -> ServiceOrder:
    return _get_order(org_id, order_id)


def get_order_detail(org_id: int, order_id: int) -> dict:
    order = _get_order(org_id, order_id)
    return {
        "service_order": order.to_dict(),
        "lines": [line.to_dict() for line in order.lines],
        "custom_fields": [v.to_dict() for v in get_values(org_id, MODULE_SERVICE_ORDER, order.id)],
    }


def list_orders(org_id: int, *, status: str | None = None, limit: int = 100) -> list[ServiceOrder]:
    q = db.session.query(ServiceOrder).filter(ServiceOrder.org_id == org_id)
    if status:
        q = q.filter(ServiceOrder.status == status)
    return q.order_by(ServiceOrder.created_at.desc(), ServiceOrder.id.desc()).limit(limit).all()
