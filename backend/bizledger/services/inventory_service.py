# Overview: Ledger primitives; the only code path that changes a product's on-hand quantity.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import case, func

from ..extensions import db
from ..errors import (
    InsufficientStock,
    InvalidQuantity,
    ProductNotFound,
    ServiceItemStockError,
    ValidationError,
)
from ..models import InventoryMovement, Product
from ..models.inventory import DIRECTIONS, DIRECTION_IN, DIRECTION_OUT, MOVEMENT_REASONS, REASON_ADJUSTMENT
from ..validation import parse_quantity
from bizledger.time_utils import utcnow
from .concurrency import lock_for_update, lock_products, run_atomic
from .audit_service import record_event
from .notification_service import notify_low_stock
"""
Stock Ledger Invariants (authoritative)

Inventory model:
- Product.quantity_on_hand is a denormalized counter.
- Every change to it is paired with exactly one InventoryMovement row in the
  same DB transaction (record_movement is the only writer), so
      quantity_on_hand == SUM(+qty for 'in', -qty for 'out')
  for every product after every committed workflow.

Business invariants:
- Movement quantity is a positive integer; direction carries the sign.
- Service-kind products never carry stock and never get movements.
- Every stock-decreasing path goes through adjust_stock, which refuses to
  drive quantity below zero (InsufficientStock carries the deficit).

Concurrency:
- Workflows lock the products they touch (concurrency.lock_products) before
  reading quantity_on_hand, so read-then-write is serialized per product.
"""


def get_product(org_id: int, product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id, org_id=org_id)
    if lock:
        query = lock_for_update(query).populate_existing()
    product = query.first()
    if product is None:
        raise ProductNotFound(product_id)
    return product


def record_movement(
    *,
    org_id: int,
    product: Product,
    direction: str,
    quantity,
    reason: str,
    note: str | None = None,
    actor_user_id: int | None = None,
    source_type: str | None = None,
    source_id: int | None = None,
    occurred_at: datetime | None = None,
) -> InventoryMovement:
    """
    Apply a signed delta to product.quantity_on_hand and append the movement.

    Runs inside the caller's transaction; never commits. Does not guard
    against negative stock (see adjust_stock).
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantity(quantity)
    if direction not in DIRECTIONS:
        raise ValidationError("direction must be 'in' or 'out'", {"direction": direction})
    if reason not in MOVEMENT_REASONS:
        raise ValidationError(
            f"reason must be one of: {', '.join(sorted(MOVEMENT_REASONS))}",
            {"reason": reason},
        )
    if product is None or product.org_id != org_id:
        raise ProductNotFound(getattr(product, "id", None))
    if not product.is_physical:
        raise ServiceItemStockError(product.id)

    delta = quantity if direction == DIRECTION_IN else -quantity
    product.quantity_on_hand = (product.quantity_on_hand or 0) + delta

    movement = InventoryMovement(
        org_id=org_id,
        product_id=product.id,
        direction=direction,
        quantity=quantity,
        reason=reason,
        note=note[:255] if note else None,
        actor_user_id=actor_user_id,
        source_type=source_type,
        source_id=source_id,
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(movement)
    return movement


def adjust_stock(
    *,
    org_id: int,
    product: Product,
    direction: str,
    quantity,
    reason: str,
    note: str | None = None,
    actor_user_id: int | None = None,
    source_type: str | None = None,
    source_id: int | None = None,
) -> InventoryMovement:
    """
    Guarded movement: an 'out' that would leave quantity below zero raises
    InsufficientStock instead. Debits may raise a low-stock notification.

    The caller must already hold the product lock.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantity(quantity)
    if product is not None and product.is_physical and direction == DIRECTION_OUT:
        available = product.quantity_on_hand or 0
        if quantity > available:
            raise InsufficientStock(product.id, quantity, available)

    movement = record_movement(
        org_id=org_id,
        product=product,
        direction=direction,
        quantity=quantity,
        reason=reason,
        note=note,
        actor_user_id=actor_user_id,
        source_type=source_type,
        source_id=source_id,
    )

    if direction == DIRECTION_OUT:
        notify_low_stock(product)
    return movement


def debit_lines(
    *,
    org_id: int,
    products: dict[int, Product],
    lines,
    reason: str,
    note: str,
    actor_user_id: int | None,
    source_type: str,
    source_id: int,
) -> list[InventoryMovement]:
    """
    Guarded debit for every line that references a physical product.

    Quantities are summed per product first so two lines for the same item
    are checked against the combined demand.
    """
    demand: dict[int, int] = {}
    for line in lines:
        pid = line.product_id
        if pid is None:
            continue
        product = products[pid]
        if not product.is_physical:
            continue
        demand[pid] = demand.get(pid, 0) + line.quantity

    movements = []
    for pid in sorted(demand):
        movements.append(adjust_stock(
            org_id=org_id,
            product=products[pid],
            direction=DIRECTION_OUT,
            quantity=demand[pid],
            reason=reason,
            note=note,
            actor_user_id=actor_user_id,
            source_type=source_type,
            source_id=source_id,
        ))
    return movements


def manual_adjustment(
    *,
    org_id: int,
    product_id: int,
    direction: str,
    quantity,
    note: str | None = None,
    actor_user_id: int | None = None,
) -> tuple[Product, InventoryMovement]:
    """HTTP-facing stock correction through adjust_stock."""
    qty = parse_quantity(quantity)
    if direction not in DIRECTIONS:
        raise ValidationError("direction must be 'in' or 'out'", {"direction": direction})

    def _op():
        product = lock_products(org_id, [product_id])[product_id]
        movement = adjust_stock(
            org_id=org_id,
            product=product,
            direction=direction,
            quantity=qty,
            reason=REASON_ADJUSTMENT,
            note=note,
            actor_user_id=actor_user_id,
            source_type="manual",
        )
        db.session.flush()
        record_event(
            org_id=org_id,
            actor_user_id=actor_user_id,
            action="stock_adjusted",
            entity_type="product",
            entity_id=product.id,
            note=note,
            payload={"direction": direction, "quantity": qty, "movement_id": movement.id},
        )
        return product, movement

    return run_atomic(_op)


def list_movements(org_id: int, *, product_id: int | None = None, limit: int = 100) -> list[InventoryMovement]:
    q = db.session.query(InventoryMovement).filter(InventoryMovement.org_id == org_id)
    if product_id is not None:
        q = q.filter(InventoryMovement.product_id == product_id)
    return q.order_by(InventoryMovement.occurred_at.desc(), InventoryMovement.id.desc()).limit(limit).all()


def movement_balance(org_id: int, product_id: int) -> int:
    """SUM of signed movements for one product."""
    signed = case(
        (InventoryMovement.direction == DIRECTION_IN, InventoryMovement.quantity),
        else_=-InventoryMovement.quantity,
    )
    total = db.session.query(func.coalesce(func.sum(signed), 0)).filter(
        InventoryMovement.org_id == org_id,
        InventoryMovement.product_id == product_id,
    ).scalar()
    return int(total or 0)


def verify_stock_conservation(org_id: int) -> list[dict]:
    """
    Compare every product's counter with its movement sum.

    Returns one dict per mismatching product (empty list means consistent).
    """
    signed = case(
        (InventoryMovement.direction == DIRECTION_IN, InventoryMovement.quantity),
        else_=-InventoryMovement.quantity,
    )
    sums = dict(
        db.session.query(InventoryMovement.product_id, func.sum(signed))
        .filter(InventoryMovement.org_id == org_id)
        .group_by(InventoryMovement.product_id)
        .all()
    )

    mismatches = []
    for product in db.session.query(Product).filter(Product.org_id == org_id).order_by(Product.id).all():
        ledger_qty = int(sums.get(product.id) or 0)
        if ledger_qty != product.quantity_on_hand:
            mismatches.append({
                "product_id": product.id,
                "name": product.name,
                "quantity_on_hand": product.quantity_on_hand,
                "movement_sum": ledger_qty,
                "difference": product.quantity_on_hand - ledger_qty,
            })
    return mismatches
