# Overview: Service-layer operations for goods entries (supplier invoices received into stock).

"""
Goods Entry Service

DESIGN:
- An entry is posted in one step: every line credits stock ('in', reason
  purchase) and overwrites the product's cost price with the line unit cost
  (last-cost valuation, no averaging).
- The header total is the running sum of line subtotals, persisted after all
  lines succeed. Any failing line aborts the whole entry.
- Optional generate_expense posts one pending expense for the total.
- Deleting an entry reverses stock through the guarded debit; movements are
  never deleted, and a posted expense is left untouched.
"""

from __future__ import annotations

from ..extensions import db
from ..errors import EmptyEntry, EntryNotFound, ValidationError
from ..models import GoodsEntry, GoodsEntryLine
from ..models.inventory import DIRECTION_IN, DIRECTION_OUT, REASON_ADJUSTMENT, REASON_PURCHASE
from ..validation import coerce_int, parse_cents, parse_datetime, parse_quantity
from bizledger.time_utils import utcnow
from .concurrency import lock_products, run_atomic
from .inventory_service import adjust_stock, record_movement
from .finance_service import post_transaction
from .audit_service import record_event


def _parse_lines(lines) -> list[dict]:
    if not isinstance(lines, list) or not lines:
        raise EmptyEntry()
    parsed = []
    for idx, raw in enumerate(lines):
        if not isinstance(raw, dict):
            raise ValidationError(f"lines[{idx}] must be an object")
        if raw.get("product_id") is None:
            raise ValidationError(f"lines[{idx}].product_id is required")
        parsed.append({
            "product_id": coerce_int(raw.get("product_id"), f"lines[{idx}].product_id"),
            "quantity": parse_quantity(raw.get("quantity")),
            "unit_cost_cents": parse_cents(raw.get("unit_cost_cents"), f"lines[{idx}].unit_cost_cents"),
        })
    return parsed


def create_entry(*, org_id: int, actor_user_id: int | None, header: dict, lines) -> GoodsEntry:
    header = header or {}
    parsed = _parse_lines(lines)
    entry_date = parse_datetime(header.get("entry_date"), "entry_date") or utcnow()
    generate_expense = bool(header.get("generate_expense", False))

    def _op():
        products = lock_products(org_id, [line["product_id"] for line in parsed])

        entry = GoodsEntry(
            org_id=org_id,
            created_by_user_id=actor_user_id,
            supplier_name=(header.get("supplier_name") or None),
            invoice_number=(header.get("invoice_number") or None),
            invoice_url=(header.get("invoice_url") or None),
            entry_date=entry_date,
            total_cents=0,
        )
        db.session.add(entry)
        db.session.flush()

        total = 0
        for line in parsed:
            product = products[line["product_id"]]
            subtotal = line["quantity"] * line["unit_cost_cents"]

            db.session.add(GoodsEntryLine(
                entry_id=entry.id,
                product_id=product.id,
                quantity=line["quantity"],
                unit_cost_cents=line["unit_cost_cents"],
                subtotal_cents=subtotal,
            ))
            record_movement(
                org_id=org_id,
                product=product,
                direction=DIRECTION_IN,
                quantity=line["quantity"],
                reason=REASON_PURCHASE,
                note=f"Goods entry #{entry.id}",
                actor_user_id=actor_user_id,
                source_type="goods_entry",
                source_id=entry.id,
            )
            product.cost_price_cents = line["unit_cost_cents"]
            total += subtotal

        entry.total_cents = total

        if generate_expense and total > 0:
            label = f"Purchase invoice {entry.invoice_number or entry.id}"
            if entry.supplier_name:
                label = f"{label} - {entry.supplier_name}"
            txn = post_transaction(
                org_id=org_id,
                type="expense",
                status="pending",
                amount_cents=total,
                description=label,
                category="purchase",
                due_date=entry_date,
                goods_entry_id=entry.id,
                actor_user_id=actor_user_id,
            )
            entry.expense_transaction_id = txn.id

        record_event(
            org_id=org_id,
            actor_user_id=actor_user_id,
            action="goods_entry_created",
            entity_type="goods_entry",
            entity_id=entry.id,
            payload={"total_cents": total, "lines": len(parsed)},
        )
        return entry

    return run_atomic(_op)


def get_entry(org_id: int, entry_id: int) -> GoodsEntry:
    entry = db.session.query(GoodsEntry).filter_by(id=entry_id, org_id=org_id).first()
    if entry is None:
        raise EntryNotFound(entry_id)
    return entry


def list_entries(org_id: int, *, limit: int = 100) -> list[GoodsEntry]:
    return (
        db.session.query(GoodsEntry)
        .filter(GoodsEntry.org_id == org_id)
        .order_by(GoodsEntry.entry_date.desc(), GoodsEntry.id.desc())
        .limit(limit)
        .all()
    )


def delete_entry(*, org_id: int, entry_id: int, actor_user_id: int | None = None) -> None:
    """
    Reverse an entry's stock and delete the document.

    Raises InsufficientStock when some of the received goods have already
    left stock; nothing is reversed in that case.
    """
    def _op():
        entry = get_entry(org_id, entry_id)
        products = lock_products(org_id, [line.product_id for line in entry.lines])

        demand: dict[int, int] = {}
        for line in entry.lines:
            demand[line.product_id] = demand.get(line.product_id, 0) + line.quantity

        for pid in sorted(demand):
            adjust_stock(
                org_id=org_id,
                product=products[pid],
                direction=DIRECTION_OUT,
                quantity=demand[pid],
                reason=REASON_ADJUSTMENT,
                note=f"Reversal of goods entry #{entry.id}",
                actor_user_id=actor_user_id,
                source_type="goods_entry",
                source_id=entry.id,
            )

        record_event(
            org_id=org_id,
            actor_user_id=actor_user_id,
            action="goods_entry_deleted",
            entity_type="goods_entry",
            entity_id=entry.id,
            payload={"total_cents": entry.total_cents},
        )
        db.session.delete(entry)

    run_atomic(_op)
