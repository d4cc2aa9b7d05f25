# Overview: Service-layer operations for sales; checkout, drafts, completion side effects.

"""
Sales Service

LIFECYCLE:
1. draft: lines may be added/removed; no stock or money has moved
2. completed: stock debited, commission posted, revenue posted

A checkout builds the sale and completes it in one transaction. A draft is
completed later by finish_sale. Quote conversion reuses the same line and
completion helpers (build_sale / complete_sale).

COMPLETION SIDE EFFECTS (complete_sale, all inside the caller's transaction):
- every line gets its commission: rate = product rate if set, else seller
  default, else 0; commission = subtotal * rate, half-up to the cent
- physical lines are debited through the guarded primitive (reason sale)
- one pending Commission for the seller when the sum is > 0
- revenue: checkout posts one completed income; drafts and quotes post
  pending income (installments for drafts). Nothing is posted for a zero total.

total_cents = SUM(line.subtotal_cents) - discount_cents, never negative.
"""

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..errors import (
    ConflictError,
    EmptyCart,
    InvalidStatusTransition,
    NotFoundError,
    ProductNotFound,
    SaleNotFound,
    ValidationError,
)
from ..models import Commission, Product, Sale, SaleLine, User
from ..models.inventory import REASON_SALE
from ..models.sales import COMMISSION_PENDING, SALE_STATUS_COMPLETED, SALE_STATUS_DRAFT
from ..validation import coerce_int, parse_cents, parse_datetime, parse_optional_id, parse_quantity
from bizledger.time_utils import utcnow
from .concurrency import lock_products, run_atomic
from .costing_service import compute_line_commission, resolve_commission_rate
from .inventory_service import debit_lines
from .finance_service import post_installments, post_transaction
from .cash_session_service import find_open_session, get_session_for_sale
from .client_service import resolve_client_id
from .audit_service import record_event

DEFAULT_PAYMENT_METHOD = "cash"
MAX_INSTALLMENTS = 48


# =============================================================================
# Shared helpers
# =============================================================================

def get_seller(org_id: int, user_id: int) -> User:
    seller = db.session.query(User).filter_by(id=user_id, org_id=org_id).first()
    if seller is None:
        raise NotFoundError("Seller not found", {"user_id": user_id})
    return seller


def parse_sale_lines(lines, *, allow_free_text: bool = False) -> list[dict]:
    """
    Normalize raw line payloads.

    Each line: product_id (required unless allow_free_text), quantity,
    optional unit_price_cents (defaults to the product's sale price),
    optional description.
    """
    if not isinstance(lines, list) or not lines:
        raise EmptyCart()
    parsed = []
    for idx, raw in enumerate(lines):
        if not isinstance(raw, dict):
            raise ValidationError(f"lines[{idx}] must be an object")
        product_id = parse_optional_id(raw.get("product_id"), f"lines[{idx}].product_id")
        description = (raw.get("description") or "").strip() or None
        if product_id is None and not (allow_free_text and description):
            raise ValidationError(f"lines[{idx}].product_id is required")
        unit_price = raw.get("unit_price_cents")
        parsed.append({
            "product_id": product_id,
            "description": description,
            "quantity": parse_quantity(raw.get("quantity")),
            "unit_price_cents": None if unit_price is None else parse_cents(unit_price, f"lines[{idx}].unit_price_cents"),
        })
    return parsed


def line_values(line: dict, product: Product | None) -> tuple[int, int]:
    """(unit_price_cents, subtotal_cents) for a parsed line."""
    unit_price = line["unit_price_cents"]
    if unit_price is None:
        if product is None:
            raise ValidationError("unit_price_cents is required for lines without a product")
        unit_price = product.sale_price_cents
    return unit_price, unit_price * line["quantity"]


def recompute_sale_total(sale: Sale) -> int:
    gross = sum(line.subtotal_cents for line in sale.lines)
    total = gross - (sale.discount_cents or 0)
    if total < 0:
        raise ValidationError(
            "discount_cents cannot exceed the sum of line subtotals",
            {"discount_cents": sale.discount_cents, "gross_cents": gross},
        )
    sale.total_cents = total
    return total


def build_sale(
    *,
    org_id: int,
    seller: User,
    client_id: int | None,
    lines: list[dict],
    products: dict[int, Product],
    discount_cents: int = 0,
    notes: str | None = None,
) -> Sale:
    """Create a draft sale with its lines and total (flushed, not completed)."""
    sale = Sale(
        org_id=org_id,
        seller_user_id=seller.id,
        client_id=client_id,
        status=SALE_STATUS_DRAFT,
        discount_cents=discount_cents,
        total_cents=0,
        notes=notes,
    )
    db.session.add(sale)
    for line in lines:
        product = products.get(line["product_id"]) if line["product_id"] is not None else None
        unit_price, subtotal = line_values(line, product)
        sale.lines.append(SaleLine(
            product_id=product.id if product else None,
            description=line.get("description"),
            quantity=line["quantity"],
            unit_price_cents=unit_price,
            subtotal_cents=subtotal,
        ))
    recompute_sale_total(sale)
    db.session.flush()
    return sale


def complete_sale(
    *,
    sale: Sale,
    seller: User,
    products: dict[int, Product],
    actor_user_id: int | None,
    revenue_status: str,
    installments: int = 1,
    first_due: datetime | None = None,
) -> Sale:
    """
    Apply completion side effects to a draft sale whose products are locked.
    """
    if sale.status != SALE_STATUS_DRAFT:
        raise InvalidStatusTransition(sale.status, SALE_STATUS_COMPLETED)
    if not sale.lines:
        raise EmptyCart()

    total_commission = 0
    for line in sale.lines:
        product = products.get(line.product_id) if line.product_id is not None else None
        rate = resolve_commission_rate(product, seller)
        line.commission_rate_bps = rate
        line.commission_cents = compute_line_commission(line.subtotal_cents, rate)
        total_commission += line.commission_cents

    debit_lines(
        org_id=sale.org_id,
        products=products,
        lines=sale.lines,
        reason=REASON_SALE,
        note=f"Sale #{sale.id}",
        actor_user_id=actor_user_id,
        source_type="sale",
        source_id=sale.id,
    )

    total = recompute_sale_total(sale)
    sale.commission_cents = total_commission
    sale.installments = installments
    sale.status = SALE_STATUS_COMPLETED
    sale.completed_at = utcnow()

    if total_commission > 0:
        db.session.add(Commission(
            org_id=sale.org_id,
            seller_user_id=seller.id,
            sale_id=sale.id,
            amount_cents=total_commission,
            status=COMMISSION_PENDING,
        ))

    if total > 0:
        links = {"client_id": sale.client_id, "sale_id": sale.id, "actor_user_id": actor_user_id}
        if revenue_status == "completed":
            post_transaction(
                org_id=sale.org_id,
                type="income",
                status="completed",
                amount_cents=total,
                description=f"Sale #{sale.id}",
                category="sale",
                **links,
            )
        else:
            post_installments(
                org_id=sale.org_id,
                total_cents=total,
                count=installments,
                description=f"Sale #{sale.id}",
                first_due=first_due,
                **links,
            )

    record_event(
        org_id=sale.org_id,
        actor_user_id=actor_user_id,
        action="sale_completed",
        entity_type="sale",
        entity_id=sale.id,
        payload={"total_cents": total, "commission_cents": total_commission},
    )
    return sale


def _attach_cash_session(sale: Sale, *, org_id: int, cash_session_id, seller_id: int) -> None:
    if cash_session_id is not None:
        sale.cash_session_id = get_session_for_sale(org_id, cash_session_id, seller_id).id
        return
    session = find_open_session(org_id, seller_id)
    if session is not None:
        sale.cash_session_id = session.id


def _parse_installments(value) -> int:
    if value is None:
        return 1
    count = coerce_int(value, "installments")
    if count < 1 or count > MAX_INSTALLMENTS:
        raise ValidationError(f"installments must be between 1 and {MAX_INSTALLMENTS}")
    return count


# =============================================================================
# Checkout
# =============================================================================

def checkout(*, org_id: int, seller_user_id: int, payload: dict) -> Sale:
    """
    Point-of-sale checkout: build and complete a sale in one transaction.

    Any failing line (unknown product, insufficient stock) rolls back every
    line, movement, commission and transaction of the call.
    """
    payload = payload or {}
    lines = parse_sale_lines(payload.get("lines") or payload.get("items"))
    discount = parse_cents(payload.get("discount_cents"), "discount_cents", default=0)
    payment_method = (payload.get("payment_method") or DEFAULT_PAYMENT_METHOD).strip().lower()
    cash_session_id = parse_optional_id(payload.get("cash_session_id"), "cash_session_id")
    notes = payload.get("notes")

    def _op():
        seller = get_seller(org_id, seller_user_id)
        client_id = resolve_client_id(org_id, payload.get("client_id"))
        products = lock_products(org_id, [line["product_id"] for line in lines])

        sale = build_sale(
            org_id=org_id,
            seller=seller,
            client_id=client_id,
            lines=lines,
            products=products,
            discount_cents=discount,
            notes=notes,
        )
        sale.payment_method = payment_method
        _attach_cash_session(sale, org_id=org_id, cash_session_id=cash_session_id, seller_id=seller.id)

        return complete_sale(
            sale=sale,
            seller=seller,
            products=products,
            actor_user_id=seller.id,
            revenue_status="completed",
        )

    return run_atomic(_op)


# =============================================================================
# Drafts
# =============================================================================

def get_sale(org_id: int, sale_id: int) -> Sale:
    sale = db.session.query(Sale).filter_by(id=sale_id, org_id=org_id).first()
    if sale is None:
        raise SaleNotFound(sale_id)
    return sale


def _require_draft(sale: Sale) -> None:
    if sale.status != SALE_STATUS_DRAFT:
        raise ConflictError("Sale is not a draft", {"sale_id": sale.id, "status": sale.status})


def create_draft_sale(*, org_id: int, seller_user_id: int, payload: dict | None = None) -> Sale:
    payload = payload or {}

    def _op():
        seller = get_seller(org_id, seller_user_id)
        sale = Sale(
            org_id=org_id,
            seller_user_id=seller.id,
            client_id=resolve_client_id(org_id, payload.get("client_id")),
            status=SALE_STATUS_DRAFT,
            discount_cents=0,
            total_cents=0,
            notes=payload.get("notes"),
        )
        db.session.add(sale)
        db.session.flush()
        return sale

    return run_atomic(_op)


def add_sale_item(*, org_id: int, sale_id: int, payload: dict) -> Sale:
    line = parse_sale_lines([payload or {}])[0]

    def _op():
        sale = get_sale(org_id, sale_id)
        _require_draft(sale)
        product = db.session.query(Product).filter_by(id=line["product_id"], org_id=org_id).first()
        if product is None:
            raise ProductNotFound(line["product_id"])
        unit_price, subtotal = line_values(line, product)
        sale.lines.append(SaleLine(
            product_id=product.id,
            description=line.get("description"),
            quantity=line["quantity"],
            unit_price_cents=unit_price,
            subtotal_cents=subtotal,
        ))
        recompute_sale_total(sale)
        return sale

    return run_atomic(_op)


def remove_sale_item(*, org_id: int, sale_id: int, line_id: int) -> Sale:
    def _op():
        sale = get_sale(org_id, sale_id)
        _require_draft(sale)
        line = next((ln for ln in sale.lines if ln.id == line_id), None)
        if line is None:
            raise NotFoundError("Sale line not found", {"line_id": line_id})
        sale.lines.remove(line)
        recompute_sale_total(sale)
        return sale

    return run_atomic(_op)


def finish_sale(*, org_id: int, sale_id: int, actor_user_id: int | None, payload: dict | None = None) -> Sale:
    """
    Complete a draft: debit stock, post the commission and N pending income
    installments one month apart (remainder cents on the first).
    """
    payload = payload or {}
    installments = _parse_installments(payload.get("installments"))
    payment_method = (payload.get("payment_method") or DEFAULT_PAYMENT_METHOD).strip().lower()
    first_due = parse_datetime(payload.get("first_due_date"), "first_due_date")
    cash_session_id = parse_optional_id(payload.get("cash_session_id"), "cash_session_id")

    def _op():
        sale = get_sale(org_id, sale_id)
        _require_draft(sale)
        if not sale.lines:
            raise EmptyCart()

        if "discount_cents" in payload:
            sale.discount_cents = parse_cents(payload.get("discount_cents"), "discount_cents", default=0)
        sale.payment_method = payment_method

        seller = get_seller(org_id, sale.seller_user_id)
        products = lock_products(org_id, [ln.product_id for ln in sale.lines])
        _attach_cash_session(sale, org_id=org_id, cash_session_id=cash_session_id, seller_id=seller.id)

        return complete_sale(
            sale=sale,
            seller=seller,
            products=products,
            actor_user_id=actor_user_id,
            revenue_status="pending",
            installments=installments,
            first_due=first_due,
        )

    return run_atomic(_op)


# =============================================================================
# Queries
# =============================================================================

def list_sales(
    org_id: int,
    *,
    status: str | None = None,
    client_id: int | None = None,
    date_from: datetime | None = None,
    limit: int = 100,
) -> list[Sale]:
    q = db.session.query(Sale).filter(Sale.org_id == org_id)
    if status:
        q = q.filter(Sale.status == status)
    if client_id is not None:
        q = q.filter(Sale.client_id == client_id)
    if date_from is not None:
        q = q.filter(Sale.created_at >= date_from)
    return q.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()
