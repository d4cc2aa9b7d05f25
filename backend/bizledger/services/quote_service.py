# Overview: Service-layer operations for quotes and their conversion into sales or service orders.

"""
Quote Service

- A quote is a priced list of lines; it never touches stock or money itself.
- Conversion is single-use: the quote row is locked, must still be a draft,
  and is flipped to converted in the same transaction that creates the target.
- Conversion reuses the target workflow's own helpers:
    sale          -> sales_service.build_sale + complete_sale (stock debit,
                     commission, pending income)
    service_order -> service_order_service.build_order (open, no stock effect
                     until the order is completed)
"""

from __future__ import annotations

from ..extensions import db
from ..errors import ProductNotFound, QuoteAlreadyConverted, QuoteNotFound, ValidationError
from ..models import Product, Quote, QuoteLine
from ..models.quotes import (
    CONVERT_TARGET_SALE,
    CONVERT_TARGET_SERVICE_ORDER,
    QUOTE_STATUS_CONVERTED,
    QUOTE_STATUS_DRAFT,
)
from ..validation import parse_cents, parse_datetime
from bizledger.time_utils import utcnow
from .concurrency import lock_for_update, lock_products, run_atomic
from .client_service import resolve_client_id
from .sales_service import build_sale, complete_sale, get_seller, line_values, parse_sale_lines
from .service_order_service import build_order
from .audit_service import record_event

TARGET_ALIASES = {
    "sale": CONVERT_TARGET_SALE,
    "service_order": CONVERT_TARGET_SERVICE_ORDER,
    "serviceOrder": CONVERT_TARGET_SERVICE_ORDER,
}

PLACEHOLDER_EQUIPMENT = "To be defined"


def _get_quote(org_id: int, quote_id: int, *, lock: bool = False) -> Quote:
    q = db.session.query(Quote).filter_by(id=quote_id, org_id=org_id)
    if lock:
        q = lock_for_update(q).populate_existing()
    quote = q.first()
    if quote is None:
        raise QuoteNotFound(quote_id)
    return quote


def _products_for(org_id: int, lines: list[dict]) -> dict[int, Product]:
    ids = sorted({line["product_id"] for line in lines if line["product_id"] is not None})
    if not ids:
        return {}
    return lock_products(org_id, ids)


def create_quote(*, org_id: int, actor_user_id: int | None, payload: dict) -> Quote:
    payload = payload or {}
    lines = parse_sale_lines(payload.get("items") or payload.get("lines"), allow_free_text=True)
    discount = parse_cents(payload.get("discount_cents"), "discount_cents", default=0)
    valid_until = parse_datetime(payload.get("valid_until"), "valid_until")
    client_name = (payload.get("client_name") or "").strip() or None

    def _op():
        client_id = resolve_client_id(org_id, payload.get("client_id"))
        products = {}
        ids = {line["product_id"] for line in lines if line["product_id"] is not None}
        if ids:
            products = {p.id: p for p in db.session.query(Product).filter(
                Product.org_id == org_id, Product.id.in_(ids)
            ).all()}

        quote = Quote(
            org_id=org_id,
            client_id=client_id,
            client_name=client_name,
            status=QUOTE_STATUS_DRAFT,
            discount_cents=discount,
            valid_until=valid_until,
            notes=payload.get("notes"),
            created_by_user_id=actor_user_id,
        )
        db.session.add(quote)

        gross = 0
        for line in lines:
            product = None
            if line["product_id"] is not None:
                product = products.get(line["product_id"])
                if product is None:
                    raise ProductNotFound(line["product_id"])
            unit_price, subtotal = line_values(line, product)
            quote.lines.append(QuoteLine(
                product_id=product.id if product else None,
                description=line.get("description"),
                quantity=line["quantity"],
                unit_price_cents=unit_price,
                subtotal_cents=subtotal,
            ))
            gross += subtotal

        if discount > gross:
            raise ValidationError(
                "discount_cents cannot exceed the sum of line subtotals",
                {"discount_cents": discount, "gross_cents": gross},
            )
        quote.total_cents = gross - discount
        db.session.flush()
        return quote

    return run_atomic(_op)


def get_quote(org_id: int, quote_id: int) -> Quote:
    return _get_quote(org_id, quote_id)


def list_quotes(org_id: int, *, status: str | None = None, limit: int = 100) -> list[Quote]:
    q = db.session.query(Quote).filter(Quote.org_id == org_id)
    if status:
        q = q.filter(Quote.status == status)
    return q.order_by(Quote.created_at.desc(), Quote.id.desc()).limit(limit).all()


def delete_quote(*, org_id: int, quote_id: int) -> None:
    def _op():
        quote = _get_quote(org_id, quote_id, lock=True)
        if quote.status != QUOTE_STATUS_DRAFT:
            raise QuoteAlreadyConverted(quote.id, quote.status)
        db.session.delete(quote)

    run_atomic(_op)


def convert_quote(*, org_id: int, quote_id: int, target: str, actor_user_id: int):
    """
    Convert a draft quote. Returns (quote, created_entity).

    Raises QuoteNotFound, QuoteAlreadyConverted, and whatever the target
    workflow raises (InsufficientStock for sales). On any failure the quote
    stays a draft and nothing is created.
    """
    kind = TARGET_ALIASES.get(target)
    if kind is None:
        raise ValidationError("target must be 'sale' or 'service_order'", {"target": target})

    def _op():
        quote = _get_quote(org_id, quote_id, lock=True)
        if quote.status != QUOTE_STATUS_DRAFT:
            raise QuoteAlreadyConverted(quote.id, quote.status)

        lines = [
            {
                "product_id": ln.product_id,
                "description": ln.description,
                "quantity": ln.quantity,
                "unit_price_cents": ln.unit_price_cents,
            }
            for ln in quote.lines
        ]
        products = _products_for(org_id, lines)

        if kind == CONVERT_TARGET_SALE:
            seller = get_seller(org_id, actor_user_id)
            created = build_sale(
                org_id=org_id,
                seller=seller,
                client_id=quote.client_id,
                lines=lines,
                products=products,
                discount_cents=quote.discount_cents,
                notes=quote.notes or f"Converted from quote #{quote.id}",
            )
            created.source_quote_id = quote.id
            complete_sale(
                sale=created,
                seller=seller,
                products=products,
                actor_user_id=actor_user_id,
                revenue_status="pending",
            )
        else:
            created = build_order(
                org_id=org_id,
                actor_user_id=actor_user_id,
                header={
                    "equipment": PLACEHOLDER_EQUIPMENT,
                    "description": quote.notes,
                    "discount_cents": quote.discount_cents,
                },
                client_id=quote.client_id,
                client_name=quote.client_name,
                lines=lines,
                products=products,
            )
            created.source_quote_id = quote.id

        quote.status = QUOTE_STATUS_CONVERTED
        quote.converted_target = kind
        quote.converted_target_id = created.id
        quote.converted_at = utcnow()

        record_event(
            org_id=org_id,
            actor_user_id=actor_user_id,
            action="quote_converted",
            entity_type="quote",
            entity_id=quote.id,
            payload={"target": kind, "target_id": created.id},
        )
        return quote, created

    return run_atomic(_op)
