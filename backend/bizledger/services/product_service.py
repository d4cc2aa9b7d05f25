# Overview: Service-layer operations for the product catalog.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import ConflictError, ProductNotFound, ServiceItemStockError, ValidationError
from ..models import InventoryMovement, Product
from ..models.inventory import DIRECTION_IN, PRODUCT_KIND_PHYSICAL, REASON_ADJUSTMENT
from ..validation import ModelValidationPolicy, coerce_int, enforce_rules_product, validate_payload
from .concurrency import run_atomic
from .inventory_service import record_movement
from .audit_service import record_event

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "description", "sku", "unit", "category", "kind",
        "sale_price_cents", "cost_price_cents", "min_stock",
        "commission_rate_bps", "scan_code", "is_active",
    },
    required_on_create={"name"},
)

# kind and quantity are fixed after creation; quantity only moves through the ledger
PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_CREATE_POLICY.writable_fields - {"kind"},
)

INITIAL_STOCK_NOTE = "Initial stock"


def _ensure_scan_code_free(org_id: int, scan_code: str | None, *, exclude_id: int | None = None) -> None:
    if not scan_code:
        return
    q = db.session.query(Product.id).filter(Product.org_id == org_id, Product.scan_code == scan_code)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first():
        raise ConflictError("scan_code already in use", {"scan_code": scan_code})


def create_product(*, org_id: int, payload: dict, actor_user_id: int | None = None) -> Product:
    """
    Create a catalog item.

    initial_stock > 0 is recorded as an 'in' adjustment movement so the
    counter and the ledger agree from the first row.
    """
    payload = dict(payload or {})
    initial_stock = payload.pop("initial_stock", 0)
    initial_stock = coerce_int(initial_stock, "initial_stock") if initial_stock is not None else 0
    if initial_stock < 0:
        raise ValidationError("initial_stock must be >= 0")

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
    enforce_rules_product(patch)
    if patch.get("scan_code") == "":
        patch["scan_code"] = None

    kind = patch.get("kind") or PRODUCT_KIND_PHYSICAL
    if kind != PRODUCT_KIND_PHYSICAL and initial_stock:
        raise ServiceItemStockError(None)

    def _op():
        _ensure_scan_code_free(org_id, patch.get("scan_code"))

        product = Product(org_id=org_id, quantity_on_hand=0, **patch)
        product.kind = kind
        if "min_stock" not in patch:
            product.min_stock = current_app.config.get("DEFAULT_MIN_STOCK", 5)
        db.session.add(product)
        db.session.flush()

        if initial_stock > 0:
            record_movement(
                org_id=org_id,
                product=product,
                direction=DIRECTION_IN,
                quantity=initial_stock,
                reason=REASON_ADJUSTMENT,
                note=INITIAL_STOCK_NOTE,
                actor_user_id=actor_user_id,
                source_type="product",
                source_id=product.id,
            )

        record_event(
            org_id=org_id,
            actor_user_id=actor_user_id,
            action="product_created",
            entity_type="product",
            entity_id=product.id,
        )
        return product

    return run_atomic(_op)


def update_product(*, org_id: int, product_id: int, payload: dict, actor_user_id: int | None = None) -> Product:
    payload = payload or {}
    if "quantity_on_hand" in payload or "initial_stock" in payload:
        raise ValidationError("quantity can only change through stock movements")
    if "kind" in payload:
        raise ValidationError("kind cannot be changed after creation")

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
    enforce_rules_product(patch)
    if patch.get("scan_code") == "":
        patch["scan_code"] = None

    def _op():
        product = db.session.query(Product).filter_by(id=product_id, org_id=org_id).first()
        if product is None:
            raise ProductNotFound(product_id)
        if "scan_code" in patch:
            _ensure_scan_code_free(org_id, patch["scan_code"], exclude_id=product.id)
        for key, value in patch.items():
            setattr(product, key, value)
        record_event(
            org_id=org_id,
            actor_user_id=actor_user_id,
            action="product_updated",
            entity_type="product",
            entity_id=product.id,
            payload={"fields": sorted(patch.keys())},
        )
        return product

    return run_atomic(_op)


def list_products(org_id: int, *, search: str | None = None, low_stock_only: bool = False,
                  include_inactive: bool = False) -> list[Product]:
    q = db.session.query(Product).filter(Product.org_id == org_id)
    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(db.or_(Product.name.ilike(like), Product.sku.ilike(like), Product.scan_code == search.strip()))
    if low_stock_only:
        q = q.filter(Product.kind == PRODUCT_KIND_PHYSICAL, Product.quantity_on_hand <= Product.min_stock)
    return q.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product_detail(org_id: int, product_id: int, *, movement_limit: int = 20) -> dict:
    """Product plus its most recent movements."""
    product = db.session.query(Product).filter_by(id=product_id, org_id=org_id).first()
    if product is None:
        raise ProductNotFound(product_id)
    movements = (
        db.session.query(InventoryMovement)
        .filter_by(org_id=org_id, product_id=product.id)
        .order_by(InventoryMovement.occurred_at.desc(), InventoryMovement.id.desc())
        .limit(movement_limit)
        .all()
    )
    return {
        "product": product.to_dict(),
        "movements": [m.to_dict() for m in movements],
    }


def lookup_by_scan_code(org_id: int, scan_code: str) -> Product:
    code = (scan_code or "").strip()
    if not code:
        raise ValidationError("scan_code is required")
    product = db.session.query(Product).filter_by(org_id=org_id, scan_code=code).first()
    if product is None:
        raise ProductNotFound(None)
    return product
