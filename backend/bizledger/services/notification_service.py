# Overview: Low-stock notifications raised after stock debits.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import NotificationNotFound
from ..models import Notification, Product
from .concurrency import run_atomic

KIND_LOW_STOCK = "low_stock"


def notify_low_stock(product: Product) -> Notification | None:
    """
    Create a low_stock notification when product is at or below its reorder
    threshold and no unread low_stock notification exists for it yet.

    Runs inside the caller's transaction.
    """
    if not product.is_low_stock:
        return None

    existing = db.session.query(Notification.id).filter_by(
        org_id=product.org_id,
        product_id=product.id,
        kind=KIND_LOW_STOCK,
        is_read=False,
    ).first()
    if existing:
        return None

    note = Notification(
        org_id=product.org_id,
        kind=KIND_LOW_STOCK,
        title=f"Low stock: {product.name}",
        message=f"{product.name} has {product.quantity_on_hand} left (minimum {product.min_stock})",
        product_id=product.id,
    )
    db.session.add(note)
    current_app.logger.info(
        "Low stock alert org=%s product=%s qty=%s min=%s",
        product.org_id, product.id, product.quantity_on_hand, product.min_stock,
    )
    return note


def list_notifications(org_id: int, *, unread_only: bool = False, limit: int = 100):
    q = db.session.query(Notification).filter(Notification.org_id == org_id)
    if unread_only:
        q = q.filter(Notification.is_read.is_(False))
    return q.order_by(Notification.id.desc()).limit(limit).all()


def mark_read(org_id: int, notification_id: int) -> Notification:
    def _op():
        note = db.session.query(Notification).filter_by(org_id=org_id, id=notification_id).first()
        if note is None:
            raise NotificationNotFound(notification_id)
        note.is_read = True
        return note

    return run_atomic(_op)
