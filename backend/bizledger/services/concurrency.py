# Overview: Transaction boundary and row-locking helpers shared by every workflow.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import ConflictError, LedgerError, PersistenceError, ProductNotFound
from ..models import Product


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE (the whole database is locked
    by the writer instead); PostgreSQL and MySQL honor it.
    """
    return query.with_for_update()


def lock_products(org_id: int, product_ids) -> dict[int, Product]:
    """
    Lock every product a workflow will touch, in ascending id order.

    A single global lock order means two workflows touching overlapping
    products cannot deadlock. Rows are re-read (populate_existing) so the
    caller sees the quantity committed by whoever held the lock before.

    Raises ProductNotFound for the first id missing from the tenant.
    """
    ids = sorted({int(pid) for pid in product_ids if pid is not None})
    if not ids:
        return {}

    query = (
        db.session.query(Product)
        .filter(Product.org_id == org_id, Product.id.in_(ids))
        .order_by(Product.id.asc())
        .populate_existing()
    )
    products = {p.id: p for p in lock_for_update(query).all()}

    for pid in ids:
        if pid not in products:
            raise ProductNotFound(pid)
    return products


def run_atomic(func):
    """
    Run one workflow as a single unit of work.

    - Commits when func returns; the return value is passed through.
    - Rolls back on ANY exception before it propagates.
    - StaleDataError (optimistic version_id mismatch) becomes ConflictError.
    - Other SQLAlchemyError becomes an opaque PersistenceError; the cause is logged.

    No retries: the caller decides whether to resubmit.
    """
    try:
        result = func()
        db.session.commit()
        return result
    except LedgerError:
        db.session.rollback()
        raise
    except StaleDataError as exc:
        db.session.rollback()
        current_app.logger.warning("Concurrent modification detected: %s", exc)
        raise ConflictError("Record was modified by another request; retry") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Rolled back after persistence failure")
        raise PersistenceError() from exc
    except Exception:
        db.session.rollback()
        raise
