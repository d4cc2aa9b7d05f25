# Overview: Error taxonomy shared by services and routes.

"""
Ledger error taxonomy.

Every workflow raises one of four families. Routes turn them into JSON
responses with the family's HTTP status:

- ValidationError (400): missing or malformed input, rejected before any mutation
- NotFoundError (404): referenced row missing or outside the caller's tenant
- ConflictError (409): business rule conflict (stock, lifecycle state)
- PersistenceError (500): store failure; message is generic, cause is logged
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for user-facing ledger failures."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(LedgerError):
    status_code = 400


class NotFoundError(LedgerError):
    status_code = 404


class ConflictError(LedgerError):
    status_code = 409


class PersistenceError(LedgerError):
    status_code = 500

    def __init__(self, message: str = "Internal server error", details: dict | None = None):
        super().__init__(message, details)


# -- validation --

class InvalidQuantity(ValidationError):
    def __init__(self, quantity):
        super().__init__("quantity must be a positive integer", {"quantity": quantity})


class EmptyEntry(ValidationError):
    def __init__(self):
        super().__init__("goods entry must have at least one line")


class EmptyCart(ValidationError):
    def __init__(self):
        super().__init__("sale must have at least one line")


class ServiceItemStockError(ValidationError):
    def __init__(self, product_id: int):
        super().__init__(
            "service products do not carry stock",
            {"product_id": product_id},
        )


# -- not found --

class ProductNotFound(NotFoundError):
    def __init__(self, product_id):
        super().__init__("Product not found", {"product_id": product_id})


class SaleNotFound(NotFoundError):
    def __init__(self, sale_id):
        super().__init__("Sale not found", {"sale_id": sale_id})


class EntryNotFound(NotFoundError):
    def __init__(self, entry_id):
        super().__init__("Goods entry not found", {"entry_id": entry_id})


class OrderNotFound(NotFoundError):
    def __init__(self, order_id, kind: str = "order"):
        super().__init__(f"{kind.replace('_', ' ').capitalize()} not found", {"order_id": order_id})


class QuoteNotFound(NotFoundError):
    def __init__(self, quote_id):
        super().__init__("Quote not found", {"quote_id": quote_id})


class CommissionNotFound(NotFoundError):
    def __init__(self, commission_id):
        super().__init__("Commission not found", {"commission_id": commission_id})


class CashSessionNotFound(NotFoundError):
    def __init__(self, session_id):
        super().__init__("Cash session not found", {"cash_session_id": session_id})


class ClientNotFound(NotFoundError):
    def __init__(self, client_id):
        super().__init__("Client not found", {"client_id": client_id})


class NotificationNotFound(NotFoundError):
    def __init__(self, notification_id):
        super().__init__("Notification not found", {"notification_id": notification_id})


# -- conflict --

class InsufficientStock(ConflictError):
    def __init__(self, product_id: int, requested: int, available: int):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        self.deficit = requested - available
        super().__init__(
            "Insufficient stock",
            {
                "product_id": product_id,
                "requested": requested,
                "available": available,
                "deficit": self.deficit,
            },
        )


class SessionAlreadyOpen(ConflictError):
    def __init__(self, session_id: int | None = None):
        super().__init__("A cash session is already open for this operator", {"cash_session_id": session_id})


class NoOpenSession(ConflictError):
    def __init__(self):
        super().__init__("No open cash session for this operator")


class QuoteAlreadyConverted(ConflictError):
    def __init__(self, quote_id: int, status: str):
        super().__init__("Quote is no longer a draft", {"quote_id": quote_id, "status": status})


class InvalidStatusTransition(ConflictError):
    def __init__(self, current: str, requested: str):
        super().__init__(
            f"Cannot move from {current} to {requested}",
            {"current_status": current, "requested_status": requested},
        )
