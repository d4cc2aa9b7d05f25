# Overview: Tenant-scoped clients referenced by sales, service orders and quotes.

from __future__ import annotations

from ..extensions import db
from ..errors import ClientNotFound
from ..models import Client
from ..validation import ModelValidationPolicy, parse_optional_id, validate_payload
from .concurrency import run_atomic

CLIENT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "document", "email", "phone", "address"},
    required_on_create={"name"},
)


def create_client(*, org_id: int, payload: dict) -> Client:
    patch = validate_payload(model=Client, payload=payload, policy=CLIENT_POLICY, partial=False)

    def _op():
        client = Client(org_id=org_id, **patch)
        db.session.add(client)
        db.session.flush()
        return client

    return run_atomic(_op)


def list_clients(org_id: int, *, search: str | None = None) -> list[Client]:
    q = db.session.query(Client).filter(Client.org_id == org_id)
    if search:
        q = q.filter(Client.name.ilike(f"%{search.strip()}%"))
    return q.order_by(Client.name.asc()).all()


def get_client(org_id: int, client_id: int) -> Client:
    client = db.session.query(Client).filter_by(id=client_id, org_id=org_id).first()
    if client is None:
        raise ClientNotFound(client_id)
    return client


def resolve_client_id(org_id: int, client_id) -> int | None:
    """Validate an optional client reference against the tenant."""
    client_id = parse_optional_id(client_id, "client_id")
    if client_id is None:
        return None
    return get_client(org_id, client_id).id
