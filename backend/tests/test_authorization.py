"""
Authorization tests.

Verifies:
- Unauthenticated requests return 401
- Expired or revoked tokens return 401
- Roles are denied operations outside their permission set (403)
- Admin role can perform privileged operations
"""

from datetime import timedelta

import pytest

from bizledger.permissions import DEFAULT_ROLE_PERMISSIONS, get_all_permission_codes, role_has_permission
from bizledger.services.session_service import create_session, revoke_session
from bizledger.time_utils import utcnow


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# =============================================================================
# UNAUTHENTICATED ACCESS — 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("POST", "/api/inventory/adjust"),
            ("GET", "/api/inventory/movements"),
            ("POST", "/api/entries"),
            ("POST", "/api/sales/checkout"),
            ("GET", "/api/sales"),
            ("GET", "/api/commissions"),
            ("POST", "/api/pos/open"),
            ("GET", "/api/service-orders"),
            ("GET", "/api/production/orders"),
            ("GET", "/api/quotes"),
            ("GET", "/api/transactions"),
            ("GET", "/api/audit-events"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_malformed_header(self, client, db_session):
        resp = client.get("/api/products", headers={"Authorization": "Token abc"})
        assert resp.status_code == 401

    def test_unknown_token(self, client, db_session):
        resp = client.get("/api/products", headers=auth_headers("not-a-real-token"))
        assert resp.status_code == 401


class TestTokenLifecycle:

    def test_revoked_token_rejected(self, client, admin_a):
        _, token = create_session(admin_a.id)
        assert client.get("/api/products", headers=auth_headers(token)).status_code == 200

        assert revoke_session(token) is True
        assert client.get("/api/products", headers=auth_headers(token)).status_code == 401

    def test_expired_token_rejected(self, client, db_session, admin_a):
        session, token = create_session(admin_a.id)
        session.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        assert client.get("/api/products", headers=auth_headers(token)).status_code == 401

    def test_deactivated_user_rejected(self, client, db_session, admin_a):
        _, token = create_session(admin_a.id)
        admin_a.is_active = False
        db_session.commit()

        assert client.get("/api/products", headers=auth_headers(token)).status_code == 401


# =============================================================================
# ROLE BOUNDARIES — 403
# =============================================================================


class TestSellerDenied:
    """Sellers sell; they do not touch stock, finance or production."""

    def test_cannot_adjust_stock(self, client, seller_headers, widget_a):
        resp = client.post("/api/inventory/adjust", json={
            "product_id": widget_a.id, "direction": "in", "quantity": 1,
        }, headers=seller_headers)
        assert resp.status_code == 403
        assert resp.get_json()["required_permission"] == "ADJUST_INVENTORY"

    def test_cannot_receive_goods(self, client, seller_headers):
        assert client.post("/api/entries", json={}, headers=seller_headers).status_code == 403

    def test_cannot_pay_commissions(self, client, seller_headers):
        assert client.post("/api/commissions/1/pay", headers=seller_headers).status_code == 403

    def test_cannot_view_finance(self, client, seller_headers):
        assert client.get("/api/transactions", headers=seller_headers).status_code == 403

    def test_cannot_manage_production(self, client, seller_headers):
        assert client.get("/api/production/orders", headers=seller_headers).status_code == 403


class TestTechnicianDenied:

    def test_cannot_check_out(self, client, technician_headers, widget_a):
        resp = client.post("/api/sales/checkout", json={
            "lines": [{"product_id": widget_a.id, "quantity": 1}],
        }, headers=technician_headers)
        assert resp.status_code == 403
        assert widget_a.quantity_on_hand == 10

    def test_cannot_open_cash_session(self, client, technician_headers):
        assert client.post("/api/pos/open", json={}, headers=technician_headers).status_code == 403


class TestAdminAllowed:

    def test_admin_can_read_finance_and_audit(self, client, admin_headers):
        assert client.get("/api/transactions", headers=admin_headers).status_code == 200
        assert client.get("/api/audit-events", headers=admin_headers).status_code == 200

    def test_admin_holds_every_permission(self):
        for code in get_all_permission_codes():
            assert role_has_permission("admin", code)

    def test_role_map_only_names_known_permissions(self):
        known = set(get_all_permission_codes())
        for role, codes in DEFAULT_ROLE_PERMISSIONS.items():
            assert set(codes) <= known, role

    def test_unknown_role_has_nothing(self):
        assert not role_has_permission("intern", "VIEW_INVENTORY")
