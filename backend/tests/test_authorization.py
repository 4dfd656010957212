"""
Authorization tests.

Verifies:
- Requests without a token return 401
- Refresh tokens are refused (401); forged or expired tokens return 403
- Tokens are accepted from the Authorization header or the session cookie
- Role groups gate each write surface (403)
- Users unknown to the identity service act as supervisors
"""

import pytest

from conftest import make_token


# =============================================================================
# UNAUTHENTICATED ACCESS: 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/categories"),
            ("GET", "/api/suppliers"),
            ("GET", "/api/locations"),
            ("GET", "/api/stock"),
            ("PUT", "/api/stock/initial"),
            ("GET", "/api/warehouse/requests"),
            ("POST", "/api/warehouse/issue"),
            ("GET", "/api/warehouse/inventory"),
            ("GET", "/api/procurement/purchase-orders"),
            ("GET", "/api/procurement/purchase-requests"),
            ("GET", "/api/reports/stock"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_health_is_public(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "degraded"


# =============================================================================
# TOKEN VERIFICATION
# =============================================================================


class TestTokenVerification:
    def test_refresh_token_rejected(self, client, db_session):
        token = make_token("admin", token_type="refresh")
        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_bad_signature(self, client, db_session):
        token = make_token("admin", secret="someone-else")
        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 403

    def test_expired_token(self, client, db_session):
        token = make_token("admin", expires_in=-60)
        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 403

    def test_session_cookie(self, client, db_session):
        client.set_cookie("mint_session", make_token("keeper"))
        resp = client.get("/api/auth/me")
        assert resp.status_code == 200
        assert resp.get_json()["username"] == "keeper"

    def test_me(self, client, admin_headers):
        resp = client.get("/api/auth/me", headers=admin_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["username"] == "admin"
        assert body["role"] == "ADMIN"
        # The static resolver supplies no profile
        assert body["full_name"] is None
        assert body["email"] is None

    def test_verify(self, client, buyer_headers):
        resp = client.post("/api/auth/verify", headers=buyer_headers)
        assert resp.get_json() == {"username": "buyer", "role": "PROCUREMENT"}

    def test_unknown_user_defaults_to_supervisor(self, client, db_session):
        token = make_token("stranger")
        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.get_json()["role"] == "SUPERVISOR"


# =============================================================================
# ROLE DENIALS: 403
# =============================================================================


class TestRoleDenials:
    def test_supervisor_cannot_list_suppliers(self, client, alice_headers, db_session):
        resp = client.get("/api/suppliers", headers=alice_headers)
        assert resp.status_code == 403
        assert "SUPERVISOR" not in resp.get_json()["required_roles"]

    def test_keeper_cannot_create_products(self, client, keeper_headers, category):
        resp = client.post(
            "/api/products",
            json={"name": "Mop", "category_id": category.id, "unit": "pcs"},
            headers=keeper_headers,
        )
        assert resp.status_code == 403

    def test_buyer_cannot_set_initial_stock(self, client, buyer_headers, db_session):
        resp = client.put("/api/stock/initial", json={"items": []}, headers=buyer_headers)
        assert resp.status_code == 403

    def test_supervisor_cannot_read_low_stock(self, client, alice_headers, db_session):
        assert client.get("/api/stock/low", headers=alice_headers).status_code == 403

    def test_keeper_cannot_create_purchase_orders(self, client, keeper_headers, db_session):
        resp = client.post("/api/procurement/purchase-orders", json={}, headers=keeper_headers)
        assert resp.status_code == 403

    def test_supervisor_cannot_export_purchases(self, client, alice_headers, db_session):
        assert client.get("/api/reports/purchases/export", headers=alice_headers).status_code == 403

    def test_om_can_create_suppliers(self, client, db_session):
        resp = client.post(
            "/api/suppliers",
            json={"name": "Northwind", "contact": "Ann"},
            headers={"Authorization": f"Bearer {make_token('om')}"},
        )
        assert resp.status_code == 201

    def test_only_admin_toggles_suppliers(self, client, supplier):
        om = {"Authorization": f"Bearer {make_token('om')}"}
        admin = {"Authorization": f"Bearer {make_token('admin')}"}
        assert client.patch(f"/api/suppliers/{supplier.id}/toggle", headers=om).status_code == 403
        resp = client.patch(f"/api/suppliers/{supplier.id}/toggle", headers=admin)
        assert resp.status_code == 200
        assert resp.get_json()["is_active"] is False
