"""
Replenishment workflow tests (HTTP level).

Verifies:
- Full cycle: create -> approve -> partial issue -> full issue
- Lines that cannot be served in full are skipped, never partially issued
- Only assigned supervisors may request for a site
- Status transitions are limited to PENDING reviews
"""

import pytest

from conftest import stock_of


@pytest.fixture
def pending_request(client, alice_headers, warehouse, alice_site, product, set_stock):
    set_stock(warehouse, product, 200)
    resp = client.post(
        "/api/warehouse/requests",
        json={"location_id": alice_site.id, "items": [{"product_id": product.id, "quantity": 100}]},
        headers=alice_headers,
    )
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


@pytest.fixture
def approved_request(client, keeper_headers, pending_request):
    resp = client.patch(
        f"/api/warehouse/requests/{pending_request['id']}/status",
        json={"status": "APPROVED"},
        headers=keeper_headers,
    )
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()


class TestCreateRequest:
    def test_created_pending_with_warehouse(self, pending_request, warehouse):
        assert pending_request["status"] == "PENDING"
        assert pending_request["warehouse_id"] == warehouse.id
        assert pending_request["created_by"] == "alice"
        assert [i["issued"] for i in pending_request["items"]] == [0]

    def test_duplicate_products_are_merged(self, client, alice_headers, warehouse, alice_site, product):
        resp = client.post(
            "/api/warehouse/requests",
            json={
                "location_id": alice_site.id,
                "items": [
                    {"product_id": product.id, "quantity": 3},
                    {"product_id": product.id, "quantity": 4},
                ],
            },
            headers=alice_headers,
        )
        assert resp.status_code == 201
        items = resp.get_json()["items"]
        assert len(items) == 1
        assert items[0]["quantity"] == 7

    def test_unassigned_supervisor_denied(self, client, bob_headers, warehouse, alice_site, product):
        resp = client.post(
            "/api/warehouse/requests",
            json={"location_id": alice_site.id, "items": [{"product_id": product.id, "quantity": 1}]},
            headers=bob_headers,
        )
        assert resp.status_code == 403

    def test_non_supervisor_cannot_create(self, client, keeper_headers, warehouse, alice_site, product):
        resp = client.post(
            "/api/warehouse/requests",
            json={"location_id": alice_site.id, "items": [{"product_id": product.id, "quantity": 1}]},
            headers=keeper_headers,
        )
        assert resp.status_code == 403

    @pytest.mark.parametrize("items", [[], [{"product_id": 1, "quantity": 0}], "nope"])
    def test_invalid_items_rejected(self, client, alice_headers, warehouse, alice_site, product, items):
        resp = client.post(
            "/api/warehouse/requests",
            json={"location_id": alice_site.id, "items": items},
            headers=alice_headers,
        )
        assert resp.status_code == 400


class TestReview:
    def test_reject_is_terminal(self, client, keeper_headers, pending_request):
        url = f"/api/warehouse/requests/{pending_request['id']}/status"
        resp = client.patch(url, json={"status": "REJECTED"}, headers=keeper_headers)
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "REJECTED"
        assert resp.get_json()["reviewed_by"] == "keeper"

        resp = client.patch(url, json={"status": "APPROVED"}, headers=keeper_headers)
        assert resp.status_code == 400

    def test_invalid_target_status(self, client, keeper_headers, pending_request):
        resp = client.patch(
            f"/api/warehouse/requests/{pending_request['id']}/status",
            json={"status": "FULFILLED"},
            headers=keeper_headers,
        )
        assert resp.status_code == 400

    def test_cannot_issue_pending(self, client, keeper_headers, pending_request, product):
        resp = client.post(
            "/api/warehouse/issue",
            json={"request_id": pending_request["id"], "items": [{"product_id": product.id, "quantity": 1}]},
            headers=keeper_headers,
        )
        assert resp.status_code == 400


class TestIssuance:
    def test_full_replenishment_cycle(
        self, client, keeper_headers, approved_request, warehouse, alice_site, product
    ):
        resp = client.post(
            "/api/warehouse/issue",
            json={"request_id": approved_request["id"], "items": [{"product_id": product.id, "quantity": 60}]},
            headers=keeper_headers,
        )
        assert resp.status_code == 200, resp.get_json()
        body = resp.get_json()
        assert body["request"]["status"] == "PARTIAL"
        assert body["applied_count"] == 1
        assert len(body["records"]) == 1
        assert stock_of(warehouse, product) == 140
        assert stock_of(alice_site, product) == 60

        resp = client.post(
            "/api/warehouse/issue",
            json={"request_id": approved_request["id"], "items": [{"product_id": product.id, "quantity": 40}]},
            headers=keeper_headers,
        )
        body = resp.get_json()
        assert body["request"]["status"] == "FULFILLED"
        assert body["request"]["fulfilled_at"] is not None
        assert stock_of(warehouse, product) == 100
        assert stock_of(alice_site, product) == 100

    def test_insufficient_stock_is_skipped(
        self, client, keeper_headers, approved_request, warehouse, alice_site, product, set_stock
    ):
        set_stock(warehouse, product, 30)
        resp = client.post(
            "/api/warehouse/issue",
            json={"request_id": approved_request["id"], "items": [{"product_id": product.id, "quantity": 50}]},
            headers=keeper_headers,
        )
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["applied_count"] == 0
        assert body["lines"] == [{
            "product_id": product.id,
            "quantity": 50,
            "status": "SKIPPED",
            "reason": "insufficient_stock",
            "available": 30,
        }]
        assert body["records"] == []
        assert body["request"]["status"] == "APPROVED"
        assert stock_of(warehouse, product) == 30
        assert stock_of(alice_site, product) == 0

    def test_skip_reasons_in_input_order(
        self, client, keeper_headers, approved_request, product, make_product
    ):
        stranger = make_product("Bleach")
        resp = client.post(
            "/api/warehouse/issue",
            json={
                "request_id": approved_request["id"],
                "items": [
                    {"product_id": product.id, "quantity": 0},
                    {"product_id": stranger.id, "quantity": 1},
                    {"product_id": product.id, "quantity": 101},
                    {"product_id": product.id, "quantity": 10},
                ],
            },
            headers=keeper_headers,
        )
        body = resp.get_json()
        assert [line["status"] for line in body["lines"]] == ["SKIPPED", "SKIPPED", "SKIPPED", "APPLIED"]
        assert [line.get("reason") for line in body["lines"][:3]] == [
            "non_positive_quantity",
            "not_on_request",
            "exceeds_remaining",
        ]
        assert body["request"]["items"][0]["issued"] == 10

    def test_supervisor_cannot_issue(self, client, alice_headers, approved_request, product):
        resp = client.post(
            "/api/warehouse/issue",
            json={"request_id": approved_request["id"], "items": [{"product_id": product.id, "quantity": 1}]},
            headers=alice_headers,
        )
        assert resp.status_code == 403

    def test_issue_records_listed(self, client, keeper_headers, approved_request, product):
        client.post(
            "/api/warehouse/issue",
            json={"request_id": approved_request["id"], "items": [{"product_id": product.id, "quantity": 5}]},
            headers=keeper_headers,
        )
        resp = client.get(f"/api/warehouse/issue?request_id={approved_request['id']}", headers=keeper_headers)
        records = resp.get_json()
        assert len(records) == 1
        assert records[0]["quantity"] == 5
        assert records[0]["issued_by"] == "keeper"


class TestQueries:
    def test_supervisor_sees_only_own_requests(self, client, bob_headers, alice_headers, pending_request):
        resp = client.get("/api/warehouse/requests?page=1", headers=alice_headers)
        body = resp.get_json()
        assert body["count"] == 1
        assert body["pagination"]["total"] == 1

        resp = client.get("/api/warehouse/requests", headers=bob_headers)
        assert resp.get_json()["count"] == 0

        resp = client.get(f"/api/warehouse/requests/{pending_request['id']}", headers=bob_headers)
        assert resp.status_code == 403

    def test_autofill_suggests_up_to_limit(
        self, client, alice_headers, alice_site, make_product, set_stock
    ):
        short = make_product("Paper")
        stocked = make_product("Soap")
        set_stock(alice_site, short, 3, limit_qty=10)
        set_stock(alice_site, stocked, 12, limit_qty=10)

        resp = client.get(f"/api/warehouse/requests/autofill/{alice_site.id}", headers=alice_headers)
        assert resp.status_code == 200
        items = resp.get_json()["items"]
        assert [(i["product_id"], i["quantity"]) for i in items] == [(short.id, 7)]


# =============================================================================
# LEDGER PROPERTIES
# =============================================================================

def total_stock(product, *locations):
    return sum(stock_of(location, product) for location in locations)


class TestLedgerProperties:
    def test_malformed_line_rolls_back_whole_batch(
        self, client, keeper_headers, approved_request, warehouse, alice_site, product
    ):
        resp = client.post(
            "/api/warehouse/issue",
            json={
                "request_id": approved_request["id"],
                "items": [
                    {"product_id": product.id, "quantity": 10},
                    {"product_id": product.id, "quantity": "lots"},
                ],
            },
            headers=keeper_headers,
        )
        assert resp.status_code == 400
        assert stock_of(warehouse, product) == 200
        assert stock_of(alice_site, product) == 0

        body = client.get(f"/api/warehouse/requests/{approved_request['id']}", headers=keeper_headers).get_json()
        assert body["status"] == "APPROVED"
        assert [i["issued"] for i in body["items"]] == [0]
        records = client.get(f"/api/warehouse/issue?request_id={approved_request['id']}", headers=keeper_headers)
        assert records.get_json() == []

    def test_issuance_conserves_total_quantity(
        self, client, keeper_headers, approved_request, warehouse, alice_site, product
    ):
        before = total_stock(product, warehouse, alice_site)
        for quantity in (15, 500, 25):
            client.post(
                "/api/warehouse/issue",
                json={"request_id": approved_request["id"], "items": [{"product_id": product.id, "quantity": quantity}]},
                headers=keeper_headers,
            )
            assert total_stock(product, warehouse, alice_site) == before
        assert stock_of(alice_site, product) == 40

    def test_issued_never_decreases(self, client, keeper_headers, approved_request, product):
        issued = []
        for quantity in (30, 0, 80, 30, 40):
            resp = client.post(
                "/api/warehouse/issue",
                json={"request_id": approved_request["id"], "items": [{"product_id": product.id, "quantity": quantity}]},
                headers=keeper_headers,
            )
            if resp.status_code == 200:
                issued.append(resp.get_json()["request"]["items"][0]["issued"])

        assert issued == sorted(issued)
        assert issued[-1] == 100
        assert all(value <= 100 for value in issued)
