"""
Procurement workflow tests.

Verifies:
- PO numbers PO-<year>-NNNN, starting at 0001 and never reused
- Totals computed server-side
- Sending delivers the PDF and moves DRAFT -> SENT; failures change nothing
- Receiving updates quantities, status and the warehouse ledger
- Purchase requests are linked when an order is created for them
"""

import io

import pytest

from app.services import document_service, purchase_order_service, purchase_request_service
from app.time_utils import utcnow
from conftest import stock_of


def create_po(client, headers, supplier, items, **extra):
    return client.post(
        "/api/procurement/purchase-orders",
        json={"supplier_id": supplier.id, "items": items, **extra},
        headers=headers,
    )


@pytest.fixture
def two_products(make_product):
    return make_product("Towels"), make_product("Buckets")


@pytest.fixture
def draft_po(client, buyer_headers, warehouse, supplier, two_products):
    towels, buckets = two_products
    resp = create_po(client, buyer_headers, supplier, [
        {"product_id": towels.id, "quantity": 10, "unit_price": "2.50"},
        {"product_id": buckets.id, "quantity": 4, "unit_price": 7},
    ], delivery_date="2026-02-01")
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


@pytest.fixture
def sent_po(client, buyer_headers, draft_po, gateway):
    resp = client.post(
        f"/api/procurement/purchase-orders/{draft_po['id']}/send",
        json={"method": "email"},
        headers=buyer_headers,
    )
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()


class TestNumbering:
    def test_first_number_of_year(self, db_session, draft_po):
        assert draft_po["po_number"] == f"PO-{utcnow().year}-0001"

    def test_sequence_increments(self, db_session):
        first = document_service.next_po_number(2031)
        second = document_service.next_po_number(2031)
        other_year = document_service.next_po_number(2032)
        assert (first, second, other_year) == ("PO-2031-0001", "PO-2031-0002", "PO-2032-0001")


class TestCreate:
    def test_totals(self, draft_po):
        assert draft_po["status"] == "DRAFT"
        assert draft_po["total_amount"] == "53.00"
        assert [i["total_price"] for i in draft_po["items"]] == ["25.00", "28.00"]
        assert all(i["received_qty"] == 0 for i in draft_po["items"])
        assert draft_po["delivery_date"] == "2026-02-01"

    def test_inactive_supplier_rejected(self, client, buyer_headers, warehouse, supplier, product, db_session):
        supplier.is_active = False
        db_session.commit()
        resp = create_po(client, buyer_headers, supplier, [{"product_id": product.id, "quantity": 1, "unit_price": 1}])
        assert resp.status_code == 400

    def test_negative_price_rejected(self, client, buyer_headers, warehouse, supplier, product):
        resp = create_po(client, buyer_headers, supplier, [{"product_id": product.id, "quantity": 1, "unit_price": -1}])
        assert resp.status_code == 400

    def test_supervisor_cannot_create(self, client, alice_headers, warehouse, supplier, product):
        resp = create_po(client, alice_headers, supplier, [{"product_id": product.id, "quantity": 1, "unit_price": 1}])
        assert resp.status_code == 403

    def test_update_draft_replaces_items(self, client, buyer_headers, draft_po, two_products):
        towels, _ = two_products
        resp = client.put(
            f"/api/procurement/purchase-orders/{draft_po['id']}",
            json={"items": [{"product_id": towels.id, "quantity": 3, "unit_price": "1.10"}], "note": "rush"},
            headers=buyer_headers,
        )
        assert resp.status_code == 200, resp.get_json()
        body = resp.get_json()
        assert len(body["items"]) == 1
        assert body["total_amount"] == "3.30"
        assert body["note"] == "rush"


class TestPurchaseRequests:
    def test_link_on_order_creation(self, client, keeper_headers, buyer_headers, warehouse, supplier, product):
        resp = client.post(
            "/api/procurement/purchase-requests",
            json={"items": [{"product_id": product.id, "quantity": 20}], "note": "restock"},
            headers=keeper_headers,
        )
        assert resp.status_code == 201
        pr = resp.get_json()
        assert pr["status"] == "PENDING"

        resp = create_po(
            client, buyer_headers, supplier,
            [{"product_id": product.id, "quantity": 20, "unit_price": 1}],
            purchase_request_id=pr["id"],
        )
        assert resp.status_code == 201
        po = resp.get_json()

        pr = client.get(f"/api/procurement/purchase-requests/{pr['id']}", headers=buyer_headers).get_json()
        assert pr["status"] == "IN_PROGRESS"
        assert pr["po_id"] == po["id"]

        resp = create_po(
            client, buyer_headers, supplier,
            [{"product_id": product.id, "quantity": 1, "unit_price": 1}],
            purchase_request_id=pr["id"],
        )
        assert resp.status_code == 400

    def test_status_only_from_pending(self, client, keeper_headers, buyer_headers, product):
        pr = client.post(
            "/api/procurement/purchase-requests",
            json={"items": [{"product_id": product.id, "quantity": 2}]},
            headers=keeper_headers,
        ).get_json()
        url = f"/api/procurement/purchase-requests/{pr['id']}/status"
        assert client.patch(url, json={"status": "DONE"}, headers=buyer_headers).status_code == 200
        assert client.patch(url, json={"status": "IN_PROGRESS"}, headers=buyer_headers).status_code == 400

    def test_status_unexpected_error_returns_500(self, client, keeper_headers, buyer_headers, product, monkeypatch):
        pr = client.post(
            "/api/procurement/purchase-requests",
            json={"items": [{"product_id": product.id, "quantity": 2}]},
            headers=keeper_headers,
        ).get_json()

        def _boom(purchase_request_id, status, username):
            raise RuntimeError("disk full")

        monkeypatch.setattr(purchase_request_service, "set_purchase_request_status", _boom)
        resp = client.patch(
            f"/api/procurement/purchase-requests/{pr['id']}/status", json={"status": "DONE"}, headers=buyer_headers
        )
        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Failed to update purchase request status"}


class TestSend:
    def test_email_delivery(self, sent_po, gateway, supplier):
        assert sent_po["status"] == "SENT"
        assert sent_po["sent_via"] == "email"
        assert sent_po["sent_at"] is not None

        assert len(gateway.emails) == 1
        email = gateway.emails[0]
        assert email["to"] == supplier.email
        filename, content, mime = email["attachments"][0]
        assert filename == f"{sent_po['po_number']}.pdf"
        assert content.startswith(b"%PDF")
        assert mime == "application/pdf"

    def test_chat_delivery_via_alias(self, client, buyer_headers, draft_po, gateway, supplier):
        resp = client.post(
            f"/api/procurement/purchase-orders/{draft_po['id']}/send",
            json={"method": "telegram"},
            headers=buyer_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["sent_via"] == "chat"
        assert gateway.documents[0]["chat_id"] == supplier.telegram_id

    def test_failed_delivery_keeps_draft(self, client, buyer_headers, draft_po, gateway):
        gateway.fail = True
        resp = client.post(
            f"/api/procurement/purchase-orders/{draft_po['id']}/send",
            json={"method": "email"},
            headers=buyer_headers,
        )
        assert resp.status_code == 502
        po = client.get(f"/api/procurement/purchase-orders/{draft_po['id']}", headers=buyer_headers).get_json()
        assert po["status"] == "DRAFT"
        assert po["sent_at"] is None

    def test_missing_supplier_email(self, client, buyer_headers, draft_po, gateway, supplier, db_session):
        supplier.email = None
        db_session.commit()
        resp = client.post(
            f"/api/procurement/purchase-orders/{draft_po['id']}/send",
            json={"method": "email"},
            headers=buyer_headers,
        )
        assert resp.status_code == 400
        assert gateway.emails == []

    def test_unknown_method(self, client, buyer_headers, draft_po, gateway):
        resp = client.post(
            f"/api/procurement/purchase-orders/{draft_po['id']}/send",
            json={"method": "fax"},
            headers=buyer_headers,
        )
        assert resp.status_code == 400

    def test_pdf_download(self, client, buyer_headers, draft_po):
        resp = client.get(f"/api/procurement/purchase-orders/{draft_po['id']}/pdf", headers=buyer_headers)
        assert resp.status_code == 200
        assert resp.mimetype == "application/pdf"
        assert resp.data.startswith(b"%PDF")


class TestReceive:
    def test_draft_cannot_be_received(self, client, keeper_headers, draft_po, two_products):
        towels, _ = two_products
        resp = client.post(
            f"/api/procurement/purchase-orders/{draft_po['id']}/receive",
            json={"items": [{"product_id": towels.id, "received_qty": 1}]},
            headers=keeper_headers,
        )
        assert resp.status_code == 400

    def test_partial_then_full(self, client, keeper_headers, sent_po, two_products, warehouse):
        towels, buckets = two_products
        url = f"/api/procurement/purchase-orders/{sent_po['id']}/receive"

        resp = client.post(url, json={"items": [{"product_id": towels.id, "received_qty": 6}]}, headers=keeper_headers)
        assert resp.status_code == 200, resp.get_json()
        body = resp.get_json()
        assert body["purchase_order"]["status"] == "PARTIALLY_RECEIVED"
        assert body["purchase_order"]["received_at"] is None
        assert len(body["records"]) == 1
        assert stock_of(warehouse, towels) == 6

        resp = client.post(
            url,
            json={"items": [
                {"product_id": towels.id, "received_qty": 4},
                {"product_id": buckets.id, "received_qty": 4},
            ]},
            headers=keeper_headers,
        )
        body = resp.get_json()
        assert body["purchase_order"]["status"] == "RECEIVED"
        assert body["purchase_order"]["received_at"] is not None
        assert stock_of(warehouse, towels) == 10
        assert stock_of(warehouse, buckets) == 4

    def test_over_receipt_skipped(self, client, keeper_headers, sent_po, two_products, warehouse):
        towels, _ = two_products
        resp = client.post(
            f"/api/procurement/purchase-orders/{sent_po['id']}/receive",
            json={"items": [{"product_id": towels.id, "received_qty": 11}]},
            headers=keeper_headers,
        )
        body = resp.get_json()
        assert body["lines"][0]["reason"] == "exceeds_remaining"
        assert body["records"] == []
        assert body["purchase_order"]["status"] == "SENT"
        assert stock_of(warehouse, towels) == 0

    def test_multipart_with_photo(self, client, keeper_headers, sent_po, two_products, app):
        towels, _ = two_products
        resp = client.post(
            f"/api/procurement/purchase-orders/{sent_po['id']}/receive",
            data={
                "items": f'[{{"product_id": {towels.id}, "received_qty": 2}}]',
                "note": "box damaged",
                "photo": (io.BytesIO(b"\x89PNG fake"), "delivery.png"),
            },
            content_type="multipart/form-data",
            headers=keeper_headers,
        )
        assert resp.status_code == 200, resp.get_json()
        record = resp.get_json()["records"][0]
        assert record["note"] == "box damaged"
        assert record["photo_url"].startswith("/uploads/")
        assert record["photo_url"].endswith(".png")

        served = client.get(record["photo_url"])
        assert served.status_code == 200
        assert served.data == b"\x89PNG fake"

    def test_disallowed_photo_type(self, client, keeper_headers, sent_po, two_products):
        towels, _ = two_products
        resp = client.post(
            f"/api/procurement/purchase-orders/{sent_po['id']}/receive",
            data={
                "items": f'[{{"product_id": {towels.id}, "received_qty": 2}}]',
                "photo": (io.BytesIO(b"MZ"), "payload.exe"),
            },
            content_type="multipart/form-data",
            headers=keeper_headers,
        )
        assert resp.status_code == 400


class TestClose:
    def test_close_from_any_status_once(self, client, buyer_headers, draft_po):
        url = f"/api/procurement/purchase-orders/{draft_po['id']}/close"
        resp = client.post(url, headers=buyer_headers)
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "CLOSED"
        assert resp.get_json()["closed_by"] == "buyer"

        assert client.post(url, headers=buyer_headers).status_code == 400

    def test_closed_cannot_be_sent(self, client, buyer_headers, draft_po, gateway):
        client.post(f"/api/procurement/purchase-orders/{draft_po['id']}/close", headers=buyer_headers)
        resp = client.post(
            f"/api/procurement/purchase-orders/{draft_po['id']}/send",
            json={"method": "email"},
            headers=buyer_headers,
        )
        assert resp.status_code == 400
        assert gateway.emails == []

    def test_unexpected_error_rolls_back(self, client, buyer_headers, draft_po, monkeypatch):
        def _boom(po_id, username):
            raise RuntimeError("disk full")

        monkeypatch.setattr(purchase_order_service, "close_purchase_order", _boom)
        resp = client.post(f"/api/procurement/purchase-orders/{draft_po['id']}/close", headers=buyer_headers)
        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Failed to close purchase order"}


class TestReceiveProperties:
    def test_malformed_line_rolls_back_whole_batch(self, client, keeper_headers, sent_po, two_products, warehouse):
        towels, buckets = two_products
        resp = client.post(
            f"/api/procurement/purchase-orders/{sent_po['id']}/receive",
            json={"items": [
                {"product_id": towels.id, "received_qty": 5},
                {"product_id": buckets.id, "received_qty": "four"},
            ]},
            headers=keeper_headers,
        )
        assert resp.status_code == 400
        assert stock_of(warehouse, towels) == 0

        po = client.get(f"/api/procurement/purchase-orders/{sent_po['id']}", headers=keeper_headers).get_json()
        assert po["status"] == "SENT"
        assert all(i["received_qty"] == 0 for i in po["items"])

    def test_received_never_decreases(self, client, keeper_headers, sent_po, two_products, warehouse):
        towels, _ = two_products
        url = f"/api/procurement/purchase-orders/{sent_po['id']}/receive"
        received = []
        for quantity in (3, 20, -2, 7, 1):
            resp = client.post(url, json={"items": [{"product_id": towels.id, "received_qty": quantity}]}, headers=keeper_headers)
            assert resp.status_code == 200, resp.get_json()
            line = next(i for i in resp.get_json()["purchase_order"]["items"] if i["product_id"] == towels.id)
            received.append(line["received_qty"])

        assert received == [3, 3, 3, 10, 10]
        assert stock_of(warehouse, towels) == 10
