"""
Notification fan-out tests.
"""

from app.services import notification_service
from app.services.notification_service import Notification, NotificationType, format_message


class TestFormatMessage:
    def test_request_created(self):
        text = format_message(NotificationType.REQUEST_CREATED, {
            "request_id": 7,
            "location_name": "Site North",
            "items_count": 3,
            "created_by": "alice",
        })
        assert text.startswith("New replenishment request")
        assert "Request #7" in text
        assert "Location: Site North" in text
        assert "Items: 3" in text

    def test_po_created_without_delivery_date(self):
        text = format_message(NotificationType.PO_CREATED, {
            "po_number": "PO-2026-0001",
            "supplier_name": "Acme Supplies",
            "total_amount": "53.00",
            "delivery_date": None,
        })
        assert "PO PO-2026-0001" in text
        assert "Total: 53.00" in text
        assert "Delivery date: not set" in text

    def test_low_stock(self):
        text = format_message(NotificationType.LOW_STOCK, {
            "product_name": "Detergent",
            "category_name": "Cleaning",
            "quantity": 0,
            "unit": "l",
        })
        assert text.endswith("On hand: 0 l")

    def test_overdue(self):
        text = format_message(NotificationType.PO_OVERDUE, {
            "po_number": "PO-2026-0002",
            "supplier_name": "Acme Supplies",
            "delivery_date": "2026-01-01",
            "days_overdue": 4,
        })
        assert "Days overdue: 4" in text


class TestSend:
    def test_fan_out_to_configured_targets(self, app, gateway):
        app.config["NOTIFY_EMAILS"] = ["ops@mint.test", "boss@mint.test"]
        app.config["NOTIFY_TELEGRAM_CHAT_IDS"] = ["-100"]

        delivered = notification_service.send(
            Notification(NotificationType.PO_RECEIVED, {"po_number": "PO-2026-0001", "units_received": 5})
        )

        assert delivered == 3
        assert [e["to"] for e in gateway.emails] == ["ops@mint.test", "boss@mint.test"]
        assert gateway.emails[0]["subject"] == "Goods received at warehouse"
        assert gateway.messages[0]["chat_id"] == "-100"

    def test_explicit_recipient_overrides_config(self, app, gateway):
        app.config["NOTIFY_EMAILS"] = ["ops@mint.test"]
        notification_service.send(Notification(
            NotificationType.REQUEST_APPROVED, {"request_id": 1}, recipient_email="alice@mint.test"
        ))
        assert [e["to"] for e in gateway.emails] == ["alice@mint.test"]

    def test_failures_are_swallowed(self, app, gateway):
        app.config["NOTIFY_EMAILS"] = ["ops@mint.test"]
        gateway.fail = True
        delivered = notification_service.send(Notification(NotificationType.LOW_STOCK, {"product_name": "Soap"}))
        assert delivered == 0

    def test_no_targets(self, app, gateway):
        assert notification_service.send(Notification(NotificationType.LOW_STOCK, {})) == 0
        assert gateway.emails == []


class TestWorkflowNotifications:
    def test_po_created_notifies(self, app, client, gateway, buyer_headers, warehouse, supplier, product):
        app.config["NOTIFY_EMAILS"] = ["ops@mint.test"]
        resp = client.post(
            "/api/procurement/purchase-orders",
            json={"supplier_id": supplier.id, "items": [{"product_id": product.id, "quantity": 2, "unit_price": 3}]},
            headers=buyer_headers,
        )
        assert resp.status_code == 201
        [email] = gateway.emails
        assert email["subject"] == "Purchase order created"
        assert "Total: 6.00" in email["body"]

    def test_failed_notification_does_not_fail_request(self, app, client, gateway, buyer_headers, warehouse, supplier, product):
        app.config["NOTIFY_EMAILS"] = ["ops@mint.test"]
        gateway.fail = True
        resp = client.post(
            "/api/procurement/purchase-orders",
            json={"supplier_id": supplier.id, "items": [{"product_id": product.id, "quantity": 2, "unit_price": 3}]},
            headers=buyer_headers,
        )
        assert resp.status_code == 201

    def test_issue_to_zero_sends_low_stock(self, app, client, gateway, keeper_headers, alice_headers, alice_site, warehouse, product, set_stock):
        set_stock(warehouse, product, 5)
        req = client.post(
            "/api/warehouse/requests",
            json={"location_id": alice_site.id, "items": [{"product_id": product.id, "quantity": 5}]},
            headers=alice_headers,
        ).get_json()
        client.patch(f"/api/warehouse/requests/{req['id']}/status", json={"status": "APPROVED"}, headers=keeper_headers)

        app.config["NOTIFY_EMAILS"] = ["ops@mint.test"]
        resp = client.post(
            "/api/warehouse/issue",
            json={"request_id": req["id"], "items": [{"product_id": product.id, "quantity": 5}]},
            headers=keeper_headers,
        )
        assert resp.status_code == 200, resp.get_json()
        subjects = [e["subject"] for e in gateway.emails]
        assert "Request fulfilled" in subjects
        assert "Low warehouse stock" in subjects

    def test_receipt_reports_units(self, app, client, gateway, buyer_headers, keeper_headers, warehouse, supplier, make_product):
        soap, gloves = make_product("Soap"), make_product("Gloves")
        po = client.post(
            "/api/procurement/purchase-orders",
            json={"supplier_id": supplier.id, "items": [
                {"product_id": soap.id, "quantity": 2, "unit_price": 1},
                {"product_id": gloves.id, "quantity": 6, "unit_price": 1},
            ]},
            headers=buyer_headers,
        ).get_json()
        client.post(f"/api/procurement/purchase-orders/{po['id']}/send", json={"method": "email"}, headers=buyer_headers)

        app.config["NOTIFY_EMAILS"] = ["ops@mint.test"]
        resp = client.post(
            f"/api/procurement/purchase-orders/{po['id']}/receive",
            json={"items": [
                {"product_id": soap.id, "received_qty": 2},
                {"product_id": gloves.id, "received_qty": 3},
            ]},
            headers=keeper_headers,
        )
        assert resp.status_code == 200, resp.get_json()
        [email] = [e for e in gateway.emails if e["subject"] == "Goods received at warehouse"]
        assert "Units received: 5" in email["body"]
