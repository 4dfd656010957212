"""
Pure status recompute tests for requests and purchase orders.
"""

from types import SimpleNamespace

import pytest

from app.services.purchase_order_service import recompute_po_status
from app.services.request_service import recompute_request_status


def req_item(quantity, issued):
    return SimpleNamespace(quantity=quantity, issued=issued)


def po_item(quantity, received_qty):
    return SimpleNamespace(quantity=quantity, received_qty=received_qty)


class TestRequestStatus:
    @pytest.mark.parametrize(
        "items,current,expected",
        [
            ([req_item(10, 10), req_item(5, 5)], "PARTIAL", "FULFILLED"),
            ([req_item(10, 4), req_item(5, 0)], "APPROVED", "PARTIAL"),
            ([req_item(10, 0), req_item(5, 0)], "APPROVED", "APPROVED"),
            ([], "APPROVED", "APPROVED"),
        ],
    )
    def test_recompute(self, items, current, expected):
        assert recompute_request_status(items, current) == expected

    def test_idempotent(self):
        items = [req_item(10, 3)]
        once = recompute_request_status(items, "APPROVED")
        assert recompute_request_status(items, once) == once


class TestPurchaseOrderStatus:
    @pytest.mark.parametrize(
        "items,current,expected",
        [
            ([po_item(10, 10)], "SENT", "RECEIVED"),
            ([po_item(10, 12)], "PARTIALLY_RECEIVED", "RECEIVED"),
            ([po_item(10, 3), po_item(4, 0)], "SENT", "PARTIALLY_RECEIVED"),
            ([po_item(10, 0)], "SENT", "SENT"),
        ],
    )
    def test_recompute(self, items, current, expected):
        assert recompute_po_status(items, current) == expected

    def test_idempotent(self):
        items = [po_item(10, 10)]
        once = recompute_po_status(items, "PARTIALLY_RECEIVED")
        assert recompute_po_status(items, once) == once
