"""
Stock ledger tests.

Verifies:
- Deltas compose and create missing rows
- Absolute overwrite
- Bulk opening balances and site limits report per-item results
- Supervisor scoping of stock listings
- Low-stock selection
"""

import pytest

from app.services import stock_service
from app.validation import AccessDeniedError
from app.permissions import Role
from conftest import stock_of


class TestLedgerWriters:
    def test_apply_delta_creates_missing_row(self, db_session, warehouse, product):
        assert stock_service.apply_delta(warehouse.id, product.id, 15) == 15
        db_session.commit()
        assert stock_of(warehouse, product) == 15

    def test_deltas_compose(self, db_session, warehouse, product, set_stock):
        set_stock(warehouse, product, 100)
        stock_service.apply_delta(warehouse.id, product.id, -30)
        new_qty = stock_service.apply_delta(warehouse.id, product.id, 5)
        db_session.commit()
        assert new_qty == 75
        assert stock_of(warehouse, product) == 75

    def test_set_absolute_overwrites(self, db_session, warehouse, product, set_stock):
        set_stock(warehouse, product, 42)
        stock_service.set_absolute(warehouse.id, product.id, 7)
        db_session.commit()
        assert stock_of(warehouse, product) == 7

    def test_get_quantity_missing_row_is_zero(self, db_session, warehouse, product):
        assert stock_service.get_quantity(warehouse.id, product.id) == 0
        assert stock_service.get_quantity(warehouse.id, product.id, lock=True) == 0


class TestBulkOperations:
    def test_initial_stock_reports_each_item(self, db_session, warehouse, product):
        results = stock_service.set_initial_stock([
            {"product_id": product.id, "location_id": warehouse.id, "quantity": 200},
            {"product_id": product.id, "location_id": warehouse.id, "quantity": -1},
            {"product_id": 99999, "location_id": warehouse.id, "quantity": 5},
        ])
        db_session.commit()

        assert results[0]["success"] is True
        assert results[0]["stock_item"]["quantity"] == 200
        assert results[1]["success"] is False
        assert "quantity" in results[1]["error"]
        assert results[2] == {
            "product_id": 99999,
            "location_id": warehouse.id,
            "quantity": 5,
            "success": False,
            "error": "Product not found",
        }
        assert stock_of(warehouse, product) == 200

    def test_limits_only_for_sites(self, db_session, warehouse, site, product):
        results = stock_service.set_site_limits([
            {"product_id": product.id, "location_id": site.id, "limit_qty": 40},
            {"product_id": product.id, "location_id": warehouse.id, "limit_qty": 40},
        ])
        db_session.commit()

        assert results[0]["success"] is True
        assert results[0]["stock_item"]["limit_qty"] == 40
        assert results[0]["stock_item"]["quantity"] == 0
        assert results[1]["success"] is False

    def test_limit_can_be_cleared(self, db_session, site, product, set_stock):
        set_stock(site, product, 3, limit_qty=10)
        results = stock_service.set_site_limits([
            {"product_id": product.id, "location_id": site.id, "limit_qty": None},
        ])
        db_session.commit()
        assert results[0]["stock_item"]["limit_qty"] is None


class TestStockListing:
    def test_supervisor_sees_only_assigned_locations(
        self, db_session, warehouse, alice_site, other_site, product, set_stock
    ):
        set_stock(warehouse, product, 10)
        set_stock(alice_site, product, 2)
        set_stock(other_site, product, 4)

        rows = stock_service.list_stock(username="alice", role=Role.SUPERVISOR)
        assert [r.location_id for r in rows] == [alice_site.id]

    def test_supervisor_denied_other_location(self, db_session, alice_site, other_site):
        with pytest.raises(AccessDeniedError):
            stock_service.list_stock(username="alice", role=Role.SUPERVISOR, location_id=other_site.id)

    def test_manager_sees_all_ordered_by_location_name(
        self, db_session, warehouse, site, other_site, product, set_stock
    ):
        set_stock(warehouse, product, 10)
        set_stock(site, product, 2)
        set_stock(other_site, product, 4)

        rows = stock_service.list_stock(username="keeper", role=Role.WAREHOUSE_MANAGER)
        names = [r.location.name for r in rows]
        assert names == sorted(names)
        assert len(rows) == 3

    def test_low_stock(self, db_session, warehouse, site, make_product, set_stock):
        empty = make_product("Gloves")
        full = make_product("Mops")
        below_limit = make_product("Sponges")
        set_stock(warehouse, empty, 0)
        set_stock(warehouse, full, 50)
        set_stock(site, below_limit, 1, limit_qty=5)

        rows = stock_service.low_stock()
        assert [r.product_id for r in rows] == [empty.id]

        rows = stock_service.low_stock(include_sites=True)
        assert {r.product_id for r in rows} == {empty.id, below_limit.id}
