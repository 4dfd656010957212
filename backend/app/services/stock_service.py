# backend/app/services/stock_service.py
"""
Stock ledger service (Transfer Engine).

StockItem.quantity is written ONLY through apply_delta() and
set_absolute(). Workflow services (issuance, receiving, inventory
close, initial stock) call them inside their own transaction; nothing
here commits.

Invariants:
- Deltas compose by addition in SQL (quantity = quantity + :delta), so two
  transactions touching the same row never lose an update.
- A missing (location, product) row is created on first touch. A
  concurrent first insert fails on uq_stock_items_location_product with
  IntegrityError, which the caller's run_with_retry replays.
- No business validation: sufficiency checks belong to the workflow,
  under the row lock taken by get_quantity(lock=True).
"""
from __future__ import annotations

from sqlalchemy import update

from app.extensions import db
from app.models import Location, Product, StockItem, LOCATION_TYPE_SITE
from app.services.concurrency import LEDGER_RETRYABLE_ERRORS, lock_for_update, run_with_retry
from app.services import location_service
from app.permissions import Role
from app.validation import AccessDeniedError, ValidationError, parse_int, require_item_list


def _row_query(location_id: int, product_id: int):
    return db.session.query(StockItem).filter_by(location_id=location_id, product_id=product_id)


def get_quantity(location_id: int, product_id: int, lock: bool = False) -> int:
    """
    Current quantity of one ledger row, 0 when the row does not exist.

    With lock=True the row is read with SELECT ... FOR UPDATE and refreshed
    from the database, so a following sufficiency check and delta happen
    under the same lock.
    """
    if lock:
        row = lock_for_update(_row_query(location_id, product_id)).populate_existing().first()
        return row.quantity if row else 0
    quantity = (
        db.session.query(StockItem.quantity)
        .filter_by(location_id=location_id, product_id=product_id)
        .scalar()
    )
    return quantity or 0


def ensure_stock_item(location_id: int, product_id: int) -> StockItem:
    row = _row_query(location_id, product_id).first()
    if row:
        return row
    row = StockItem(location_id=location_id, product_id=product_id, quantity=0)
    db.session.add(row)
    db.session.flush()
    return row


def apply_delta(location_id: int, product_id: int, delta: int) -> int:
    """
    Add a signed delta to one ledger row and return the new quantity.

    Runs in the caller's transaction and never commits.
    """
    result = db.session.execute(
        update(StockItem)
        .where(StockItem.location_id == location_id, StockItem.product_id == product_id)
        .values(quantity=StockItem.quantity + delta)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 0:
        db.session.add(StockItem(location_id=location_id, product_id=product_id, quantity=delta))
        db.session.flush()
        return delta
    return get_quantity(location_id, product_id)


def set_absolute(location_id: int, product_id: int, value: int) -> int:
    """
    Overwrite one ledger row's quantity (inventory close, initial stock).

    Runs in the caller's transaction and never commits.
    """
    result = db.session.execute(
        update(StockItem)
        .where(StockItem.location_id == location_id, StockItem.product_id == product_id)
        .values(quantity=value)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 0:
        db.session.add(StockItem(location_id=location_id, product_id=product_id, quantity=value))
        db.session.flush()
    return value


def _parse_bulk_entry(entry: dict, value_field: str, *, allow_null: bool):
    product_id = parse_int(entry.get("product_id"), "product_id")
    location_id = parse_int(entry.get("location_id"), "location_id")
    if value_field not in entry:
        raise ValidationError(f"{value_field} is required")
    raw = entry.get(value_field)
    if raw is None:
        if not allow_null:
            raise ValidationError(f"{value_field} cannot be null")
        return product_id, location_id, None
    value = parse_int(raw, value_field)
    if value < 0:
        raise ValidationError(f"{value_field} must be >= 0")
    return product_id, location_id, value


def set_initial_stock(items) -> list[dict]:
    """
    Load opening balances: each entry {product_id, location_id, quantity >= 0}
    overwrites its ledger row.

    Returns one result per entry, in input order. Invalid entries carry an
    error and do not stop the rest of the batch.
    """
    items = require_item_list(items)

    def _op():
        results = []
        for entry in items:
            try:
                product_id, location_id, quantity = _parse_bulk_entry(entry, "quantity", allow_null=False)
            except ValidationError as e:
                results.append({**entry, "success": False, "error": str(e)})
                continue

            if not db.session.get(Product, product_id):
                results.append({**entry, "success": False, "error": "Product not found"})
                continue
            if not db.session.get(Location, location_id):
                results.append({**entry, "success": False, "error": "Location not found"})
                continue

            set_absolute(location_id, product_id, quantity)
            row = _row_query(location_id, product_id).first()
            results.append({"success": True, "stock_item": row.to_dict()})
        return results

    return run_with_retry(_op, retry_on=LEDGER_RETRYABLE_ERRORS)


def set_site_limits(items) -> list[dict]:
    """
    Set replenishment ceilings: each entry {product_id, location_id,
    limit_qty >= 0 | null}. Only SITE locations accept limits; null clears.
    """
    items = require_item_list(items)

    def _op():
        results = []
        for entry in items:
            try:
                product_id, location_id, limit_qty = _parse_bulk_entry(entry, "limit_qty", allow_null=True)
            except ValidationError as e:
                results.append({**entry, "success": False, "error": str(e)})
                continue

            if not db.session.get(Product, product_id):
                results.append({**entry, "success": False, "error": "Product not found"})
                continue
            location = db.session.get(Location, location_id)
            if not location or location.type != LOCATION_TYPE_SITE:
                results.append({**entry, "success": False, "error": "Limits can only be set for SITE locations"})
                continue

            row = ensure_stock_item(location_id, product_id)
            row.limit_qty = limit_qty
            db.session.flush()
            results.append({"success": True, "stock_item": row.to_dict()})
        return results

    return run_with_retry(_op, retry_on=LEDGER_RETRYABLE_ERRORS)


def _ordered_rows(query):
    return (
        query.join(Location, StockItem.location_id == Location.id)
        .join(Product, StockItem.product_id == Product.id)
        .order_by(Location.name.asc(), Product.name.asc(), StockItem.id.asc())
        .all()
    )


def list_stock(*, username: str, role: str, location_id: int | None = None) -> list[StockItem]:
    """
    Ledger rows ordered by location name then product name.

    Supervisors only see the locations they are assigned to and get
    AccessDeniedError when asking for another one.
    """
    query = db.session.query(StockItem)

    if role == Role.SUPERVISOR:
        allowed = location_service.supervisor_location_ids(username)
        if location_id is not None and location_id not in allowed:
            raise AccessDeniedError("Access denied to this location")
        if not allowed:
            return []
        query = query.filter(StockItem.location_id.in_(allowed))

    if location_id is not None:
        query = query.filter(StockItem.location_id == location_id)

    return _ordered_rows(query)


def low_stock(*, warehouse_id=None, include_sites: bool = False) -> list[StockItem]:
    """
    Warehouse rows with quantity <= 0; with include_sites, also SITE rows
    below their limit.
    """
    warehouse = location_service.resolve_warehouse(warehouse_id)
    rows = _ordered_rows(
        db.session.query(StockItem).filter(
            StockItem.location_id == warehouse.id,
            StockItem.quantity <= 0,
        )
    )
    if include_sites:
        rows += _ordered_rows(
            db.session.query(StockItem).filter(
                Location.type == LOCATION_TYPE_SITE,
                StockItem.limit_qty.isnot(None),
                StockItem.quantity < StockItem.limit_qty,
            )
        )
    return rows
