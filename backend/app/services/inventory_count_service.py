# backend/app/services/inventory_count_service.py
"""
Physical inventory counts.

LIFECYCLE:
1. IN_PROGRESS: ledger snapshot taken (system_qty), actuals being entered
2. COMPLETED: difference = actual - system stored per item and every
   counted ledger row overwritten with its actual quantity

Closing is an absolute overwrite, not a delta: stock moved at the location
while the count was open is replaced by what was physically counted.
"""
from __future__ import annotations

from app.extensions import db
from app.models import Inventory, InventoryItem, Location, StockItem
from app.permissions import Role, can_manage_warehouse
from app.services import location_service, stock_service
from app.services.concurrency import LEDGER_RETRYABLE_ERRORS, lock_for_update, run_with_retry
from app.time_utils import utcnow
from app.validation import (
    AccessDeniedError,
    ConflictError,
    NotFoundError,
    StateConflictError,
    ValidationError,
    parse_int,
    require_item_list,
)


# Inventory status constants
INVENTORY_STATUS_IN_PROGRESS = "IN_PROGRESS"
INVENTORY_STATUS_COMPLETED = "COMPLETED"

INVENTORY_STATUSES = (INVENTORY_STATUS_IN_PROGRESS, INVENTORY_STATUS_COMPLETED)


def _ensure_can_count(username: str, role: str, location_id: int) -> None:
    """Supervisors count their assigned sites; warehouse managers count anywhere."""
    if can_manage_warehouse(role):
        return
    if role == Role.SUPERVISOR:
        location_service.ensure_supervisor_of(username, location_id)
        return
    raise AccessDeniedError("Insufficient permissions")


def _lock_inventory(inventory_id: int) -> Inventory:
    inventory = lock_for_update(db.session.query(Inventory).filter_by(id=inventory_id)).first()
    if not inventory:
        raise NotFoundError("Inventory not found")
    return inventory


def start_inventory(*, username: str, role: str, location_id, note: str | None = None) -> Inventory:
    """
    Open a count and snapshot every ledger row of the location.

    At most one IN_PROGRESS count per location (ConflictError otherwise).
    """
    location_id = parse_int(location_id, "location_id")

    def _op():
        location = db.session.get(Location, location_id)
        if not location:
            raise NotFoundError("Location not found")
        _ensure_can_count(username, role, location_id)

        open_count = lock_for_update(
            db.session.query(Inventory).filter_by(location_id=location_id, status=INVENTORY_STATUS_IN_PROGRESS)
        ).first()
        if open_count:
            raise ConflictError("An inventory is already in progress for this location", inventory_id=open_count.id)

        inventory = Inventory(
            location_id=location_id,
            conducted_by=username,
            note=note,
            status=INVENTORY_STATUS_IN_PROGRESS,
        )
        rows = (
            db.session.query(StockItem)
            .filter(StockItem.location_id == location_id)
            .order_by(StockItem.product_id.asc())
            .all()
        )
        for row in rows:
            inventory.items.append(InventoryItem(
                product_id=row.product_id,
                system_qty=row.quantity,
                actual_qty=0,
                difference=None,
            ))

        db.session.add(inventory)
        db.session.flush()
        return inventory

    return run_with_retry(_op)


def update_inventory_actuals(inventory_id: int, items, *, username: str, role: str) -> tuple[Inventory, list[int]]:
    """
    Record counted quantities (integer >= 0, last write wins).

    Returns the inventory and the product ids that are not part of the
    snapshot and were ignored.
    """
    items = require_item_list(items)

    def _op():
        inventory = _lock_inventory(inventory_id)
        _ensure_can_count(username, role, inventory.location_id)
        if inventory.status != INVENTORY_STATUS_IN_PROGRESS:
            raise StateConflictError("Can only update items for IN_PROGRESS inventory")

        by_product = {item.product_id: item for item in inventory.items}
        ignored = []
        for entry in items:
            product_id = parse_int(entry.get("product_id"), "product_id")
            actual_qty = parse_int(entry.get("actual_qty"), "actual_qty")
            if actual_qty < 0:
                raise ValidationError("actual_qty must be >= 0", product_id=product_id)

            item = by_product.get(product_id)
            if item is None:
                ignored.append(product_id)
                continue
            item.actual_qty = actual_qty

        db.session.flush()
        return inventory, ignored

    return run_with_retry(_op)


def close_inventory(inventory_id: int, username: str) -> Inventory:
    """
    Complete a count: store differences and overwrite the ledger with the
    actual quantities. Items never updated close at their initial 0.
    """
    def _op():
        inventory = _lock_inventory(inventory_id)
        if inventory.status != INVENTORY_STATUS_IN_PROGRESS:
            raise StateConflictError("Can only close IN_PROGRESS inventory")

        for item in inventory.items:
            item.difference = item.actual_qty - item.system_qty
            stock_service.set_absolute(inventory.location_id, item.product_id, item.actual_qty)

        inventory.status = INVENTORY_STATUS_COMPLETED
        inventory.closed_at = utcnow()
        inventory.closed_by = username
        db.session.flush()
        return inventory

    return run_with_retry(_op, retry_on=LEDGER_RETRYABLE_ERRORS)


def list_inventories(
    *,
    username: str,
    role: str,
    status: str | None = None,
    location_id: int | None = None,
) -> list[Inventory]:
    """Newest first. Supervisors only see the counts they conducted."""
    query = db.session.query(Inventory)
    if role == Role.SUPERVISOR:
        query = query.filter(Inventory.conducted_by == username)
    if status:
        status = status.strip().upper()
        if status not in INVENTORY_STATUSES:
            raise ValidationError("Invalid status filter")
        query = query.filter(Inventory.status == status)
    if location_id is not None:
        query = query.filter(Inventory.location_id == location_id)
    return query.order_by(Inventory.started_at.desc(), Inventory.id.desc()).all()


def get_inventory(inventory_id: int, *, username: str, role: str) -> Inventory:
    inventory = db.session.get(Inventory, inventory_id)
    if not inventory:
        raise NotFoundError("Inventory not found")
    if role == Role.SUPERVISOR and inventory.conducted_by != username:
        if not location_service.is_supervisor_of(username, inventory.location_id):
            raise AccessDeniedError("Access denied")
    return inventory
