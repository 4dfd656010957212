# backend/app/routes/inventory.py
"""
Inventory count routes.

A count snapshots a location's ledger, collects counted quantities and,
on close, overwrites the ledger with them.

SECURITY:
- Supervisors may count the sites they are assigned to
- Warehouse managers may count any location and close counts
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..extensions import db
from ..permissions import WAREHOUSE_MANAGERS
from ..services import inventory_count_service
from ..services.concurrency import commit_session
from ..validation import ServiceError, ValidationError


inventory_bp = Blueprint("warehouse_inventory", __name__, url_prefix="/api/warehouse/inventory")


@inventory_bp.get("")
@require_auth
def list_inventories_route():
    """
    List counts, newest first. Supervisors see the counts they conducted.

    Query params:
    - status: IN_PROGRESS | COMPLETED
    - location_id: int
    """
    try:
        inventories = inventory_count_service.list_inventories(
            username=g.username,
            role=g.role,
            status=request.args.get("status"),
            location_id=request.args.get("location_id", type=int),
        )
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify([inv.to_dict(include_items=False) for inv in inventories])


@inventory_bp.post("")
@require_auth
def start_inventory_route():
    """
    Start a count for a location.

    Body: {location_id, note?}
    409 when the location already has a count in progress.
    """
    data = request.get_json(silent=True) or {}
    try:
        if data.get("location_id") is None:
            raise ValidationError("location_id is required")
        inventory = inventory_count_service.start_inventory(
            username=g.username,
            role=g.role,
            location_id=data.get("location_id"),
            note=data.get("note"),
        )
        commit_session()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to start inventory")
        return jsonify({"error": "Failed to start inventory"}), 500

    current_app.logger.info(
        "Inventory %s started at location %s by %s", inventory.id, inventory.location_id, g.username
    )
    return jsonify(inventory.to_dict()), 201


@inventory_bp.get("/<int:inventory_id>")
@require_auth
def get_inventory_route(inventory_id: int):
    try:
        inventory = inventory_count_service.get_inventory(inventory_id, username=g.username, role=g.role)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(inventory.to_dict())


@inventory_bp.put("/<int:inventory_id>/items")
@require_auth
def update_inventory_items_route(inventory_id: int):
    """
    Record counted quantities.

    Body: {items: [{product_id, actual_qty}]}
    Products outside the snapshot are returned in ignored_product_ids.
    """
    data = request.get_json(silent=True) or {}
    try:
        inventory, ignored = inventory_count_service.update_inventory_actuals(
            inventory_id, data.get("items"), username=g.username, role=g.role
        )
        commit_session()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update inventory items")
        return jsonify({"error": "Failed to update inventory items"}), 500

    return jsonify({**inventory.to_dict(), "ignored_product_ids": ignored})


@inventory_bp.post("/<int:inventory_id>/close")
@require_auth
@require_role(WAREHOUSE_MANAGERS)
def close_inventory_route(inventory_id: int):
    """Complete the count and overwrite the ledger with the counted quantities."""
    try:
        inventory = inventory_count_service.close_inventory(inventory_id, g.username)
        commit_session()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to close inventory")
        return jsonify({"error": "Failed to close inventory"}), 500

    current_app.logger.info("Inventory %s closed by %s", inventory.id, g.username)
    return jsonify(inventory.to_dict())
