# Overview: Service-layer operations for locations and supervisor assignments.

"""
Location Service

WAREHOUSE locations supply SITE locations. Supervisors (identity-service
usernames) are bound to the sites they may request for and count.

Workflows that move stock between a site and "the warehouse" resolve the
warehouse explicitly through resolve_warehouse() and store it on the
document, so adding a second hub never changes where existing documents
draw from.
"""

from __future__ import annotations

from flask import current_app, has_app_context

from ..extensions import db
from ..models import Location, SupervisorLocation, LOCATION_TYPES, LOCATION_TYPE_SITE, LOCATION_TYPE_WAREHOUSE
from ..validation import (
    AccessDeniedError,
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    parse_int,
    validate_payload,
)


LOCATION_POLICY = ModelValidationPolicy(
    writable_fields={"name", "type", "address", "is_active"},
    required_on_create={"name", "type"},
)


def get_location(location_id: int) -> Location:
    location = db.session.query(Location).filter_by(id=location_id).first()
    if not location:
        raise NotFoundError("Location not found")
    return location


def list_locations(*, location_type: str | None = None, is_active: bool | None = None) -> list[Location]:
    query = db.session.query(Location)
    if location_type:
        location_type = location_type.strip().upper()
        if location_type not in LOCATION_TYPES:
            raise ValidationError(f"type must be one of {sorted(LOCATION_TYPES)}")
        query = query.filter(Location.type == location_type)
    if is_active is not None:
        query = query.filter(Location.is_active.is_(is_active))
    return query.order_by(Location.name.asc(), Location.id.asc()).all()


def _check_type(patch: dict) -> None:
    if "type" in patch:
        patch["type"] = patch["type"].upper()
        if patch["type"] not in LOCATION_TYPES:
            raise ValidationError(f"type must be one of {sorted(LOCATION_TYPES)}")


def create_location(payload: dict) -> Location:
    patch = validate_payload(model=Location, payload=payload, policy=LOCATION_POLICY, partial=False)
    _check_type(patch)
    location = Location(**patch)
    db.session.add(location)
    db.session.flush()
    return location


def update_location(location_id: int, payload: dict) -> Location:
    location = get_location(location_id)
    patch = validate_payload(model=Location, payload=payload, policy=LOCATION_POLICY, partial=True)
    _check_type(patch)
    for key, value in patch.items():
        setattr(location, key, value)
    db.session.flush()
    return location


def list_supervisor_assignments(*, location_id: int | None = None, username: str | None = None) -> list[SupervisorLocation]:
    query = db.session.query(SupervisorLocation)
    if location_id is not None:
        query = query.filter(SupervisorLocation.location_id == location_id)
    if username:
        query = query.filter(SupervisorLocation.supervisor_username == username)
    return query.order_by(SupervisorLocation.supervisor_username.asc(), SupervisorLocation.id.asc()).all()


def assign_supervisor(username: str, location_id) -> SupervisorLocation:
    username = (username or "").strip()
    if not username:
        raise ValidationError("supervisor_username is required")
    location_id = parse_int(location_id, "location_id")

    location = get_location(location_id)
    if location.type != LOCATION_TYPE_SITE:
        raise ValidationError("Supervisors can only be assigned to SITE locations")

    existing = db.session.query(SupervisorLocation).filter_by(
        supervisor_username=username, location_id=location_id
    ).first()
    if existing:
        raise ConflictError("Supervisor is already assigned to this location")

    assignment = SupervisorLocation(supervisor_username=username, location_id=location_id)
    db.session.add(assignment)
    db.session.flush()
    return assignment


def unassign_supervisor(username: str, location_id: int) -> None:
    assignment = db.session.query(SupervisorLocation).filter_by(
        supervisor_username=username, location_id=location_id
    ).first()
    if not assignment:
        raise NotFoundError("Assignment not found")
    db.session.delete(assignment)
    db.session.flush()


def supervisor_location_ids(username: str) -> list[int]:
    rows = (
        db.session.query(SupervisorLocation.location_id)
        .filter(SupervisorLocation.supervisor_username == username)
        .all()
    )
    return [row[0] for row in rows]


def my_locations(username: str) -> list[Location]:
    ids = supervisor_location_ids(username)
    if not ids:
        return []
    return (
        db.session.query(Location)
        .filter(Location.id.in_(ids))
        .order_by(Location.name.asc())
        .all()
    )


def is_supervisor_of(username: str, location_id: int) -> bool:
    return db.session.query(SupervisorLocation.id).filter_by(
        supervisor_username=username, location_id=location_id
    ).first() is not None


def ensure_supervisor_of(username: str, location_id: int) -> None:
    if not is_supervisor_of(username, location_id):
        raise AccessDeniedError("You are not assigned to this location")


def resolve_warehouse(warehouse_id=None) -> Location:
    """
    Pick the warehouse a workflow document draws from or receives into.

    Order of preference:
    1. the warehouse_id given by the caller
    2. DEFAULT_WAREHOUSE_ID from config
    3. the only active WAREHOUSE location

    Raises ValidationError when none applies or several warehouses exist
    and none was named.
    """
    if warehouse_id in (None, "") and has_app_context():
        warehouse_id = current_app.config.get("DEFAULT_WAREHOUSE_ID")

    if warehouse_id not in (None, ""):
        warehouse_id = parse_int(warehouse_id, "warehouse_id")
        warehouse = db.session.query(Location).filter_by(id=warehouse_id).first()
        if not warehouse or warehouse.type != LOCATION_TYPE_WAREHOUSE:
            raise ValidationError("warehouse_id does not reference a WAREHOUSE location")
        if not warehouse.is_active:
            raise ValidationError("Warehouse is not active")
        return warehouse

    warehouses = (
        db.session.query(Location)
        .filter(Location.type == LOCATION_TYPE_WAREHOUSE, Location.is_active.is_(True))
        .order_by(Location.id.asc())
        .limit(2)
        .all()
    )
    if not warehouses:
        raise ValidationError("No active warehouse is configured")
    if len(warehouses) > 1:
        raise ValidationError("Several warehouses exist; warehouse_id is required")
    return warehouses[0]
