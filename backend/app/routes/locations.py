# Overview: Flask API routes for locations and supervisor assignments.

"""
Location Routes

SECURITY: All routes require authentication.
- Listing is open to every role
- Create/update and supervisor assignment are ADMIN only
- /my is for site supervisors
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..extensions import db
from ..permissions import Role
from ..services import location_service
from ..services.concurrency import commit_session
from ..validation import ServiceError, parse_bool_arg


locations_bp = Blueprint("locations", __name__, url_prefix="/api/locations")


@locations_bp.get("")
@require_auth
def list_locations_route():
    """
    List locations by name.

    Query parameters:
    - type: WAREHOUSE or SITE
    - is_active: filter by active flag
    """
    try:
        locations = location_service.list_locations(
            location_type=request.args.get("type"),
            is_active=parse_bool_arg(request.args.get("is_active")),
        )
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify([loc.to_dict() for loc in locations])


@locations_bp.get("/my")
@require_auth
@require_role(Role.SUPERVISOR)
def my_locations_route():
    """Locations the calling supervisor is assigned to."""
    return jsonify([loc.to_dict() for loc in location_service.my_locations(g.username)])


@locations_bp.get("/<int:location_id>")
@require_auth
def get_location_route(location_id: int):
    try:
        return jsonify(location_service.get_location(location_id).to_dict())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@locations_bp.post("")
@require_auth
@require_role(Role.ADMIN)
def create_location_route():
    """
    Create a location.

    Body: {name, type: WAREHOUSE|SITE, address?, is_active?}
    """
    try:
        location = location_service.create_location(request.get_json(silent=True))
        commit_session()
        current_app.logger.info("Location created: %s (%s)", location.name, location.type)
        return jsonify(location.to_dict()), 201
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code


@locations_bp.put("/<int:location_id>")
@require_auth
@require_role(Role.ADMIN)
def update_location_route(location_id: int):
    try:
        location = location_service.update_location(location_id, request.get_json(silent=True))
        commit_session()
        return jsonify(location.to_dict())
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code


@locations_bp.get("/<int:location_id>/supervisors")
@require_auth
@require_role(Role.ADMIN)
def list_supervisors_route(location_id: int):
    try:
        location_service.get_location(location_id)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    assignments = location_service.list_supervisor_assignments(location_id=location_id)
    return jsonify([a.to_dict() for a in assignments])


@locations_bp.post("/<int:location_id>/supervisors")
@require_auth
@require_role(Role.ADMIN)
def assign_supervisor_route(location_id: int):
    """
    Bind a supervisor to a SITE location.

    Body: {username}. 409 when already assigned.
    """
    data = request.get_json(silent=True) or {}
    try:
        assignment = location_service.assign_supervisor(data.get("username"), location_id)
        commit_session()
        current_app.logger.info(
            "Supervisor assigned: %s -> location %s by %s",
            assignment.supervisor_username, location_id, g.username,
        )
        return jsonify(assignment.to_dict()), 201
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code


@locations_bp.delete("/<int:location_id>/supervisors/<username>")
@require_auth
@require_role(Role.ADMIN)
def unassign_supervisor_route(location_id: int, username: str):
    try:
        location_service.unassign_supervisor(username, location_id)
        commit_session()
        current_app.logger.info(
            "Supervisor unassigned: %s -> location %s by %s", username, location_id, g.username
        )
        return "", 204
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
