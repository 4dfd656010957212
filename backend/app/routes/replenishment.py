# Overview: Flask API routes for site replenishment requests and stock issuance.

"""
Replenishment Routes

Site supervisors request stock for their sites; warehouse managers
approve, reject and issue against those requests.

Notifications are sent only after the transaction commits.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..extensions import db
from ..permissions import WAREHOUSE_MANAGERS, Role
from ..services import notification_service, request_service
from ..services.concurrency import commit_session
from ..services.request_service import REQUEST_STATUS_APPROVED, REQUEST_STATUS_FULFILLED
from ..validation import ServiceError, ValidationError, parse_int


requests_bp = Blueprint("warehouse_requests", __name__, url_prefix="/api/warehouse/requests")
issue_bp = Blueprint("warehouse_issue", __name__, url_prefix="/api/warehouse/issue")


@requests_bp.get("")
@require_auth
def list_requests_route():
    """
    List requests, newest first. Supervisors see only their own.

    Query params:
    - status: PENDING | APPROVED | REJECTED | PARTIAL | FULFILLED
    - location_id: int
    - page, per_page: pagination (per_page default 20, max 100)
    """
    try:
        result = request_service.list_requests(
            username=g.username,
            role=g.role,
            status=request.args.get("status"),
            location_id=request.args.get("location_id", type=int),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(result)


@requests_bp.post("")
@require_auth
@require_role(Role.SUPERVISOR)
def create_request_route():
    """
    Create a replenishment request.

    Body: {location_id, items: [{product_id, quantity}], note?, warehouse_id?}
    """
    data = request.get_json(silent=True) or {}
    try:
        if data.get("location_id") is None:
            raise ValidationError("location_id is required")
        req = request_service.create_request(
            username=g.username,
            location_id=data.get("location_id"),
            items=data.get("items"),
            note=data.get("note"),
            warehouse_id=data.get("warehouse_id"),
        )
        commit_session()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create request")
        return jsonify({"error": "Failed to create request"}), 500

    current_app.logger.info("Request created: %s by %s", req.id, g.username)
    notification_service.notify_request_created(req)
    return jsonify(req.to_dict()), 201


@requests_bp.get("/autofill/<int:location_id>")
@require_auth
@require_role(Role.SUPERVISOR)
def autofill_route(location_id: int):
    """Suggested lines (limit - current quantity) for a site the caller supervises."""
    try:
        suggestions = request_service.autofill_request(username=g.username, location_id=location_id)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"items": suggestions, "count": len(suggestions)})


@requests_bp.get("/<int:request_id>")
@require_auth
def get_request_route(request_id: int):
    try:
        req = request_service.get_request(request_id, username=g.username, role=g.role)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    data = req.to_dict()
    data["issue_records"] = [r.to_dict() for r in request_service.list_issue_records(request_id=req.id)]
    return jsonify(data)


@requests_bp.patch("/<int:request_id>/status")
@require_auth
@require_role(WAREHOUSE_MANAGERS)
def set_request_status_route(request_id: int):
    """
    Approve or reject a PENDING request.

    Body: {status: APPROVED | REJECTED}
    """
    data = request.get_json(silent=True) or {}
    try:
        req = request_service.set_request_status(request_id, data.get("status"), g.username)
        commit_session()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update request status")
        return jsonify({"error": "Failed to update request status"}), 500

    current_app.logger.info("Request %s -> %s by %s", req.id, req.status, g.username)
    if req.status == REQUEST_STATUS_APPROVED:
        notification_service.notify_request_approved(req)
    return jsonify(req.to_dict())


@issue_bp.post("")
@require_auth
@require_role(WAREHOUSE_MANAGERS)
def issue_route():
    """
    Issue stock against an APPROVED or PARTIAL request.

    Body: {request_id, items: [{product_id, quantity}], note?}

    Every line is applied in full or skipped with a reason; the response
    lists each line's outcome and the issue records written.
    """
    data = request.get_json(silent=True) or {}
    try:
        if data.get("request_id") is None:
            raise ValidationError("request_id is required")
        request_id = parse_int(data.get("request_id"), "request_id")
        result = request_service.issue_request_items(
            request_id,
            data.get("items"),
            g.username,
            note=data.get("note"),
        )
        commit_session()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to issue items")
        return jsonify({"error": "Failed to issue items"}), 500

    req = result.document
    current_app.logger.info(
        "Issued against request %s by %s: %s applied, %s skipped",
        req.id, g.username, len(result.applied), len(result.skipped),
    )
    if result.status_changed and req.status == REQUEST_STATUS_FULFILLED:
        notification_service.notify_request_fulfilled(req)
    if result.low_stock:
        notification_service.notify_low_stock(result.low_stock)

    return jsonify(result.to_dict("request"))


@issue_bp.get("")
@require_auth
@require_role(WAREHOUSE_MANAGERS)
def list_issue_records_route():
    """
    Issue history, newest first.

    Query params:
    - request_id: int
    - limit: max rows (default 200)
    """
    records = request_service.list_issue_records(
        request_id=request.args.get("request_id", type=int),
        limit=request.args.get("limit", 200, type=int),
    )
    return jsonify([r.to_dict() for r in records])


@issue_bp.get("/<int:issue_id>")
@require_auth
@require_role(WAREHOUSE_MANAGERS)
def get_issue_record_route(issue_id: int):
    try:
        return jsonify(request_service.get_issue_record(issue_id).to_dict())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
