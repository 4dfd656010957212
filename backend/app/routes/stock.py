# Overview: Flask API routes for the stock ledger; parses input and returns JSON responses.

"""
Stock Routes

Read access to the ledger plus the two ADMIN bulk operations (opening
balances and site limits). Quantities otherwise change only through the
request, receiving and inventory workflows.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..extensions import db
from ..permissions import WAREHOUSE_MANAGERS, Role
from ..services import stock_service
from ..services.concurrency import commit_session
from ..validation import ServiceError, parse_bool_arg


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("")
@require_auth
def list_stock_route():
    """
    Ledger rows ordered by location then product name.

    Query parameters:
    - location_id: restrict to one location (supervisors: only their own)
    """
    try:
        rows = stock_service.list_stock(
            username=g.username,
            role=g.role,
            location_id=request.args.get("location_id", type=int),
        )
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify([row.to_dict() for row in rows])


@stock_bp.get("/low")
@require_auth
@require_role(WAREHOUSE_MANAGERS)
def low_stock_route():
    """
    Warehouse rows at or below zero.

    Query parameters:
    - warehouse_id: which warehouse (defaults to the configured one)
    - include_sites: also list SITE rows below their limit
    """
    try:
        rows = stock_service.low_stock(
            warehouse_id=request.args.get("warehouse_id", type=int),
            include_sites=bool(parse_bool_arg(request.args.get("include_sites"))),
        )
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify([row.to_dict() for row in rows])


def _bulk_response(results: list[dict]):
    succeeded = sum(1 for r in results if r.get("success"))
    return jsonify({
        "results": results,
        "success_count": succeeded,
        "error_count": len(results) - succeeded,
    })


@stock_bp.put("/initial")
@require_auth
@require_role(Role.ADMIN)
def set_initial_stock_route():
    """
    Load opening balances.

    Body: {items: [{product_id, location_id, quantity}]}
    Invalid entries are reported per item; valid ones are applied.
    """
    data = request.get_json(silent=True) or {}
    try:
        results = stock_service.set_initial_stock(data.get("items"))
        commit_session()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to set initial stock")
        return jsonify({"error": "Failed to set initial stock"}), 500

    current_app.logger.info("Initial stock set by %s (%s entries)", g.username, len(results))
    return _bulk_response(results)


@stock_bp.put("/limits")
@require_auth
@require_role(Role.ADMIN)
def set_limits_route():
    """
    Set replenishment limits on SITE rows.

    Body: {items: [{product_id, location_id, limit_qty | null}]}
    """
    data = request.get_json(silent=True) or {}
    try:
        results = stock_service.set_site_limits(data.get("items"))
        commit_session()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to set limits")
        return jsonify({"error": "Failed to set limits"}), 500

    current_app.logger.info("Site limits set by %s (%s entries)", g.username, len(results))
    return _bulk_response(results)
