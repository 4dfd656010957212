# backend/app/routes/reports.py
"""
Reporting API routes.

JSON projections plus .xlsx exports. Stock, consumption and request
reports are scoped to a supervisor's own locations / requests; purchase
reports are closed to supervisors.
"""
from io import BytesIO

from flask import Blueprint, current_app, g, jsonify, request, send_file

from app.decorators import require_auth, require_role
from app.permissions import STAFF
from app.services import reporting_service
from app.validation import ServiceError


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _date_args() -> dict:
    return {
        "start_date": request.args.get("start_date"),
        "end_date": request.args.get("end_date"),
    }


def _xlsx_response(filename: str, content: bytes):
    return send_file(
        BytesIO(content),
        mimetype=reporting_service.XLSX_MIMETYPE,
        as_attachment=True,
        download_name=filename,
    )


@reports_bp.get("/stock")
@require_auth
def stock_report_route():
    """Query params: location_id."""
    try:
        rows = reporting_service.stock_report(
            username=g.username,
            role=g.role,
            location_id=request.args.get("location_id", type=int),
        )
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(rows)


@reports_bp.get("/consumption")
@require_auth
def consumption_report_route():
    """Query params: start_date, end_date (inclusive ISO dates), location_id."""
    try:
        rows = reporting_service.consumption_report(
            username=g.username,
            role=g.role,
            location_id=request.args.get("location_id", type=int),
            **_date_args(),
        )
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(rows)


@reports_bp.get("/purchases")
@require_auth
@require_role(STAFF)
def purchases_report_route():
    """Query params: start_date, end_date, supplier_id, status."""
    try:
        rows = reporting_service.purchases_report(
            supplier_id=request.args.get("supplier_id", type=int),
            status=request.args.get("status"),
            **_date_args(),
        )
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(rows)


@reports_bp.get("/requests")
@require_auth
def requests_report_route():
    """Query params: start_date, end_date, location_id, status."""
    try:
        rows = reporting_service.requests_report(
            username=g.username,
            role=g.role,
            location_id=request.args.get("location_id", type=int),
            status=request.args.get("status"),
            **_date_args(),
        )
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(rows)


@reports_bp.get("/stock/export")
@require_auth
def export_stock_route():
    try:
        filename, content = reporting_service.export_stock(
            username=g.username,
            role=g.role,
            location_id=request.args.get("location_id", type=int),
        )
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    current_app.logger.info("Stock report exported by %s", g.username)
    return _xlsx_response(filename, content)


@reports_bp.get("/consumption/export")
@require_auth
def export_consumption_route():
    try:
        filename, content = reporting_service.export_consumption(
            username=g.username,
            role=g.role,
            location_id=request.args.get("location_id", type=int),
            **_date_args(),
        )
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    current_app.logger.info("Consumption report exported by %s", g.username)
    return _xlsx_response(filename, content)


@reports_bp.get("/purchases/export")
@require_auth
@require_role(STAFF)
def export_purchases_route():
    try:
        filename, content = reporting_service.export_purchases(
            supplier_id=request.args.get("supplier_id", type=int),
            status=request.args.get("status"),
            **_date_args(),
        )
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    current_app.logger.info("Purchases report exported by %s", g.username)
    return _xlsx_response(filename, content)
