# Overview: Flask API routes for purchase requests and purchase orders.

"""
Procurement Routes

- Purchase requests: raised by warehouse managers, handled by procurement
- Purchase orders: created, sent and closed by procurement managers;
  received into the warehouse by warehouse managers

Notifications are sent only after the transaction commits.
"""

import json
from io import BytesIO

from flask import Blueprint, current_app, g, jsonify, request, send_file

from ..decorators import require_auth, require_role
from ..extensions import db
from ..permissions import PROCUREMENT_MANAGERS, STAFF, WAREHOUSE_MANAGERS
from ..services import (
    notification_service,
    purchase_order_service,
    purchase_request_service,
    upload_service,
)
from ..services.concurrency import commit_session
from ..validation import ServiceError, ValidationError


purchase_requests_bp = Blueprint(
    "purchase_requests", __name__, url_prefix="/api/procurement/purchase-requests"
)
purchase_orders_bp = Blueprint(
    "purchase_orders", __name__, url_prefix="/api/procurement/purchase-orders"
)


# =============================================================================
# PURCHASE REQUESTS
# =============================================================================

@purchase_requests_bp.get("")
@require_auth
@require_role(STAFF)
def list_purchase_requests_route():
    """Query params: status (PENDING | IN_PROGRESS | DONE)."""
    try:
        prs = purchase_request_service.list_purchase_requests(status=request.args.get("status"))
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify([pr.to_dict() for pr in prs])


@purchase_requests_bp.get("/<int:purchase_request_id>")
@require_auth
@require_role(STAFF)
def get_purchase_request_route(purchase_request_id: int):
    try:
        return jsonify(purchase_request_service.get_purchase_request(purchase_request_id).to_dict())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@purchase_requests_bp.post("")
@require_auth
@require_role(WAREHOUSE_MANAGERS)
def create_purchase_request_route():
    """
    Ask procurement to buy products.

    Body: {items: [{product_id, quantity}], note?}
    """
    data = request.get_json(silent=True) or {}
    try:
        pr = purchase_request_service.create_purchase_request(
            username=g.username,
            items=data.get("items"),
            note=data.get("note"),
        )
        commit_session()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create purchase request")
        return jsonify({"error": "Failed to create purchase request"}), 500

    current_app.logger.info("Purchase request created: %s by %s", pr.id, g.username)
    return jsonify(pr.to_dict()), 201


@purchase_requests_bp.patch("/<int:purchase_request_id>/status")
@require_auth
@require_role(PROCUREMENT_MANAGERS)
def set_purchase_request_status_route(purchase_request_id: int):
    """Body: {status: IN_PROGRESS | DONE}; only PENDING requests change."""
    data = request.get_json(silent=True) or {}
    try:
        pr = purchase_request_service.set_purchase_request_status(
            purchase_request_id, data.get("status"), g.username
        )
        commit_session()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update purchase request status")
        return jsonify({"error": "Failed to update purchase request status"}), 500

    current_app.logger.info("Purchase request %s -> %s by %s", pr.id, pr.status, g.username)
    return jsonify(pr.to_dict())


# =============================================================================
# PURCHASE ORDERS
# =============================================================================

@purchase_orders_bp.get("")
@require_auth
@require_role(STAFF)
def list_purchase_orders_route():
    """
    Query params:
    - status: DRAFT | SENT | PARTIALLY_RECEIVED | RECEIVED | CLOSED
    - supplier_id: int
    """
    try:
        orders = purchase_order_service.list_purchase_orders(
            status=request.args.get("status"),
            supplier_id=request.args.get("supplier_id", type=int),
        )
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify([po.to_dict(include_items=False) for po in orders])


@purchase_orders_bp.get("/<int:po_id>")
@require_auth
@require_role(STAFF)
def get_purchase_order_route(po_id: int):
    try:
        po = purchase_order_service.get_purchase_order(po_id)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    data = po.to_dict()
    data["receive_records"] = [r.to_dict() for r in po.receive_records]
    return jsonify(data)


@purchase_orders_bp.post("")
@require_auth
@require_role(PROCUREMENT_MANAGERS)
def create_purchase_order_route():
    """
    Create a DRAFT purchase order.

    Request body:
    {
        "supplier_id": 1,
        "items": [{"product_id": 1, "quantity": 10, "unit_price": "2.50"}],
        "delivery_date": "2026-01-31",   // optional
        "note": "...",                   // optional
        "purchase_request_id": 3,        // optional, links the request
        "warehouse_id": 1                // optional
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        if data.get("supplier_id") is None:
            raise ValidationError("supplier_id is required")
        po = purchase_order_service.create_purchase_order(
            username=g.username,
            supplier_id=data.get("supplier_id"),
            items=data.get("items"),
            note=data.get("note"),
            delivery_date=data.get("delivery_date"),
            purchase_request_id=data.get("purchase_request_id"),
            warehouse_id=data.get("warehouse_id"),
        )
        commit_session()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create purchase order")
        return jsonify({"error": "Failed to create purchase order"}), 500

    current_app.logger.info("Purchase order created: %s by %s", po.po_number, g.username)
    notification_service.notify_po_created(po)
    return jsonify(po.to_dict()), 201


@purchase_orders_bp.put("/<int:po_id>")
@require_auth
@require_role(PROCUREMENT_MANAGERS)
def update_purchase_order_route(po_id: int):
    """Edit a DRAFT order; items, when given, replace the whole list."""
    try:
        po = purchase_order_service.update_draft_purchase_order(po_id, request.get_json(silent=True))
        commit_session()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update purchase order")
        return jsonify({"error": "Failed to update purchase order"}), 500

    return jsonify(po.to_dict())


@purchase_orders_bp.get("/<int:po_id>/pdf")
@require_auth
@require_role(STAFF)
def purchase_order_pdf_route(po_id: int):
    try:
        filename, content = purchase_order_service.render_purchase_order_pdf(po_id)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return send_file(
        BytesIO(content),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=filename,
    )


@purchase_orders_bp.post("/<int:po_id>/send")
@require_auth
@require_role(PROCUREMENT_MANAGERS)
def send_purchase_order_route(po_id: int):
    """
    Deliver the PO document to the supplier.

    Body: {method: "email" | "chat"}
    502 when delivery fails; the order's status is then unchanged.
    """
    data = request.get_json(silent=True) or {}
    try:
        po = purchase_order_service.send_purchase_order(po_id, data.get("method"), g.username)
        commit_session()
    except ServiceError as e:
        db.session.rollback()
        if e.status_code >= 500:
            current_app.logger.warning("Purchase order %s delivery failed: %s", po_id, e)
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to send purchase order")
        return jsonify({"error": "Failed to send purchase order"}), 500

    current_app.logger.info("Purchase order %s sent via %s by %s", po.po_number, po.sent_via, g.username)
    return jsonify(po.to_dict())


def _receive_payload() -> dict:
    """JSON body, or multipart form with an items JSON string and an optional photo."""
    if request.mimetype == "multipart/form-data":
        raw_items = request.form.get("items")
        try:
            items = json.loads(raw_items) if raw_items else None
        except ValueError:
            raise ValidationError("items must be a JSON array")
        return {
            "items": items,
            "note": request.form.get("note") or None,
            "photo": request.files.get("photo"),
        }
    data = request.get_json(silent=True) or {}
    return {"items": data.get("items"), "note": data.get("note"), "photo": None}


@purchase_orders_bp.post("/<int:po_id>/receive")
@require_auth
@require_role(WAREHOUSE_MANAGERS)
def receive_purchase_order_route(po_id: int):
    """
    Receive goods into the order's warehouse.

    JSON body: {items: [{product_id, received_qty}], note?}
    or multipart form: items (JSON string), note, photo (file).
    """
    photo_url = None
    try:
        payload = _receive_payload()
        if payload["photo"] is not None and payload["photo"].filename:
            photo_url = upload_service.save_upload(payload["photo"])

        result = purchase_order_service.receive_purchase_order_items(
            po_id,
            payload["items"],
            g.username,
            note=payload["note"],
            photo_url=photo_url,
        )
        commit_session()
    except ServiceError as e:
        db.session.rollback()
        upload_service.delete_upload(photo_url)
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        upload_service.delete_upload(photo_url)
        current_app.logger.exception("Failed to receive items")
        return jsonify({"error": "Failed to receive items"}), 500

    po = result.document
    if not result.records:
        upload_service.delete_upload(photo_url)
    current_app.logger.info(
        "Received against %s by %s: %s applied, %s skipped",
        po.po_number, g.username, len(result.applied), len(result.skipped),
    )
    if result.applied:
        notification_service.notify_po_received(
            po, sum(line.quantity for line in result.applied), g.username
        )
    return jsonify(result.to_dict("purchase_order"))


@purchase_orders_bp.post("/<int:po_id>/close")
@require_auth
@require_role(PROCUREMENT_MANAGERS)
def close_purchase_order_route(po_id: int):
    try:
        po = purchase_order_service.close_purchase_order(po_id, g.username)
        commit_session()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to close purchase order")
        return jsonify({"error": "Failed to close purchase order"}), 500

    current_app.logger.info("Purchase order %s closed by %s", po.po_number, g.username)
    return jsonify(po.to_dict())
