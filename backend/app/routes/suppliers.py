# Overview: Flask API routes for suppliers; parses input and returns JSON responses.

"""
Supplier Routes

SECURITY: All routes require authentication.
- Listing is closed to site supervisors
- Create/update require ADMIN or OPERATIONS_MANAGER
- Activation toggle is ADMIN only
- Price list: readable by staff, written by procurement managers
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..extensions import db
from ..permissions import ADMIN_OR_OM, PROCUREMENT_MANAGERS, STAFF, Role
from ..services import catalog_service
from ..services.concurrency import commit_session
from ..validation import ServiceError, parse_bool_arg


suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
@require_auth
@require_role(STAFF)
def list_suppliers_route():
    """
    List suppliers by name.

    Query parameters:
    - is_active: filter by active flag
    """
    suppliers = catalog_service.list_suppliers(is_active=parse_bool_arg(request.args.get("is_active")))
    return jsonify([s.to_dict() for s in suppliers])


@suppliers_bp.get("/<int:supplier_id>")
@require_auth
@require_role(STAFF)
def get_supplier_route(supplier_id: int):
    try:
        return jsonify(catalog_service.get_supplier(supplier_id).to_dict())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@suppliers_bp.post("")
@require_auth
@require_role(ADMIN_OR_OM)
def create_supplier_route():
    """
    Create a supplier.

    Request body:
    {
        "name": "Supplier",     // required
        "contact": "Jane Doe",  // required
        "phone": "...",         // optional
        "email": "...",         // optional, used for PO delivery by email
        "telegram_id": "..."    // optional, used for PO delivery by chat
    }
    """
    try:
        supplier = catalog_service.create_supplier(request.get_json(silent=True))
        commit_session()
        current_app.logger.info("Supplier created: %s", supplier.name)
        return jsonify(supplier.to_dict()), 201
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code


@suppliers_bp.put("/<int:supplier_id>")
@require_auth
@require_role(ADMIN_OR_OM)
def update_supplier_route(supplier_id: int):
    try:
        supplier = catalog_service.update_supplier(supplier_id, request.get_json(silent=True))
        commit_session()
        return jsonify(supplier.to_dict())
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code


@suppliers_bp.patch("/<int:supplier_id>/toggle")
@require_auth
@require_role(Role.ADMIN)
def toggle_supplier_route(supplier_id: int):
    try:
        supplier = catalog_service.toggle_supplier(supplier_id)
        commit_session()
        current_app.logger.info("Supplier %s is_active=%s", supplier.id, supplier.is_active)
        return jsonify(supplier.to_dict())
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code


# =============================================================================
# PRICE LIST
# =============================================================================

@suppliers_bp.get("/<int:supplier_id>/prices")
@require_auth
@require_role(STAFF)
def list_supplier_prices_route(supplier_id: int):
    try:
        prices = catalog_service.list_supplier_prices(supplier_id)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify([p.to_dict() for p in prices])


@suppliers_bp.post("/<int:supplier_id>/prices")
@require_auth
@require_role(PROCUREMENT_MANAGERS)
def set_supplier_price_route(supplier_id: int):
    """
    Set the supplier's price for a product, replacing any earlier quote.

    Body: {product_id, price}  (price >= 0, rounded to cents)
    """
    data = request.get_json(silent=True) or {}
    try:
        price = catalog_service.set_supplier_price(
            supplier_id, data.get("product_id"), data.get("price"), g.username
        )
        commit_session()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code

    current_app.logger.info(
        "Supplier price set: supplier=%s product=%s price=%s by %s",
        supplier_id, price.product_id, price.price, g.username,
    )
    return jsonify(price.to_dict())
