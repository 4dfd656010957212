# Overview: Flask API routes for products; parses input and returns JSON responses.

# backend/app/routes/products.py
"""
Product management routes.

SECURITY: All routes require authentication.
- Listing is open to every role
- Create, update, toggle and import are ADMIN only
"""
from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth, require_role
from ..extensions import db
from ..permissions import Role
from ..services import catalog_service
from ..services.concurrency import commit_session
from ..validation import ServiceError, ValidationError, parse_bool_arg

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    List products ordered by name.

    Query params:
    - category_id: int (optional)
    - is_active: bool (optional)
    """
    products = catalog_service.list_products(
        category_id=request.args.get("category_id", type=int),
        is_active=parse_bool_arg(request.args.get("is_active")),
    )
    return jsonify([p.to_dict() for p in products])


@products_bp.get("/<int:product_id>")
@require_auth
def get_product(product_id: int):
    try:
        return jsonify(catalog_service.get_product(product_id).to_dict())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.post("")
@require_auth
@require_role(Role.ADMIN)
def create_product():
    """
    Create a product.

    Body: {name, category_id, unit, is_active?}
    """
    try:
        product = catalog_service.create_product(request.get_json(silent=True))
        commit_session()
        current_app.logger.info("Product created: %s", product.name)
        return jsonify(product.to_dict()), 201
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code


@products_bp.put("/<int:product_id>")
@require_auth
@require_role(Role.ADMIN)
def update_product(product_id: int):
    try:
        product = catalog_service.update_product(product_id, request.get_json(silent=True))
        commit_session()
        return jsonify(product.to_dict())
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code


@products_bp.patch("/<int:product_id>/toggle")
@require_auth
@require_role(Role.ADMIN)
def toggle_product(product_id: int):
    try:
        product = catalog_service.toggle_product(product_id)
        commit_session()
        current_app.logger.info("Product %s is_active=%s", product.id, product.is_active)
        return jsonify(product.to_dict())
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code


@products_bp.post("/import")
@require_auth
@require_role(Role.ADMIN)
def import_products():
    """
    Import products from an uploaded .xlsx file (multipart field "file").

    Columns: name, category, unit. Row 1 is a header.

    Returns:
        {imported, errors: [{row, error}]}
    """
    file = request.files.get("file")
    try:
        if file is None or not file.filename:
            raise ValidationError("No file uploaded")
        if not file.filename.lower().endswith(".xlsx"):
            raise ValidationError("Only .xlsx files are supported")

        result = catalog_service.import_products(file.stream)
        commit_session()
        current_app.logger.info(
            "Products imported: %s (%s row errors)", result["imported"], len(result["errors"])
        )
        return jsonify({
            "message": "Import completed",
            "imported": result["imported"],
            "errors": result["errors"],
        })
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
