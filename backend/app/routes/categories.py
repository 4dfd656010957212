# Overview: Flask API routes for product categories; parses input and returns JSON responses.

"""
Category Routes

Any authenticated user may list categories; changes are ADMIN only.
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth, require_role
from ..extensions import db
from ..permissions import Role
from ..services import catalog_service
from ..services.concurrency import commit_session
from ..validation import ServiceError


categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
@require_auth
def list_categories_route():
    """Categories by name with their product counts."""
    return jsonify(catalog_service.list_categories())


@categories_bp.post("")
@require_auth
@require_role(Role.ADMIN)
def create_category_route():
    data = request.get_json(silent=True) or {}
    try:
        category = catalog_service.create_category(data.get("name"))
        commit_session()
        current_app.logger.info("Category created: %s", category.name)
        return jsonify(category.to_dict()), 201
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code


@categories_bp.put("/<int:category_id>")
@require_auth
@require_role(Role.ADMIN)
def rename_category_route(category_id: int):
    data = request.get_json(silent=True) or {}
    try:
        category = catalog_service.rename_category(category_id, data.get("name"))
        commit_session()
        return jsonify(category.to_dict())
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_role(Role.ADMIN)
def delete_category_route(category_id: int):
    """Refused with 400 while products still reference the category."""
    try:
        catalog_service.delete_category(category_id)
        commit_session()
        current_app.logger.info("Category deleted: %s", category_id)
        return jsonify({"message": "Category deleted successfully"})
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
