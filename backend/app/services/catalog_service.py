# Overview: Service-layer operations for categories, products and suppliers.

"""
Catalog Service

Master data referenced by every workflow document. Products and
suppliers are deactivated rather than deleted so historical documents
keep resolving; categories can be deleted only while unused.
"""

from __future__ import annotations

from openpyxl import load_workbook
from sqlalchemy import func

from ..extensions import db
from ..models import Category, Product, Supplier, SupplierPrice
from .concurrency import LEDGER_RETRYABLE_ERRORS, lock_for_update, run_with_retry
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    parse_int,
    parse_money,
    validate_payload,
)


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category_id", "unit", "is_active"},
    required_on_create={"name", "category_id", "unit"},
)

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "contact", "phone", "email", "telegram_id", "is_active"},
    required_on_create={"name", "contact"},
)


# =============================================================================
# CATEGORIES
# =============================================================================

def list_categories() -> list[dict]:
    """Categories by name, each with its product count."""
    counts = dict(
        db.session.query(Product.category_id, func.count(Product.id))
        .group_by(Product.category_id)
        .all()
    )
    categories = db.session.query(Category).order_by(Category.name.asc()).all()
    return [{**c.to_dict(), "product_count": counts.get(c.id, 0)} for c in categories]


def _clean_category_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Name is required")
    name = name.strip()
    if len(name) > 255:
        raise ValidationError("name exceeds max length 255")
    return name


def _find_category_by_name(name: str, exclude_id: int | None = None):
    query = db.session.query(Category).filter(func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    return query.first()


def get_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if not category:
        raise NotFoundError("Category not found")
    return category


def create_category(name) -> Category:
    name = _clean_category_name(name)
    if _find_category_by_name(name):
        raise ConflictError("Category already exists")
    category = Category(name=name)
    db.session.add(category)
    db.session.flush()
    return category


def rename_category(category_id: int, name) -> Category:
    category = get_category(category_id)
    name = _clean_category_name(name)
    if _find_category_by_name(name, exclude_id=category_id):
        raise ConflictError("Category with this name already exists")
    category.name = name
    db.session.flush()
    return category


def delete_category(category_id: int) -> None:
    category = get_category(category_id)
    in_use = db.session.query(Product.id).filter(Product.category_id == category_id).first()
    if in_use:
        raise ValidationError(
            "Cannot delete category with existing products. Remove or reassign products first."
        )
    db.session.delete(category)
    db.session.flush()


# =============================================================================
# PRODUCTS
# =============================================================================

def list_products(*, category_id: int | None = None, is_active: bool | None = None) -> list[Product]:
    query = db.session.query(Product)
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if is_active is not None:
        query = query.filter(Product.is_active.is_(is_active))
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")
    return product


def create_product(payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    get_category(patch["category_id"])
    product = Product(**patch)
    db.session.add(product)
    db.session.flush()
    return product


def update_product(product_id: int, payload: dict) -> Product:
    product = get_product(product_id)
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    if "category_id" in patch:
        get_category(patch["category_id"])
    for key, value in patch.items():
        setattr(product, key, value)
    db.session.flush()
    return product


def toggle_product(product_id: int) -> Product:
    product = get_product(product_id)
    product.is_active = not product.is_active
    db.session.flush()
    return product


def _cell_text(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def import_products(stream) -> dict:
    """
    Import products from the first sheet of an .xlsx workbook.

    Columns: name, category, unit; row 1 is a header. Unknown categories
    are created. Rows with missing fields are reported and skipped.
    """
    try:
        wb = load_workbook(stream, read_only=True, data_only=True)
    except Exception as e:
        raise ValidationError(f"Could not read workbook: {e}")

    ws = wb.worksheets[0] if wb.worksheets else None
    if ws is None:
        raise ValidationError("No worksheet found in file")

    imported = []
    errors = []
    categories: dict[str, Category] = {}

    for row_num, row in enumerate(ws.iter_rows(min_row=2, values_only=True), start=2):
        cells = list(row or ()) + [None, None, None]
        name, category_name, unit = (_cell_text(c) for c in cells[:3])
        if not name and not category_name and not unit:
            continue
        if not name or not category_name or not unit:
            errors.append({"row": row_num, "error": "Missing required fields"})
            continue
        if len(name) > 255 or len(category_name) > 255 or len(unit) > 32:
            errors.append({"row": row_num, "error": "Field too long"})
            continue

        key = category_name.lower()
        category = categories.get(key) or _find_category_by_name(category_name)
        if category is None:
            category = Category(name=category_name)
            db.session.add(category)
            db.session.flush()
        categories[key] = category

        product = Product(name=name, category_id=category.id, unit=unit, is_active=True)
        db.session.add(product)
        imported.append(product)

    wb.close()
    db.session.flush()
    return {"imported": len(imported), "errors": errors, "products": imported}


# =============================================================================
# SUPPLIERS
# =============================================================================

def list_suppliers(*, is_active: bool | None = None) -> list[Supplier]:
    query = db.session.query(Supplier)
    if is_active is not None:
        query = query.filter(Supplier.is_active.is_(is_active))
    return query.order_by(Supplier.name.asc(), Supplier.id.asc()).all()


def get_supplier(supplier_id) -> Supplier:
    supplier = db.session.get(Supplier, parse_int(supplier_id, "supplier_id"))
    if not supplier:
        raise NotFoundError("Supplier not found")
    return supplier


def create_supplier(payload: dict) -> Supplier:
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)
    supplier = Supplier(**patch)
    db.session.add(supplier)
    db.session.flush()
    return supplier


def update_supplier(supplier_id: int, payload: dict) -> Supplier:
    supplier = get_supplier(supplier_id)
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=True)
    for key, value in patch.items():
        setattr(supplier, key, value)
    db.session.flush()
    return supplier


def toggle_supplier(supplier_id: int) -> Supplier:
    supplier = get_supplier(supplier_id)
    supplier.is_active = not supplier.is_active
    db.session.flush()
    return supplier


# =============================================================================
# SUPPLIER PRICES
# =============================================================================

def list_supplier_prices(supplier_id: int) -> list[SupplierPrice]:
    """Quoted prices of one supplier, by product name."""
    supplier = get_supplier(supplier_id)
    return (
        db.session.query(SupplierPrice)
        .join(Product, Product.id == SupplierPrice.product_id)
        .filter(SupplierPrice.supplier_id == supplier.id)
        .order_by(Product.name.asc(), SupplierPrice.id.asc())
        .all()
    )


def set_supplier_price(supplier_id: int, product_id, price, username: str) -> SupplierPrice:
    """
    Upsert the supplier's price for a product (one row per pair).

    Two writers inserting the same pair at once collide on the unique
    constraint; the loser is replayed and updates the winner's row.
    """
    product_id = parse_int(product_id, "product_id")
    price = parse_money(price, "price")

    def _op():
        supplier = get_supplier(supplier_id)
        get_product(product_id)

        row = lock_for_update(
            db.session.query(SupplierPrice).filter_by(supplier_id=supplier.id, product_id=product_id)
        ).first()
        if row is None:
            row = SupplierPrice(supplier_id=supplier.id, product_id=product_id)
            db.session.add(row)
        row.price = price
        row.updated_by = username
        db.session.flush()
        return row

    return run_with_retry(_op, retry_on=LEDGER_RETRYABLE_ERRORS)
