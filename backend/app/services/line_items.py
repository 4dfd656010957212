# Overview: Parsing of {product_id, quantity[, unit_price]} item lists for workflow documents.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from ..extensions import db
from ..models import Product
from ..validation import ValidationError, parse_int, parse_money, require_item_list


@dataclass
class ItemLine:
    product_id: int
    quantity: int
    unit_price: Optional[Decimal] = None


def parse_item_lines(items, *, with_price: bool = False, field: str = "items") -> list[ItemLine]:
    """
    Validate a create/update item list.

    - non-empty list of objects
    - integer quantity > 0, product exists and is active
    - with_price: unit_price >= 0, rounded to cents
    - the same product listed twice is merged into one line (quantities
      summed); with prices the two lines must agree on unit_price

    Lines keep the order of first appearance.
    """
    items = require_item_list(items, field)

    merged: dict[int, ItemLine] = {}
    for entry in items:
        product_id = parse_int(entry.get("product_id"), "product_id")
        quantity = parse_int(entry.get("quantity"), "quantity")
        if quantity <= 0:
            raise ValidationError("quantity must be > 0", product_id=product_id)

        unit_price = None
        if with_price:
            unit_price = parse_money(entry.get("unit_price"), "unit_price")

        line = merged.get(product_id)
        if line is None:
            merged[product_id] = ItemLine(product_id=product_id, quantity=quantity, unit_price=unit_price)
            continue
        if with_price and line.unit_price != unit_price:
            raise ValidationError("Conflicting unit_price for the same product", product_id=product_id)
        line.quantity += quantity

    found = {
        row.id: row
        for row in db.session.query(Product).filter(Product.id.in_(list(merged))).all()
    }
    for product_id in merged:
        product = found.get(product_id)
        if product is None:
            raise ValidationError("Product not found", product_id=product_id)
        if not product.is_active:
            raise ValidationError("Product is not active", product_id=product_id)

    return list(merged.values())
