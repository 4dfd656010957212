from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class StockItem(db.Model):
    """
    Stock ledger row: on-hand quantity of one product at one location.

    quantity is written only through app.services.stock_service
    (apply_delta / set_absolute). Everything else reads it.

    limit_qty is the target level for SITE locations (autofill suggests
    limit - quantity); warehouses do not carry limits.
    """
    __tablename__ = "stock_items"
    __table_args__ = (
        db.UniqueConstraint("location_id", "product_id", name="uq_stock_items_location_product"),
        db.Index("ix_stock_items_product", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    limit_qty = db.Column(db.Integer, nullable=True)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    location = db.relationship("Location")
    product = db.relationship("Product")

    def __repr__(self) -> str:
        return f"<StockItem location_id={self.location_id} product_id={self.product_id} qty={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location_id": self.location_id,
            "location": self.location.to_dict() if self.location else None,
            "product_id": self.product_id,
            "product": self.product.to_dict() if self.product else None,
            "quantity": self.quantity,
            "limit_qty": self.limit_qty,
            "updated_at": to_utc_z(self.updated_at),
        }
