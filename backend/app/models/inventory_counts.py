from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class Inventory(db.Model):
    """
    Physical stock count at one location.

    LIFECYCLE:
    1. IN_PROGRESS: snapshot taken, actual quantities being entered
    2. COMPLETED: differences computed, ledger overwritten with actuals

    system_qty is frozen at start; stock moved at the location while the
    count is open is overwritten by the actuals on close.
    """
    __tablename__ = "inventories"
    __table_args__ = (
        db.Index("ix_inventories_location_status", "location_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)

    conducted_by = db.Column(db.String(128), nullable=False)
    note = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="IN_PROGRESS", index=True)

    started_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_by = db.Column(db.String(128), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    location = db.relationship("Location")
    items = db.relationship(
        "InventoryItem",
        backref="inventory",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="InventoryItem.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "location_id": self.location_id,
            "location": self.location.to_dict() if self.location else None,
            "conducted_by": self.conducted_by,
            "note": self.note,
            "status": self.status,
            "started_at": to_utc_z(self.started_at),
            "closed_at": to_utc_z(self.closed_at),
            "closed_by": self.closed_by,
            "version_id": self.version_id,
        }
        if include_items:
            items = sorted(self.items, key=lambda i: (i.product.name if i.product else "", i.id))
            data["items"] = [item.to_dict() for item in items]
        return data


class InventoryItem(db.Model):
    """
    One counted product. actual_qty starts at 0 (not yet counted);
    difference stays NULL until the count is closed.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.UniqueConstraint("inventory_id", "product_id", name="uq_inventory_items_inventory_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_id = db.Column(db.Integer, db.ForeignKey("inventories.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    system_qty = db.Column(db.Integer, nullable=False)
    actual_qty = db.Column(db.Integer, nullable=False, default=0)
    difference = db.Column(db.Integer, nullable=True)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventory_id": self.inventory_id,
            "product_id": self.product_id,
            "product": self.product.to_dict() if self.product else None,
            "system_qty": self.system_qty,
            "actual_qty": self.actual_qty,
            "difference": self.difference,
        }
