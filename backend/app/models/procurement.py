from __future__ import annotations

from ..extensions import db
from app.time_utils import to_iso_date, to_utc_z
from app.validation import format_money


class PurchaseRequest(db.Model):
    """
    Internal request from the warehouse to procurement to buy products.

    LIFECYCLE: PENDING -> IN_PROGRESS (linked to a purchase order or moved
    by procurement) -> DONE.
    """
    __tablename__ = "purchase_requests"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    created_by = db.Column(db.String(128), nullable=False, index=True)
    note = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)
    po_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    purchase_order = db.relationship("PurchaseOrder", backref=db.backref("purchase_requests", lazy=True))
    items = db.relationship(
        "PurchaseRequestItem",
        backref="purchase_request",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="PurchaseRequestItem.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "created_by": self.created_by,
            "note": self.note,
            "status": self.status,
            "po_id": self.po_id,
            "po_number": self.purchase_order.po_number if self.purchase_order else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "items": [item.to_dict() for item in self.items],
        }


class PurchaseRequestItem(db.Model):
    __tablename__ = "purchase_request_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_purchase_request_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_request_id = db.Column(db.Integer, db.ForeignKey("purchase_requests.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_request_id": self.purchase_request_id,
            "product_id": self.product_id,
            "product": self.product.to_dict() if self.product else None,
            "quantity": self.quantity,
        }


class PurchaseOrder(db.Model):
    """
    Order placed with a supplier, received into a warehouse.

    LIFECYCLE:
    1. DRAFT: editable, items may be replaced
    2. SENT: document delivered to the supplier (email or chat)
    3. PARTIALLY_RECEIVED / RECEIVED: derived from item receipt state
    4. CLOSED: terminal, reachable from any other status

    Money is stored as Numeric(12, 2); line totals and total_amount are
    computed server-side from quantity x unit_price.
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.Index("ix_purchase_orders_supplier_status", "supplier_id", "status"),
        db.Index("ix_purchase_orders_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    po_number = db.Column(db.String(32), nullable=False, unique=True, index=True)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)

    created_by = db.Column(db.String(128), nullable=False)
    note = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(24), nullable=False, default="DRAFT", index=True)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    delivery_date = db.Column(db.Date, nullable=True)

    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    sent_via = db.Column(db.String(16), nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_by = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    supplier = db.relationship("Supplier", backref=db.backref("purchase_orders", lazy=True))
    warehouse = db.relationship("Location")
    items = db.relationship(
        "PurchaseOrderItem",
        backref="purchase_order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="PurchaseOrderItem.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<PurchaseOrder id={self.id} po_number={self.po_number} status={self.status}>"

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "po_number": self.po_number,
            "supplier_id": self.supplier_id,
            "supplier": self.supplier.to_dict() if self.supplier else None,
            "warehouse_id": self.warehouse_id,
            "created_by": self.created_by,
            "note": self.note,
            "status": self.status,
            "total_amount": format_money(self.total_amount),
            "delivery_date": to_iso_date(self.delivery_date),
            "sent_at": to_utc_z(self.sent_at),
            "sent_via": self.sent_via,
            "received_at": to_utc_z(self.received_at),
            "closed_at": to_utc_z(self.closed_at),
            "closed_by": self.closed_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class PurchaseOrderItem(db.Model):
    __tablename__ = "purchase_order_items"
    __table_args__ = (
        db.UniqueConstraint("po_id", "product_id", name="uq_purchase_order_items_po_product"),
        db.CheckConstraint("quantity > 0", name="ck_purchase_order_items_quantity_positive"),
        db.CheckConstraint("received_qty >= 0", name="ck_purchase_order_items_received_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    po_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    total_price = db.Column(db.Numeric(12, 2), nullable=False)
    received_qty = db.Column(db.Integer, nullable=False, default=0)

    product = db.relationship("Product")

    @property
    def remaining(self) -> int:
        return max(0, self.quantity - self.received_qty)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "po_id": self.po_id,
            "product_id": self.product_id,
            "product": self.product.to_dict() if self.product else None,
            "quantity": self.quantity,
            "unit_price": format_money(self.unit_price),
            "total_price": format_money(self.total_price),
            "received_qty": self.received_qty,
        }


class ReceiveRecord(db.Model):
    """
    One receiving action against a purchase order.

    The lines list exactly what this action put into the warehouse; the
    running totals live on PurchaseOrderItem.received_qty.
    """
    __tablename__ = "receive_records"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    po_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)

    received_by = db.Column(db.String(128), nullable=False)
    note = db.Column(db.Text, nullable=True)
    photo_url = db.Column(db.String(512), nullable=True)

    received_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    purchase_order = db.relationship("PurchaseOrder", backref=db.backref("receive_records", lazy=True))
    lines = db.relationship(
        "ReceiveRecordLine",
        backref="receive_record",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ReceiveRecordLine.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "po_id": self.po_id,
            "received_by": self.received_by,
            "note": self.note,
            "photo_url": self.photo_url,
            "received_at": to_utc_z(self.received_at),
            "lines": [line.to_dict() for line in self.lines],
        }


class ReceiveRecordLine(db.Model):
    __tablename__ = "receive_record_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    receive_record_id = db.Column(db.Integer, db.ForeignKey("receive_records.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "receive_record_id": self.receive_record_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
        }
