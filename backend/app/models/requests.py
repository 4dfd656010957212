from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class Request(db.Model):
    """
    Replenishment request from a SITE location to its serving warehouse.

    LIFECYCLE:
    1. PENDING: created by a supervisor of the site
    2. APPROVED / REJECTED: reviewed by a warehouse manager
    3. PARTIAL: some items issued
    4. FULFILLED: every item issued in full

    REJECTED and FULFILLED are terminal. PARTIAL/FULFILLED are derived
    from item state after each issuance batch.
    """
    __tablename__ = "requests"
    __table_args__ = (
        db.Index("ix_requests_location_status", "location_id", "status"),
        db.Index("ix_requests_created_by", "created_by"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)

    created_by = db.Column(db.String(128), nullable=False)
    note = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)

    reviewed_by = db.Column(db.String(128), nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    fulfilled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    location = db.relationship("Location", foreign_keys=[location_id])
    warehouse = db.relationship("Location", foreign_keys=[warehouse_id])
    items = db.relationship(
        "RequestItem",
        backref="request",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="RequestItem.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Request id={self.id} location_id={self.location_id} status={self.status}>"

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "location_id": self.location_id,
            "location": self.location.to_dict() if self.location else None,
            "warehouse_id": self.warehouse_id,
            "created_by": self.created_by,
            "note": self.note,
            "status": self.status,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": to_utc_z(self.reviewed_at),
            "fulfilled_at": to_utc_z(self.fulfilled_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class RequestItem(db.Model):
    __tablename__ = "request_items"
    __table_args__ = (
        db.UniqueConstraint("request_id", "product_id", name="uq_request_items_request_product"),
        db.CheckConstraint("quantity > 0", name="ck_request_items_quantity_positive"),
        db.CheckConstraint("issued >= 0 AND issued <= quantity", name="ck_request_items_issued_range"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.Integer, db.ForeignKey("requests.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    issued = db.Column(db.Integer, nullable=False, default=0)

    product = db.relationship("Product")

    @property
    def remaining(self) -> int:
        return self.quantity - self.issued

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "request_id": self.request_id,
            "product_id": self.product_id,
            "product": self.product.to_dict() if self.product else None,
            "quantity": self.quantity,
            "issued": self.issued,
        }


class IssueRecord(db.Model):
    """
    Append-only record of stock handed from the warehouse to a site
    against a request. Never updated or deleted.
    """
    __tablename__ = "issue_records"
    __table_args__ = (
        db.Index("ix_issue_records_request", "request_id"),
        db.Index("ix_issue_records_issued_at", "issued_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.Integer, db.ForeignKey("requests.id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    issued_by = db.Column(db.String(128), nullable=False)
    note = db.Column(db.Text, nullable=True)

    issued_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    request = db.relationship("Request", backref=db.backref("issue_records", lazy=True))
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "request_id": self.request_id,
            "location_id": self.request.location_id if self.request else None,
            "product_id": self.product_id,
            "product": self.product.to_dict() if self.product else None,
            "quantity": self.quantity,
            "issued_by": self.issued_by,
            "note": self.note,
            "issued_at": to_utc_z(self.issued_at),
        }
