from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


LOCATION_TYPE_WAREHOUSE = "WAREHOUSE"
LOCATION_TYPE_SITE = "SITE"
LOCATION_TYPES = {LOCATION_TYPE_WAREHOUSE, LOCATION_TYPE_SITE}


class Location(db.Model):
    """
    A place that holds stock.

    WAREHOUSE locations are supply hubs; SITE locations consume stock and
    are served by a warehouse through replenishment requests.
    """
    __tablename__ = "locations"
    __table_args__ = (
        db.Index("ix_locations_type_active", "type", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(16), nullable=False, default=LOCATION_TYPE_SITE)
    address = db.Column(db.Text, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Location id={self.id} name={self.name!r} type={self.type}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "address": self.address,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class SupervisorLocation(db.Model):
    """Binds a supervisor (identity-service username) to a location."""
    __tablename__ = "supervisor_locations"
    __table_args__ = (
        db.UniqueConstraint("supervisor_username", "location_id", name="uq_supervisor_locations_user_location"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supervisor_username = db.Column(db.String(128), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)

    assigned_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    location = db.relationship("Location", backref=db.backref("supervisors", lazy=True, cascade="all, delete-orphan"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supervisor_username": self.supervisor_username,
            "location_id": self.location_id,
            "location": self.location.to_dict() if self.location else None,
            "assigned_at": to_utc_z(self.assigned_at),
        }
