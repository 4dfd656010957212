from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class DocumentSequence(db.Model):
    """
    Atomic document number sequences.

    One row per sequence key (e.g. "PO-2025"); next_number is advanced with
    an UPDATE ... SET next_number = next_number + 1 inside the transaction
    that creates the document.
    """
    __tablename__ = "document_sequences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sequence_key = db.Column(db.String(32), nullable=False, unique=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sequence_key": self.sequence_key,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
