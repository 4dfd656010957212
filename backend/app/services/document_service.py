# Overview: Document number allocation (purchase order numbers).

from __future__ import annotations

import re

from sqlalchemy import update

from ..extensions import db
from ..models import DocumentSequence, PurchaseOrder
from app.time_utils import utcnow


PO_PREFIX = "PO"
PO_NUMBER_PAD = 4


def _highest_existing_number(prefix: str) -> int:
    """Largest NNNN among existing '<prefix>-NNNN' purchase order numbers."""
    pattern = re.compile(rf"^{re.escape(prefix)}-(\d+)$")
    highest = 0
    rows = (
        db.session.query(PurchaseOrder.po_number)
        .filter(PurchaseOrder.po_number.like(f"{prefix}-%"))
        .all()
    )
    for (po_number,) in rows:
        match = pattern.match(po_number or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


def next_document_number(*, sequence_key: str, pad: int = PO_NUMBER_PAD) -> str:
    """
    Atomically allocate the next number of a sequence as '<sequence_key>-NNNN'.

    The sequence row is advanced with UPDATE next_number = next_number + 1
    inside the caller's transaction, so the row stays locked until the
    document using the number commits. On first use the row is seeded past
    the highest number already issued under the key. Two first-use inserts
    racing each other fail on the unique sequence_key with IntegrityError;
    the caller's run_with_retry replays and the loser then takes the UPDATE
    path.
    """
    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.sequence_key == sequence_key)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(sequence_key=sequence_key)
            .scalar()
        )
        number = current - 1
    else:
        number = _highest_existing_number(sequence_key) + 1
        db.session.add(DocumentSequence(sequence_key=sequence_key, next_number=number + 1))
        db.session.flush()

    return f"{sequence_key}-{number:0{pad}d}"


def next_po_number(year: int | None = None) -> str:
    """PO-<year>-NNNN; each calendar year starts again at 0001."""
    if year is None:
        year = utcnow().year
    return next_document_number(sequence_key=f"{PO_PREFIX}-{year}")
