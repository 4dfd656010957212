# Overview: Purchase requests: the warehouse asks procurement to buy products.

"""
LIFECYCLE: PENDING -> IN_PROGRESS | DONE

Only PENDING requests change status through set_purchase_request_status.
Linking to a purchase order moves a PENDING request to IN_PROGRESS and
records po_id; a request is linked at most once and never once DONE.
"""

from __future__ import annotations

from ..extensions import db
from ..models import PurchaseOrder, PurchaseRequest, PurchaseRequestItem
from .concurrency import lock_for_update, run_with_retry
from .line_items import parse_item_lines
from ..validation import NotFoundError, StateConflictError, ValidationError


PR_STATUS_PENDING = "PENDING"
PR_STATUS_IN_PROGRESS = "IN_PROGRESS"
PR_STATUS_DONE = "DONE"

PR_STATUSES = (PR_STATUS_PENDING, PR_STATUS_IN_PROGRESS, PR_STATUS_DONE)
PR_TARGET_STATUSES = (PR_STATUS_IN_PROGRESS, PR_STATUS_DONE)


def _lock_purchase_request(purchase_request_id: int) -> PurchaseRequest:
    pr = lock_for_update(db.session.query(PurchaseRequest).filter_by(id=purchase_request_id)).first()
    if not pr:
        raise NotFoundError("Purchase request not found")
    return pr


def create_purchase_request(*, username: str, items, note: str | None = None) -> PurchaseRequest:
    def _op():
        lines = parse_item_lines(items)
        pr = PurchaseRequest(created_by=username, note=note, status=PR_STATUS_PENDING)
        for line in lines:
            pr.items.append(PurchaseRequestItem(product_id=line.product_id, quantity=line.quantity))
        db.session.add(pr)
        db.session.flush()
        return pr

    return run_with_retry(_op)


def set_purchase_request_status(purchase_request_id: int, status: str, username: str) -> PurchaseRequest:
    status = (status or "").strip().upper()
    if status not in PR_TARGET_STATUSES:
        raise ValidationError("Invalid status")

    def _op():
        pr = _lock_purchase_request(purchase_request_id)
        if pr.status != PR_STATUS_PENDING:
            raise StateConflictError("Can only change status of PENDING requests")
        pr.status = status
        db.session.flush()
        return pr

    return run_with_retry(_op)


def link_to_purchase_order(pr: PurchaseRequest, po: PurchaseOrder) -> PurchaseRequest:
    """
    Attach a purchase order to a request and advance it to IN_PROGRESS.

    Runs inside the caller's transaction (purchase order creation).
    """
    if pr.status == PR_STATUS_DONE:
        raise StateConflictError("Purchase request is already DONE")
    if pr.po_id is not None:
        raise StateConflictError("Purchase request is already linked to a purchase order")

    pr.po_id = po.id
    pr.status = PR_STATUS_IN_PROGRESS
    db.session.flush()
    return pr


def list_purchase_requests(*, status: str | None = None) -> list[PurchaseRequest]:
    query = db.session.query(PurchaseRequest)
    if status:
        status = status.strip().upper()
        if status not in PR_STATUSES:
            raise ValidationError("Invalid status filter")
        query = query.filter(PurchaseRequest.status == status)
    return query.order_by(PurchaseRequest.created_at.desc(), PurchaseRequest.id.desc()).all()


def get_purchase_request(purchase_request_id: int) -> PurchaseRequest:
    pr = db.session.get(PurchaseRequest, purchase_request_id)
    if not pr:
        raise NotFoundError("Purchase request not found")
    return pr
