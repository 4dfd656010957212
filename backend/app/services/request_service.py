# backend/app/services/request_service.py
"""
Replenishment requests: a SITE asks its warehouse for stock.

LIFECYCLE:
1. PENDING: created by a supervisor assigned to the site
2. APPROVED / REJECTED: reviewed by a warehouse manager
3. PARTIAL: some items issued
4. FULFILLED: every item issued in full

Issuance moves stock warehouse -> site through the stock ledger, one
IssueRecord per issued line. A batch never partially issues a line: lines
that cannot be served in full are skipped and reported.
"""
from __future__ import annotations

from typing import Iterable

from app.extensions import db
from app.models import IssueRecord, Location, Request, RequestItem, StockItem, LOCATION_TYPE_SITE
from app.permissions import Role
from app.services import location_service, stock_service
from app.services.batch_result import (
    BatchResult,
    SKIP_EXCEEDS_REMAINING,
    SKIP_INSUFFICIENT_STOCK,
    SKIP_NON_POSITIVE_QUANTITY,
    SKIP_NOT_ON_REQUEST,
)
from app.services.concurrency import LEDGER_RETRYABLE_ERRORS, lock_for_update, run_with_retry
from app.services.line_items import parse_item_lines
from app.services.pagination import paginate_query
from app.time_utils import utcnow
from app.validation import (
    AccessDeniedError,
    NotFoundError,
    StateConflictError,
    ValidationError,
    parse_int,
    require_item_list,
)


# Request status constants
REQUEST_STATUS_PENDING = "PENDING"
REQUEST_STATUS_APPROVED = "APPROVED"
REQUEST_STATUS_REJECTED = "REJECTED"
REQUEST_STATUS_PARTIAL = "PARTIAL"
REQUEST_STATUS_FULFILLED = "FULFILLED"

REQUEST_STATUSES = (
    REQUEST_STATUS_PENDING,
    REQUEST_STATUS_APPROVED,
    REQUEST_STATUS_REJECTED,
    REQUEST_STATUS_PARTIAL,
    REQUEST_STATUS_FULFILLED,
)
REVIEW_STATUSES = (REQUEST_STATUS_APPROVED, REQUEST_STATUS_REJECTED)
ISSUABLE_STATUSES = (REQUEST_STATUS_APPROVED, REQUEST_STATUS_PARTIAL)


def recompute_request_status(items: Iterable, current_status: str) -> str:
    """
    Fulfilment status derived from item state.

    FULFILLED when every item has issued >= quantity, PARTIAL when any
    item has issued > 0, otherwise current_status unchanged.
    """
    items = list(items)
    if not items:
        return current_status
    if all(item.issued >= item.quantity for item in items):
        return REQUEST_STATUS_FULFILLED
    if any(item.issued > 0 for item in items):
        return REQUEST_STATUS_PARTIAL
    return current_status


def _lock_request(request_id: int) -> Request:
    req = lock_for_update(db.session.query(Request).filter_by(id=request_id)).first()
    if not req:
        raise NotFoundError("Request not found")
    return req


def create_request(
    *,
    username: str,
    location_id,
    items,
    note: str | None = None,
    warehouse_id=None,
) -> Request:
    """
    Create a PENDING request for a SITE the supervisor is assigned to.

    Duplicate products in items are merged by summing their quantities.
    The serving warehouse is resolved now and stored on the request.
    """
    location_id = parse_int(location_id, "location_id")

    def _op():
        location = db.session.get(Location, location_id)
        if not location:
            raise NotFoundError("Location not found")
        if location.type != LOCATION_TYPE_SITE:
            raise ValidationError("Requests can only be created for SITE locations")
        if not location.is_active:
            raise ValidationError("Location is not active")

        location_service.ensure_supervisor_of(username, location_id)

        lines = parse_item_lines(items)
        warehouse = location_service.resolve_warehouse(warehouse_id)

        req = Request(
            location_id=location_id,
            warehouse_id=warehouse.id,
            created_by=username,
            note=note,
            status=REQUEST_STATUS_PENDING,
        )
        for line in lines:
            req.items.append(RequestItem(product_id=line.product_id, quantity=line.quantity, issued=0))

        db.session.add(req)
        db.session.flush()
        return req

    return run_with_retry(_op)


def set_request_status(request_id: int, status: str, username: str) -> Request:
    """Approve or reject a PENDING request."""
    status = (status or "").strip().upper()
    if status not in REVIEW_STATUSES:
        raise ValidationError("Invalid status")

    def _op():
        req = _lock_request(request_id)
        if req.status != REQUEST_STATUS_PENDING:
            raise StateConflictError("Can only change status of PENDING requests")

        req.status = status
        req.reviewed_by = username
        req.reviewed_at = utcnow()
        db.session.flush()
        return req

    return run_with_retry(_op)


def issue_request_items(request_id: int, items, username: str, note: str | None = None) -> BatchResult:
    """
    Issue stock from the request's warehouse to its site.

    Lines are processed in input order. Each line is either applied in
    full or skipped with a reason:
    - non_positive_quantity: quantity <= 0
    - not_on_request: product not on the request
    - exceeds_remaining: more than quantity - issued
    - insufficient_stock: warehouse holds less than quantity

    The whole batch is one transaction; the request status is recomputed
    from item state afterwards.
    """
    items = require_item_list(items)

    def _op():
        req = _lock_request(request_id)
        if req.status not in ISSUABLE_STATUSES:
            raise StateConflictError("Can only issue items for APPROVED or PARTIAL requests")

        result = BatchResult(document=req, previous_status=req.status)
        by_product = {item.product_id: item for item in req.items}
        low_product_ids: list[int] = []

        for entry in items:
            product_id = parse_int(entry.get("product_id"), "product_id")
            quantity = parse_int(entry.get("quantity"), "quantity")

            if quantity <= 0:
                result.skip(product_id, quantity, SKIP_NON_POSITIVE_QUANTITY)
                continue

            item = by_product.get(product_id)
            if item is None:
                result.skip(product_id, quantity, SKIP_NOT_ON_REQUEST)
                continue

            if quantity > item.remaining:
                result.skip(product_id, quantity, SKIP_EXCEEDS_REMAINING, available=item.remaining)
                continue

            available = stock_service.get_quantity(req.warehouse_id, product_id, lock=True)
            if available < quantity:
                result.skip(product_id, quantity, SKIP_INSUFFICIENT_STOCK, available=available)
                continue

            record = IssueRecord(
                request_id=req.id,
                product_id=product_id,
                quantity=quantity,
                issued_by=username,
                note=note,
            )
            db.session.add(record)

            warehouse_qty = stock_service.apply_delta(req.warehouse_id, product_id, -quantity)
            stock_service.apply_delta(req.location_id, product_id, quantity)
            item.issued += quantity

            result.apply(product_id, quantity)
            result.records.append(record)
            if warehouse_qty <= 0 and product_id not in low_product_ids:
                low_product_ids.append(product_id)

        new_status = recompute_request_status(req.items, req.status)
        if new_status != req.status:
            req.status = new_status
            if new_status == REQUEST_STATUS_FULFILLED:
                req.fulfilled_at = utcnow()

        db.session.flush()
        if low_product_ids:
            result.low_stock = (
                db.session.query(StockItem)
                .filter(StockItem.location_id == req.warehouse_id, StockItem.product_id.in_(low_product_ids))
                .all()
            )
        return result

    return run_with_retry(_op, retry_on=LEDGER_RETRYABLE_ERRORS)


def autofill_request(*, username: str, location_id) -> list[dict]:
    """
    Suggested request lines for a site: limit - quantity for every ledger
    row with a limit, keeping only positive suggestions.
    """
    location_id = parse_int(location_id, "location_id")
    location_service.ensure_supervisor_of(username, location_id)

    rows = (
        db.session.query(StockItem)
        .filter(StockItem.location_id == location_id, StockItem.limit_qty.isnot(None))
        .order_by(StockItem.product_id.asc())
        .all()
    )

    suggestions = []
    for row in rows:
        quantity = max(0, row.limit_qty - row.quantity)
        if quantity <= 0:
            continue
        suggestions.append({
            "product_id": row.product_id,
            "product": row.product.to_dict() if row.product else None,
            "current_qty": row.quantity,
            "limit_qty": row.limit_qty,
            "quantity": quantity,
        })
    return suggestions


def list_requests(
    *,
    username: str,
    role: str,
    status: str | None = None,
    location_id: int | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """Newest first. Supervisors only see the requests they created."""
    query = db.session.query(Request)
    if role == Role.SUPERVISOR:
        query = query.filter(Request.created_by == username)
    if status:
        status = status.strip().upper()
        if status not in REQUEST_STATUSES:
            raise ValidationError("Invalid status filter")
        query = query.filter(Request.status == status)
    if location_id is not None:
        query = query.filter(Request.location_id == location_id)

    query = query.order_by(Request.created_at.desc(), Request.id.desc())
    return paginate_query(query, page=page, per_page=per_page, serialize=lambda r: r.to_dict())


def get_request(request_id: int, *, username: str, role: str) -> Request:
    req = db.session.get(Request, request_id)
    if not req:
        raise NotFoundError("Request not found")
    if role == Role.SUPERVISOR and req.created_by != username:
        raise AccessDeniedError("Access denied")
    return req


def list_issue_records(*, request_id: int | None = None, limit: int = 200) -> list[IssueRecord]:
    query = db.session.query(IssueRecord)
    if request_id is not None:
        query = query.filter(IssueRecord.request_id == request_id)
    limit = max(1, min(limit, 1000))
    return query.order_by(IssueRecord.issued_at.desc(), IssueRecord.id.desc()).limit(limit).all()


def get_issue_record(issue_id: int) -> IssueRecord:
    record = db.session.get(IssueRecord, issue_id)
    if not record:
        raise NotFoundError("Issue record not found")
    return record
