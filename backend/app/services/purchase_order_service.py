# backend/app/services/purchase_order_service.py
"""
Purchase orders placed with suppliers and received into a warehouse.

LIFECYCLE:
1. DRAFT: items freely replaceable
2. SENT: document delivered to the supplier (email or chat)
3. PARTIALLY_RECEIVED / RECEIVED: derived from received_qty after each
   receiving batch; receiving stays open in RECEIVED for late corrections
4. CLOSED: terminal, reachable from any other status

Receiving moves stock supplier -> warehouse through the stock ledger,
one ReceiveRecord per receiving call.
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Iterable

from flask import current_app, has_app_context

from app.extensions import db
from app.models import (
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseRequest,
    ReceiveRecord,
    ReceiveRecordLine,
    Supplier,
)
from app.services import delivery_service, location_service, pdf_service, purchase_request_service, stock_service
from app.services.batch_result import (
    BatchResult,
    SKIP_EXCEEDS_REMAINING,
    SKIP_NON_POSITIVE_QUANTITY,
    SKIP_NOT_ON_ORDER,
)
from app.services.concurrency import LEDGER_RETRYABLE_ERRORS, lock_for_update, run_with_retry
from app.services.document_service import next_po_number
from app.services.line_items import parse_item_lines
from app.time_utils import utcnow
from app.validation import (
    CENTS,
    NotFoundError,
    StateConflictError,
    ValidationError,
    parse_date,
    parse_int,
    require_item_list,
)


# Purchase order status constants
PO_STATUS_DRAFT = "DRAFT"
PO_STATUS_SENT = "SENT"
PO_STATUS_PARTIALLY_RECEIVED = "PARTIALLY_RECEIVED"
PO_STATUS_RECEIVED = "RECEIVED"
PO_STATUS_CLOSED = "CLOSED"

PO_STATUSES = (
    PO_STATUS_DRAFT,
    PO_STATUS_SENT,
    PO_STATUS_PARTIALLY_RECEIVED,
    PO_STATUS_RECEIVED,
    PO_STATUS_CLOSED,
)
RECEIVABLE_STATUSES = (PO_STATUS_SENT, PO_STATUS_PARTIALLY_RECEIVED, PO_STATUS_RECEIVED)
OPEN_DELIVERY_STATUSES = (PO_STATUS_SENT, PO_STATUS_PARTIALLY_RECEIVED)


def recompute_po_status(items: Iterable, current_status: str) -> str:
    """
    Receipt status derived from item state.

    RECEIVED when every item has received_qty >= quantity,
    PARTIALLY_RECEIVED when any item has received_qty > 0, otherwise
    current_status unchanged.
    """
    items = list(items)
    if not items:
        return current_status
    if all(item.received_qty >= item.quantity for item in items):
        return PO_STATUS_RECEIVED
    if any(item.received_qty > 0 for item in items):
        return PO_STATUS_PARTIALLY_RECEIVED
    return current_status


def _lock_po(po_id: int) -> PurchaseOrder:
    po = lock_for_update(db.session.query(PurchaseOrder).filter_by(id=po_id)).first()
    if not po:
        raise NotFoundError("Purchase order not found")
    return po


def _over_receipt_allowed() -> bool:
    return bool(has_app_context() and current_app.config.get("ALLOW_OVER_RECEIPT"))


def _build_items(po: PurchaseOrder, items) -> None:
    """Replace po.items from a raw item list and recompute all totals."""
    lines = parse_item_lines(items, with_price=True)
    po.items.clear()
    db.session.flush()

    total = Decimal("0.00")
    for line in lines:
        line_total = (line.unit_price * line.quantity).quantize(CENTS)
        po.items.append(PurchaseOrderItem(
            product_id=line.product_id,
            quantity=line.quantity,
            unit_price=line.unit_price,
            total_price=line_total,
            received_qty=0,
        ))
        total += line_total
    po.total_amount = total


def create_purchase_order(
    *,
    username: str,
    supplier_id,
    items,
    note: str | None = None,
    delivery_date=None,
    purchase_request_id=None,
    warehouse_id=None,
) -> PurchaseOrder:
    """
    Create a DRAFT purchase order with a fresh PO-<year>-NNNN number.

    total_price = quantity x unit_price per line, total_amount = sum of
    lines. When purchase_request_id is given the request is linked and
    moved to IN_PROGRESS in the same transaction.
    """
    supplier_id = parse_int(supplier_id, "supplier_id")
    delivery = parse_date(delivery_date, "delivery_date")
    if purchase_request_id not in (None, ""):
        purchase_request_id = parse_int(purchase_request_id, "purchase_request_id")
    else:
        purchase_request_id = None

    def _op():
        supplier = db.session.get(Supplier, supplier_id)
        if not supplier:
            raise NotFoundError("Supplier not found")
        if not supplier.is_active:
            raise ValidationError("Supplier is not active")

        warehouse = location_service.resolve_warehouse(warehouse_id)

        pr = None
        if purchase_request_id is not None:
            pr = lock_for_update(db.session.query(PurchaseRequest).filter_by(id=purchase_request_id)).first()
            if not pr:
                raise NotFoundError("Purchase request not found")

        po = PurchaseOrder(
            po_number=next_po_number(),
            supplier_id=supplier.id,
            warehouse_id=warehouse.id,
            created_by=username,
            note=note,
            delivery_date=delivery,
            status=PO_STATUS_DRAFT,
        )
        db.session.add(po)
        _build_items(po, items)
        db.session.flush()

        if pr is not None:
            purchase_request_service.link_to_purchase_order(pr, po)

        return po

    return run_with_retry(_op, retry_on=LEDGER_RETRYABLE_ERRORS)


def update_draft_purchase_order(po_id: int, payload: dict) -> PurchaseOrder:
    """
    Edit a DRAFT order. Supplying items replaces the whole item list;
    note / delivery_date / supplier_id are updated when present.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    def _op():
        po = _lock_po(po_id)
        if po.status != PO_STATUS_DRAFT:
            raise StateConflictError("Can only update DRAFT purchase orders")

        if "supplier_id" in payload:
            supplier = db.session.get(Supplier, parse_int(payload["supplier_id"], "supplier_id"))
            if not supplier:
                raise NotFoundError("Supplier not found")
            if not supplier.is_active:
                raise ValidationError("Supplier is not active")
            po.supplier_id = supplier.id
        if "note" in payload:
            po.note = payload["note"]
        if "delivery_date" in payload:
            po.delivery_date = parse_date(payload["delivery_date"], "delivery_date")
        if "items" in payload:
            _build_items(po, payload["items"])

        db.session.flush()
        return po

    return run_with_retry(_op)


def render_purchase_order_pdf(po_id: int) -> tuple[str, bytes]:
    po = get_purchase_order(po_id)
    return f"{po.po_number}.pdf", pdf_service.render_purchase_order(po)


def send_purchase_order(po_id: int, method: str, username: str) -> PurchaseOrder:
    """
    Deliver the PO document to the supplier, then record the send.

    DRAFT moves to SENT; later non-CLOSED statuses keep their status and
    only sent_at / sent_via are refreshed. A failed delivery raises
    DeliveryError and changes nothing.
    """
    method = delivery_service.normalize_method(method)

    po = get_purchase_order(po_id)
    if po.status == PO_STATUS_CLOSED:
        raise StateConflictError("Cannot send a CLOSED purchase order")

    supplier = po.supplier
    if method == delivery_service.METHOD_EMAIL and not supplier.email:
        raise ValidationError("Supplier has no email")
    if method == delivery_service.METHOD_CHAT and not supplier.telegram_id:
        raise ValidationError("Supplier has no telegram ID")

    pdf = pdf_service.render_purchase_order(po)
    if method == delivery_service.METHOD_EMAIL:
        delivery_service.send_po_by_email(supplier.email, po.po_number, pdf)
    else:
        delivery_service.send_po_by_chat(supplier.telegram_id, po.po_number, pdf)

    def _op():
        locked = _lock_po(po_id)
        if locked.status == PO_STATUS_CLOSED:
            raise StateConflictError("Cannot send a CLOSED purchase order")
        if locked.status == PO_STATUS_DRAFT:
            locked.status = PO_STATUS_SENT
        locked.sent_at = utcnow()
        locked.sent_via = method
        db.session.flush()
        return locked

    return run_with_retry(_op)


def receive_purchase_order_items(
    po_id: int,
    items,
    username: str,
    note: str | None = None,
    photo_url: str | None = None,
) -> BatchResult:
    """
    Receive goods into the order's warehouse.

    Lines are processed in input order; each is applied in full or skipped:
    - non_positive_quantity: received_qty <= 0
    - not_on_order: product not on the order
    - exceeds_remaining: more than quantity - received_qty (unless
      ALLOW_OVER_RECEIPT is enabled)

    One ReceiveRecord per call lists the applied lines (none is written when
    every line is skipped). received_at is set
    when the order transitions into RECEIVED.
    """
    items = require_item_list(items)
    allow_over = _over_receipt_allowed()

    def _op():
        po = _lock_po(po_id)
        if po.status not in RECEIVABLE_STATUSES:
            raise StateConflictError(
                "Can only receive items for SENT, PARTIALLY_RECEIVED or RECEIVED orders"
            )

        result = BatchResult(document=po, previous_status=po.status)
        by_product = {item.product_id: item for item in po.items}
        record = None

        for entry in items:
            product_id = parse_int(entry.get("product_id"), "product_id")
            raw_qty = entry.get("received_qty", entry.get("quantity"))
            quantity = parse_int(raw_qty, "received_qty")

            if quantity <= 0:
                result.skip(product_id, quantity, SKIP_NON_POSITIVE_QUANTITY)
                continue

            item = by_product.get(product_id)
            if item is None:
                result.skip(product_id, quantity, SKIP_NOT_ON_ORDER)
                continue

            if not allow_over and item.received_qty + quantity > item.quantity:
                result.skip(product_id, quantity, SKIP_EXCEEDS_REMAINING, available=item.remaining)
                continue

            if record is None:
                record = ReceiveRecord(po_id=po.id, received_by=username, note=note, photo_url=photo_url)
                db.session.add(record)
                result.records.append(record)

            item.received_qty += quantity
            record.lines.append(ReceiveRecordLine(product_id=product_id, quantity=quantity))
            stock_service.apply_delta(po.warehouse_id, product_id, quantity)
            result.apply(product_id, quantity)

        new_status = recompute_po_status(po.items, po.status)
        if new_status != po.status:
            po.status = new_status
            if new_status == PO_STATUS_RECEIVED:
                po.received_at = utcnow()

        db.session.flush()
        return result

    return run_with_retry(_op, retry_on=LEDGER_RETRYABLE_ERRORS)


def close_purchase_order(po_id: int, username: str) -> PurchaseOrder:
    def _op():
        po = _lock_po(po_id)
        if po.status == PO_STATUS_CLOSED:
            raise StateConflictError("Purchase order is already closed")
        po.status = PO_STATUS_CLOSED
        po.closed_at = utcnow()
        po.closed_by = username
        db.session.flush()
        return po

    return run_with_retry(_op)


def list_purchase_orders(*, status: str | None = None, supplier_id: int | None = None) -> list[PurchaseOrder]:
    query = db.session.query(PurchaseOrder)
    if status:
        status = status.strip().upper()
        if status not in PO_STATUSES:
            raise ValidationError("Invalid status filter")
        query = query.filter(PurchaseOrder.status == status)
    if supplier_id is not None:
        query = query.filter(PurchaseOrder.supplier_id == supplier_id)
    return query.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()).all()


def get_purchase_order(po_id: int) -> PurchaseOrder:
    po = db.session.get(PurchaseOrder, po_id)
    if not po:
        raise NotFoundError("Purchase order not found")
    return po


def find_overdue_purchase_orders(today: date | None = None) -> list[PurchaseOrder]:
    """SENT / PARTIALLY_RECEIVED orders whose delivery date is before today."""
    if today is None:
        today = utcnow().date()
    return (
        db.session.query(PurchaseOrder)
        .filter(
            PurchaseOrder.status.in_(OPEN_DELIVERY_STATUSES),
            PurchaseOrder.delivery_date.isnot(None),
            PurchaseOrder.delivery_date < today,
        )
        .order_by(PurchaseOrder.delivery_date.asc(), PurchaseOrder.id.asc())
        .all()
    )
