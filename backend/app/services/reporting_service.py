# Overview: Read-only report projections and their Excel exports.

from __future__ import annotations

from datetime import datetime, time, timedelta
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from app.extensions import db
from app.models import (
    Category,
    IssueRecord,
    Location,
    Product,
    PurchaseOrder,
    Request,
    StockItem,
)
from app.permissions import Role
from app.services import location_service
from app.services.purchase_order_service import PO_STATUSES
from app.services.request_service import REQUEST_STATUSES
from app.time_utils import to_iso_date, utcnow
from app.validation import AccessDeniedError, ValidationError, format_money, parse_date


XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _date_range(start, end) -> tuple[datetime | None, datetime | None]:
    """Inclusive date range; the end date covers its whole day."""
    start_d = parse_date(start, "start_date")
    end_d = parse_date(end, "end_date")
    if start_d and end_d and start_d > end_d:
        raise ValidationError("start_date must be on or before end_date")
    start_dt = datetime.combine(start_d, time.min) if start_d else None
    end_dt = datetime.combine(end_d + timedelta(days=1), time.min) if end_d else None
    return start_dt, end_dt


def _scope_locations(username: str, role: str, location_id: int | None) -> list[int] | None:
    """
    Location ids a report may read. None means unrestricted.

    Supervisors are limited to their assigned locations.
    """
    if role != Role.SUPERVISOR:
        return [location_id] if location_id is not None else None
    allowed = location_service.supervisor_location_ids(username)
    if location_id is not None:
        if location_id not in allowed:
            raise AccessDeniedError("Access denied to this location")
        return [location_id]
    return allowed


def _check_status(status: str | None, allowed) -> str | None:
    if not status:
        return None
    status = status.strip().upper()
    if status not in allowed:
        raise ValidationError("Invalid status filter")
    return status


# =============================================================================
# REPORTS
# =============================================================================

def stock_report(*, username: str, role: str, location_id: int | None = None) -> list[dict]:
    """Ledger rows ordered by location, category and product name."""
    scope = _scope_locations(username, role, location_id)
    query = (
        db.session.query(StockItem)
        .join(Location, StockItem.location_id == Location.id)
        .join(Product, StockItem.product_id == Product.id)
        .join(Category, Product.category_id == Category.id)
    )
    if scope is not None:
        if not scope:
            return []
        query = query.filter(StockItem.location_id.in_(scope))
    rows = query.order_by(Location.name.asc(), Category.name.asc(), Product.name.asc()).all()
    return [
        {
            "location_id": row.location_id,
            "location": row.location.name,
            "category": row.product.category.name if row.product.category else None,
            "product_id": row.product_id,
            "product": row.product.name,
            "unit": row.product.unit,
            "quantity": row.quantity,
            "limit_qty": row.limit_qty,
        }
        for row in rows
    ]


def consumption_report(
    *,
    username: str,
    role: str,
    start_date=None,
    end_date=None,
    location_id: int | None = None,
) -> list[dict]:
    """Issue records (stock handed to sites) in a date range, oldest first."""
    start_dt, end_dt = _date_range(start_date, end_date)
    scope = _scope_locations(username, role, location_id)

    query = db.session.query(IssueRecord).join(Request, IssueRecord.request_id == Request.id)
    if scope is not None:
        if not scope:
            return []
        query = query.filter(Request.location_id.in_(scope))
    if start_dt:
        query = query.filter(IssueRecord.issued_at >= start_dt)
    if end_dt:
        query = query.filter(IssueRecord.issued_at < end_dt)

    records = query.order_by(IssueRecord.issued_at.asc(), IssueRecord.id.asc()).all()
    return [
        {
            "date": to_iso_date(record.issued_at.date()) if record.issued_at else None,
            "issue_id": record.id,
            "request_id": record.request_id,
            "location_id": record.request.location_id,
            "location": record.request.location.name if record.request.location else None,
            "category": record.product.category.name if record.product.category else None,
            "product_id": record.product_id,
            "product": record.product.name,
            "unit": record.product.unit,
            "quantity": record.quantity,
            "issued_by": record.issued_by,
        }
        for record in records
    ]


def purchases_report(
    *,
    start_date=None,
    end_date=None,
    supplier_id: int | None = None,
    status: str | None = None,
) -> list[dict]:
    """Purchase order lines in a date range, one row per line."""
    start_dt, end_dt = _date_range(start_date, end_date)
    status = _check_status(status, PO_STATUSES)

    query = db.session.query(PurchaseOrder)
    if start_dt:
        query = query.filter(PurchaseOrder.created_at >= start_dt)
    if end_dt:
        query = query.filter(PurchaseOrder.created_at < end_dt)
    if supplier_id is not None:
        query = query.filter(PurchaseOrder.supplier_id == supplier_id)
    if status:
        query = query.filter(PurchaseOrder.status == status)

    rows = []
    for po in query.order_by(PurchaseOrder.created_at.asc(), PurchaseOrder.id.asc()).all():
        for item in po.items:
            rows.append({
                "date": to_iso_date(po.created_at.date()) if po.created_at else None,
                "po_id": po.id,
                "po_number": po.po_number,
                "supplier": po.supplier.name if po.supplier else None,
                "category": item.product.category.name if item.product.category else None,
                "product": item.product.name,
                "quantity": item.quantity,
                "received_qty": item.received_qty,
                "unit_price": format_money(item.unit_price),
                "total": format_money(item.total_price),
                "status": po.status,
            })
    return rows


def requests_report(
    *,
    username: str,
    role: str,
    start_date=None,
    end_date=None,
    location_id: int | None = None,
    status: str | None = None,
) -> list[dict]:
    """Requests in a date range, newest first. Supervisors see only their own."""
    start_dt, end_dt = _date_range(start_date, end_date)
    status = _check_status(status, REQUEST_STATUSES)

    query = db.session.query(Request)
    if role == Role.SUPERVISOR:
        query = query.filter(Request.created_by == username)
    if start_dt:
        query = query.filter(Request.created_at >= start_dt)
    if end_dt:
        query = query.filter(Request.created_at < end_dt)
    if location_id is not None:
        query = query.filter(Request.location_id == location_id)
    if status:
        query = query.filter(Request.status == status)

    requests = query.order_by(Request.created_at.desc(), Request.id.desc()).all()
    return [r.to_dict() for r in requests]


# =============================================================================
# EXCEL EXPORTS
# =============================================================================

STOCK_COLUMNS = [
    ("Location", "location", 20),
    ("Category", "category", 20),
    ("Product", "product", 30),
    ("Unit", "unit", 10),
    ("Quantity", "quantity", 12),
    ("Limit", "limit_qty", 12),
]

CONSUMPTION_COLUMNS = [
    ("Date", "date", 14),
    ("Location", "location", 20),
    ("Request ID", "request_id", 12),
    ("Category", "category", 20),
    ("Product", "product", 30),
    ("Quantity", "quantity", 12),
    ("Issued By", "issued_by", 16),
]

PURCHASES_COLUMNS = [
    ("Date", "date", 14),
    ("PO Number", "po_number", 16),
    ("Supplier", "supplier", 25),
    ("Category", "category", 20),
    ("Product", "product", 30),
    ("Quantity", "quantity", 12),
    ("Unit Price", "unit_price", 12),
    ("Total", "total", 12),
    ("Status", "status", 14),
]


def build_workbook(rows: list[dict], columns, sheet_name: str) -> bytes:
    """Render report rows into an .xlsx file with a bold header row."""
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name

    ws.append([header for header, _key, _width in columns])
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for idx, (_header, _key, width) in enumerate(columns, start=1):
        ws.column_dimensions[get_column_letter(idx)].width = width

    for row in rows:
        values = []
        for _header, key, _width in columns:
            value = row.get(key)
            values.append("-" if value is None else value)
        ws.append(values)

    output = BytesIO()
    wb.save(output)
    return output.getvalue()


def export_filename(report: str) -> str:
    return f"{report}-report-{utcnow().date().isoformat()}.xlsx"


def export_stock(*, username: str, role: str, location_id: int | None = None) -> tuple[str, bytes]:
    rows = stock_report(username=username, role=role, location_id=location_id)
    return export_filename("stock"), build_workbook(rows, STOCK_COLUMNS, "Stock Report")


def export_consumption(**filters) -> tuple[str, bytes]:
    rows = consumption_report(**filters)
    return export_filename("consumption"), build_workbook(rows, CONSUMPTION_COLUMNS, "Consumption Report")


def export_purchases(**filters) -> tuple[str, bytes]:
    rows = purchases_report(**filters)
    return export_filename("purchases"), build_workbook(rows, PURCHASES_COLUMNS, "Purchases Report")
