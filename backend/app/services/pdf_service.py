# Overview: Purchase order PDF rendering (reportlab).

from __future__ import annotations

import io
from xml.sax.saxutils import escape

from flask import current_app
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..validation import format_money


def _p(text, style) -> Paragraph:
    return Paragraph(escape(str(text)), style)


def render_purchase_order(po) -> bytes:
    """
    Render a purchase order as a one-document PDF: header, sender and
    supplier blocks, item table with totals, delivery date and note.
    """
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        topMargin=2 * cm,
        bottomMargin=2 * cm,
        title=po.po_number,
    )
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle("POTitle", parent=styles["Heading1"], fontSize=18, spaceAfter=20)
    normal = styles["Normal"]

    company = current_app.config.get("COMPANY_NAME", "MintStudio")
    created = po.created_at.strftime("%Y-%m-%d") if po.created_at else ""

    elements = [
        _p("PURCHASE ORDER", title_style),
        _p(f"Number: {po.po_number}", normal),
        _p(f"Date: {created}", normal),
        Spacer(1, 0.5 * cm),
        _p(f"From: {company}", normal),
    ]

    supplier = po.supplier
    if supplier:
        elements.append(_p(f"Supplier: {supplier.name}", normal))
        elements.append(_p(f"Contact: {supplier.contact}", normal))
        if supplier.phone:
            elements.append(_p(f"Phone: {supplier.phone}", normal))
        if supplier.email:
            elements.append(_p(f"Email: {supplier.email}", normal))

    elements.append(Spacer(1, 1 * cm))

    table_data = [["#", "Product", "Qty", "Unit", "Unit price", "Total"]]
    for idx, item in enumerate(po.items, 1):
        product = item.product
        table_data.append([
            str(idx),
            _p(product.name if product else item.product_id, normal),
            str(item.quantity),
            product.unit if product else "",
            format_money(item.unit_price),
            format_money(item.total_price),
        ])
    table_data.append(["", "", "", "", "Total:", format_money(po.total_amount)])

    table = Table(table_data, colWidths=[1 * cm, 7 * cm, 2 * cm, 2 * cm, 2.5 * cm, 2.5 * cm], repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("ALIGN", (2, 0), (-1, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("GRID", (0, 0), (-1, -2), 0.5, colors.black),
        ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
    ]))
    elements.append(table)

    elements.append(Spacer(1, 1 * cm))
    if po.delivery_date:
        elements.append(_p(f"Delivery date: {po.delivery_date.isoformat()}", normal))
    if po.note:
        elements.append(_p(f"Note: {po.note}", normal))

    doc.build(elements)
    return buffer.getvalue()
