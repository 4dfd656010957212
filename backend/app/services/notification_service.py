# Overview: Notification fan-out for workflow events (email + Telegram), best-effort.

"""
Notification Service

Workflow routes call the notify_* helpers AFTER the transaction commits.
Each event is formatted once and delivered to every configured target
(NOTIFY_EMAILS, NOTIFY_TELEGRAM_CHAT_IDS). Delivery failures are logged
and never reach the caller: a committed ledger change is never reported
as failed because a message could not be sent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Iterable, Optional

from flask import current_app

from ..validation import DeliveryError, format_money
from . import delivery_service


logger = logging.getLogger(__name__)


class NotificationType(str, Enum):
    REQUEST_CREATED = "REQUEST_CREATED"
    REQUEST_APPROVED = "REQUEST_APPROVED"
    REQUEST_FULFILLED = "REQUEST_FULFILLED"
    PO_CREATED = "PO_CREATED"
    PO_RECEIVED = "PO_RECEIVED"
    LOW_STOCK = "LOW_STOCK"
    PO_OVERDUE = "PO_OVERDUE"


SUBJECTS = {
    NotificationType.REQUEST_CREATED: "New replenishment request",
    NotificationType.REQUEST_APPROVED: "Request approved",
    NotificationType.REQUEST_FULFILLED: "Request fulfilled",
    NotificationType.PO_CREATED: "Purchase order created",
    NotificationType.PO_RECEIVED: "Goods received at warehouse",
    NotificationType.LOW_STOCK: "Low warehouse stock",
    NotificationType.PO_OVERDUE: "Overdue delivery",
}


@dataclass
class Notification:
    type: NotificationType
    data: dict = field(default_factory=dict)
    recipient_email: Optional[str] = None
    recipient_chat_id: Optional[str] = None


def subject_for(notification_type: NotificationType) -> str:
    return SUBJECTS.get(notification_type, "MintStock notification")


def format_message(notification_type: NotificationType, data: dict) -> str:
    """Plain-text body for one event."""
    d = data
    if notification_type == NotificationType.REQUEST_CREATED:
        return (
            "New replenishment request\n\n"
            f"Request #{d.get('request_id')}\n"
            f"Location: {d.get('location_name')}\n"
            f"Items: {d.get('items_count')}\n"
            f"Created by: {d.get('created_by')}"
        )
    if notification_type == NotificationType.REQUEST_APPROVED:
        return (
            "Request approved\n\n"
            f"Request #{d.get('request_id')}\n"
            f"Location: {d.get('location_name')}\n"
            f"Approved by: {d.get('processed_by')}"
        )
    if notification_type == NotificationType.REQUEST_FULFILLED:
        return (
            "Request fulfilled\n\n"
            f"Request #{d.get('request_id')}\n"
            f"Location: {d.get('location_name')}\n"
            f"Items issued: {d.get('items_issued')}"
        )
    if notification_type == NotificationType.PO_CREATED:
        return (
            "Purchase order created\n\n"
            f"PO {d.get('po_number')}\n"
            f"Supplier: {d.get('supplier_name')}\n"
            f"Total: {d.get('total_amount')}\n"
            f"Delivery date: {d.get('delivery_date') or 'not set'}"
        )
    if notification_type == NotificationType.PO_RECEIVED:
        return (
            "Goods received at warehouse\n\n"
            f"PO {d.get('po_number')}\n"
            f"Units received: {d.get('units_received')}\n"
            f"Received by: {d.get('received_by')}\n"
            f"Status: {d.get('status')}"
        )
    if notification_type == NotificationType.LOW_STOCK:
        return (
            "Low warehouse stock\n\n"
            f"Product: {d.get('product_name')}\n"
            f"Category: {d.get('category_name')}\n"
            f"On hand: {d.get('quantity')} {d.get('unit') or ''}".rstrip()
        )
    if notification_type == NotificationType.PO_OVERDUE:
        return (
            "Overdue delivery\n\n"
            f"PO {d.get('po_number')}\n"
            f"Supplier: {d.get('supplier_name')}\n"
            f"Expected: {d.get('delivery_date')}\n"
            f"Days overdue: {d.get('days_overdue')}"
        )
    return f"MintStock notification\n\nType: {notification_type}\n{d}"


def _targets(notification: Notification) -> tuple[list[str], list[str]]:
    if notification.recipient_email or notification.recipient_chat_id:
        emails = [notification.recipient_email] if notification.recipient_email else []
        chats = [notification.recipient_chat_id] if notification.recipient_chat_id else []
        return emails, chats
    config = current_app.config
    return list(config.get("NOTIFY_EMAILS") or []), list(config.get("NOTIFY_TELEGRAM_CHAT_IDS") or [])


def send(notification: Notification) -> int:
    """
    Deliver one notification to its targets. Returns the number of
    successful deliveries; failures are logged, never raised.
    """
    message = format_message(notification.type, notification.data)
    subject = subject_for(notification.type)
    emails, chats = _targets(notification)
    gateway = delivery_service.get_gateway()

    delivered = 0
    for address in emails:
        try:
            gateway.send_email(address, subject, message)
            delivered += 1
        except DeliveryError as e:
            logger.warning("Notification %s to %s not delivered: %s", notification.type.value, address, e)
    for chat_id in chats:
        try:
            gateway.send_telegram_message(chat_id, message)
            delivered += 1
        except DeliveryError as e:
            logger.warning("Notification %s to chat %s not delivered: %s", notification.type.value, chat_id, e)

    logger.info(
        "Notification %s dispatched: %d of %d targets",
        notification.type.value,
        delivered,
        len(emails) + len(chats),
    )
    return delivered


def send_bulk(notifications: Iterable[Notification]) -> int:
    return sum(send(n) for n in notifications)


def _safely(build, *args) -> None:
    """Run a notify_* body; post-commit notifications never raise."""
    try:
        build(*args)
    except Exception:
        logger.exception("Failed to send notification")


# ----------------------------------------------------------------------
# Event helpers (call after commit)
# ----------------------------------------------------------------------

def notify_request_created(request) -> None:
    def _build(r):
        send(Notification(NotificationType.REQUEST_CREATED, {
            "request_id": r.id,
            "location_name": r.location.name if r.location else None,
            "items_count": len(r.items),
            "created_by": r.created_by,
        }))
    _safely(_build, request)


def notify_request_approved(request) -> None:
    def _build(r):
        send(Notification(NotificationType.REQUEST_APPROVED, {
            "request_id": r.id,
            "location_name": r.location.name if r.location else None,
            "processed_by": r.reviewed_by,
        }))
    _safely(_build, request)


def notify_request_fulfilled(request) -> None:
    def _build(r):
        send(Notification(NotificationType.REQUEST_FULFILLED, {
            "request_id": r.id,
            "location_name": r.location.name if r.location else None,
            "items_issued": sum(item.issued for item in r.items),
        }))
    _safely(_build, request)


def notify_po_created(po) -> None:
    def _build(p):
        send(Notification(NotificationType.PO_CREATED, {
            "po_number": p.po_number,
            "supplier_name": p.supplier.name if p.supplier else None,
            "total_amount": format_money(p.total_amount),
            "delivery_date": p.delivery_date.isoformat() if p.delivery_date else None,
        }))
    _safely(_build, po)


def notify_po_received(po, units_received: int, received_by: str) -> None:
    def _build(p):
        send(Notification(NotificationType.PO_RECEIVED, {
            "po_number": p.po_number,
            "units_received": units_received,
            "received_by": received_by,
            "status": p.status,
        }))
    _safely(_build, po)


def notify_low_stock(stock_items: Iterable[Any]) -> None:
    def _build(rows):
        send_bulk(
            Notification(NotificationType.LOW_STOCK, {
                "product_name": row.product.name if row.product else row.product_id,
                "category_name": row.product.category.name if row.product and row.product.category else None,
                "quantity": row.quantity,
                "unit": row.product.unit if row.product else None,
            })
            for row in rows
        )
    _safely(_build, list(stock_items))


def notify_po_overdue(po, today: date) -> None:
    def _build(p):
        send(Notification(NotificationType.PO_OVERDUE, {
            "po_number": p.po_number,
            "supplier_name": p.supplier.name if p.supplier else None,
            "delivery_date": p.delivery_date.isoformat() if p.delivery_date else None,
            "days_overdue": (today - p.delivery_date).days if p.delivery_date else None,
        }))
    _safely(_build, po)
