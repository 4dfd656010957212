# Overview: Outbound delivery of documents and messages over email (SMTP) and Telegram.

"""
Delivery Service

Purchase order PDFs are sent to suppliers by email or Telegram; the
notification service reuses the same channels for plain-text messages.

The transport is a DeliveryGateway kept in app.extensions so tests (and
deployments with a different relay) can swap it without patching smtplib
or httpx.
"""

from __future__ import annotations

import logging
import smtplib
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

import httpx
from flask import current_app

from ..validation import DeliveryError, ValidationError


logger = logging.getLogger(__name__)

METHOD_EMAIL = "email"
METHOD_CHAT = "chat"
DELIVERY_METHODS = (METHOD_EMAIL, METHOD_CHAT)

# The chat channel is Telegram; clients may name it either way
METHOD_ALIASES = {"telegram": METHOD_CHAT}


class DeliveryGateway:
    """SMTP + Telegram Bot API transport configured from app config."""

    def __init__(
        self,
        *,
        smtp_host: Optional[str] = None,
        smtp_port: int = 587,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        smtp_use_tls: bool = True,
        smtp_from: Optional[str] = None,
        telegram_bot_token: Optional[str] = None,
        telegram_api_url: str = "https://api.telegram.org",
        timeout: float = 15.0,
        http_client: Optional[httpx.Client] = None,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.smtp_use_tls = smtp_use_tls
        self.smtp_from = smtp_from or smtp_user
        self.telegram_bot_token = telegram_bot_token
        self.telegram_api_url = telegram_api_url.rstrip("/")
        self.timeout = timeout
        self._http_client = http_client

    @classmethod
    def from_config(cls, config) -> "DeliveryGateway":
        return cls(
            smtp_host=config.get("SMTP_HOST"),
            smtp_port=config.get("SMTP_PORT", 587),
            smtp_user=config.get("SMTP_USER"),
            smtp_password=config.get("SMTP_PASSWORD"),
            smtp_use_tls=config.get("SMTP_USE_TLS", True),
            smtp_from=config.get("SMTP_FROM"),
            telegram_bot_token=config.get("TELEGRAM_BOT_TOKEN"),
            telegram_api_url=config.get("TELEGRAM_API_URL", "https://api.telegram.org"),
        )

    @property
    def email_configured(self) -> bool:
        return bool(self.smtp_host)

    @property
    def telegram_configured(self) -> bool:
        return bool(self.telegram_bot_token)

    # ------------------------------------------------------------------
    # Email
    # ------------------------------------------------------------------

    def send_email(self, to: str, subject: str, body: str, attachments: Optional[list[tuple[str, bytes, str]]] = None) -> None:
        if not self.email_configured:
            raise DeliveryError("Email delivery is not configured")

        msg = MIMEMultipart()
        msg["Subject"] = subject
        msg["From"] = self.smtp_from or ""
        msg["To"] = to
        msg.attach(MIMEText(body, "plain", "utf-8"))

        for filename, content, mime_type in attachments or []:
            subtype = mime_type.split("/", 1)[1] if "/" in mime_type else "octet-stream"
            part = MIMEApplication(content, _subtype=subtype)
            part.add_header("Content-Disposition", "attachment", filename=filename)
            msg.attach(part)

        try:
            smtp_cls = smtplib.SMTP_SSL if self.smtp_port == 465 else smtplib.SMTP
            with smtp_cls(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                if self.smtp_use_tls and smtp_cls is smtplib.SMTP:
                    server.starttls()
                if self.smtp_user and self.smtp_password:
                    server.login(self.smtp_user, self.smtp_password)
                server.sendmail(msg["From"], [to], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email to %s: %s", to, e)
            raise DeliveryError("Failed to send email") from e

        logger.info("Email sent to %s: %s", to, subject)

    # ------------------------------------------------------------------
    # Telegram
    # ------------------------------------------------------------------

    def _http(self) -> httpx.Client:
        if self._http_client is None:
            self._http_client = httpx.Client(timeout=self.timeout)
        return self._http_client

    def _bot_url(self, method: str) -> str:
        return f"{self.telegram_api_url}/bot{self.telegram_bot_token}/{method}"

    def _telegram_call(self, method: str, chat_id: str, **kwargs) -> None:
        if not self.telegram_configured:
            raise DeliveryError("Telegram delivery is not configured")
        try:
            response = self._http().post(self._bot_url(method), **kwargs)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Telegram %s to chat %s failed: %s", method, chat_id, e)
            raise DeliveryError("Failed to send Telegram message") from e
        if not payload.get("ok", False):
            logger.error("Telegram %s to chat %s rejected: %s", method, chat_id, payload.get("description"))
            raise DeliveryError("Failed to send Telegram message")

    def send_telegram_document(self, chat_id: str, filename: str, content: bytes, caption: Optional[str] = None) -> None:
        data = {"chat_id": chat_id}
        if caption:
            data["caption"] = caption
        self._telegram_call(
            "sendDocument",
            chat_id,
            data=data,
            files={"document": (filename, content, "application/pdf")},
        )
        logger.info("Document %s sent to Telegram chat %s", filename, chat_id)

    def send_telegram_message(self, chat_id: str, text: str) -> None:
        self._telegram_call("sendMessage", chat_id, json={"chat_id": chat_id, "text": text})
        logger.info("Message sent to Telegram chat %s", chat_id)


def normalize_method(value) -> str:
    method = str(value or "").strip().lower()
    method = METHOD_ALIASES.get(method, method)
    if method not in DELIVERY_METHODS:
        raise ValidationError("method must be email or chat")
    return method


def get_gateway() -> DeliveryGateway:
    gateway = current_app.extensions.get("delivery_gateway")
    if gateway is None:
        gateway = DeliveryGateway.from_config(current_app.config)
        current_app.extensions["delivery_gateway"] = gateway
    return gateway


def send_po_by_email(to: str, po_number: str, pdf: bytes) -> None:
    company = current_app.config.get("COMPANY_NAME", "MintStudio")
    subject = f"Purchase order {po_number}"
    body = (
        "Dear partner,\n\n"
        f"Please find purchase order {po_number} attached.\n\n"
        f"Best regards,\n{company}"
    )
    get_gateway().send_email(to, subject, body, attachments=[(f"{po_number}.pdf", pdf, "application/pdf")])


def send_po_by_chat(chat_id: str, po_number: str, pdf: bytes) -> None:
    get_gateway().send_telegram_document(chat_id, f"{po_number}.pdf", pdf, caption=f"Purchase order {po_number}")
