# backend/app/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str) -> list[str]:
    value = os.environ.get(name, "")
    return [part.strip() for part in value.split(",") if part.strip()]


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/mintstock.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///mintstock.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    CORS_ORIGINS = _env_list("CORS_ORIGINS") or [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # Tokens are issued by the external identity service; we only verify them.
    JWT_SECRET = os.environ.get("JWT_SECRET")
    JWT_ALGORITHMS = _env_list("JWT_ALGORITHMS") or ["HS256"]
    SESSION_COOKIE_NAME = os.environ.get("SESSION_COOKIE_NAME", "mint_session")

    IDENTITY_SERVICE_URL = os.environ.get("IDENTITY_SERVICE_URL", "http://mintauth-backend:8000")
    IDENTITY_PROJECT_NAME = os.environ.get("IDENTITY_PROJECT_NAME", "MintStock")
    IDENTITY_TIMEOUT_SECONDS = float(os.environ.get("IDENTITY_TIMEOUT_SECONDS", "3"))
    ROLE_CACHE_TTL_SECONDS = int(os.environ.get("ROLE_CACHE_TTL_SECONDS", "60"))

    # Explicit warehouse used when a workflow call does not name one.
    DEFAULT_WAREHOUSE_ID = int(os.environ["DEFAULT_WAREHOUSE_ID"]) if os.environ.get("DEFAULT_WAREHOUSE_ID") else None

    ALLOW_OVER_RECEIPT = _env_bool("ALLOW_OVER_RECEIPT", False)

    UPLOAD_DIR = os.environ.get("UPLOAD_DIR", "uploads")
    MAX_CONTENT_LENGTH = int(os.environ.get("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
    ALLOWED_UPLOAD_EXTENSIONS = {"jpg", "jpeg", "png", "webp", "pdf"}

    COMPANY_NAME = os.environ.get("COMPANY_NAME", "MintStudio")

    SMTP_HOST = os.environ.get("SMTP_HOST")
    SMTP_PORT = int(os.environ.get("SMTP_PORT", "587"))
    SMTP_USER = os.environ.get("SMTP_USER")
    SMTP_PASSWORD = os.environ.get("SMTP_PASSWORD")
    SMTP_USE_TLS = _env_bool("SMTP_USE_TLS", True)
    SMTP_FROM = os.environ.get("SMTP_FROM", "noreply@mintstock.local")

    TELEGRAM_BOT_TOKEN = os.environ.get("TELEGRAM_BOT_TOKEN")
    TELEGRAM_API_URL = os.environ.get("TELEGRAM_API_URL", "https://api.telegram.org")

    NOTIFY_EMAILS = _env_list("NOTIFY_EMAILS")
    NOTIFY_TELEGRAM_CHAT_IDS = _env_list("NOTIFY_TELEGRAM_CHAT_IDS")
