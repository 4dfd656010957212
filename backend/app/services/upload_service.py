# Overview: Local storage for uploaded receiving photos and documents.

from __future__ import annotations

import uuid
from pathlib import Path

from flask import current_app

from app.validation import NotFoundError, ValidationError


UPLOAD_URL_PREFIX = "/uploads/"


def get_upload_directory() -> Path:
    """Upload directory, created on first use. Relative paths live under the instance folder."""
    upload_dir = Path(current_app.config["UPLOAD_DIR"])
    if not upload_dir.is_absolute():
        upload_dir = Path(current_app.instance_path) / upload_dir
    upload_dir.mkdir(parents=True, exist_ok=True)
    return upload_dir


def _extension(filename: str | None) -> str:
    if not filename or "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].strip().lower()


def save_upload(file) -> str:
    """
    Store a werkzeug FileStorage under a random name.

    Returns the public path (/uploads/<name>).
    """
    if file is None or not file.filename:
        raise ValidationError("No file provided")

    extension = _extension(file.filename)
    allowed = current_app.config["ALLOWED_UPLOAD_EXTENSIONS"]
    if extension not in allowed:
        raise ValidationError(f"Invalid file type. Allowed: {', '.join(sorted(allowed))}")

    unique_filename = f"{uuid.uuid4().hex}.{extension}"
    file.save(get_upload_directory() / unique_filename)
    current_app.logger.info("Stored upload %s (%s)", unique_filename, file.filename)
    return f"{UPLOAD_URL_PREFIX}{unique_filename}"


def resolve_upload(name: str) -> Path:
    """Path of a stored upload; only bare generated names resolve."""
    if not name or "/" in name or "\\" in name or name.startswith("."):
        raise NotFoundError("File not found")
    path = get_upload_directory() / name
    if not path.is_file():
        raise NotFoundError("File not found")
    return path


def delete_upload(public_path: str | None) -> bool:
    """Remove a stored upload by its public path. Returns False when nothing was removed."""
    if not public_path or not public_path.startswith(UPLOAD_URL_PREFIX):
        return False
    try:
        path = resolve_upload(public_path[len(UPLOAD_URL_PREFIX):])
    except NotFoundError:
        return False
    path.unlink()
    return True
