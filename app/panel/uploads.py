from __future__ import annotations

import time
from dataclasses import dataclass
from http import HTTPStatus

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from app.panel.errors import ApiError
from app.panel.storage import Storage, app_storage

PROFILE_PICTURE_PREFIX = "profile_pictures"
PUBLIC_UPLOADS_URL = "public/uploads"

_IMAGE_TYPES = ("jpeg", "jpg", "png", "webp", "avif")


@dataclass(frozen=True)
class StoredUpload:
    key: str
    url: str
    original_name: str
    server_name: str
    size_bytes: int


def _is_allowed_image(filename: str, mimetype: str) -> bool:
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    subtype = mimetype.split("/", 1)[-1].lower() if mimetype.startswith("image/") else ""
    return ext in _IMAGE_TYPES and subtype in _IMAGE_TYPES


def public_url(key: str) -> str:
    return f"{PUBLIC_UPLOADS_URL}/{key}"


def key_from_url(url: str | None) -> str | None:
    """Inverse of public_url; None for anything not stored by us (e.g. the default picture)."""
    prefix = f"{PUBLIC_UPLOADS_URL}/"
    if not url or not url.startswith(prefix):
        return None
    return url[len(prefix):]


def save_profile_picture(f: FileStorage, *, storage: Storage | None = None) -> StoredUpload:
    """
    Validate and store an uploaded profile picture.
    Raises ApiError 400 for unsupported types and 413 when over MAX_PROFILE_PIC_SIZE.
    """
    original = f.filename or ""
    mimetype = (f.mimetype or "").strip().lower()
    if not _is_allowed_image(original, mimetype):
        raise ApiError(HTTPStatus.BAD_REQUEST, "Only image files are allowed (jpeg, jpg, png, webp, avif).")

    data = f.read()
    max_size = int(current_app.config.get("MAX_PROFILE_PIC_SIZE") or 5 * 1024 * 1024)
    if len(data) > max_size:
        limit_mb = max_size // (1024 * 1024)
        raise ApiError(HTTPStatus.REQUEST_ENTITY_TOO_LARGE, f"File size too large. Maximum {limit_mb}MB allowed.")

    server_name = f"{int(time.time() * 1000)}-{secure_filename(original) or 'picture'}"
    key = f"{PROFILE_PICTURE_PREFIX}/{server_name}"
    (storage or app_storage()).put_bytes(key, data, content_type=mimetype)
    current_app.logger.info("Stored profile picture key=%s size=%s", key, len(data))
    return StoredUpload(
        key=key,
        url=public_url(key),
        original_name=original,
        server_name=server_name,
        size_bytes=len(data),
    )


def delete_stored(url: str | None, *, storage: Storage | None = None) -> None:
    key = key_from_url(url)
    if not key:
        return
    try:
        (storage or app_storage()).delete(key)
    except Exception as e:
        # a stale file is not worth failing the update for
        current_app.logger.warning("Could not delete stored upload %s: %s", key, e)
