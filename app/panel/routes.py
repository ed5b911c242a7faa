import mimetypes
from http import HTTPStatus

from flask import Blueprint, send_file

from app.panel.errors import ApiError
from app.panel.storage import StorageError, app_storage

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    return {"success": True, "message": "Admin panel API is running"}


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for probes. No DB access, minimal overhead.
    """
    return "ok", 200


@bp.get("/public/uploads/<path:key>")
def public_upload(key: str):
    storage = app_storage()
    try:
        if not storage.exists(key):
            raise ApiError(HTTPStatus.NOT_FOUND, "File not found")
        fobj = storage.open(key)
    except StorageError:
        raise ApiError(HTTPStatus.NOT_FOUND, "File not found")
    mimetype = mimetypes.guess_type(key)[0] or "application/octet-stream"
    return send_file(fobj, mimetype=mimetype, max_age=3600)
