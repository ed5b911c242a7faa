from __future__ import annotations

from http import HTTPStatus
from typing import Any

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException


class ApiError(Exception):
    """
    Raised from services and guards; rendered as the JSON error envelope.
    """

    def __init__(self, status_code: int, message: str, errors: Any = None) -> None:
        super().__init__(message)
        self.status_code = int(status_code)
        self.message = message
        self.errors = errors


class ValidationError(ApiError):
    def __init__(self, message: str, errors: dict[str, list[str]]) -> None:
        super().__init__(HTTPStatus.BAD_REQUEST, message, errors)


def send_error(status_code: int, message: str, errors: Any = None):
    body: dict[str, Any] = {
        "success": False,
        "statusCode": int(status_code),
        "message": message,
    }
    if errors:
        body["errors"] = errors
    return jsonify(body), int(status_code)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def _api_error(e: ApiError):  # type: ignore[no-redef]
        if e.status_code >= 500:
            app.logger.error("ApiError %s: %s (request_id=%s)", e.status_code, e.message, getattr(g, "request_id", None))
        return send_error(e.status_code, e.message, e.errors)

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        return send_error(HTTPStatus.NOT_FOUND, f"API endpoint not found: {request.full_path.rstrip('?')}")

    @app.errorhandler(405)
    def _err_405(e):  # type: ignore[no-redef]
        return send_error(HTTPStatus.METHOD_NOT_ALLOWED, f"Method {request.method} not allowed on {request.path}")

    @app.errorhandler(413)
    def _err_413(e):  # type: ignore[no-redef]
        limit_mb = (app.config.get("MAX_CONTENT_LENGTH") or 0) // (1024 * 1024)
        return send_error(HTTPStatus.REQUEST_ENTITY_TOO_LARGE, f"Request too large. Maximum {limit_mb}MB allowed.")

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):  # type: ignore[no-redef]
        return send_error(e.code or 500, e.description or e.name)

    @app.errorhandler(Exception)
    def _err_500(e):  # type: ignore[no-redef]
        # Ensure stack trace shows in logs.
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return send_error(HTTPStatus.INTERNAL_SERVER_ERROR, "Internal Server Error")
