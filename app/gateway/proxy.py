"""
Forwarding route between the admin panel and the backend API.

The browser only ever talks to the gateway origin; anything under
/api/proxy/<path> is replayed against BACKEND_URL/<path> and the backend's
auth cookies are re-issued for the gateway origin.
"""
from __future__ import annotations

import logging

import requests
from flask import Blueprint, Response, current_app, jsonify, request

from app.gateway.cookies import rewrite_for_gateway

log = logging.getLogger(__name__)

bp = Blueprint("proxy", __name__)

_STRIPPED_REQUEST_HEADERS = {"host", "connection", "content-length"}

# requests already decoded the body, and cookies are re-added one by one
_STRIPPED_RESPONSE_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "trailers",
    "transfer-encoding",
    "upgrade",
    "content-encoding",
    "content-length",
    "set-cookie",
}


def backend_url(path: str) -> str:
    base = current_app.config["BACKEND_URL"].rstrip("/")
    return f"{base}/{path.lstrip('/')}"


def forward_request(
    method: str,
    path: str,
    *,
    query_string: str = "",
    headers: dict[str, str] | None = None,
    body: bytes | None = None,
) -> requests.Response:
    url = backend_url(path)
    if query_string:
        url = f"{url}?{query_string}"
    outgoing = {k: v for k, v in (headers or {}).items() if k.lower() not in _STRIPPED_REQUEST_HEADERS}
    data = body if method.upper() not in ("GET", "HEAD") else None
    return requests.request(
        method.upper(),
        url,
        headers=outgoing,
        data=data,
        timeout=current_app.config["PROXY_TIMEOUT_SECONDS"],
        allow_redirects=False,
    )


def backend_set_cookies(resp: requests.Response) -> list[str]:
    """Every Set-Cookie header of a backend response, unmerged."""
    raw_headers = getattr(getattr(resp, "raw", None), "headers", None)
    if raw_headers is not None and hasattr(raw_headers, "getlist"):
        return list(raw_headers.getlist("Set-Cookie"))
    single = resp.headers.get("Set-Cookie")
    return [single] if single else []


def gateway_set_cookies(resp: requests.Response) -> list[str]:
    return [
        rewrite_for_gateway(
            header,
            cookie_domain=current_app.config.get("COOKIE_DOMAIN") or "",
            secure=bool(current_app.config.get("COOKIE_SECURE")),
        )
        for header in backend_set_cookies(resp)
    ]


def to_flask_response(resp: requests.Response) -> Response:
    out = Response(resp.content, status=resp.status_code)
    for key, value in resp.headers.items():
        if key.lower() in _STRIPPED_RESPONSE_HEADERS:
            continue
        out.headers[key] = value
    cookies = gateway_set_cookies(resp)
    for header in cookies:
        out.headers.add("Set-Cookie", header)
    log.info("Backend responded status=%s set_cookies=%s", resp.status_code, len(cookies))
    return out


@bp.route("/api/proxy/<path:path>", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
def proxy(path: str):
    try:
        resp = forward_request(
            request.method,
            path,
            query_string=request.query_string.decode("latin-1"),
            headers=dict(request.headers),
            body=request.get_data(),
        )
    except requests.RequestException:
        log.exception("Proxy error forwarding %s %s", request.method, path)
        return jsonify({"error": "Internal Server Error"}), 500
    return to_flask_response(resp)
