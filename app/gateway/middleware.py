from __future__ import annotations

import logging
from dataclasses import dataclass, field

import requests
from flask import Flask, g, redirect, request

from app.gateway.proxy import forward_request, gateway_set_cookies

log = logging.getLogger(__name__)

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"

PROTECTED_PREFIXES = ("/dashboard", "/products", "/orders", "/customers")
REFRESH_PATH = "auth/refresh-token"


def is_protected(path: str) -> bool:
    if path == "/":
        return True
    return any(path == p or path.startswith(p + "/") for p in PROTECTED_PREFIXES)


@dataclass
class Decision:
    redirect_to: str | None = None
    set_cookies: list[str] = field(default_factory=list)


def _refresh_session(cookie_header: str) -> list[str]:
    """Asks the backend for a new token pair; returns the rewritten cookies or [] on failure."""
    try:
        resp = forward_request("POST", REFRESH_PATH, headers={"Cookie": cookie_header})
    except requests.RequestException:
        log.warning("Session refresh failed: backend unreachable")
        return []
    if not 200 <= resp.status_code < 300:
        log.warning("Session refresh rejected status=%s", resp.status_code)
        return []
    cookies = gateway_set_cookies(resp)
    if not cookies:
        log.warning("Session refresh returned no cookies")
    return cookies


def decide(path: str, cookies: dict[str, str], cookie_header: str = "") -> Decision:
    if not is_protected(path):
        return Decision()

    landing = "/dashboard" if path == "/" else None
    if cookies.get(ACCESS_COOKIE):
        return Decision(redirect_to=landing)

    if cookies.get(REFRESH_COOKIE):
        refreshed = _refresh_session(cookie_header)
        if refreshed:
            return Decision(redirect_to=landing, set_cookies=refreshed)
        return Decision(redirect_to="/login")

    return Decision(redirect_to="/login")


def init_session_guard(app: Flask) -> None:
    @app.before_request
    def _guard():
        d = decide(request.path, request.cookies, request.headers.get("Cookie", ""))
        g.refreshed_cookies = d.set_cookies
        if d.redirect_to:
            return redirect(d.redirect_to)
        return None

    @app.after_request
    def _append_refreshed_cookies(resp):
        for header in getattr(g, "refreshed_cookies", None) or []:
            resp.headers.add("Set-Cookie", header)
        return resp
