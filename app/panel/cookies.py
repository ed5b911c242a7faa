from __future__ import annotations

from flask import Response, current_app

from app.panel import tokens

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"
FORGOT_PASSWORD_COOKIE = "forgotPasswordToken"

_KIND_BY_COOKIE = {
    ACCESS_COOKIE: tokens.ACCESS,
    REFRESH_COOKIE: tokens.REFRESH,
    FORGOT_PASSWORD_COOKIE: tokens.FORGOT_PASSWORD,
}


def _set(resp: Response, name: str, value: str) -> None:
    resp.set_cookie(
        name,
        value,
        max_age=tokens.token_ttl(_KIND_BY_COOKIE[name]),
        path="/",
        httponly=True,
        secure=bool(current_app.config.get("AUTH_COOKIE_SECURE")),
        samesite=current_app.config.get("AUTH_COOKIE_SAMESITE") or "Strict",
    )


def set_access_cookie(resp: Response, token: str | None) -> None:
    if token:
        _set(resp, ACCESS_COOKIE, token)


def set_refresh_cookie(resp: Response, token: str | None) -> None:
    if token:
        _set(resp, REFRESH_COOKIE, token)


def set_forgot_password_cookie(resp: Response, token: str | None) -> None:
    if token:
        _set(resp, FORGOT_PASSWORD_COOKIE, token)


def clear_auth_cookies(resp: Response) -> None:
    for name in (REFRESH_COOKIE, ACCESS_COOKIE, FORGOT_PASSWORD_COOKIE):
        resp.delete_cookie(
            name,
            path="/",
            httponly=True,
            secure=bool(current_app.config.get("AUTH_COOKIE_SECURE")),
            samesite=current_app.config.get("AUTH_COOKIE_SAMESITE") or "Strict",
        )
