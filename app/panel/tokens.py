"""
Signed, time-limited tokens for the admin session.

Tokens are itsdangerous payloads (the same signing Flask uses for its session
cookie). Each kind is signed with its own salt, so an access token can never be
presented as a refresh token and vice versa.
"""
from __future__ import annotations

from typing import Any

from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

ACCESS = "access-token"
REFRESH = "refresh-token"
FORGOT_PASSWORD = "forgot-password-token"

_TTL_KEYS = {
    ACCESS: "ACCESS_TOKEN_TTL_SECONDS",
    REFRESH: "REFRESH_TOKEN_TTL_SECONDS",
    FORGOT_PASSWORD: "FORGOT_PASSWORD_TOKEN_TTL_SECONDS",
}


class TokenError(Exception):
    pass


class TokenExpired(TokenError):
    pass


class TokenInvalid(TokenError):
    pass


def _serializer(kind: str) -> URLSafeTimedSerializer:
    secret = current_app.config.get("TOKEN_SECRET_KEY") or current_app.config["SECRET_KEY"]
    return URLSafeTimedSerializer(secret, salt=kind)


def token_ttl(kind: str) -> int:
    return int(current_app.config[_TTL_KEYS[kind]])


def _identity(id: Any, role: str, email: str) -> dict[str, Any]:
    return {"id": id, "role": role, "email": email}


def generate_access_token(*, id: Any, role: str, email: str) -> str:
    return _serializer(ACCESS).dumps(_identity(id, role, email))


def generate_refresh_token(*, id: Any, role: str, email: str) -> str:
    return _serializer(REFRESH).dumps(_identity(id, role, email))


def generate_forgot_password_token(*, email: str) -> str:
    return _serializer(FORGOT_PASSWORD).dumps({"email": email})


def _verify(kind: str, token: str) -> dict[str, Any]:
    try:
        payload = _serializer(kind).loads(token, max_age=token_ttl(kind))
    except SignatureExpired as e:
        raise TokenExpired(f"{kind} expired") from e
    except BadSignature as e:
        raise TokenInvalid(f"{kind} invalid") from e
    if not isinstance(payload, dict):
        raise TokenInvalid(f"{kind} payload is not an object")
    return payload


def verify_access_token(token: str) -> dict[str, Any]:
    payload = _verify(ACCESS, token)
    if "id" not in payload:
        raise TokenInvalid("access token has no subject")
    return payload


def verify_refresh_token(token: str) -> dict[str, Any]:
    payload = _verify(REFRESH, token)
    if "id" not in payload:
        raise TokenInvalid("refresh token has no subject")
    return payload


def verify_forgot_password_token(token: str) -> dict[str, Any]:
    return _verify(FORGOT_PASSWORD, token)
