"""
Set-Cookie handling for the gateway.

The backend issues its auth cookies for its own origin. The gateway parses
each Set-Cookie header it receives, re-targets it at the gateway origin and
serializes it again, one header per cookie.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime

from itsdangerous import BadData
from itsdangerous.encoding import base64_decode, bytes_to_int


@dataclass(frozen=True)
class ParsedCookie:
    name: str
    value: str
    expires: datetime | None = None
    max_age: int | None = None
    domain: str | None = None
    path: str = "/"
    secure: bool = False
    httponly: bool = False
    samesite: str | None = None


def _parse_expires(raw: str) -> datetime | None:
    try:
        return parsedate_to_datetime(raw)
    except (TypeError, ValueError, IndexError):
        return None


def parse_set_cookie_header(header: str) -> ParsedCookie:
    name_value, *attributes = [part.strip() for part in header.split(";")]
    name, _, value = name_value.partition("=")

    opts: dict = {}
    for attr in attributes:
        if not attr:
            continue
        key, _, val = attr.partition("=")
        key = key.strip().lower()
        val = val.strip()
        if key == "expires":
            opts["expires"] = _parse_expires(val)
        elif key == "max-age":
            try:
                opts["max_age"] = int(val)
            except ValueError:
                pass
        elif key == "domain":
            opts["domain"] = val or None
        elif key == "path":
            opts["path"] = val or "/"
        elif key == "secure":
            opts["secure"] = True
        elif key == "httponly":
            opts["httponly"] = True
        elif key == "samesite":
            opts["samesite"] = val or None
    return ParsedCookie(name=name.strip(), value=value, **opts)


def to_set_cookie_header(cookie: ParsedCookie) -> str:
    parts = [f"{cookie.name}={cookie.value}"]
    if cookie.expires is not None:
        expires = cookie.expires if cookie.expires.tzinfo else cookie.expires.replace(tzinfo=timezone.utc)
        parts.append(f"Expires={format_datetime(expires.astimezone(timezone.utc), usegmt=True)}")
    if cookie.max_age is not None:
        parts.append(f"Max-Age={cookie.max_age}")
    if cookie.domain:
        parts.append(f"Domain={cookie.domain}")
    parts.append(f"Path={cookie.path or '/'}")
    if cookie.secure:
        parts.append("Secure")
    if cookie.httponly:
        parts.append("HttpOnly")
    if cookie.samesite:
        parts.append(f"SameSite={cookie.samesite}")
    return "; ".join(parts)


def rewrite_for_gateway(header: str, *, cookie_domain: str = "", secure: bool = False) -> str:
    """
    Re-target a backend cookie at the gateway origin: the backend's Domain is
    dropped (host-only) unless a COOKIE_DOMAIN is configured, and Secure is
    forced on in production.
    """
    cookie = parse_set_cookie_header(header)
    cookie = replace(cookie, domain=cookie_domain or None, secure=cookie.secure or secure)
    return to_set_cookie_header(cookie)


def is_token_expired(token: str | None, ttl_seconds: int, *, now: float | None = None) -> bool:
    """
    Reads the issue timestamp embedded in a signed session token (without
    verifying the signature; the backend does that) and compares it against
    the access-token lifetime. Anything unreadable counts as expired.
    """
    if not token:
        return True
    try:
        _payload, encoded_ts, _sig = token.rsplit(".", 2)
        issued_at = bytes_to_int(base64_decode(encoded_ts))
    except (BadData, ValueError, TypeError):
        return True
    return issued_at + ttl_seconds <= (now if now is not None else time.time())
