"""
Small request-payload validators shared by the API blueprints.

Each helper reads one field from a payload dict, appends human readable
messages to an `errors` mapping (field -> [messages]) and returns the cleaned
value, or None when the field is absent or invalid. Blueprints raise a
ValidationError once all fields have been checked so clients see every
problem at once.
"""
from __future__ import annotations

import re
from typing import Any

from flask import request

from app.panel.errors import ValidationError

Errors = dict[str, list[str]]

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
# letters and digits only, at least one of each
_PASSWORD_RE = re.compile(r"^(?=.*[A-Za-z])(?=.*\d)[A-Za-z\d]{6,}$")
_OTP_RE = re.compile(r"^\d{6}$")


def request_payload() -> dict[str, Any]:
    """JSON body, or form fields for multipart/urlencoded requests."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def query_payload() -> dict[str, Any]:
    return request.args.to_dict()


def add_error(errors: Errors, field: str, message: str) -> None:
    errors.setdefault(field, []).append(message)


def raise_if_errors(errors: Errors, message: str) -> None:
    if errors:
        raise ValidationError(message, errors)


def clean_str(
    payload: dict[str, Any],
    field: str,
    errors: Errors,
    *,
    required: bool = False,
    min_len: int = 0,
    max_len: int | None = None,
) -> str | None:
    raw = payload.get(field)
    if raw is None or (isinstance(raw, str) and raw.strip() == "" and not required):
        if required:
            add_error(errors, field, f"{field} is required")
        return None
    if not isinstance(raw, str):
        add_error(errors, field, f"{field} must be a string")
        return None
    value = raw.strip()
    if len(value) < min_len:
        add_error(errors, field, f"{field} must be at least {min_len} characters long")
        return None
    if max_len is not None and len(value) > max_len:
        add_error(errors, field, f"{field} must be at most {max_len} characters long")
        return None
    return value


def clean_email(payload: dict[str, Any], field: str, errors: Errors, *, required: bool = True) -> str | None:
    value = clean_str(payload, field, errors, required=required, max_len=320)
    if value is None:
        return None
    if not _EMAIL_RE.match(value):
        add_error(errors, field, "Invalid email address!")
        return None
    return value.lower()


def clean_password(payload: dict[str, Any], field: str, errors: Errors, *, required: bool = True) -> str | None:
    raw = payload.get(field)
    if raw is None or raw == "":
        if required:
            add_error(errors, field, "Password is required")
        return None
    if not isinstance(raw, str):
        add_error(errors, field, "Password is required")
        return None
    if len(raw) < 6:
        add_error(errors, field, "Password must be at least 6 characters long")
        return None
    if len(raw) > 30:
        add_error(errors, field, "Password must be at most 30 characters long")
        return None
    if not _PASSWORD_RE.match(raw):
        add_error(errors, field, "Password must contain both letters and numbers")
        return None
    return raw


def clean_otp(payload: dict[str, Any], field: str, errors: Errors) -> str | None:
    raw = payload.get(field)
    if not isinstance(raw, str) or not _OTP_RE.match(raw.strip()):
        add_error(errors, field, "OTP must be exactly 6 digits number")
        return None
    return raw.strip()


def parse_bool(value: Any) -> bool | None:
    """Accepts real booleans and the strings "true"/"false" (query strings, multipart forms)."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        v = value.strip().lower()
        if v == "true":
            return True
        if v == "false":
            return False
    raise ValueError(f"not a boolean: {value!r}")


def clean_bool(payload: dict[str, Any], field: str, errors: Errors) -> bool | None:
    raw = payload.get(field)
    if raw is None or raw == "":
        return None
    try:
        return parse_bool(raw)
    except ValueError:
        add_error(errors, field, f"{field} must be true or false")
        return None


def clean_int(
    payload: dict[str, Any],
    field: str,
    errors: Errors,
    *,
    default: int | None = None,
    min_value: int | None = None,
    max_value: int | None = None,
) -> int | None:
    raw = payload.get(field)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        add_error(errors, field, f"{field} must be an integer")
        return None
    if min_value is not None and value < min_value:
        add_error(errors, field, f"{field} must be >= {min_value}")
        return None
    if max_value is not None and value > max_value:
        add_error(errors, field, f"{field} must be <= {max_value}")
        return None
    return value


def clean_choice(payload: dict[str, Any], field: str, errors: Errors, choices: tuple[str, ...]) -> str | None:
    raw = payload.get(field)
    if raw is None or raw == "":
        return None
    if raw not in choices:
        add_error(errors, field, f"{field} must be one of: {', '.join(choices)}")
        return None
    return raw


def reject_unknown(payload: dict[str, Any], allowed: set[str], errors: Errors) -> None:
    for key in payload:
        if key not in allowed:
            add_error(errors, key, f"Unrecognized key: {key}")
