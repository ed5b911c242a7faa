from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timedelta
from http import HTTPStatus

from flask import Blueprint, current_app, g, request
from werkzeug.security import check_password_hash, generate_password_hash

from app.panel.audit import record_event
from app.panel.cookies import (
    ACCESS_COOKIE,
    REFRESH_COOKIE,
    clear_auth_cookies,
    set_access_cookie,
    set_forgot_password_cookie,
    set_refresh_cookie,
)
from app.panel.db import db_session
from app.panel.errors import ApiError
from app.panel.mailer import send_otp_email
from app.panel.models import Employee
from app.panel.ratelimit import rate_limited
from app.panel.rbac import require_auth
from app.panel.responses import send_response
from app.panel.tokens import (
    TokenExpired,
    TokenInvalid,
    generate_access_token,
    generate_forgot_password_token,
    generate_refresh_token,
    verify_access_token,
    verify_refresh_token,
)
from app.panel.validation import (
    Errors,
    add_error,
    clean_email,
    clean_otp,
    clean_password,
    raise_if_errors,
    reject_unknown,
    request_payload,
)

bp = Blueprint("auth", __name__)

_UNGUARDED_PREFIXES = ("/health", "/healthz", "/public/")


def _bearer_or_cookie_token() -> str | None:
    header = (request.headers.get("Authorization") or "").strip()
    if header.lower().startswith("bearer "):
        token = header[7:].strip()
        if token:
            return token
    return request.cookies.get(ACCESS_COOKIE) or None


def load_current_user() -> None:
    """
    Resolves g.current_user from the access token (Authorization header first,
    then the accessToken cookie). Failures are parked on g.auth_error so that
    only guarded routes turn them into 401s.
    Also assigns a per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.current_user = None
    g.auth_error = None
    if request.path.startswith(_UNGUARDED_PREFIXES):
        return

    token = _bearer_or_cookie_token()
    if not token:
        return

    try:
        claims = verify_access_token(token)
    except TokenExpired:
        g.auth_error = (HTTPStatus.UNAUTHORIZED, "Token has expired.")
        return
    except TokenInvalid:
        g.auth_error = (HTTPStatus.UNAUTHORIZED, "Invalid token.")
        return

    s = db_session()
    try:
        user = s.get(Employee, int(claims["id"]))
    except (TypeError, ValueError):
        g.auth_error = (HTTPStatus.UNAUTHORIZED, "Invalid token.")
        return
    if user is None:
        g.auth_error = (HTTPStatus.UNAUTHORIZED, "User not found.")
        return
    if not user.is_active:
        g.auth_error = (HTTPStatus.UNAUTHORIZED, "Your account is deactivated.")
        return
    g.current_user = user


def _generate_otp() -> str:
    return str(100000 + secrets.randbelow(900000))


def _otp_deadline() -> datetime:
    return datetime.utcnow() + timedelta(seconds=int(current_app.config.get("OTP_EXPIRE_SECONDS") or 300))


def _find_by_email(email: str) -> Employee | None:
    return db_session().query(Employee).filter(Employee.email == email).one_or_none()


def _issue_otp(user: Employee, *, resend: bool) -> str:
    """Stores a fresh OTP on the employee, mails it, returns a forgot-password token."""
    otp = _generate_otp()
    user.otp = otp
    user.otp_expires_at = _otp_deadline()
    user.is_forgot_password_verified = False
    if not send_otp_email(user.email, user.name, otp, resend=resend):
        current_app.logger.warning("OTP email not delivered (employee_id=%s)", user.id)
    return generate_forgot_password_token(email=user.email)


@bp.post("/login")
@rate_limited("login")
def login():
    payload = request_payload()
    errors: Errors = {}
    reject_unknown(payload, {"email", "password"}, errors)
    email = clean_email(payload, "email", errors)
    password = clean_password(payload, "password", errors)
    raise_if_errors(errors, "login Validation Error")

    s = db_session()
    user = _find_by_email(email)  # type: ignore[arg-type]
    if user is None:
        record_event(s, actor=None, action="auth.login_failed", entity_type="Employee", entity_id=email)
        s.commit()
        raise ApiError(HTTPStatus.UNAUTHORIZED, "invalid email or password")
    if not user.is_active:
        raise ApiError(HTTPStatus.FORBIDDEN, "User account is deactivated!")
    if not user.password_hash or not check_password_hash(user.password_hash, password):  # type: ignore[arg-type]
        record_event(s, actor=None, action="auth.login_failed", entity_type="Employee", entity_id=str(user.id))
        s.commit()
        raise ApiError(HTTPStatus.UNAUTHORIZED, "invalid email or password")

    user.otp = None
    user.otp_expires_at = None
    user.change_password_expires_at = None
    user.is_forgot_password_verified = False
    user.last_login_at = datetime.utcnow()
    record_event(s, actor=user, action="auth.login", entity_type="Employee", entity_id=str(user.id))
    s.commit()

    access_token = generate_access_token(**user.claims())
    refresh_token = generate_refresh_token(**user.claims())
    current_app.extensions["rate_limiter"].reset("login", request.remote_addr or "unknown")

    resp = send_response(HTTPStatus.OK, "Login successful", {"accessToken": access_token, "user": user.to_safe_dict()})
    set_refresh_cookie(resp, refresh_token)
    set_access_cookie(resp, access_token)
    return resp


@bp.post("/refresh-token")
def refresh_token():
    payload = request_payload()
    token = request.cookies.get(REFRESH_COOKIE) or payload.get("refreshToken")
    if not token or not isinstance(token, str):
        raise ApiError(HTTPStatus.UNAUTHORIZED, "No refresh token provided")

    try:
        claims = verify_refresh_token(token)
    except TokenExpired:
        raise ApiError(HTTPStatus.UNAUTHORIZED, "Refresh token has expired.")
    except TokenInvalid:
        raise ApiError(HTTPStatus.UNAUTHORIZED, "Invalid token payload")

    s = db_session()
    try:
        user = s.get(Employee, int(claims["id"]))
    except (TypeError, ValueError):
        raise ApiError(HTTPStatus.UNAUTHORIZED, "Invalid token payload")
    if user is None:
        raise ApiError(HTTPStatus.NOT_FOUND, "User Not found")
    if not user.is_active:
        raise ApiError(HTTPStatus.FORBIDDEN, "User account is deactivated")

    # Claims come from the stored employee so role changes apply on the next refresh.
    access_token = generate_access_token(**user.claims())
    new_refresh_token = generate_refresh_token(**user.claims())
    resp = send_response(
        HTTPStatus.OK,
        "Access token refreshed successfully",
        {
            "accessToken": access_token,
            "user": {"id": user.id, "name": user.name, "email": user.email, "role": user.role},
        },
    )
    set_access_cookie(resp, access_token)
    set_refresh_cookie(resp, new_refresh_token)
    return resp


@bp.post("/logout")
def logout():
    user = getattr(g, "current_user", None)
    if user is not None:
        s = db_session()
        record_event(s, actor=user, action="auth.logout", entity_type="Employee", entity_id=str(user.id))
        s.commit()
    resp = send_response(HTTPStatus.OK, "Logout successful")
    clear_auth_cookies(resp)
    return resp


@bp.post("/forgot-password")
@rate_limited("forgot_password")
def forgot_password():
    payload = request_payload()
    errors: Errors = {}
    email = clean_email(payload, "email", errors)
    raise_if_errors(errors, "forgot password Validation error")

    user = _find_by_email(email)  # type: ignore[arg-type]
    if user is None:
        raise ApiError(HTTPStatus.NOT_FOUND, "invalid email or password")
    if not user.is_active:
        raise ApiError(HTTPStatus.FORBIDDEN, "User account is deactivated")

    s = db_session()
    token = _issue_otp(user, resend=False)
    record_event(s, actor=None, action="auth.forgot_password", entity_type="Employee", entity_id=str(user.id))
    s.commit()

    resp = send_response(
        HTTPStatus.OK,
        "Forgot password otp send to your email successful",
        {"forgotPasswordToken": token},
    )
    set_forgot_password_cookie(resp, token)
    return resp


@bp.post("/verify-forgot-password-otp")
def verify_forgot_password_otp():
    payload = request_payload()
    errors: Errors = {}
    otp = clean_otp(payload, "otp", errors)
    email = clean_email(payload, "email", errors)
    raise_if_errors(errors, "OTP Error")

    user = _find_by_email(email)  # type: ignore[arg-type]
    if user is None:
        raise ApiError(HTTPStatus.NOT_FOUND, "User Not found")
    if not user.is_active:
        raise ApiError(HTTPStatus.FORBIDDEN, "User account is deactivated")
    if not user.otp or not secrets.compare_digest(user.otp, otp):  # type: ignore[arg-type]
        raise ApiError(HTTPStatus.BAD_REQUEST, "OTP is not valid")
    if user.otp_expires_at and user.otp_expires_at < datetime.utcnow():
        raise ApiError(HTTPStatus.BAD_REQUEST, "OTP has expired")

    s = db_session()
    user.is_forgot_password_verified = True
    user.change_password_expires_at = _otp_deadline()
    user.otp = None
    user.otp_expires_at = None
    record_event(s, actor=None, action="auth.otp_verified", entity_type="Employee", entity_id=str(user.id))
    s.commit()
    return send_response(HTTPStatus.OK, "OTP verified successfully", {})


@bp.post("/change-password")
def change_password():
    payload = request_payload()
    errors: Errors = {}
    email = clean_email(payload, "email", errors)
    password = clean_password(payload, "password", errors)
    confirm = clean_password(payload, "confirmPassword", errors)
    if password and confirm and password != confirm:
        add_error(errors, "confirmPassword", "Passwords do not match")
    raise_if_errors(errors, "password Error")

    user = _find_by_email(email)  # type: ignore[arg-type]
    if user is None:
        raise ApiError(HTTPStatus.NOT_FOUND, "User Not found")
    if not user.is_active:
        raise ApiError(HTTPStatus.FORBIDDEN, "User account is deactivated")
    if not user.is_forgot_password_verified:
        raise ApiError(HTTPStatus.BAD_REQUEST, "Please verify OTP first")
    if user.change_password_expires_at and user.change_password_expires_at < datetime.utcnow():
        raise ApiError(HTTPStatus.BAD_REQUEST, "password change time has expired")

    s = db_session()
    user.password_hash = generate_password_hash(password)  # type: ignore[arg-type]
    user.is_forgot_password_verified = False
    user.change_password_expires_at = None
    record_event(s, actor=None, action="auth.password_reset", entity_type="Employee", entity_id=str(user.id))
    s.commit()
    return send_response(HTTPStatus.OK, "password change successfully", {"accessToken": None, "user": None})


@bp.post("/resend-otp")
@rate_limited("otp_resend")
def resend_otp():
    payload = request_payload()
    errors: Errors = {}
    email = clean_email(payload, "email", errors)
    raise_if_errors(errors, "Resend otp Error")

    user = _find_by_email(email)  # type: ignore[arg-type]
    if user is None:
        raise ApiError(HTTPStatus.NOT_FOUND, "User Not found")
    if not user.is_active:
        raise ApiError(HTTPStatus.FORBIDDEN, "User account is deactivated")

    s = db_session()
    token = _issue_otp(user, resend=True)
    s.commit()

    resp = send_response(HTTPStatus.OK, "resend otp successfully", {"forgotPasswordToken": token, "user": None})
    set_forgot_password_cookie(resp, token)
    return resp


@bp.post("/change-password-profile")
@require_auth
def change_password_profile():
    payload = request_payload()
    errors: Errors = {}
    current = clean_password(payload, "currentPassword", errors)
    new = clean_password(payload, "newPassword", errors)
    confirm = clean_password(payload, "confirmPassword", errors)
    if new and confirm and new != confirm:
        add_error(errors, "confirmPassword", "Passwords do not match")
    raise_if_errors(errors, "change password Error")

    user: Employee = g.current_user
    if not user.password_hash or not check_password_hash(user.password_hash, current):  # type: ignore[arg-type]
        raise ApiError(HTTPStatus.UNAUTHORIZED, "Current password is incorrect")

    s = db_session()
    user.password_hash = generate_password_hash(new)  # type: ignore[arg-type]
    record_event(s, actor=user, action="auth.password_change", entity_type="Employee", entity_id=str(user.id))
    s.commit()

    access_token = generate_access_token(**user.claims())
    resp = send_response(
        HTTPStatus.ACCEPTED,
        "password change successfully from profile",
        {
            "accessToken": access_token,
            "user": {
                "id": user.id,
                "name": user.name,
                "email": user.email,
                "role": user.role,
                "isActive": user.is_active,
            },
        },
    )
    set_access_cookie(resp, access_token)
    return resp
