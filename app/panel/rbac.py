from collections.abc import Callable
from functools import wraps
from http import HTTPStatus
from typing import Any

from flask import g

from app.panel.errors import ApiError
from app.panel.models import Employee


def employee_has_role(user: Employee | None, *roles: str) -> bool:
    if not user or not user.is_active:
        return False
    return user.role in roles


def _authenticated_user() -> Employee:
    user: Employee | None = getattr(g, "current_user", None)
    if user is None:
        status, message = getattr(g, "auth_error", None) or (
            HTTPStatus.UNAUTHORIZED,
            "Access denied. No token provided.",
        )
        raise ApiError(status, message)
    return user


def require_auth(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        _authenticated_user()
        return fn(*args, **kwargs)

    return wrapped


def require_roles(*roles: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user = _authenticated_user()
            # Authenticated but unauthorized -> 403
            if not employee_has_role(user, *roles):
                g.missing_role = roles
                raise ApiError(HTTPStatus.FORBIDDEN, "Access denied: Insufficient role.")
            return fn(*args, **kwargs)

        return wrapped

    return decorator
