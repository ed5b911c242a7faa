from __future__ import annotations

from typing import Any

from flask import Response, g, jsonify

from app.panel.cookies import set_access_cookie
from app.panel.tokens import generate_access_token


def send_response(
    status_code: int,
    message: str,
    data: Any = None,
    *,
    renew_session: bool = False,
) -> Response:
    """
    Success envelope: {success, statusCode, message, error, data}.

    With renew_session the acting employee gets a freshly issued access token,
    both as the `accessToken` cookie and echoed in data, which keeps an active
    admin signed in (sliding expiration).
    """
    access_token = None
    if renew_session:
        user = getattr(g, "current_user", None)
        if user is not None:
            access_token = generate_access_token(**user.claims())
            data = dict(data or {})
            data["accessToken"] = access_token
            data["user"] = user.claims()

    resp = jsonify(
        {
            "success": True,
            "statusCode": int(status_code),
            "message": message,
            "error": None,
            "data": data,
        }
    )
    resp.status_code = int(status_code)
    set_access_cookie(resp, access_token)
    return resp
