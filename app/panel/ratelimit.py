from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import wraps
from http import HTTPStatus
from typing import Any

from flask import Flask, current_app, request

from app.panel.errors import ApiError


@dataclass(frozen=True)
class Limit:
    max_requests: int
    window_seconds: int
    message: str


LIMITS: dict[str, Limit] = {
    "login": Limit(10, 15 * 60, "Too many login attempts, please try again later."),
    "otp_resend": Limit(3, 2 * 60, "Too many OTP requests, please try again later."),
    "forgot_password": Limit(5, 30 * 60, "Too many forgot password attempts, please try again later."),
    "public": Limit(30, 15 * 60, "Too many requests, please try again later."),
}


class RateLimiter:
    """
    In-process sliding window keyed by (bucket, client ip).
    State lives per app instance (and per worker process).
    """

    sweep_interval = timedelta(minutes=1)

    def __init__(self) -> None:
        self._hits: dict[tuple[str, str], list[datetime]] = {}
        self._last_sweep = datetime.utcnow()

    def _sweep(self, now: datetime) -> None:
        # drop clients whose newest attempt has left every window
        horizon = now - timedelta(seconds=max(lim.window_seconds for lim in LIMITS.values()))
        for key in [k for k, hits in self._hits.items() if not hits or hits[-1] <= horizon]:
            del self._hits[key]
        self._last_sweep = now

    def hit(self, bucket: str, ip: str, limit: Limit) -> bool:
        """Record an attempt; returns False when the window is already full."""
        now = datetime.utcnow()
        if now - self._last_sweep >= self.sweep_interval:
            self._sweep(now)
        cutoff = now - timedelta(seconds=limit.window_seconds)
        key = (bucket, ip)
        hits = [t for t in self._hits.get(key, ()) if t > cutoff]
        if len(hits) >= limit.max_requests:
            self._hits[key] = hits
            return False
        hits.append(now)
        self._hits[key] = hits
        return True

    def reset(self, bucket: str, ip: str) -> None:
        self._hits.pop((bucket, ip), None)


def init_rate_limiter(app: Flask) -> None:
    app.extensions["rate_limiter"] = RateLimiter()


def rate_limited(bucket: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    limit = LIMITS[bucket]

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            if current_app.config.get("RATE_LIMIT_ENABLED", True):
                limiter: RateLimiter = current_app.extensions["rate_limiter"]
                ip = request.remote_addr or "unknown"
                if not limiter.hit(bucket, ip, limit):
                    current_app.logger.warning("Rate limit hit: bucket=%s ip=%s", bucket, ip)
                    raise ApiError(HTTPStatus.TOO_MANY_REQUESTS, limit.message)
            return fn(*args, **kwargs)

        return wrapped

    return decorator
