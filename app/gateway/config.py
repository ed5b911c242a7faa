import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    backend_url: str
    proxy_timeout_seconds: int
    cookie_domain: str
    access_token_ttl_seconds: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getint(name: str, default: int) -> int:
    try:
        return int(_getenv(name) or default)
    except ValueError:
        return default


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        backend_url=_getenv("BACKEND_URL", "http://localhost:5001/api/v1").rstrip("/"),
        proxy_timeout_seconds=_getint("PROXY_TIMEOUT_SECONDS", 30),
        cookie_domain=_getenv("COOKIE_DOMAIN", ""),
        access_token_ttl_seconds=_getint("ACCESS_TOKEN_TTL_SECONDS", 60 * 60),
    )


def load_config() -> dict:
    s = load_settings()
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "BACKEND_URL": s.backend_url,
        "PROXY_TIMEOUT_SECONDS": s.proxy_timeout_seconds,
        # Empty: cookies become host-only on the gateway origin
        "COOKIE_DOMAIN": s.cookie_domain,
        "COOKIE_SECURE": s.env in ("prod", "production"),
        "ACCESS_TOKEN_TTL_SECONDS": s.access_token_ttl_seconds,
    }
