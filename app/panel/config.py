import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    token_secret_key: str
    access_token_ttl_seconds: int
    refresh_token_ttl_seconds: int
    forgot_password_token_ttl_seconds: int
    otp_expire_seconds: int
    cookie_samesite: str

    max_profile_pic_size: int
    storage_backend: str
    upload_folder: str
    s3_endpoint: str
    s3_region: str
    s3_bucket: str
    s3_access_key_id: str
    s3_secret_access_key: str

    smtp_server: str
    smtp_port: str
    smtp_use_tls: bool
    smtp_timeout_seconds: int
    smtp_username: str
    smtp_password: str
    email_from: str

    frontend_url: str
    rate_limit_enabled: bool


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getint(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _getbool(name: str, default: bool) -> bool:
    raw = _getenv(name).lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def load_settings() -> Settings:
    secret_key = _getenv("SECRET_KEY", "change-me")
    return Settings(
        secret_key=secret_key,
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///panel.db"),
        token_secret_key=_getenv("TOKEN_SECRET_KEY", secret_key),
        access_token_ttl_seconds=_getint("ACCESS_TOKEN_TTL_SECONDS", 60 * 60),
        refresh_token_ttl_seconds=_getint("REFRESH_TOKEN_TTL_SECONDS", 7 * 24 * 60 * 60),
        forgot_password_token_ttl_seconds=_getint("FORGOT_PASSWORD_TOKEN_TTL_SECONDS", 5 * 60),
        otp_expire_seconds=_getint("OTP_EXPIRE_SECONDS", 5 * 60),
        cookie_samesite=_getenv("COOKIE_SAMESITE", "Strict"),
        max_profile_pic_size=_getint("MAX_PROFILE_PIC_SIZE", 5 * 1024 * 1024),
        storage_backend=_getenv("STORAGE_BACKEND", "local"),
        upload_folder=_getenv("UPLOAD_FOLDER", "public/uploads"),
        s3_endpoint=_getenv("S3_ENDPOINT", ""),
        s3_region=_getenv("S3_REGION", "nyc3"),
        s3_bucket=_getenv("S3_BUCKET", ""),
        s3_access_key_id=_getenv("S3_ACCESS_KEY_ID", ""),
        s3_secret_access_key=_getenv("S3_SECRET_ACCESS_KEY", ""),
        smtp_server=_getenv("SMTP_SERVER", ""),
        smtp_port=_getenv("SMTP_PORT", ""),
        smtp_use_tls=_getbool("SMTP_USE_TLS", True),
        smtp_timeout_seconds=_getint("SMTP_TIMEOUT_SECONDS", 30),
        smtp_username=_getenv("SMTP_USERNAME", ""),
        smtp_password=_getenv("SMTP_PASSWORD", ""),
        email_from=_getenv("EMAIL_FROM", ""),
        frontend_url=_getenv("FRONTEND_URL", ""),
        rate_limit_enabled=_getbool("RATE_LIMIT_ENABLED", True),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        # tokens + auth cookies
        "TOKEN_SECRET_KEY": s.token_secret_key,
        "ACCESS_TOKEN_TTL_SECONDS": s.access_token_ttl_seconds,
        "REFRESH_TOKEN_TTL_SECONDS": s.refresh_token_ttl_seconds,
        "FORGOT_PASSWORD_TOKEN_TTL_SECONDS": s.forgot_password_token_ttl_seconds,
        "OTP_EXPIRE_SECONDS": s.otp_expire_seconds,
        "AUTH_COOKIE_SAMESITE": s.cookie_samesite,
        "AUTH_COOKIE_SECURE": is_production,  # Require HTTPS in production
        # uploads
        "MAX_PROFILE_PIC_SIZE": s.max_profile_pic_size,
        "STORAGE_BACKEND": s.storage_backend,
        "UPLOAD_FOLDER": s.upload_folder,
        "S3_ENDPOINT": s.s3_endpoint,
        "S3_REGION": s.s3_region,
        "S3_BUCKET": s.s3_bucket,
        "S3_ACCESS_KEY_ID": s.s3_access_key_id,
        "S3_SECRET_ACCESS_KEY": s.s3_secret_access_key,
        # mail
        "SMTP_SERVER": s.smtp_server,
        "SMTP_PORT": s.smtp_port,
        "SMTP_USE_TLS": s.smtp_use_tls,
        "SMTP_TIMEOUT_SECONDS": s.smtp_timeout_seconds,
        "SMTP_USERNAME": s.smtp_username,
        "SMTP_PASSWORD": s.smtp_password,
        "EMAIL_FROM": s.email_from,
        "FRONTEND_URL": s.frontend_url,
        "RATE_LIMIT_ENABLED": s.rate_limit_enabled,
        # request body ceiling (multipart included); per-file limits are checked in uploads
        "MAX_CONTENT_LENGTH": 25 * 1024 * 1024,
    }
