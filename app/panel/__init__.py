import logging
import os
import time

from dotenv import load_dotenv
from flask import Flask, g, request

from app.panel.auth import bp as auth_bp, load_current_user
from app.panel.config import load_config
from app.panel.db import init_db, teardown_db_session
from app.panel.errors import register_error_handlers
from app.panel.modules.category.admin import bp as category_bp
from app.panel.modules.employees.admin import bp as employees_bp
from app.panel.ratelimit import init_rate_limiter
from app.panel.routes import bp as routes_bp

API_PREFIX = "/api/v1"
S3_REQUIRED = ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY")


def _check_production_config(app: Flask) -> None:
    """Refuse to boot a production panel on dev defaults."""
    if (app.config.get("ENV") or "").strip().lower() not in ("prod", "production"):
        return
    db_url = str(app.config.get("DATABASE_URL") or "").strip()
    problems = []
    if not db_url or db_url.startswith("sqlite"):
        problems.append("DATABASE_URL must point at Postgres")
    if str(app.config.get("SECRET_KEY") or "") in ("", "change-me"):
        problems.append("SECRET_KEY is unset or still the default")
    if app.config.get("TOKEN_SECRET_KEY") in ("", "change-me"):
        problems.append("TOKEN_SECRET_KEY is unset or still the default")
    if problems:
        raise RuntimeError("Production config rejected: " + "; ".join(problems))


def _dispose_engine_after_fork(app: Flask) -> None:
    # gunicorn --preload forks after create_app(); pooled connections must not be shared
    def _child() -> None:
        engine = app.extensions.get("sqlalchemy_engine")
        if engine is not None:
            engine.dispose(close=False)
            app.logger.info("DB pool reset in worker pid=%s", os.getpid())

    if hasattr(os, "register_at_fork"):
        os.register_at_fork(after_in_child=_child)


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())

    _check_production_config(app)
    init_db(app)
    _dispose_engine_after_fork(app)

    if app.config.get("STORAGE_BACKEND") == "s3":
        missing = [key for key in S3_REQUIRED if not app.config.get(key)]
        if missing:
            app.logger.error("S3 storage selected but %s not set; profile pictures will fail", ", ".join(missing))

    init_rate_limiter(app)
    register_error_handlers(app)

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix=f"{API_PREFIX}/auth")
    app.register_blueprint(category_bp, url_prefix=f"{API_PREFIX}/category")
    app.register_blueprint(employees_bp, url_prefix=f"{API_PREFIX}/employee")

    @app.before_request
    def _start_timer():
        g.request_started = time.perf_counter()

    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)

    @app.after_request
    def _cors(resp):
        origin = (app.config.get("FRONTEND_URL") or "").strip()
        if origin and request.headers.get("Origin") == origin:
            resp.headers["Access-Control-Allow-Origin"] = origin
            resp.headers["Access-Control-Allow-Credentials"] = "true"
            resp.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
            resp.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
            resp.headers.add("Vary", "Origin")
        return resp

    @app.after_request
    def _access_log(resp):
        started = getattr(g, "request_started", None)
        elapsed_ms = (time.perf_counter() - started) * 1000 if started else 0.0
        app.logger.info(
            "%s %s -> %s (%.1fms) ip=%s request_id=%s",
            request.method,
            request.path,
            resp.status_code,
            elapsed_ms,
            request.remote_addr,
            getattr(g, "request_id", None),
        )
        return resp

    logging.getLogger(__name__).info("panel create_app() complete (env=%s, storage=%s)", app.config["ENV"], app.config["STORAGE_BACKEND"])
    return app
