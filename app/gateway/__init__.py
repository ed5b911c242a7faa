import logging

from dotenv import load_dotenv
from flask import Flask

from app.gateway.config import load_config
from app.gateway.middleware import init_session_guard
from app.gateway.pages import bp as pages_bp
from app.gateway.proxy import bp as proxy_bp


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())

    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
        if not str(app.config.get("BACKEND_URL") or "").startswith("https://"):
            app.logger.warning("BACKEND_URL is not https in production: %s", app.config.get("BACKEND_URL"))

    init_session_guard(app)
    app.register_blueprint(proxy_bp)
    app.register_blueprint(pages_bp)

    @app.get("/healthz")
    def healthz():
        return "ok", 200

    logging.getLogger(__name__).info("gateway create_app() complete; backend=%s", app.config["BACKEND_URL"])
    return app
