import pytest
from werkzeug.security import generate_password_hash

from app.panel import create_app
from app.panel.db import session_scope
from app.panel.models import ROLE_SUPER_ADMIN, Base, Employee


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("UPLOAD_FOLDER", str(tmp_path / "uploads"))
    monkeypatch.delenv("SMTP_SERVER", raising=False)

    app = create_app()

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        s.add(
            Employee(
                employer_id="EMP-1",
                name="Admin",
                email="admin@example.com",
                password_hash=generate_password_hash("admin123"),
                role=ROLE_SUPER_ADMIN,
                is_active=True,
            )
        )

    return app.test_client()


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True

    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_unknown_route_is_json_404(client):
    r = client.get("/api/v1/nope")
    assert r.status_code == 404
    assert r.json["success"] is False
    assert r.json["message"] == "API endpoint not found: /api/v1/nope"


def test_guarded_route_without_token(client):
    r = client.get("/api/v1/employee/get-all")
    assert r.status_code == 401
    assert r.json["message"] == "Access denied. No token provided."


def test_login_and_admin_access(client):
    r = client.post("/api/v1/auth/login", json={"email": "admin@example.com", "password": "admin123"})
    assert r.status_code == 200
    assert r.json["data"]["user"]["email"] == "admin@example.com"

    # cookie set by login is enough for the admin routes
    r = client.get("/api/v1/employee/get-all-sup")
    assert r.status_code == 200
    assert r.json["data"]["pagination"]["total"] == 1
    assert r.json["data"]["accessToken"]


def test_production_refuses_dev_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv("ENV", "production")
    monkeypatch.setenv("SECRET_KEY", "change-me")
    monkeypatch.delenv("TOKEN_SECRET_KEY", raising=False)
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'prod.db'}")

    with pytest.raises(RuntimeError) as exc:
        create_app()
    assert "DATABASE_URL must point at Postgres" in str(exc.value)
    assert "SECRET_KEY is unset or still the default" in str(exc.value)
