from datetime import datetime, timedelta

import pytest
from werkzeug.security import check_password_hash, generate_password_hash

from app.panel import create_app
from app.panel.db import session_scope
from app.panel.models import ROLE_EDITOR, ROLE_SUPER_ADMIN, AuditEvent, Base, Employee
from app.panel.ratelimit import LIMITS, RateLimiter
from app.panel.tokens import generate_access_token, generate_refresh_token


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("UPLOAD_FOLDER", str(tmp_path / "uploads"))
    monkeypatch.setenv("RATE_LIMIT_ENABLED", "false")
    monkeypatch.delenv("SMTP_SERVER", raising=False)

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    with session_scope(app) as s:
        s.add_all(
            [
                Employee(
                    employer_id="EMP-1",
                    name="Admin",
                    email="admin@example.com",
                    password_hash=generate_password_hash("admin123"),
                    role=ROLE_SUPER_ADMIN,
                    is_active=True,
                ),
                Employee(
                    employer_id="EMP-2",
                    name="Gone",
                    email="gone@example.com",
                    password_hash=generate_password_hash("gone1234"),
                    role=ROLE_EDITOR,
                    is_active=False,
                ),
            ]
        )
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _employee(app, email):
    with session_scope(app) as s:
        return s.query(Employee).filter(Employee.email == email).one()


def _login(client, email="admin@example.com", password="admin123"):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


def test_login_sets_both_cookies(client):
    r = _login(client)
    assert r.status_code == 200
    assert r.json["message"] == "Login successful"
    assert r.json["data"]["accessToken"]
    assert "passwordHash" not in r.json["data"]["user"]

    cookies = r.headers.getlist("Set-Cookie")
    assert any(c.startswith("accessToken=") and "HttpOnly" in c for c in cookies)
    assert any(c.startswith("refreshToken=") for c in cookies)


def test_login_wrong_password(client):
    r = _login(client, password="wrong123")
    assert r.status_code == 401
    assert r.json["message"] == "invalid email or password"


def test_login_unknown_email_is_indistinguishable(client):
    r = _login(client, email="nobody@example.com")
    assert r.status_code == 401
    assert r.json["message"] == "invalid email or password"


def test_login_deactivated(client):
    r = _login(client, email="gone@example.com", password="gone1234")
    assert r.status_code == 403
    assert r.json["message"] == "User account is deactivated!"


def test_login_rejects_unknown_keys_and_bad_password_shape(client):
    r = client.post(
        "/api/v1/auth/login",
        json={"email": "admin@example.com", "password": "short", "remember": True},
    )
    assert r.status_code == 400
    assert r.json["errors"]["remember"] == ["Unrecognized key: remember"]
    assert r.json["errors"]["password"] == ["Password must be at least 6 characters long"]


def test_login_records_audit_event(app, client):
    _login(client)
    with session_scope(app) as s:
        actions = [e.action for e in s.query(AuditEvent).all()]
    assert "auth.login" in actions


def test_refresh_token_from_cookie(app, client):
    _login(client)
    r = client.post("/api/v1/auth/refresh-token")
    assert r.status_code == 200
    assert r.json["message"] == "Access token refreshed successfully"
    assert r.json["data"]["user"]["role"] == ROLE_SUPER_ADMIN
    names = [c.split("=", 1)[0] for c in r.headers.getlist("Set-Cookie")]
    assert "accessToken" in names
    assert "refreshToken" in names


def test_refresh_token_missing(client):
    r = client.post("/api/v1/auth/refresh-token")
    assert r.status_code == 401
    assert r.json["message"] == "No refresh token provided"


def test_refresh_token_rejects_access_token(app, client):
    admin = _employee(app, "admin@example.com")
    with app.app_context():
        access = generate_access_token(**admin.claims())
    r = client.post("/api/v1/auth/refresh-token", json={"refreshToken": access})
    assert r.status_code == 401
    assert r.json["message"] == "Invalid token payload"


def test_refresh_token_for_deactivated_user(app, client):
    gone = _employee(app, "gone@example.com")
    with app.app_context():
        token = generate_refresh_token(**gone.claims())
    r = client.post("/api/v1/auth/refresh-token", json={"refreshToken": token})
    assert r.status_code == 403


def test_bearer_token_is_accepted(app, client):
    admin = _employee(app, "admin@example.com")
    with app.app_context():
        token = generate_access_token(**admin.claims())
    r = client.get("/api/v1/employee/get-all-sup", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200


def test_garbage_token_is_rejected(client):
    r = client.get("/api/v1/employee/get-all-sup", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401
    assert r.json["message"] == "Invalid token."


def test_expired_access_token_is_rejected(app, client):
    admin = _employee(app, "admin@example.com")
    with app.app_context():
        token = generate_access_token(**admin.claims())
    # any age is past a negative lifetime
    app.config["ACCESS_TOKEN_TTL_SECONDS"] = -1
    r = client.get("/api/v1/employee/get-all-sup", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
    assert r.json["message"] == "Token has expired."


def test_token_of_deactivated_employee_is_rejected(app, client):
    gone = _employee(app, "gone@example.com")
    with app.app_context():
        token = generate_access_token(**gone.claims())
    r = client.get("/api/v1/employee/get", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
    assert r.json["message"] == "Your account is deactivated."


def test_logout_clears_cookies(client):
    _login(client)
    r = client.post("/api/v1/auth/logout")
    assert r.status_code == 200
    assert r.json["message"] == "Logout successful"
    assert client.get_cookie("accessToken") is None
    assert client.get_cookie("refreshToken") is None


def test_forgot_password_full_flow(app, client):
    r = client.post("/api/v1/auth/forgot-password", json={"email": "admin@example.com"})
    assert r.status_code == 200
    assert r.json["data"]["forgotPasswordToken"]
    otp = _employee(app, "admin@example.com").otp
    assert otp and len(otp) == 6

    r = client.post("/api/v1/auth/change-password", json={
        "email": "admin@example.com",
        "password": "newpass1",
        "confirmPassword": "newpass1",
    })
    assert r.status_code == 400
    assert r.json["message"] == "Please verify OTP first"

    wrong = "000000" if otp != "000000" else "111111"
    r = client.post("/api/v1/auth/verify-forgot-password-otp", json={"email": "admin@example.com", "otp": wrong})
    assert r.status_code == 400
    assert r.json["message"] == "OTP is not valid"

    r = client.post("/api/v1/auth/verify-forgot-password-otp", json={"email": "admin@example.com", "otp": otp})
    assert r.status_code == 200
    assert r.json["message"] == "OTP verified successfully"

    r = client.post("/api/v1/auth/change-password", json={
        "email": "admin@example.com",
        "password": "newpass1",
        "confirmPassword": "newpass2",
    })
    assert r.status_code == 400
    assert r.json["errors"]["confirmPassword"] == ["Passwords do not match"]

    r = client.post("/api/v1/auth/change-password", json={
        "email": "admin@example.com",
        "password": "newpass1",
        "confirmPassword": "newpass1",
    })
    assert r.status_code == 200
    assert r.json["message"] == "password change successfully"
    assert check_password_hash(_employee(app, "admin@example.com").password_hash, "newpass1")

    assert _login(client, password="newpass1").status_code == 200


def test_forgot_password_unknown_email(client):
    r = client.post("/api/v1/auth/forgot-password", json={"email": "nobody@example.com"})
    assert r.status_code == 404


def test_expired_otp(app, client):
    client.post("/api/v1/auth/forgot-password", json={"email": "admin@example.com"})
    with session_scope(app) as s:
        e = s.query(Employee).filter(Employee.email == "admin@example.com").one()
        e.otp_expires_at = datetime.utcnow() - timedelta(seconds=1)
        otp = e.otp
    r = client.post("/api/v1/auth/verify-forgot-password-otp", json={"email": "admin@example.com", "otp": otp})
    assert r.status_code == 400
    assert r.json["message"] == "OTP has expired"


def test_change_password_window_lapses(app, client):
    client.post("/api/v1/auth/forgot-password", json={"email": "admin@example.com"})
    otp = _employee(app, "admin@example.com").otp
    r = client.post("/api/v1/auth/verify-forgot-password-otp", json={"email": "admin@example.com", "otp": otp})
    assert r.status_code == 200

    with session_scope(app) as s:
        e = s.query(Employee).filter(Employee.email == "admin@example.com").one()
        e.change_password_expires_at = datetime.utcnow() - timedelta(seconds=1)

    r = client.post("/api/v1/auth/change-password", json={
        "email": "admin@example.com",
        "password": "newpass1",
        "confirmPassword": "newpass1",
    })
    assert r.status_code == 400
    assert r.json["message"] == "password change time has expired"
    assert check_password_hash(_employee(app, "admin@example.com").password_hash, "admin123")


def test_resend_otp_replaces_code(app, client):
    client.post("/api/v1/auth/forgot-password", json={"email": "admin@example.com"})
    r = client.post("/api/v1/auth/resend-otp", json={"email": "admin@example.com"})
    assert r.status_code == 200
    assert r.json["data"]["forgotPasswordToken"]
    assert _employee(app, "admin@example.com").otp


def test_otp_shape_is_validated(client):
    r = client.post("/api/v1/auth/verify-forgot-password-otp", json={"email": "admin@example.com", "otp": "12ab"})
    assert r.status_code == 400
    assert r.json["errors"]["otp"] == ["OTP must be exactly 6 digits number"]


def test_change_password_from_profile(app, client):
    _login(client)
    r = client.post("/api/v1/auth/change-password-profile", json={
        "currentPassword": "wrong123",
        "newPassword": "fresh123",
        "confirmPassword": "fresh123",
    })
    assert r.status_code == 401
    assert r.json["message"] == "Current password is incorrect"

    r = client.post("/api/v1/auth/change-password-profile", json={
        "currentPassword": "admin123",
        "newPassword": "fresh123",
        "confirmPassword": "fresh123",
    })
    assert r.status_code == 202
    assert r.json["data"]["user"]["isActive"] is True
    assert check_password_hash(_employee(app, "admin@example.com").password_hash, "fresh123")


def test_change_password_from_profile_requires_login(client):
    r = client.post("/api/v1/auth/change-password-profile", json={})
    assert r.status_code == 401


def test_login_rate_limit(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'limit.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("RATE_LIMIT_ENABLED", "true")
    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    client = app.test_client()

    statuses = [_login(client, email="nobody@example.com").status_code for _ in range(11)]
    assert statuses[:10] == [401] * 10
    assert statuses[10] == 429


def test_rate_limiter_forgets_idle_clients():
    limiter = RateLimiter()
    login = LIMITS["login"]
    assert limiter.hit("login", "10.0.0.1", login)

    # pretend that client went quiet long ago and the sweep is due
    long_ago = datetime.utcnow() - timedelta(hours=2)
    limiter._hits[("login", "10.0.0.1")] = [long_ago]
    limiter._last_sweep = long_ago

    assert limiter.hit("login", "10.0.0.2", login)
    assert ("login", "10.0.0.1") not in limiter._hits
    assert ("login", "10.0.0.2") in limiter._hits
