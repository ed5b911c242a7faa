import pytest
from sqlalchemy import create_engine, inspect

from app.panel import create_app
from app.panel.db import normalize_database_url
from scripts._db_utils import resolve_database_url
from scripts.init_db import seed_only
from scripts.release import upgrade_schema


@pytest.fixture()
def db_url(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path/'release.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    monkeypatch.setenv("ADMIN_EMAIL", "root@example.com")
    monkeypatch.setenv("ADMIN_PASSWORD", "rootpass1")
    return url


def _tables(url):
    engine = create_engine(url)
    try:
        return set(inspect(engine).get_table_names())
    finally:
        engine.dispose()


def test_migrate_seed_then_login(db_url, tmp_path, monkeypatch):
    upgrade_schema(db_url)
    assert {"employees", "categories", "sub_categories", "audit_events"} <= _tables(db_url)

    admin = seed_only(database_url=db_url)
    assert admin.email == "root@example.com"

    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("UPLOAD_FOLDER", str(tmp_path / "uploads"))
    monkeypatch.setenv("RATE_LIMIT_ENABLED", "false")
    client = create_app().test_client()
    r = client.post("/api/v1/auth/login", json={"email": "root@example.com", "password": "rootpass1"})
    assert r.status_code == 200
    assert r.json["data"]["user"]["role"] == "superAdmin"


def test_seed_is_idempotent_and_keeps_password(db_url, monkeypatch):
    upgrade_schema(db_url)
    seed_only(database_url=db_url)
    # an existing admin never needs the variable again
    monkeypatch.delenv("ADMIN_PASSWORD")
    seed_only(database_url=db_url)


@pytest.mark.parametrize(
    "password, message",
    [
        (None, "Password is required"),
        ("change-me", "Password must contain both letters and numbers"),
        ("abc1", "Password must be at least 6 characters long"),
    ],
)
def test_seed_refuses_unusable_password(db_url, monkeypatch, password, message):
    upgrade_schema(db_url)
    if password is None:
        monkeypatch.delenv("ADMIN_PASSWORD")
    else:
        monkeypatch.setenv("ADMIN_PASSWORD", password)
    with pytest.raises(RuntimeError) as exc:
        seed_only(database_url=db_url)
    assert message in str(exc.value)


def test_upgrade_migrates_the_url_it_is_given(db_url, tmp_path):
    other = f"sqlite:///{tmp_path/'other.db'}"
    upgrade_schema(other)
    assert "employees" in _tables(other)
    assert not (tmp_path / "release.db").exists()


def test_legacy_postgres_scheme_is_rewritten(monkeypatch):
    assert normalize_database_url(" postgres://u:p@db:5432/panel ") == "postgresql://u:p@db:5432/panel"
    assert normalize_database_url("postgresql://u:p@db/panel") == "postgresql://u:p@db/panel"
    monkeypatch.setenv("DATABASE_URL", "postgres://u:p@db/panel")
    assert resolve_database_url() == "postgresql://u:p@db/panel"
