"""
Release phase for the panel backend.

Upgrades the schema to the newest Alembic revision, then makes sure a
super admin exists (see init_db.seed_only). Safe to run on every deploy.

Usage:
  DATABASE_URL=postgresql://... python scripts/release.py
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from scripts._db_utils import resolve_database_url  # noqa: E402


def _release_database_url() -> str:
    if not (os.environ.get("DATABASE_URL") or "").strip():
        raise RuntimeError("DATABASE_URL must be set for the release phase.")
    url = resolve_database_url()
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and url.startswith("sqlite"):
        raise RuntimeError("sqlite is not a production database; point DATABASE_URL at Postgres.")
    return url


def upgrade_schema(db_url: str, revision: str = "head") -> None:
    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    # migrations/env.py prefers this over DATABASE_URL
    cfg.attributes["database_url"] = resolve_database_url(db_url)
    command.upgrade(cfg, revision)


def run_release() -> None:
    db_url = _release_database_url()
    print(f"release: upgrading schema ({db_url.split(':', 1)[0]})", flush=True)
    upgrade_schema(db_url)

    from scripts.init_db import seed_only

    admin = seed_only(database_url=db_url)
    print(f"release: done, super admin is {admin.email}", flush=True)


if __name__ == "__main__":
    run_release()
