"""
Seed the first super admin so the panel can be logged into.

Idempotent: an existing account with ADMIN_EMAIL is promoted to an active
superAdmin but its password is left alone. Creating a new account requires
ADMIN_PASSWORD, and it must pass the same rules the login form applies.

Usage:
  ADMIN_PASSWORD=... python scripts/init_db.py
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.panel.models import DEFAULT_PROFILE_PICTURE, ROLE_SUPER_ADMIN, Employee  # noqa: E402
from app.panel.validation import Errors, clean_password  # noqa: E402
from scripts._db_utils import resolve_database_url, script_session  # noqa: E402


def _admin_password() -> str:
    errors: Errors = {}
    password = clean_password({"ADMIN_PASSWORD": os.environ.get("ADMIN_PASSWORD") or ""}, "ADMIN_PASSWORD", errors)
    if password is None:
        problems = "; ".join(errors.get("ADMIN_PASSWORD", [])) or "invalid"
        raise RuntimeError(f"Cannot seed super admin from ADMIN_PASSWORD: {problems}")
    return password


def seed_only(*, database_url: str | None = None) -> Employee:
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@example.com").strip().lower()
    admin_name = (os.environ.get("ADMIN_NAME") or "Super Admin").strip()
    admin_employer_id = (os.environ.get("ADMIN_EMPLOYER_ID") or "EMP-0001").strip()

    with script_session(resolve_database_url(database_url)) as s:
        admin = s.query(Employee).filter(Employee.email == admin_email).one_or_none()
        if admin is None:
            admin = Employee(
                employer_id=admin_employer_id,
                name=admin_name,
                email=admin_email,
                password_hash=generate_password_hash(_admin_password()),
                profile_picture_path=DEFAULT_PROFILE_PICTURE,
            )
            s.add(admin)
            created = True
        else:
            created = False
        admin.role = ROLE_SUPER_ADMIN
        admin.is_active = True

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email} ({'created' if created else 'already present'})")
    print("Admin password: (from ADMIN_PASSWORD)")
    return admin


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
