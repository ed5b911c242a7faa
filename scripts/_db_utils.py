from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.orm import Session

from app.panel.db import make_engine, normalize_database_url

DEFAULT_DATABASE_URL = "sqlite:///panel.db"


def resolve_database_url(database_url: str | None = None) -> str:
    return normalize_database_url(database_url or os.environ.get("DATABASE_URL") or DEFAULT_DATABASE_URL)


@contextmanager
def script_session(db_url: str) -> Iterator[Session]:
    """Session on a throwaway engine, for code that runs before any app exists."""
    engine = make_engine(db_url)
    with Session(engine, autoflush=False, expire_on_commit=False) as s:
        try:
            yield s
            s.commit()
        except Exception:
            s.rollback()
            raise
    engine.dispose()
