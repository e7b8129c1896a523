from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from app.insign.config import load_settings
from app.insign.db import enable_sqlite_foreign_keys


def script_database_url(database_url: str | None = None) -> str:
    """Explicit URL first, then DATABASE_URL with the app's own default."""
    return (database_url or load_settings().database_url).strip()


@contextmanager
def script_session(database_url: str | None = None):
    """Session for release/seed/backfill jobs run without the Flask app; commits on success."""
    engine = create_engine(script_database_url(database_url), future=True, pool_pre_ping=True)
    enable_sqlite_foreign_keys(engine)
    s = Session(bind=engine, autoflush=False, expire_on_commit=False)
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()
