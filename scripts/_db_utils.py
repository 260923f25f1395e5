from __future__ import annotations

import os
from contextlib import contextmanager

from sqlalchemy.orm import Session, sessionmaker

from app.cellhub.db import create_db_engine


def database_url(explicit: str | None = None) -> str:
    return (explicit or os.environ.get("DATABASE_URL") or "sqlite:///cellhub.db").strip()


@contextmanager
def script_session(db_url: str):
    # Same engine setup as the app so SQLite savepoints and FKs behave identically.
    engine = create_db_engine(db_url)
    sm = sessionmaker(bind=engine, class_=Session, autoflush=False, autocommit=False, expire_on_commit=False, future=True)
    s: Session = sm()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()
