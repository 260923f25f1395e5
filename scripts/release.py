"""
Release phase: migrate the church database to head, confirm it got there,
then seed module name defaults and the optional demo church.

Usage:
  python scripts/release.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _database_url() -> str:
    db_url = (os.environ.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("Missing required environment variable DATABASE_URL.")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("Refusing to release against SQLite in production; point DATABASE_URL at Postgres.")
    return db_url


def _alembic_config(db_url: str):
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    return cfg


def _assert_at_head(cfg, db_url: str) -> str:
    from alembic.runtime.migration import MigrationContext
    from alembic.script import ScriptDirectory
    from sqlalchemy import create_engine

    heads = set(ScriptDirectory.from_config(cfg).get_heads())
    engine = create_engine(db_url)
    try:
        with engine.connect() as conn:
            current = set(MigrationContext.configure(conn).get_current_heads())
    finally:
        engine.dispose()
    if current != heads:
        raise RuntimeError(f"Schema not at head after upgrade (current={sorted(current)} heads={sorted(heads)}).")
    return ",".join(sorted(current))


def run_release() -> None:
    db_url = _database_url()
    from alembic import command

    cfg = _alembic_config(db_url)
    print("=== CellHub release ===", flush=True)
    command.upgrade(cfg, "head")
    print(f"Schema at revision {_assert_at_head(cfg, db_url)}.", flush=True)

    from scripts import init_db

    init_db.seed_only(database_url_override=db_url)
    print("Seed complete.", flush=True)


if __name__ == "__main__":
    run_release()
