#!/usr/bin/env python3
"""
Container entrypoint: wait for Postgres, apply migrations, seed demo data, exec uvicorn.
"""
import os
import sys

from alembic import command
from alembic.config import Config
from sqlalchemy.orm import sessionmaker

from app.core.config import settings
from app.db.session import make_engine


def migrate() -> None:
    cfg = Config(os.path.join(os.path.dirname(os.path.abspath(__file__)), "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", settings.DATABASE_URL)
    command.upgrade(cfg, "head")


def seed() -> None:
    from app.seed import run as run_seed

    # fresh engine: the tables did not exist when app.db.session was imported
    seed_engine = make_engine(settings.DATABASE_URL)
    try:
        run_seed(sessionmaker(autocommit=False, autoflush=False, bind=seed_engine)())
    finally:
        seed_engine.dispose()


def main() -> None:
    if settings.DATABASE_URL.startswith("postgresql"):
        from wait_for_db import wait_for_postgres
        wait_for_postgres(settings.DATABASE_URL)
    migrate()
    seed()
    port = os.getenv("PORT", "8000")
    os.execv(sys.executable, [sys.executable, "-m", "uvicorn", "app.main:app", "--host", "0.0.0.0", "--port", port])


if __name__ == "__main__":
    main()
