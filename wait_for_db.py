import os
import time
from urllib.parse import urlparse

import psycopg2


def postgres_params(database_url: str) -> dict:
    # psycopg2 wants plain keyword args, not a SQLAlchemy URL
    p = urlparse(database_url.replace("postgresql+psycopg2://", "postgresql://"))
    return {
        "host": p.hostname or "db",
        "port": p.port or 5432,
        "user": p.username or "evcharge",
        "password": p.password or "evcharge",
        "dbname": (p.path or "").lstrip("/") or "evcharge",
    }


def wait_for_postgres(database_url: str, timeout_s: int | None = None) -> None:
    if timeout_s is None:
        timeout_s = int(os.getenv("DB_WAIT_TIMEOUT", "60"))
    params = postgres_params(database_url)
    deadline = time.time() + timeout_s

    print(f"[wait_for_db] {params['host']}:{params['port']} db={params['dbname']} (timeout={timeout_s}s)")
    while True:
        try:
            psycopg2.connect(**params).close()
        except psycopg2.OperationalError as e:
            if time.time() > deadline:
                print(f"[wait_for_db] gave up: {e}")
                raise
            time.sleep(1)
        else:
            print("[wait_for_db] ready.")
            return


if __name__ == "__main__":
    from app.core.config import settings
    wait_for_postgres(settings.DATABASE_URL)
