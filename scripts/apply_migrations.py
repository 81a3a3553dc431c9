"""Apply the circles schema migrations that have not run yet.

Each `NNNN_name.sql` file under `elonara/infra/migrations` runs in its own
transaction together with its `schema_migrations` bookkeeping row.
"""

from __future__ import annotations

import argparse
import pathlib
import time

import psycopg2

from elonara.settings import settings

MIGRATIONS_DIR = pathlib.Path(__file__).resolve().parent.parent / "elonara" / "infra" / "migrations"

_BOOKKEEPING_SQL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    version TEXT PRIMARY KEY,
    applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
"""


def _dsn() -> str:
    dsn = settings.postgres_url
    if settings.postgres_ssl and "sslmode=" not in dsn:
        dsn += ("&" if "?" in dsn else "?") + "sslmode=require"
    return dsn


def connect(attempts: int, delay: float) -> psycopg2.extensions.connection:
    """Connect, retrying while the server is still starting."""
    for attempt in range(1, attempts + 1):
        try:
            return psycopg2.connect(_dsn())
        except psycopg2.OperationalError as exc:
            if attempt == attempts:
                raise
            print(f"database not ready ({exc.__class__.__name__}), retry {attempt}/{attempts} in {delay}s")
            time.sleep(delay)
    raise SystemExit("could not connect to the database")


def pending(applied: set[str]) -> list[tuple[str, pathlib.Path]]:
    migrations = []
    for path in sorted(MIGRATIONS_DIR.glob("*.sql")):
        version = path.name.split("_", 1)[0]
        if version not in applied:
            migrations.append((version, path))
    return migrations


def main(attempts: int = 30, delay: float = 2.0, dry_run: bool = False) -> None:
    conn = connect(attempts, delay)
    try:
        with conn, conn.cursor() as cur:
            cur.execute(_BOOKKEEPING_SQL)
            cur.execute("SELECT version FROM schema_migrations")
            applied = {row[0] for row in cur.fetchall()}

        todo = pending(applied)
        if not todo:
            print("schema is up to date")
            return
        for version, path in todo:
            if dry_run:
                print(f"would apply {path.name}")
                continue
            try:
                with conn, conn.cursor() as cur:
                    cur.execute(path.read_text())
                    cur.execute("INSERT INTO schema_migrations (version) VALUES (%s)", (version,))
            except psycopg2.Error as exc:
                raise SystemExit(f"failed applying {path.name}: {exc}") from exc
            print(f"applied {path.name}")
    finally:
        conn.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--attempts", type=int, default=30, help="connection attempts before giving up")
    parser.add_argument("--delay", type=float, default=2.0, help="seconds between connection attempts")
    parser.add_argument("--dry-run", action="store_true", help="list pending migrations without applying them")
    args = parser.parse_args()
    main(args.attempts, args.delay, args.dry_run)
