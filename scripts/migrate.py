"""
Apply the raw SQL schema migrations.

Executes every .sql file in ``migrations/`` in sorted order
(001_create_operators.sql, 002_create_jobs.sql, ...) inside one transaction.
A ``_migrations_applied`` table records which files have run, so the script
can be re-run safely.

Usage::

    python scripts/migrate.py
"""

from __future__ import annotations

import asyncio
import glob
import os
import sys

from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

# Ensure the project root is on sys.path so ``ryde`` is importable
_project_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _project_dir not in sys.path:
    sys.path.insert(0, _project_dir)

from ryde.core.config import settings  # noqa: E402

MIGRATION_DIR = os.path.join(_project_dir, "migrations")

_CREATE_TRACKING_TABLE = """
CREATE TABLE IF NOT EXISTS _migrations_applied (
    filename   TEXT PRIMARY KEY,
    applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

_CHECK_APPLIED = "SELECT 1 FROM _migrations_applied WHERE filename = :filename;"

_RECORD_APPLIED = "INSERT INTO _migrations_applied (filename) VALUES (:filename);"


async def run_migrations() -> None:
    """Connect to the database and apply all pending SQL migrations."""
    sql_files = sorted(glob.glob(os.path.join(MIGRATION_DIR, "*.sql")))
    if not sql_files:
        print(f"No SQL files found in {MIGRATION_DIR}")
        return

    print(f"Found {len(sql_files)} migration files in {MIGRATION_DIR}")
    engine = create_async_engine(settings.database_url)
    applied = skipped = 0

    async with engine.begin() as conn:
        await conn.execute(text(_CREATE_TRACKING_TABLE))

        for sql_file in sql_files:
            filename = os.path.basename(sql_file)

            result = await conn.execute(text(_CHECK_APPLIED), {"filename": filename})
            if result.scalar() is not None:
                print(f"  SKIP  {filename}")
                skipped += 1
                continue

            print(f"  APPLY {filename} ...")
            with open(sql_file, "r") as f:
                sql_content = f.read()

            # text() uses a prepared statement and rejects multi-statement files;
            # asyncpg's own execute() takes the simple query protocol.
            raw_conn = await conn.get_raw_connection()
            await raw_conn.dbapi_connection._connection.execute(sql_content)

            await conn.execute(text(_RECORD_APPLIED), {"filename": filename})
            applied += 1

    print(f"\nDone. Applied: {applied}, Skipped: {skipped}, Total: {len(sql_files)}")
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(run_migrations())
