"""
Assign RYDE<DDMMYYYY>-<N> references to jobs created before refs existed.

Usage::

    python scripts/backfill_job_refs.py             # every driver
    python scripts/backfill_job_refs.py <user_id>   # one driver
"""

import asyncio
import sys
import uuid
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Path setup
SCRIPT_DIR = Path(__file__).resolve().parent
PROJECT_DIR = SCRIPT_DIR.parent
sys.path.insert(0, str(PROJECT_DIR))

from ryde.core.config import settings
from ryde.services import jobService

DATABASE_URL = settings.database_url


async def backfill_job_refs(user_id=None):
    scope = f"user {user_id}" if user_id else "all users"
    print(f"Backfilling job refs for {scope}...")
    engine = create_async_engine(DATABASE_URL, echo=False)
    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session() as session:
        async with session.begin():
            assigned = await jobService.backfill_job_refs(session, user_id=user_id)
            for job_id, job_ref in assigned.items():
                print(f"Updated job {job_id} -> {job_ref}")

            print(f"Backfilled {len(assigned)} job refs.")

    await engine.dispose()


if __name__ == "__main__":
    target = uuid.UUID(sys.argv[1]) if len(sys.argv) > 1 else None
    asyncio.run(backfill_job_refs(target))
