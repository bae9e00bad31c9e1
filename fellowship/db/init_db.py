"""
Create tables and seed the default activity types.

Run with: python -m fellowship.db.init_db
"""
import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

# Import all models so Base.metadata knows every table
import fellowship.core.models  # noqa: F401
from fellowship.api.v1.activities.service import DEFAULT_ACTIVITY_TYPES
from fellowship.core.logging_config import configure_logging
from fellowship.core.models import ActivityType
from fellowship.db.session import AsyncSessionLocal, Base, engine

logger = logging.getLogger(__name__)


async def seed_activity_types(db: AsyncSession) -> int:
    """Insert missing default activity types. Existing ones are left as they are."""
    result = await db.execute(select(ActivityType.name))
    existing = set(result.scalars().all())
    created = 0
    for name, category in DEFAULT_ACTIVITY_TYPES:
        if name in existing:
            continue
        db.add(ActivityType(name=name, category=category))
        created += 1
    await db.commit()
    return created


async def main() -> None:
    configure_logging()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with AsyncSessionLocal() as db:
        try:
            created = await seed_activity_types(db)
        except Exception:
            logger.exception("Seeding activity types failed")
            await db.rollback()
            raise
    logger.info("Database ready; %s activity type(s) seeded", created)
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
