import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from typing import AsyncGenerator, Dict  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from fellowship.core.enums import UserRole  # noqa: E402
from fellowship.db.session import Base, get_db  # noqa: E402
from fellowship.main import app  # noqa: E402
from tests.factories import create_activity_type, create_profile, create_site, create_small_group  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test; the app's get_db dependency is overridden to share this session."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
async def org(db_session: AsyncSession) -> Dict[str, object]:
    """
    One site with two small groups and a profile for every role:
    national, site coordinator of the site, leader of group A, member of group A, leader of group B.
    """
    site_id = await create_site(db_session)
    group_a = await create_small_group(db_session, site_id, "Campus A")
    group_b = await create_small_group(db_session, site_id, "Campus B")
    other_site = await create_site(db_session, "Lubumbashi")
    activity_type_id = await create_activity_type(db_session)
    return {
        "site_id": site_id,
        "other_site_id": other_site,
        "group_a": group_a,
        "group_b": group_b,
        "activity_type_id": activity_type_id,
        "national": await create_profile(db_session, "nat-1", UserRole.NATIONAL_COORDINATOR),
        "site_coord": await create_profile(db_session, "sc-1", UserRole.SITE_COORDINATOR, site_id=site_id),
        "leader_a": await create_profile(
            db_session, "lead-a", UserRole.SMALL_GROUP_LEADER, site_id=site_id, small_group_id=group_a
        ),
        "member_a": await create_profile(db_session, "mem-a", UserRole.MEMBER, site_id=site_id, small_group_id=group_a),
        "leader_b": await create_profile(
            db_session, "lead-b", UserRole.SMALL_GROUP_LEADER, site_id=site_id, small_group_id=group_b
        ),
    }
