"""Builders for test data. Rows are inserted directly; requests go through the API."""

from typing import Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.auth.models import Profile
from fellowship.auth.security import create_identity_token
from fellowship.core.enums import UserRole
from fellowship.core.models import ActivityType, Site, SmallGroup


def auth_headers(subject: str, email: Optional[str] = None, name: Optional[str] = None) -> Dict[str, str]:
    token = create_identity_token(subject, email=email or f"{subject}@example.com", name=name or subject)
    return {"Authorization": f"Bearer {token}"}


async def create_profile(
    db: AsyncSession,
    subject: str,
    role: UserRole,
    site_id: Optional[UUID] = None,
    small_group_id: Optional[UUID] = None,
) -> Dict[str, str]:
    """Insert a profile and return the auth headers for it."""
    db.add(
        Profile(
            id=subject,
            email=f"{subject}@example.com",
            name=subject,
            role=role.value,
            site_id=site_id,
            small_group_id=small_group_id,
        )
    )
    await db.commit()
    return auth_headers(subject)


async def create_site(db: AsyncSession, name: str = "Kinshasa") -> UUID:
    site = Site(name=name, city=name)
    db.add(site)
    await db.commit()
    return site.id


async def create_small_group(db: AsyncSession, site_id: UUID, name: str = "Campus A") -> UUID:
    group = SmallGroup(name=name, site_id=site_id)
    db.add(group)
    await db.commit()
    return group.id


async def create_activity_type(db: AsyncSession, name: str = "Bible Study") -> UUID:
    activity_type = ActivityType(name=name, category="spiritual")
    db.add(activity_type)
    await db.commit()
    return activity_type.id

