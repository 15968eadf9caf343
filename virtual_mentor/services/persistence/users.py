"""User profile persistence service."""
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from virtual_mentor.core.clock import Clock, utcnow
from virtual_mentor.db.models import User

PROFILE_FIELDS = ("name", "email", "phone", "timezone", "schedule_time")


class UserPersistenceService:
    """Service for reading and upserting user profiles."""

    def __init__(self, db: AsyncSession, clock: Clock = utcnow):
        self.db = db
        self.clock = clock

    async def get_user(self, uid: str) -> Optional[User]:
        return await self.db.get(User, uid, populate_existing=True)

    async def list_users(self) -> List[User]:
        result = await self.db.execute(select(User).order_by(User.created_at))
        return list(result.scalars().all())

    async def upsert_user(self, uid: str, **fields: Optional[str]) -> User:
        """Create the profile or update the given fields of an existing one."""
        unknown = set(fields) - set(PROFILE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown profile fields: {sorted(unknown)}")

        now = self.clock()
        user = await self.get_user(uid)
        if user is None:
            user = User(uid=uid, created_at=now)
            self.db.add(user)
        for key, value in fields.items():
            setattr(user, key, value)
        user.updated_at = now
        await self.db.commit()
        await self.db.refresh(user)
        return user
