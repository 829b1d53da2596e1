"""User lookups."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from classroom_live.models.user import User


async def get_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
    return await db.get(User, user_id)
