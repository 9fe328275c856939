from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from workscore.models.user import User, Team


async def get_user(db: AsyncSession, user_id: int) -> Optional[User]:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def list_active_users(db: AsyncSession) -> List[User]:
    result = await db.execute(
        select(User).where(User.is_active.is_(True)).order_by(User.id)
    )
    return list(result.scalars().all())


async def get_team(db: AsyncSession, team_id: int) -> Optional[Team]:
    result = await db.execute(select(Team).where(Team.id == team_id))
    return result.scalar_one_or_none()


async def list_teams(db: AsyncSession) -> List[Team]:
    result = await db.execute(select(Team).order_by(Team.id))
    return list(result.scalars().all())


async def list_team_members(db: AsyncSession, team_id: int) -> List[User]:
    result = await db.execute(
        select(User)
        .where(User.team_id == team_id)
        .where(User.is_active.is_(True))
        .order_by(User.id)
    )
    return list(result.scalars().all())
