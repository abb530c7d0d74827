from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.db.models.users import User


class UsersRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, user_id: UUID) -> User | None:
        return await session.get(User, user_id)

    @staticmethod
    async def get_by_id_for_update(session: AsyncSession, user_id: UUID) -> User | None:
        stmt = select(User).where(User.id == user_id).with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_status(session: AsyncSession, user_id: UUID) -> str | None:
        stmt = select(User.status).where(User.id == user_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def ensure_exists(
        session: AsyncSession,
        *,
        user_id: UUID,
        email: str,
        now_utc: datetime,
    ) -> User:
        stmt = (
            postgresql_insert(User)
            .values(
                id=user_id,
                email=email,
                status="ACTIVE",
                created_at=now_utc,
            )
            .on_conflict_do_nothing(index_elements=[User.id])
        )
        await session.execute(stmt)
        user = await UsersRepo.get_by_id(session, user_id)
        if user is None:
            raise RuntimeError("user row missing after upsert")
        return user
