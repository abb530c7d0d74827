from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.db.models.user_referral_codes import UserReferralCode


class ReferralCodesRepo:
    @staticmethod
    async def get_by_user_id(session: AsyncSession, user_id: UUID) -> UserReferralCode | None:
        return await session.get(UserReferralCode, user_id)

    @staticmethod
    async def get_by_code(session: AsyncSession, code: str) -> UserReferralCode | None:
        stmt = select(UserReferralCode).where(UserReferralCode.code == code)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def try_create(
        session: AsyncSession,
        *,
        user_id: UUID,
        code: str,
        now_utc: datetime,
    ) -> bool:
        stmt = (
            postgresql_insert(UserReferralCode)
            .values(
                user_id=user_id,
                code=code,
                is_active=True,
                total_referrals=0,
                total_conversions=0,
                total_earned=Decimal("0"),
                created_at=now_utc,
            )
            .on_conflict_do_nothing()
            .returning(UserReferralCode.user_id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def deactivate_for_user(session: AsyncSession, *, user_id: UUID) -> int:
        stmt = (
            update(UserReferralCode)
            .where(
                UserReferralCode.user_id == user_id,
                UserReferralCode.is_active.is_(True),
            )
            .values(is_active=False)
        )
        result = await session.execute(stmt)
        return result.rowcount or 0

    @staticmethod
    async def increment_referrals(session: AsyncSession, *, user_id: UUID) -> None:
        stmt = (
            update(UserReferralCode)
            .where(UserReferralCode.user_id == user_id)
            .values(total_referrals=UserReferralCode.total_referrals + 1)
        )
        await session.execute(stmt)

    @staticmethod
    async def apply_conversion_delta(
        session: AsyncSession,
        *,
        user_id: UUID,
        conversions_delta: int,
        earned_delta: Decimal,
    ) -> None:
        stmt = (
            update(UserReferralCode)
            .where(UserReferralCode.user_id == user_id)
            .values(
                total_conversions=UserReferralCode.total_conversions + conversions_delta,
                total_earned=UserReferralCode.total_earned + earned_delta,
            )
        )
        await session.execute(stmt)
