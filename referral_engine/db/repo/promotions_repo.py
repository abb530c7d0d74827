from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.db.models.promotions import Promotion


class PromotionsRepo:
    @staticmethod
    async def try_create_first_order_code(
        session: AsyncSession,
        *,
        user_id: UUID,
        code: str,
        name: str,
        description: str,
        discount_value: int,
        referral_bonus: bool,
        starts_at: datetime,
        ends_at: datetime,
        config_version: int,
        now_utc: datetime,
    ) -> bool:
        stmt = (
            postgresql_insert(Promotion)
            .values(
                id=uuid4(),
                code=code,
                name=name,
                description=description,
                user_id=user_id,
                discount_type="percentage",
                discount_value=discount_value,
                usage_limit=1,
                usage_count=0,
                starts_at=starts_at,
                ends_at=ends_at,
                is_active=True,
                is_first_order_code=True,
                referral_bonus=referral_bonus,
                config_version=config_version,
                created_at=now_utc,
            )
            .on_conflict_do_nothing()
            .returning(Promotion.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def get_first_order_code_by_user_id(
        session: AsyncSession,
        *,
        user_id: UUID,
    ) -> Promotion | None:
        stmt = select(Promotion).where(
            Promotion.user_id == user_id,
            Promotion.is_first_order_code.is_(True),
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_first_order_code_by_code(
        session: AsyncSession,
        *,
        code: str,
    ) -> Promotion | None:
        stmt = select(Promotion).where(
            Promotion.code == code,
            Promotion.is_first_order_code.is_(True),
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def consume_first_order_code(
        session: AsyncSession,
        *,
        user_id: UUID,
        code: str,
        order_id: str,
        now_utc: datetime,
    ) -> bool:
        stmt = (
            update(Promotion)
            .where(
                Promotion.code == code,
                Promotion.user_id == user_id,
                Promotion.is_first_order_code.is_(True),
                Promotion.is_active.is_(True),
                Promotion.starts_at <= now_utc,
                Promotion.ends_at >= now_utc,
                Promotion.usage_count < Promotion.usage_limit,
            )
            .values(
                usage_count=Promotion.usage_count + 1,
                used_order_id=order_id,
                used_at=now_utc,
            )
            .returning(Promotion.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def deactivate_expired_first_order_codes(
        session: AsyncSession,
        *,
        now_utc: datetime,
        limit: int,
    ) -> int:
        candidate_ids = (
            select(Promotion.id)
            .where(
                Promotion.is_first_order_code.is_(True),
                Promotion.is_active.is_(True),
                Promotion.ends_at <= now_utc,
            )
            .order_by(Promotion.ends_at.asc(), Promotion.id.asc())
            .limit(max(1, int(limit)))
            .scalar_subquery()
        )
        stmt = (
            update(Promotion)
            .where(Promotion.id.in_(candidate_ids))
            .values(is_active=False)
            .returning(Promotion.id)
        )
        result = await session.execute(stmt)
        return len(list(result.scalars()))
