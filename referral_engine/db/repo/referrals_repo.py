from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import func, select, text, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.db.models.referrals import Referral


class ReferralsRepo:
    @staticmethod
    async def try_create_pending(
        session: AsyncSession,
        *,
        referrer_user_id: UUID,
        referee_user_id: UUID,
        referral_code: str,
        reward_amount: Decimal,
        minimum_order_amount: Decimal,
        ip_address: str | None,
        config_version: int,
        now_utc: datetime,
    ) -> UUID | None:
        stmt = (
            postgresql_insert(Referral)
            .values(
                id=uuid4(),
                referrer_user_id=referrer_user_id,
                referee_user_id=referee_user_id,
                referral_code=referral_code,
                status="pending",
                reward_amount=reward_amount,
                minimum_order_amount=minimum_order_amount,
                reward_credited=False,
                ip_address=ip_address,
                config_version=config_version,
                created_at=now_utc,
            )
            .on_conflict_do_nothing(index_elements=[Referral.referee_user_id])
            .returning(Referral.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_referee_user_id(
        session: AsyncSession,
        *,
        referee_user_id: UUID,
    ) -> Referral | None:
        stmt = select(Referral).where(Referral.referee_user_id == referee_user_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_pending_by_referee_for_update(
        session: AsyncSession,
        *,
        referee_user_id: UUID,
    ) -> Referral | None:
        stmt = (
            select(Referral)
            .where(
                Referral.referee_user_id == referee_user_id,
                Referral.status == "pending",
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_converted_order_for_update(
        session: AsyncSession,
        *,
        order_id: str,
    ) -> Referral | None:
        stmt = (
            select(Referral)
            .where(Referral.converted_order_id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def lock_ip_conversions(session: AsyncSession, *, ip_address: str) -> None:
        await session.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:lock_key))"),
            {"lock_key": f"referral_ip:{ip_address}"},
        )

    @staticmethod
    async def count_converted_from_ip_since(
        session: AsyncSession,
        *,
        ip_address: str,
        since_utc: datetime,
    ) -> int:
        stmt = select(func.count(Referral.id)).where(
            Referral.status == "converted",
            Referral.conversion_ip_address == ip_address,
            Referral.converted_at >= since_utc,
        )
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)

    @staticmethod
    async def mark_converted(
        session: AsyncSession,
        *,
        referral_id: UUID,
        order_id: str,
        conversion_ip_address: str | None,
        now_utc: datetime,
    ) -> None:
        stmt = (
            update(Referral)
            .where(Referral.id == referral_id, Referral.status == "pending")
            .values(
                status="converted",
                reward_credited=True,
                converted_at=now_utc,
                converted_order_id=order_id,
                conversion_ip_address=conversion_ip_address,
            )
            .returning(Referral.id)
        )
        result = await session.execute(stmt)
        if result.scalar_one_or_none() is None:
            raise RuntimeError("referral is not pending")

    @staticmethod
    async def mark_revoked(
        session: AsyncSession,
        *,
        referral_id: UUID,
        reason: str,
        now_utc: datetime,
    ) -> None:
        stmt = (
            update(Referral)
            .where(Referral.id == referral_id, Referral.status == "converted")
            .values(status="revoked", revoked_at=now_utc, revoke_reason=reason)
            .returning(Referral.id)
        )
        result = await session.execute(stmt)
        if result.scalar_one_or_none() is None:
            raise RuntimeError("referral is not converted")

    @staticmethod
    async def count_by_status_for_referrer(
        session: AsyncSession,
        *,
        referrer_user_id: UUID,
    ) -> dict[str, int]:
        stmt = (
            select(Referral.status, func.count(Referral.id))
            .where(Referral.referrer_user_id == referrer_user_id)
            .group_by(Referral.status)
        )
        result = await session.execute(stmt)
        return {str(status): int(total) for status, total in result.all()}

    @staticmethod
    async def count_converted_for_referrer(
        session: AsyncSession,
        *,
        referrer_user_id: UUID,
    ) -> int:
        stmt = select(func.count(Referral.id)).where(
            Referral.referrer_user_id == referrer_user_id,
            Referral.status == "converted",
        )
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)

    @staticmethod
    async def list_for_referrer(
        session: AsyncSession,
        *,
        referrer_user_id: UUID,
        limit: int,
    ) -> list[Referral]:
        stmt = (
            select(Referral)
            .where(Referral.referrer_user_id == referrer_user_id)
            .order_by(Referral.created_at.desc(), Referral.id.desc())
            .limit(max(1, int(limit)))
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def count_by_status_since(
        session: AsyncSession,
        *,
        since_utc: datetime,
    ) -> dict[str, int]:
        stmt = (
            select(Referral.status, func.count(Referral.id))
            .where(Referral.created_at >= since_utc)
            .group_by(Referral.status)
        )
        result = await session.execute(stmt)
        return {str(status): int(total) for status, total in result.all()}

    @staticmethod
    async def list_top_referrers_since(
        session: AsyncSession,
        *,
        since_utc: datetime,
        limit: int,
    ) -> list[dict[str, object]]:
        conversions = func.count(Referral.id).filter(Referral.status == "converted")
        stmt = (
            select(
                Referral.referrer_user_id,
                func.count(Referral.id).label("invites"),
                conversions.label("conversions"),
            )
            .where(Referral.created_at >= since_utc)
            .group_by(Referral.referrer_user_id)
            .order_by(conversions.desc(), Referral.referrer_user_id.asc())
            .limit(max(1, int(limit)))
        )
        result = await session.execute(stmt)
        return [
            {
                "referrer_user_id": str(referrer_user_id),
                "invites": int(invites),
                "conversions": int(converted or 0),
            }
            for referrer_user_id, invites, converted in result.all()
        ]
