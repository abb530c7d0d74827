from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.db.models.processed_orders import ProcessedOrder


class ProcessedOrdersRepo:
    @staticmethod
    async def try_claim(
        session: AsyncSession,
        *,
        order_id: str,
        user_id: UUID,
        subtotal: Decimal | None,
        ip_address: str | None,
        completed_at: datetime,
        outcome: str,
    ) -> bool:
        stmt = (
            postgresql_insert(ProcessedOrder)
            .values(
                order_id=order_id,
                user_id=user_id,
                subtotal=subtotal,
                ip_address=ip_address,
                completed_at=completed_at,
                outcome=outcome,
            )
            .on_conflict_do_nothing(index_elements=[ProcessedOrder.order_id])
            .returning(ProcessedOrder.order_id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def get_by_order_id_for_update(
        session: AsyncSession,
        *,
        order_id: str,
    ) -> ProcessedOrder | None:
        stmt = (
            select(ProcessedOrder)
            .where(ProcessedOrder.order_id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def set_outcome(
        session: AsyncSession,
        *,
        order_id: str,
        outcome: str,
        referral_id: UUID | None = None,
    ) -> None:
        stmt = (
            update(ProcessedOrder)
            .where(ProcessedOrder.order_id == order_id)
            .values(outcome=outcome, referral_id=referral_id)
        )
        await session.execute(stmt)

    @staticmethod
    async def count_for_user(
        session: AsyncSession,
        *,
        user_id: UUID,
        exclude_order_id: str | None = None,
    ) -> int:
        stmt = select(func.count(ProcessedOrder.order_id)).where(
            ProcessedOrder.user_id == user_id
        )
        if exclude_order_id is not None:
            stmt = stmt.where(ProcessedOrder.order_id != exclude_order_id)
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)
