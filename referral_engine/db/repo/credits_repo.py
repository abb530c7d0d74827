from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.db.models.credit_transactions import CreditTransaction
from referral_engine.db.models.user_credits import UserCredit


class CreditsRepo:
    @staticmethod
    async def get_balance_for_update(
        session: AsyncSession,
        *,
        user_id: UUID,
        now_utc: datetime,
    ) -> UserCredit:
        insert_stmt = (
            postgresql_insert(UserCredit)
            .values(
                user_id=user_id,
                balance=Decimal("0"),
                total_earned=Decimal("0"),
                total_revoked=Decimal("0"),
                version=0,
                updated_at=now_utc,
            )
            .on_conflict_do_nothing(index_elements=[UserCredit.user_id])
        )
        await session.execute(insert_stmt)
        stmt = (
            select(UserCredit)
            .where(UserCredit.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one()

    @staticmethod
    async def get_balance(session: AsyncSession, *, user_id: UUID) -> UserCredit | None:
        return await session.get(UserCredit, user_id)

    @staticmethod
    async def get_entry_by_reference(
        session: AsyncSession,
        *,
        reference_type: str,
        reference_id: UUID,
    ) -> CreditTransaction | None:
        stmt = select(CreditTransaction).where(
            CreditTransaction.reference_type == reference_type,
            CreditTransaction.reference_id == reference_id,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create_entry(
        session: AsyncSession,
        *,
        entry: CreditTransaction,
    ) -> CreditTransaction:
        session.add(entry)
        await session.flush()
        return entry

    @staticmethod
    async def sum_for_user(
        session: AsyncSession,
        *,
        user_id: UUID,
        reference_types: tuple[str, ...],
    ) -> Decimal:
        stmt = select(func.coalesce(func.sum(CreditTransaction.amount), 0)).where(
            CreditTransaction.user_id == user_id,
            CreditTransaction.reference_type.in_(reference_types),
        )
        result = await session.execute(stmt)
        return Decimal(result.scalar_one() or 0)

    @staticmethod
    async def sum_by_type_since(
        session: AsyncSession,
        *,
        since_utc: datetime,
    ) -> dict[str, Decimal]:
        stmt = (
            select(CreditTransaction.reference_type, func.sum(CreditTransaction.amount))
            .where(CreditTransaction.created_at >= since_utc)
            .group_by(CreditTransaction.reference_type)
        )
        result = await session.execute(stmt)
        return {str(kind): Decimal(total or 0) for kind, total in result.all()}

    @staticmethod
    async def list_balance_drift(
        session: AsyncSession,
        *,
        limit: int,
    ) -> list[dict[str, object]]:
        ledger_totals = (
            select(
                CreditTransaction.user_id.label("user_id"),
                func.sum(CreditTransaction.amount).label("ledger_total"),
            )
            .group_by(CreditTransaction.user_id)
            .subquery()
        )
        ledger_total = func.coalesce(ledger_totals.c.ledger_total, 0)
        stmt = (
            select(UserCredit.user_id, UserCredit.balance, ledger_total)
            .outerjoin(ledger_totals, ledger_totals.c.user_id == UserCredit.user_id)
            .where(UserCredit.balance != ledger_total)
            .order_by(UserCredit.user_id.asc())
            .limit(max(1, int(limit)))
        )
        result = await session.execute(stmt)
        return [
            {
                "user_id": str(user_id),
                "cached_balance": Decimal(balance),
                "ledger_balance": Decimal(total),
            }
            for user_id, balance, total in result.all()
        ]
