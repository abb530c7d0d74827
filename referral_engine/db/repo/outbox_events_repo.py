from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.db.models.outbox_events import OutboxEvent


class OutboxEventsRepo:
    @staticmethod
    async def create(
        session: AsyncSession,
        *,
        event_type: str,
        payload: dict[str, object],
        status: str,
        created_at: datetime,
        subject_user_id: UUID | None = None,
    ) -> OutboxEvent:
        event = OutboxEvent(
            event_type=event_type,
            subject_user_id=subject_user_id,
            payload=payload,
            status=status,
            created_at=created_at,
        )
        session.add(event)
        await session.flush()
        return event

    @staticmethod
    async def count_by_type_since(
        session: AsyncSession,
        *,
        since_utc: datetime,
        event_types: tuple[str, ...],
    ) -> dict[str, int]:
        stmt = (
            select(OutboxEvent.event_type, func.count(OutboxEvent.id))
            .where(
                OutboxEvent.created_at >= since_utc,
                OutboxEvent.event_type.in_(event_types),
            )
            .group_by(OutboxEvent.event_type)
        )
        result = await session.execute(stmt)
        return {str(event_type): int(total) for event_type, total in result.all()}

    @staticmethod
    async def count_distinct_subjects_since(
        session: AsyncSession,
        *,
        since_utc: datetime,
        event_type: str,
    ) -> int:
        stmt = select(func.count(func.distinct(OutboxEvent.subject_user_id))).where(
            OutboxEvent.created_at >= since_utc,
            OutboxEvent.event_type == event_type,
        )
        total = await session.scalar(stmt)
        return int(total or 0)
