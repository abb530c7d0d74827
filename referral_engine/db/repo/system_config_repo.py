from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.db.models.system_config import SystemConfig


class SystemConfigRepo:
    @staticmethod
    async def list_by_keys(
        session: AsyncSession,
        *,
        keys: tuple[str, ...],
    ) -> list[SystemConfig]:
        stmt = select(SystemConfig).where(SystemConfig.key.in_(keys))
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def upsert_value(
        session: AsyncSession,
        *,
        key: str,
        value: dict[str, object],
        updated_by: str | None,
        now_utc: datetime,
    ) -> SystemConfig:
        insert_stmt = postgresql_insert(SystemConfig).values(
            key=key,
            value=value,
            version=1,
            updated_by=updated_by,
            updated_at=now_utc,
        )
        stmt = insert_stmt.on_conflict_do_update(
            index_elements=[SystemConfig.key],
            set_={
                "value": insert_stmt.excluded.value,
                "version": SystemConfig.version + 1,
                "updated_by": insert_stmt.excluded.updated_by,
                "updated_at": insert_stmt.excluded.updated_at,
            },
        ).returning(SystemConfig)
        result = await session.execute(stmt)
        return result.scalar_one()
