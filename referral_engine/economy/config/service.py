from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.db.repo.system_config_repo import SystemConfigRepo
from referral_engine.economy.config.snapshot import parse_config_value

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class SystemConfigUpdateResult:
    key: str
    value: dict[str, object]
    version: int


async def update_system_config(
    session: AsyncSession,
    *,
    key: str,
    value: object,
    updated_by: str | None,
    now_utc: datetime,
) -> SystemConfigUpdateResult:
    """Validate and store a config value.

    Only snapshots loaded afterwards see the new value: promotions and referrals
    keep the values copied into them when they were issued.
    """
    parsed = parse_config_value(key, value)
    stored_value = parsed.model_dump(mode="json")
    row = await SystemConfigRepo.upsert_value(
        session,
        key=key,
        value=stored_value,
        updated_by=updated_by,
        now_utc=now_utc,
    )
    logger.info(
        "system_config_updated",
        config_key=key,
        config_version=row.version,
        updated_by=updated_by,
    )
    return SystemConfigUpdateResult(key=key, value=stored_value, version=int(row.version))
