from __future__ import annotations

from datetime import datetime, timedelta
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.db.repo.referrals_repo import ReferralsRepo
from referral_engine.db.repo.users_repo import UsersRepo
from referral_engine.economy.referrals.constants import (
    DEFAULT_MAX_CONVERSIONS_PER_IP,
    DEFAULT_REVIEW_THRESHOLD,
    IP_VELOCITY_WINDOW_HOURS,
)

logger = structlog.get_logger(__name__)


def is_self_referral(
    *,
    new_user_id: UUID,
    new_user_email: str | None,
    code_owner_id: UUID,
    code_owner_email: str | None,
) -> bool:
    if new_user_id == code_owner_id:
        return True
    if not new_user_email or not code_owner_email:
        return False
    return new_user_email.strip().casefold() == code_owner_email.strip().casefold()


async def is_suspended(session: AsyncSession, *, user_id: UUID) -> bool:
    status = await UsersRepo.get_status(session, user_id)
    return status == "SUSPENDED"


async def check_ip_velocity(
    session: AsyncSession,
    *,
    ip_address: str,
    now_utc: datetime,
    window_hours: int = IP_VELOCITY_WINDOW_HOURS,
    limit: int = DEFAULT_MAX_CONVERSIONS_PER_IP,
) -> bool:
    """Return True when one more credited conversion from this IP is allowed.

    The advisory lock is held until the caller's transaction ends, so the count
    and the following `converted` write happen under the same lock.
    """
    await ReferralsRepo.lock_ip_conversions(session, ip_address=ip_address)
    converted_total = await ReferralsRepo.count_converted_from_ip_since(
        session,
        ip_address=ip_address,
        since_utc=now_utc - timedelta(hours=window_hours),
    )
    allowed = converted_total < limit
    if not allowed:
        logger.warning(
            "referral_ip_velocity_exceeded",
            ip_address=ip_address,
            converted_total=converted_total,
            limit=limit,
        )
    return allowed


async def check_review_threshold(
    session: AsyncSession,
    *,
    referrer_user_id: UUID,
    threshold: int = DEFAULT_REVIEW_THRESHOLD,
) -> bool:
    conversions = await ReferralsRepo.count_converted_for_referrer(
        session,
        referrer_user_id=referrer_user_id,
    )
    return conversions >= threshold
