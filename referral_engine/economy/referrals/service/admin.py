from __future__ import annotations

from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.db.repo.users_repo import UsersRepo
from referral_engine.economy.referrals.errors import ReferralUserNotFoundError

from .models import SuspensionResult
from .registry import deactivate_codes_for_user

logger = structlog.get_logger(__name__)


async def suspend_user(
    session: AsyncSession,
    *,
    user_id: UUID,
    now_utc: datetime,
) -> SuspensionResult:
    user = await UsersRepo.get_by_id_for_update(session, user_id)
    if user is None:
        raise ReferralUserNotFoundError(str(user_id))

    idempotent_replay = user.status == "SUSPENDED"
    if not idempotent_replay:
        user.status = "SUSPENDED"
        user.suspended_at = now_utc
        await session.flush()

    deactivated_codes = await deactivate_codes_for_user(session, user_id=user_id)
    logger.info(
        "referral_user_suspended",
        user_id=str(user_id),
        deactivated_codes=deactivated_codes,
        idempotent_replay=idempotent_replay,
    )
    return SuspensionResult(
        user_id=user_id,
        deactivated_codes=deactivated_codes,
        idempotent_replay=idempotent_replay,
    )
