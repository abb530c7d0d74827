from __future__ import annotations

import random
from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.core.referral_codes import (
    MAX_CODE_ATTEMPTS,
    generate_referral_code,
    is_valid_referral_code,
    normalize_referral_code,
)
from referral_engine.db.models.user_referral_codes import UserReferralCode
from referral_engine.db.repo.referral_codes_repo import ReferralCodesRepo
from referral_engine.db.repo.users_repo import UsersRepo
from referral_engine.economy.referrals.errors import (
    CodeSpaceExhaustedError,
    ReferralUserNotFoundError,
)

from .models import ReferralCodeInfo

logger = structlog.get_logger(__name__)


async def get_or_create_referral_code(
    session: AsyncSession,
    *,
    user_id: UUID,
    now_utc: datetime,
    rng: random.Random | None = None,
) -> str:
    existing = await ReferralCodesRepo.get_by_user_id(session, user_id)
    if existing is not None:
        return existing.code

    if await UsersRepo.get_by_id(session, user_id) is None:
        raise ReferralUserNotFoundError(str(user_id))

    for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
        candidate = generate_referral_code(rng=rng)
        created = await ReferralCodesRepo.try_create(
            session,
            user_id=user_id,
            code=candidate,
            now_utc=now_utc,
        )
        if created:
            return candidate

        # A conflict is either a concurrent create for this user or a code collision.
        existing = await ReferralCodesRepo.get_by_user_id(session, user_id)
        if existing is not None:
            return existing.code
        logger.info("referral_code_collision", user_id=str(user_id), attempt=attempt)

    logger.error("referral_code_space_exhausted", user_id=str(user_id))
    raise CodeSpaceExhaustedError(str(user_id))


async def resolve_active_code_owner(
    session: AsyncSession,
    code: str | None,
) -> UserReferralCode | None:
    normalized_code = normalize_referral_code(code)
    if normalized_code is None or not is_valid_referral_code(normalized_code):
        return None
    referral_code = await ReferralCodesRepo.get_by_code(session, normalized_code)
    if referral_code is None or not referral_code.is_active:
        return None
    return referral_code


def build_share_link(code: str, base_url: str) -> str:
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}ref={code}"


async def get_referral_code_info(
    session: AsyncSession,
    *,
    user_id: UUID,
    base_url: str,
    now_utc: datetime,
) -> ReferralCodeInfo:
    code = await get_or_create_referral_code(session, user_id=user_id, now_utc=now_utc)
    referral_code = await ReferralCodesRepo.get_by_user_id(session, user_id)
    return ReferralCodeInfo(
        code=code,
        share_link=build_share_link(code, base_url),
        is_active=bool(referral_code is not None and referral_code.is_active),
    )


async def deactivate_codes_for_user(session: AsyncSession, *, user_id: UUID) -> int:
    return await ReferralCodesRepo.deactivate_for_user(session, user_id=user_id)
