from __future__ import annotations

import random
from datetime import datetime, timedelta

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.core.referral_codes import (
    MAX_CODE_ATTEMPTS,
    generate_first_order_code,
    normalize_referral_code,
)
from referral_engine.db.models.promotions import Promotion
from referral_engine.db.models.user_referral_codes import UserReferralCode
from referral_engine.db.models.users import User
from referral_engine.db.repo.promotions_repo import PromotionsRepo
from referral_engine.db.repo.referral_codes_repo import ReferralCodesRepo
from referral_engine.db.repo.referrals_repo import ReferralsRepo
from referral_engine.db.repo.users_repo import UsersRepo
from referral_engine.economy.config.snapshot import load_config_snapshot
from referral_engine.economy.promotions.first_order import promotion_description, promotion_name
from referral_engine.economy.referrals.errors import CodeSpaceExhaustedError
from referral_engine.economy.referrals.types import FallbackReason, UserSignedUp

from .fraud import is_self_referral, is_suspended
from .models import SignupResult
from .registry import get_or_create_referral_code, resolve_active_code_owner

logger = structlog.get_logger(__name__)


async def _resolve_referrer(
    session: AsyncSession,
    *,
    user: User,
    presented_code: str | None,
) -> tuple[UserReferralCode | None, FallbackReason | None]:
    if normalize_referral_code(presented_code) is None:
        return None, FallbackReason.NO_CODE

    code_owner = await resolve_active_code_owner(session, presented_code)
    if code_owner is None:
        return None, FallbackReason.INVALID_CODE

    owner = await UsersRepo.get_by_id(session, code_owner.user_id)
    if owner is None:
        return None, FallbackReason.INVALID_CODE
    if is_self_referral(
        new_user_id=user.id,
        new_user_email=user.email,
        code_owner_id=owner.id,
        code_owner_email=owner.email,
    ):
        return None, FallbackReason.SELF_REFERRAL
    if await is_suspended(session, user_id=owner.id):
        return None, FallbackReason.REFERRER_SUSPENDED
    return code_owner, None


async def _build_replay_result(
    session: AsyncSession,
    *,
    user: User,
    promotion: Promotion,
    own_referral_code: str,
) -> SignupResult:
    relationship = await ReferralsRepo.get_by_referee_user_id(session, referee_user_id=user.id)
    logger.info(
        "referral_signup_idempotent_replay",
        user_id=str(user.id),
        promotion_code=promotion.code,
    )
    return SignupResult(
        code=promotion.code,
        discount_percent=int(promotion.discount_value),
        is_referral=bool(promotion.referral_bonus),
        referral_code=own_referral_code,
        fallback_reason=None,
        referrer_user_id=relationship.referrer_user_id if relationship is not None else None,
        idempotent_replay=True,
    )


async def process_signup(
    session: AsyncSession,
    *,
    event: UserSignedUp,
    now_utc: datetime,
    rng: random.Random | None = None,
) -> SignupResult:
    user = await UsersRepo.ensure_exists(
        session,
        user_id=event.user_id,
        email=event.email,
        now_utc=now_utc,
    )
    own_referral_code = await get_or_create_referral_code(
        session,
        user_id=user.id,
        now_utc=now_utc,
        rng=rng,
    )

    existing_promotion = await PromotionsRepo.get_first_order_code_by_user_id(
        session,
        user_id=user.id,
    )
    if existing_promotion is not None:
        return await _build_replay_result(
            session,
            user=user,
            promotion=existing_promotion,
            own_referral_code=own_referral_code,
        )

    snapshot = await load_config_snapshot(session)
    referrer_code, fallback_reason = await _resolve_referrer(
        session,
        user=user,
        presented_code=event.referral_code,
    )
    is_referral = referrer_code is not None
    if is_referral:
        discount_percent = snapshot.referral_discount_percent
        validity_days = snapshot.referral_validity_days
    else:
        discount_percent = snapshot.first_order_discount_percent
        validity_days = snapshot.first_order_validity_days
    starts_at = now_utc
    ends_at = starts_at + timedelta(days=validity_days)

    promotion_code: str | None = None
    for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
        candidate = generate_first_order_code(rng=rng)
        created = await PromotionsRepo.try_create_first_order_code(
            session,
            user_id=user.id,
            code=candidate,
            name=promotion_name(is_referral=is_referral),
            description=promotion_description(discount_percent),
            discount_value=discount_percent,
            referral_bonus=is_referral,
            starts_at=starts_at,
            ends_at=ends_at,
            config_version=snapshot.version,
            now_utc=now_utc,
        )
        if created:
            promotion_code = candidate
            break

        existing_promotion = await PromotionsRepo.get_first_order_code_by_user_id(
            session,
            user_id=user.id,
        )
        if existing_promotion is not None:
            return await _build_replay_result(
                session,
                user=user,
                promotion=existing_promotion,
                own_referral_code=own_referral_code,
            )
        logger.info("first_order_code_collision", user_id=str(user.id), attempt=attempt)

    if promotion_code is None:
        logger.error("first_order_code_space_exhausted", user_id=str(user.id))
        raise CodeSpaceExhaustedError(str(user.id))

    if referrer_code is not None:
        referral_id = await ReferralsRepo.try_create_pending(
            session,
            referrer_user_id=referrer_code.user_id,
            referee_user_id=user.id,
            referral_code=referrer_code.code,
            reward_amount=snapshot.reward_amount,
            minimum_order_amount=snapshot.minimum_order_amount,
            ip_address=event.ip_address,
            config_version=snapshot.version,
            now_utc=now_utc,
        )
        if referral_id is not None:
            await ReferralCodesRepo.increment_referrals(session, user_id=referrer_code.user_id)
            logger.info(
                "referral_relationship_created",
                referral_id=str(referral_id),
                referrer_user_id=str(referrer_code.user_id),
                referee_user_id=str(user.id),
                config_version=snapshot.version,
            )
        else:
            logger.warning("referral_relationship_already_exists", referee_user_id=str(user.id))
    else:
        logger.info(
            "referral_signup_fallback",
            user_id=str(user.id),
            fallback_reason=fallback_reason.value if fallback_reason is not None else None,
        )

    return SignupResult(
        code=promotion_code,
        discount_percent=discount_percent,
        is_referral=is_referral,
        referral_code=own_referral_code,
        fallback_reason=fallback_reason,
        referrer_user_id=referrer_code.user_id if referrer_code is not None else None,
        idempotent_replay=False,
    )
