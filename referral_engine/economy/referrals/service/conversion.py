from __future__ import annotations

from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.db.models.referrals import Referral
from referral_engine.db.repo.outbox_events_repo import OutboxEventsRepo
from referral_engine.db.repo.processed_orders_repo import ProcessedOrdersRepo
from referral_engine.db.repo.promotions_repo import PromotionsRepo
from referral_engine.db.repo.referral_codes_repo import ReferralCodesRepo
from referral_engine.db.repo.referrals_repo import ReferralsRepo
from referral_engine.economy.config.snapshot import load_config_snapshot
from referral_engine.economy.ledger import service as ledger
from referral_engine.economy.referrals.constants import (
    IP_VELOCITY_WINDOW_HOURS,
    REVIEW_THRESHOLD_EVENT_TYPE,
    REWARD_DESCRIPTION,
)
from referral_engine.economy.referrals.types import ConversionOutcome, OrderPaymentCompleted

from .fraud import check_ip_velocity, check_review_threshold, is_suspended
from .models import ConversionResult

logger = structlog.get_logger(__name__)


async def _consume_first_order_code(
    session: AsyncSession,
    *,
    event: OrderPaymentCompleted,
    now_utc: datetime,
) -> bool:
    if not event.promotion_code:
        return False
    consumed = await PromotionsRepo.consume_first_order_code(
        session,
        user_id=event.user_id,
        code=event.promotion_code.strip().upper().replace("-", ""),
        order_id=event.order_id,
        now_utc=now_utc,
    )
    if consumed:
        logger.info(
            "first_order_code_consumed",
            user_id=str(event.user_id),
            order_id=event.order_id,
        )
    return consumed


async def _finish(
    session: AsyncSession,
    *,
    event: OrderPaymentCompleted,
    outcome: ConversionOutcome,
    promotion_consumed: bool,
    referral: Referral | None = None,
    review_required: bool = False,
) -> ConversionResult:
    await ProcessedOrdersRepo.set_outcome(
        session,
        order_id=event.order_id,
        outcome=outcome.value,
        referral_id=referral.id if referral is not None else None,
    )
    logger.info(
        "referral_conversion_processed",
        order_id=event.order_id,
        user_id=str(event.user_id),
        outcome=outcome.value,
        referral_id=str(referral.id) if referral is not None else None,
    )
    credited = outcome == ConversionOutcome.CREDITED
    return ConversionResult(
        outcome=outcome,
        order_id=event.order_id,
        referral_id=referral.id if referral is not None else None,
        referrer_user_id=referral.referrer_user_id if referral is not None else None,
        reward_amount=referral.reward_amount if referral is not None and credited else None,
        promotion_consumed=promotion_consumed,
        review_required=review_required,
    )


async def _record_review_if_needed(
    session: AsyncSession,
    *,
    referral: Referral,
    threshold: int,
    now_utc: datetime,
) -> bool:
    """Flag a referrer for manual review without ever blocking the reward."""
    try:
        async with session.begin_nested():
            if not await check_review_threshold(
                session,
                referrer_user_id=referral.referrer_user_id,
                threshold=threshold,
            ):
                return False
            await OutboxEventsRepo.create(
                session,
                event_type=REVIEW_THRESHOLD_EVENT_TYPE,
                payload={
                    "referrer_user_id": str(referral.referrer_user_id),
                    "referral_id": str(referral.id),
                    "threshold": threshold,
                    "detected_at": now_utc.isoformat(),
                },
                status="PENDING",
                created_at=now_utc,
                subject_user_id=referral.referrer_user_id,
            )
    except Exception:
        logger.exception(
            "referral_review_flag_failed",
            referrer_user_id=str(referral.referrer_user_id),
        )
        return False

    logger.warning(
        "referral_review_threshold_reached",
        referrer_user_id=str(referral.referrer_user_id),
        threshold=threshold,
    )
    return True


async def process_order_payment_completed(
    session: AsyncSession,
    *,
    event: OrderPaymentCompleted,
    now_utc: datetime,
) -> ConversionResult:
    claimed = await ProcessedOrdersRepo.try_claim(
        session,
        order_id=event.order_id,
        user_id=event.user_id,
        subtotal=event.subtotal,
        ip_address=event.ip_address,
        completed_at=event.completed_at or now_utc,
        outcome=ConversionOutcome.RECEIVED.value,
    )
    if not claimed:
        logger.info(
            "referral_conversion_duplicate_event",
            order_id=event.order_id,
            user_id=str(event.user_id),
        )
        return ConversionResult(outcome=ConversionOutcome.DUPLICATE_EVENT, order_id=event.order_id)

    earlier_orders = await ProcessedOrdersRepo.count_for_user(
        session,
        user_id=event.user_id,
        exclude_order_id=event.order_id,
    )
    promotion_consumed = False
    if earlier_orders == 0:
        promotion_consumed = await _consume_first_order_code(session, event=event, now_utc=now_utc)

    referral = await ReferralsRepo.get_pending_by_referee_for_update(
        session,
        referee_user_id=event.user_id,
    )
    if referral is None:
        return await _finish(
            session,
            event=event,
            outcome=ConversionOutcome.NOT_REFERRED,
            promotion_consumed=promotion_consumed,
        )

    if earlier_orders > 0:
        return await _finish(
            session,
            event=event,
            outcome=ConversionOutcome.NOT_FIRST_ORDER,
            promotion_consumed=promotion_consumed,
            referral=referral,
        )

    if await is_suspended(session, user_id=referral.referrer_user_id):
        return await _finish(
            session,
            event=event,
            outcome=ConversionOutcome.REFERRER_SUSPENDED,
            promotion_consumed=promotion_consumed,
            referral=referral,
        )

    if event.subtotal is not None and event.subtotal < referral.minimum_order_amount:
        return await _finish(
            session,
            event=event,
            outcome=ConversionOutcome.MINIMUM_ORDER_NOT_MET,
            promotion_consumed=promotion_consumed,
            referral=referral,
        )

    snapshot = await load_config_snapshot(session)
    conversion_ip = event.ip_address or referral.ip_address
    if conversion_ip:
        allowed = await check_ip_velocity(
            session,
            ip_address=conversion_ip,
            now_utc=now_utc,
            window_hours=IP_VELOCITY_WINDOW_HOURS,
            limit=snapshot.max_conversions_per_ip_daily,
        )
        if not allowed:
            return await _finish(
                session,
                event=event,
                outcome=ConversionOutcome.IP_LIMIT_EXCEEDED,
                promotion_consumed=promotion_consumed,
                referral=referral,
            )

    await _credit_referrer(
        session,
        referral=referral,
        order_id=event.order_id,
        conversion_ip=conversion_ip,
        now_utc=now_utc,
    )
    review_required = await _record_review_if_needed(
        session,
        referral=referral,
        threshold=snapshot.review_threshold,
        now_utc=now_utc,
    )
    return await _finish(
        session,
        event=event,
        outcome=ConversionOutcome.CREDITED,
        promotion_consumed=promotion_consumed,
        referral=referral,
        review_required=review_required,
    )


async def _credit_referrer(
    session: AsyncSession,
    *,
    referral: Referral,
    order_id: str,
    conversion_ip: str | None,
    now_utc: datetime,
) -> None:
    referrer_user_id: UUID = referral.referrer_user_id
    await ledger.credit(
        session,
        user_id=referrer_user_id,
        amount=referral.reward_amount,
        reference_id=referral.id,
        now_utc=now_utc,
        description=REWARD_DESCRIPTION,
    )
    await ReferralsRepo.mark_converted(
        session,
        referral_id=referral.id,
        order_id=order_id,
        conversion_ip_address=conversion_ip,
        now_utc=now_utc,
    )
    await ReferralCodesRepo.apply_conversion_delta(
        session,
        user_id=referrer_user_id,
        conversions_delta=1,
        earned_delta=referral.reward_amount,
    )
