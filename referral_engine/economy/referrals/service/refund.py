from __future__ import annotations

from datetime import datetime, timedelta

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.db.models.processed_orders import ProcessedOrder
from referral_engine.db.repo.processed_orders_repo import ProcessedOrdersRepo
from referral_engine.db.repo.referral_codes_repo import ReferralCodesRepo
from referral_engine.db.repo.referrals_repo import ReferralsRepo
from referral_engine.economy.config.snapshot import load_config_snapshot
from referral_engine.economy.ledger import service as ledger
from referral_engine.economy.referrals.constants import (
    DEFAULT_REVOKE_REASON,
    REVOCATION_DESCRIPTION,
)
from referral_engine.economy.referrals.types import OrderRefunded, ReferralStatus, RefundOutcome

from .models import RefundResult

logger = structlog.get_logger(__name__)


def is_within_refund_window(
    *,
    completed_at: datetime,
    refunded_at: datetime,
    refund_window_days: int,
) -> bool:
    return refunded_at - completed_at <= timedelta(days=refund_window_days)


async def process_order_refunded(
    session: AsyncSession,
    *,
    event: OrderRefunded,
    now_utc: datetime,
) -> RefundResult:
    order = await ProcessedOrdersRepo.get_by_order_id_for_update(session, order_id=event.order_id)
    if order is None:
        logger.info("referral_refund_unknown_order", order_id=event.order_id)
        return RefundResult(outcome=RefundOutcome.UNKNOWN_ORDER, order_id=event.order_id)
    if order.refunded_at is not None:
        logger.info("referral_refund_duplicate_event", order_id=event.order_id)
        return RefundResult(outcome=RefundOutcome.DUPLICATE_EVENT, order_id=event.order_id)

    order.refunded_at = event.refunded_at

    snapshot = await load_config_snapshot(session)
    if not is_within_refund_window(
        completed_at=order.completed_at,
        refunded_at=event.refunded_at,
        refund_window_days=snapshot.refund_window_days,
    ):
        return await _finish(session, order=order, outcome=RefundOutcome.OUTSIDE_WINDOW)

    referral = await ReferralsRepo.get_by_converted_order_for_update(
        session,
        order_id=event.order_id,
    )
    if referral is None or referral.status != ReferralStatus.CONVERTED.value:
        return await _finish(session, order=order, outcome=RefundOutcome.NO_ELIGIBLE_REFERRAL)

    revocation = await ledger.revoke(
        session,
        user_id=referral.referrer_user_id,
        reference_id=referral.id,
        now_utc=now_utc,
        description=REVOCATION_DESCRIPTION,
    )
    await ReferralsRepo.mark_revoked(
        session,
        referral_id=referral.id,
        reason=event.reason or DEFAULT_REVOKE_REASON,
        now_utc=now_utc,
    )
    await ReferralCodesRepo.apply_conversion_delta(
        session,
        user_id=referral.referrer_user_id,
        conversions_delta=-1,
        earned_delta=revocation.amount,
    )
    result = await _finish(session, order=order, outcome=RefundOutcome.REVOKED)
    return RefundResult(
        outcome=result.outcome,
        order_id=result.order_id,
        referral_id=referral.id,
        referrer_user_id=referral.referrer_user_id,
        revoked_amount=-revocation.amount,
    )


async def _finish(
    session: AsyncSession,
    *,
    order: ProcessedOrder,
    outcome: RefundOutcome,
) -> RefundResult:
    order.refund_outcome = outcome.value
    await session.flush()
    logger.info(
        "referral_refund_processed",
        order_id=order.order_id,
        user_id=str(order.user_id),
        outcome=outcome.value,
    )
    return RefundResult(outcome=outcome, order_id=order.order_id)
