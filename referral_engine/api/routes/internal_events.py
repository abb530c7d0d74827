from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, HTTPException, Request

from referral_engine.core.config import get_settings
from referral_engine.db.session import SessionLocal
from referral_engine.economy.referrals.constants import REVIEW_THRESHOLD_EVENT_TYPE
from referral_engine.economy.referrals.errors import CodeSpaceExhaustedError
from referral_engine.economy.referrals.service import ReferralService
from referral_engine.economy.referrals.types import (
    OrderPaymentCompleted,
    OrderRefunded,
    UserSignedUp,
)
from referral_engine.services.alerts import send_ops_alert
from referral_engine.services.internal_auth import normalize_event_ip

from .internal_helpers import _as_utc, _assert_internal_access
from .internal_models import (
    ConversionResponse,
    OrderPaymentCompletedRequest,
    OrderRefundedRequest,
    RefundResponse,
    SignupResponse,
    UserSignedUpRequest,
)

router = APIRouter(tags=["internal", "events"])
logger = structlog.get_logger(__name__)


@router.post("/internal/events/user-signed-up", response_model=SignupResponse)
async def handle_user_signed_up(
    payload: UserSignedUpRequest,
    request: Request,
) -> SignupResponse:
    _assert_internal_access(request)
    now_utc = datetime.now(timezone.utc)
    event = UserSignedUp(
        user_id=payload.user_id,
        email=payload.email.strip(),
        referral_code=payload.referral_code,
        ip_address=normalize_event_ip(payload.ip_address),
    )

    try:
        async with SessionLocal.begin() as session:
            result = await ReferralService.process_signup(session, event=event, now_utc=now_utc)
    except CodeSpaceExhaustedError as exc:
        raise HTTPException(status_code=503, detail={"code": "E_CODE_SPACE_EXHAUSTED"}) from exc

    return SignupResponse(
        code=result.code,
        discount_percent=result.discount_percent,
        is_referral=result.is_referral,
        referral_code=result.referral_code,
        share_link=ReferralService.build_share_link(
            result.referral_code,
            get_settings().share_base_url,
        ),
        fallback_reason=(
            result.fallback_reason.value if result.fallback_reason is not None else None
        ),
        referrer_user_id=result.referrer_user_id,
        idempotent_replay=result.idempotent_replay,
    )


@router.post("/internal/events/order-payment-completed", response_model=ConversionResponse)
async def handle_order_payment_completed(
    payload: OrderPaymentCompletedRequest,
    request: Request,
) -> ConversionResponse:
    _assert_internal_access(request)
    now_utc = datetime.now(timezone.utc)
    event = OrderPaymentCompleted(
        user_id=payload.user_id,
        order_id=payload.order_id.strip(),
        ip_address=normalize_event_ip(payload.ip_address),
        subtotal=payload.subtotal,
        completed_at=_as_utc(payload.completed_at, default=now_utc),
        promotion_code=payload.promotion_code,
    )

    async with SessionLocal.begin() as session:
        result = await ReferralService.process_order_payment_completed(
            session,
            event=event,
            now_utc=now_utc,
        )

    if result.review_required:
        await send_ops_alert(
            event=REVIEW_THRESHOLD_EVENT_TYPE,
            payload={
                "referrer_user_id": str(result.referrer_user_id),
                "referral_id": str(result.referral_id),
                "order_id": result.order_id,
            },
        )

    return ConversionResponse(
        outcome=result.outcome.value,
        order_id=result.order_id,
        referral_id=result.referral_id,
        reward_amount=result.reward_amount,
        promotion_consumed=result.promotion_consumed,
    )


@router.post("/internal/events/order-refunded", response_model=RefundResponse)
async def handle_order_refunded(
    payload: OrderRefundedRequest,
    request: Request,
) -> RefundResponse:
    _assert_internal_access(request)
    now_utc = datetime.now(timezone.utc)
    event = OrderRefunded(
        order_id=payload.order_id.strip(),
        refunded_at=_as_utc(payload.refunded_at, default=now_utc),
        reason=payload.reason,
    )

    async with SessionLocal.begin() as session:
        result = await ReferralService.process_order_refunded(
            session,
            event=event,
            now_utc=now_utc,
        )

    return RefundResponse(
        outcome=result.outcome.value,
        order_id=result.order_id,
        referral_id=result.referral_id,
        revoked_amount=result.revoked_amount,
    )
