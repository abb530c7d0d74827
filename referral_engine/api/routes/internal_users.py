from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, Request

from referral_engine.core.config import get_settings
from referral_engine.db.session import SessionLocal
from referral_engine.economy.promotions.first_order import (
    calculate_first_order_discount,
    get_first_order_code,
    is_first_order_code_valid,
)
from referral_engine.economy.referrals.constants import DEFAULT_HISTORY_LIMIT, MAX_HISTORY_LIMIT
from referral_engine.economy.referrals.errors import (
    CodeSpaceExhaustedError,
    ReferralUserNotFoundError,
)
from referral_engine.economy.referrals.service import ReferralService

from .internal_helpers import _assert_internal_access, _first_order_code_as_response
from .internal_models import (
    FirstOrderCodeLookupResponse,
    FirstOrderCodeValidateRequest,
    FirstOrderCodeValidateResponse,
    FirstOrderDiscountResponse,
    ReferralCodeResponse,
    ReferralHistoryItemResponse,
    ReferralHistoryResponse,
    ReferralStatsResponse,
)

router = APIRouter(tags=["internal", "users"])


@router.get(
    "/internal/users/{user_id}/first-order-code",
    response_model=FirstOrderCodeLookupResponse,
)
async def get_user_first_order_code(
    user_id: UUID,
    request: Request,
) -> FirstOrderCodeLookupResponse:
    _assert_internal_access(request)
    now_utc = datetime.now(timezone.utc)

    async with SessionLocal.begin() as session:
        code = await get_first_order_code(session, user_id=user_id, now_utc=now_utc)

    if code is None:
        return FirstOrderCodeLookupResponse(first_order_code=None)
    return FirstOrderCodeLookupResponse(first_order_code=_first_order_code_as_response(code))


@router.post(
    "/internal/users/{user_id}/first-order-code/validate",
    response_model=FirstOrderCodeValidateResponse,
)
async def validate_user_first_order_code(
    user_id: UUID,
    payload: FirstOrderCodeValidateRequest,
    request: Request,
) -> FirstOrderCodeValidateResponse:
    _assert_internal_access(request)
    now_utc = datetime.now(timezone.utc)

    async with SessionLocal.begin() as session:
        validation = await is_first_order_code_valid(
            session,
            user_id=user_id,
            code=payload.code,
            now_utc=now_utc,
        )

    if not validation.valid or validation.code is None:
        return FirstOrderCodeValidateResponse(valid=False, reason=validation.reason)

    discount_response: FirstOrderDiscountResponse | None = None
    if payload.subtotal is not None:
        discount = calculate_first_order_discount(
            payload.subtotal,
            validation.code.discount_percent,
            payload.shipping_cost,
        )
        discount_response = FirstOrderDiscountResponse(
            subtotal=discount.subtotal,
            discount=discount.discount,
            shipping=discount.shipping,
            total=discount.total,
        )

    return FirstOrderCodeValidateResponse(
        valid=True,
        first_order_code=_first_order_code_as_response(validation.code),
        discount=discount_response,
    )


@router.get("/internal/users/{user_id}/referral-code", response_model=ReferralCodeResponse)
async def get_user_referral_code(user_id: UUID, request: Request) -> ReferralCodeResponse:
    _assert_internal_access(request)
    now_utc = datetime.now(timezone.utc)

    try:
        async with SessionLocal.begin() as session:
            info = await ReferralService.get_referral_code_info(
                session,
                user_id=user_id,
                base_url=get_settings().share_base_url,
                now_utc=now_utc,
            )
    except ReferralUserNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "E_USER_NOT_FOUND"}) from exc
    except CodeSpaceExhaustedError as exc:
        raise HTTPException(status_code=503, detail={"code": "E_CODE_SPACE_EXHAUSTED"}) from exc

    return ReferralCodeResponse(code=info.code, share_link=info.share_link, is_active=info.is_active)


@router.get("/internal/users/{user_id}/referral-stats", response_model=ReferralStatsResponse)
async def get_user_referral_stats(user_id: UUID, request: Request) -> ReferralStatsResponse:
    _assert_internal_access(request)

    async with SessionLocal.begin() as session:
        stats = await ReferralService.get_referral_stats(session, user_id=user_id)

    return ReferralStatsResponse(
        total_invites=stats.total_invites,
        conversions=stats.conversions,
        pending_rewards=stats.pending_rewards,
        total_earned=stats.total_earned,
        is_active=stats.is_active,
    )


@router.get("/internal/users/{user_id}/referral-history", response_model=ReferralHistoryResponse)
async def get_user_referral_history(
    user_id: UUID,
    request: Request,
    limit: int = Query(default=DEFAULT_HISTORY_LIMIT, ge=1, le=MAX_HISTORY_LIMIT),
) -> ReferralHistoryResponse:
    _assert_internal_access(request)

    async with SessionLocal.begin() as session:
        items = await ReferralService.get_referral_history(session, user_id=user_id, limit=limit)

    return ReferralHistoryResponse(
        items=[
            ReferralHistoryItemResponse(
                referral_id=item.referral_id,
                referee_user_id=item.referee_user_id,
                status=item.status,
                reward_amount=item.reward_amount,
                reward_credited=item.reward_credited,
                created_at=item.created_at,
                converted_at=item.converted_at,
                revoked_at=item.revoked_at,
            )
            for item in items
        ]
    )
