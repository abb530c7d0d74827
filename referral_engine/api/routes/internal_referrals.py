from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from fastapi import APIRouter, Query, Request

from referral_engine.db.session import SessionLocal
from referral_engine.economy.config.snapshot import load_config_snapshot
from referral_engine.economy.promotions.first_order import get_referral_bonus_eligibility
from referral_engine.economy.referrals.service import ReferralService

from .internal_helpers import _assert_internal_access
from .internal_models import (
    ReferralBonusEligibilityResponse,
    ReferralDashboardResponse,
    ReferralTopReferrerResponse,
)

router = APIRouter(tags=["internal", "referrals"])


@router.get(
    "/internal/referrals/bonus-eligibility",
    response_model=ReferralBonusEligibilityResponse,
)
async def get_referral_bonus_eligibility_route(
    request: Request,
    cart_subtotal: Decimal = Query(ge=0, max_digits=10, decimal_places=2),
) -> ReferralBonusEligibilityResponse:
    _assert_internal_access(request)

    async with SessionLocal.begin() as session:
        snapshot = await load_config_snapshot(session)

    eligibility = get_referral_bonus_eligibility(snapshot, cart_subtotal)
    return ReferralBonusEligibilityResponse(
        is_eligible=eligibility.is_eligible,
        amount_needed=eligibility.amount_needed,
        bonus_amount=eligibility.bonus_amount,
        minimum_order=eligibility.minimum_order,
    )


@router.get("/internal/referrals/dashboard", response_model=ReferralDashboardResponse)
async def get_referrals_dashboard(
    request: Request,
    window_hours: int = Query(default=24, ge=1, le=720),
) -> ReferralDashboardResponse:
    _assert_internal_access(request)
    now_utc = datetime.now(timezone.utc)

    async with SessionLocal.begin() as session:
        snapshot = await ReferralService.build_referrals_dashboard_snapshot(
            session,
            now_utc=now_utc,
            window_hours=window_hours,
        )

    return ReferralDashboardResponse(
        generated_at=snapshot.generated_at,
        window_hours=snapshot.window_hours,
        referrals_created_total=snapshot.referrals_created_total,
        status_counts=snapshot.status_counts,
        pending_total=snapshot.pending_total,
        converted_total=snapshot.converted_total,
        revoked_total=snapshot.revoked_total,
        conversion_rate=snapshot.conversion_rate,
        revocation_rate=snapshot.revocation_rate,
        credited_amount=snapshot.credited_amount,
        revoked_amount=snapshot.revoked_amount,
        review_flags_total=snapshot.review_flags_total,
        flagged_referrers_total=snapshot.flagged_referrers_total,
        top_referrers=[ReferralTopReferrerResponse(**row) for row in snapshot.top_referrers],
    )
