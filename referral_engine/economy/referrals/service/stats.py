from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.db.repo.credits_repo import CreditsRepo
from referral_engine.db.repo.outbox_events_repo import OutboxEventsRepo
from referral_engine.db.repo.referral_codes_repo import ReferralCodesRepo
from referral_engine.db.repo.referrals_repo import ReferralsRepo
from referral_engine.economy.ledger.types import (
    REFERENCE_TYPE_REVOCATION,
    REFERENCE_TYPE_REWARD,
    REFERRAL_REFERENCE_TYPES,
)
from referral_engine.economy.referrals.constants import (
    DASHBOARD_TOP_REFERRERS_LIMIT,
    DEFAULT_HISTORY_LIMIT,
    MAX_HISTORY_LIMIT,
    REVIEW_THRESHOLD_EVENT_TYPE,
)
from referral_engine.economy.referrals.types import ReferralStatus

from .models import ReferralHistoryItem, ReferralStats


def _safe_rate(*, numerator: int, denominator: int) -> float:
    if denominator <= 0:
        return 0.0
    return numerator / denominator


@dataclass(frozen=True, slots=True)
class ReferralsDashboardSnapshot:
    generated_at: datetime
    window_hours: int
    referrals_created_total: int
    status_counts: dict[str, int]
    pending_total: int
    converted_total: int
    revoked_total: int
    conversion_rate: float
    revocation_rate: float
    credited_amount: Decimal
    revoked_amount: Decimal
    review_flags_total: int
    flagged_referrers_total: int
    top_referrers: list[dict[str, object]]


async def get_referral_stats(session: AsyncSession, *, user_id: UUID) -> ReferralStats:
    """Live counts over referrals and the credit ledger, never the cached counters."""
    status_counts = await ReferralsRepo.count_by_status_for_referrer(
        session,
        referrer_user_id=user_id,
    )
    total_earned = await CreditsRepo.sum_for_user(
        session,
        user_id=user_id,
        reference_types=REFERRAL_REFERENCE_TYPES,
    )
    referral_code = await ReferralCodesRepo.get_by_user_id(session, user_id)
    return ReferralStats(
        total_invites=sum(status_counts.values()),
        conversions=status_counts.get(ReferralStatus.CONVERTED.value, 0),
        pending_rewards=status_counts.get(ReferralStatus.PENDING.value, 0),
        total_earned=total_earned,
        is_active=bool(referral_code is not None and referral_code.is_active),
    )


async def get_referral_history(
    session: AsyncSession,
    *,
    user_id: UUID,
    limit: int = DEFAULT_HISTORY_LIMIT,
) -> list[ReferralHistoryItem]:
    resolved_limit = min(MAX_HISTORY_LIMIT, max(1, int(limit)))
    referrals = await ReferralsRepo.list_for_referrer(
        session,
        referrer_user_id=user_id,
        limit=resolved_limit,
    )
    return [
        ReferralHistoryItem(
            referral_id=referral.id,
            referee_user_id=referral.referee_user_id,
            status=referral.status,
            reward_amount=referral.reward_amount,
            reward_credited=referral.reward_credited,
            created_at=referral.created_at,
            converted_at=referral.converted_at,
            revoked_at=referral.revoked_at,
        )
        for referral in referrals
    ]


async def build_referrals_dashboard_snapshot(
    session: AsyncSession,
    *,
    now_utc: datetime,
    window_hours: int,
    top_referrers_limit: int = DASHBOARD_TOP_REFERRERS_LIMIT,
) -> ReferralsDashboardSnapshot:
    since_utc = now_utc - timedelta(hours=window_hours)
    status_counts = await ReferralsRepo.count_by_status_since(session, since_utc=since_utc)
    ledger_totals = await CreditsRepo.sum_by_type_since(session, since_utc=since_utc)
    review_flags = await OutboxEventsRepo.count_by_type_since(
        session,
        since_utc=since_utc,
        event_types=(REVIEW_THRESHOLD_EVENT_TYPE,),
    )
    flagged_referrers = await OutboxEventsRepo.count_distinct_subjects_since(
        session,
        since_utc=since_utc,
        event_type=REVIEW_THRESHOLD_EVENT_TYPE,
    )
    top_referrers = await ReferralsRepo.list_top_referrers_since(
        session,
        since_utc=since_utc,
        limit=top_referrers_limit,
    )

    created_total = sum(status_counts.values())
    pending_total = status_counts.get(ReferralStatus.PENDING.value, 0)
    converted_total = status_counts.get(ReferralStatus.CONVERTED.value, 0)
    revoked_total = status_counts.get(ReferralStatus.REVOKED.value, 0)

    return ReferralsDashboardSnapshot(
        generated_at=now_utc,
        window_hours=window_hours,
        referrals_created_total=created_total,
        status_counts=status_counts,
        pending_total=pending_total,
        converted_total=converted_total,
        revoked_total=revoked_total,
        conversion_rate=_safe_rate(
            numerator=converted_total + revoked_total,
            denominator=created_total,
        ),
        revocation_rate=_safe_rate(
            numerator=revoked_total,
            denominator=converted_total + revoked_total,
        ),
        credited_amount=ledger_totals.get(REFERENCE_TYPE_REWARD, Decimal("0")),
        revoked_amount=-ledger_totals.get(REFERENCE_TYPE_REVOCATION, Decimal("0")),
        review_flags_total=review_flags.get(REVIEW_THRESHOLD_EVENT_TYPE, 0),
        flagged_referrers_total=flagged_referrers,
        top_referrers=top_referrers,
    )
