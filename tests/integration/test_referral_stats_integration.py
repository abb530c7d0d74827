from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from referral_engine.db.session import SessionLocal
from referral_engine.economy.referrals.service import ReferralService
from tests.integration.referral_flow_fixtures import (
    SIGNUP_AT,
    _create_referred_pair,
    _pay,
    _refund,
    _set_config,
    _signup,
)


@pytest.mark.asyncio
async def test_stats_are_computed_from_referrals_and_ledger() -> None:
    referrer_id, referrer_signup = await _signup(email="stats-referrer@example.com")
    referees = []
    for idx in range(3):
        _, _, referee_id, _ = await _create_referred_pair(
            seed=f"stats-{idx}",
            referrer_user_id=referrer_id,
            referrer_code=referrer_signup.referral_code,
        )
        referees.append(referee_id)

    await _pay(user_id=referees[0], order_id="ORD-STATS-0")
    await _pay(user_id=referees[1], order_id="ORD-STATS-1")
    await _refund(order_id="ORD-STATS-1", refunded_at=SIGNUP_AT + timedelta(days=3))

    async with SessionLocal() as session:
        stats = await ReferralService.get_referral_stats(session, user_id=referrer_id)

    assert stats.total_invites == 3
    assert stats.conversions == 1
    assert stats.pending_rewards == 1
    assert stats.total_earned == Decimal("5.00")
    assert stats.is_active is True


@pytest.mark.asyncio
async def test_stats_for_user_without_referrals_are_zero() -> None:
    user_id, _ = await _signup(email="quiet@example.com")

    async with SessionLocal() as session:
        stats = await ReferralService.get_referral_stats(session, user_id=user_id)

    assert stats.total_invites == 0
    assert stats.conversions == 0
    assert stats.pending_rewards == 0
    assert stats.total_earned == Decimal("0")
    assert stats.is_active is True


@pytest.mark.asyncio
async def test_history_lists_newest_referrals_first_and_honors_limit() -> None:
    referrer_id, referrer_signup = await _signup(email="history-referrer@example.com")
    referee_ids = []
    for idx in range(3):
        referee_id, _ = await _signup(
            email=f"history-{idx}@example.com",
            referral_code=referrer_signup.referral_code,
            now_utc=SIGNUP_AT + timedelta(hours=idx + 1),
        )
        referee_ids.append(referee_id)

    async with SessionLocal() as session:
        history = await ReferralService.get_referral_history(session, user_id=referrer_id, limit=2)

    assert [item.referee_user_id for item in history] == [referee_ids[2], referee_ids[1]]
    assert all(item.status == "pending" for item in history)
    assert all(item.reward_amount == Decimal("5.00") for item in history)


@pytest.mark.asyncio
async def test_dashboard_snapshot_summarizes_window() -> None:
    await _set_config(
        "referral_limits",
        {"max_per_ip_daily": 10, "review_threshold": 1, "refund_window_days": 14},
    )
    referrer_id, referrer_signup = await _signup(email="dash-referrer@example.com")
    referees = []
    for idx in range(4):
        _, _, referee_id, _ = await _create_referred_pair(
            seed=f"dash-{idx}",
            referrer_user_id=referrer_id,
            referrer_code=referrer_signup.referral_code,
        )
        referees.append(referee_id)
    await _pay(user_id=referees[0], order_id="ORD-DASH-0")
    await _pay(user_id=referees[1], order_id="ORD-DASH-1")
    await _refund(order_id="ORD-DASH-1", refunded_at=SIGNUP_AT + timedelta(days=2))

    async with SessionLocal() as session:
        snapshot = await ReferralService.build_referrals_dashboard_snapshot(
            session,
            now_utc=SIGNUP_AT + timedelta(days=3),
            window_hours=24 * 7,
        )

    assert snapshot.referrals_created_total == 4
    assert snapshot.pending_total == 2
    assert snapshot.converted_total == 1
    assert snapshot.revoked_total == 1
    assert snapshot.conversion_rate == pytest.approx(0.5)
    assert snapshot.revocation_rate == pytest.approx(0.5)
    assert snapshot.credited_amount == Decimal("10.00")
    assert snapshot.revoked_amount == Decimal("5.00")
    assert snapshot.review_flags_total == 2
    assert snapshot.flagged_referrers_total == 1
    assert snapshot.top_referrers == [
        {"referrer_user_id": str(referrer_id), "invites": 4, "conversions": 1}
    ]


@pytest.mark.asyncio
async def test_dashboard_snapshot_on_empty_window() -> None:
    async with SessionLocal() as session:
        snapshot = await ReferralService.build_referrals_dashboard_snapshot(
            session,
            now_utc=SIGNUP_AT,
            window_hours=24,
        )

    assert snapshot.referrals_created_total == 0
    assert snapshot.conversion_rate == 0.0
    assert snapshot.revocation_rate == 0.0
    assert snapshot.credited_amount == Decimal("0")
    assert snapshot.top_referrers == []
