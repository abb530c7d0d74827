from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from referral_engine.db.models.processed_orders import ProcessedOrder
from referral_engine.db.session import SessionLocal
from tests.integration.referral_flow_fixtures import (
    SIGNUP_AT,
    _create_referred_pair,
    _get_balance,
    _get_referral_code_row,
    _get_referral_for_referee,
    _ledger_entries,
    _ledger_sum,
    _pay,
    _refund,
    _set_config,
)

PAID_AT = SIGNUP_AT + timedelta(days=1)


async def _converted_pair(seed: str, order_id: str):
    referrer_id, _, referee_id, _ = await _create_referred_pair(seed=seed)
    result = await _pay(user_id=referee_id, order_id=order_id, completed_at=PAID_AT)
    assert result.outcome.value == "credited"
    return referrer_id, referee_id


@pytest.mark.asyncio
async def test_refund_inside_window_revokes_reward() -> None:
    referrer_id, referee_id = await _converted_pair("refund", "ORD-REF-1")

    result = await _refund(
        order_id="ORD-REF-1",
        refunded_at=PAID_AT + timedelta(days=5),
        reason="customer_request",
    )

    assert result.outcome.value == "revoked"
    assert result.referrer_user_id == referrer_id
    assert result.revoked_amount == Decimal("5.00")

    assert await _get_balance(referrer_id) == Decimal("0.00")
    assert await _ledger_sum(referrer_id) == Decimal("0.00")
    entries = await _ledger_entries(referrer_id)
    assert [entry.reference_type for entry in entries] == ["referral_reward", "referral_revocation"]
    assert entries[1].amount == Decimal("-5.00")
    assert entries[1].reference_id == entries[0].reference_id

    referral = await _get_referral_for_referee(referee_id)
    assert referral is not None
    assert referral.status == "revoked"
    assert referral.revoke_reason == "customer_request"
    assert referral.revoked_at is not None

    code_row = await _get_referral_code_row(referrer_id)
    assert code_row is not None
    assert code_row.total_conversions == 0
    assert code_row.total_earned == Decimal("0.00")


@pytest.mark.asyncio
async def test_refund_without_reason_uses_default_reason() -> None:
    _, referee_id = await _converted_pair("refund-default", "ORD-REF-DEF")

    await _refund(order_id="ORD-REF-DEF", refunded_at=PAID_AT + timedelta(days=1))

    referral = await _get_referral_for_referee(referee_id)
    assert referral is not None
    assert referral.revoke_reason == "order_refunded"


@pytest.mark.asyncio
async def test_duplicate_refund_event_revokes_once() -> None:
    referrer_id, _ = await _converted_pair("refund-dup", "ORD-REF-DUP")

    first = await _refund(order_id="ORD-REF-DUP", refunded_at=PAID_AT + timedelta(days=2))
    second = await _refund(order_id="ORD-REF-DUP", refunded_at=PAID_AT + timedelta(days=2))

    assert first.outcome.value == "revoked"
    assert second.outcome.value == "duplicate_event"
    assert len(await _ledger_entries(referrer_id)) == 2
    assert await _get_balance(referrer_id) == Decimal("0.00")


@pytest.mark.asyncio
async def test_refund_on_window_boundary_still_revokes() -> None:
    referrer_id, _ = await _converted_pair("refund-edge", "ORD-REF-EDGE")

    result = await _refund(order_id="ORD-REF-EDGE", refunded_at=PAID_AT + timedelta(days=14))

    assert result.outcome.value == "revoked"
    assert await _get_balance(referrer_id) == Decimal("0.00")


@pytest.mark.asyncio
async def test_refund_after_window_keeps_reward() -> None:
    referrer_id, referee_id = await _converted_pair("refund-late", "ORD-REF-LATE")

    result = await _refund(order_id="ORD-REF-LATE", refunded_at=PAID_AT + timedelta(days=15))

    assert result.outcome.value == "outside_window"
    assert await _get_balance(referrer_id) == Decimal("5.00")
    referral = await _get_referral_for_referee(referee_id)
    assert referral is not None
    assert referral.status == "converted"

    async with SessionLocal() as session:
        order = await session.get(ProcessedOrder, "ORD-REF-LATE")
    assert order is not None
    assert order.refund_outcome == "outside_window"
    assert order.refunded_at is not None


@pytest.mark.asyncio
async def test_refund_window_follows_current_config() -> None:
    referrer_id, _ = await _converted_pair("refund-config", "ORD-REF-CFG")
    await _set_config(
        "referral_limits",
        {"max_per_ip_daily": 3, "review_threshold": 50, "refund_window_days": 30},
    )

    result = await _refund(order_id="ORD-REF-CFG", refunded_at=PAID_AT + timedelta(days=20))

    assert result.outcome.value == "revoked"
    assert await _get_balance(referrer_id) == Decimal("0.00")


@pytest.mark.asyncio
async def test_refund_for_unknown_order_is_reported() -> None:
    result = await _refund(order_id="ORD-NEVER-SEEN", refunded_at=PAID_AT)

    assert result.outcome.value == "unknown_order"


@pytest.mark.asyncio
async def test_refund_of_order_that_did_not_convert_changes_nothing() -> None:
    referrer_id, _, referee_id, _ = await _create_referred_pair(seed="refund-small")
    paid = await _pay(
        user_id=referee_id,
        order_id="ORD-REF-SMALL",
        subtotal=Decimal("12.00"),
        completed_at=PAID_AT,
    )
    assert paid.outcome.value == "minimum_order_not_met"

    result = await _refund(order_id="ORD-REF-SMALL", refunded_at=PAID_AT + timedelta(days=1))

    assert result.outcome.value == "no_eligible_referral"
    assert await _ledger_entries(referrer_id) == []
    referral = await _get_referral_for_referee(referee_id)
    assert referral is not None
    assert referral.status == "pending"
