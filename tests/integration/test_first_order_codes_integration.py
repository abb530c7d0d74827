from __future__ import annotations

from datetime import timedelta

import pytest

from referral_engine.db.session import SessionLocal
from referral_engine.economy.promotions.first_order import (
    expire_first_order_codes,
    get_first_order_code,
    is_first_order_code_valid,
)
from tests.integration.referral_flow_fixtures import (
    SIGNUP_AT,
    _get_first_order_promotion,
    _pay,
    _signup,
)


@pytest.mark.asyncio
async def test_issued_code_is_valid_until_used() -> None:
    user_id, signup = await _signup(email="code-owner@example.com")

    async with SessionLocal() as session:
        current = await get_first_order_code(
            session,
            user_id=user_id,
            now_utc=SIGNUP_AT + timedelta(days=1),
        )
        validation = await is_first_order_code_valid(
            session,
            user_id=user_id,
            code=signup.code,
            now_utc=SIGNUP_AT + timedelta(days=1),
        )
    assert current is not None
    assert current.code == signup.code
    assert validation.valid is True

    await _pay(user_id=user_id, order_id="ORD-CODE-1", promotion_code=signup.code)

    async with SessionLocal() as session:
        after_use = await get_first_order_code(
            session,
            user_id=user_id,
            now_utc=SIGNUP_AT + timedelta(days=2),
        )
        validation = await is_first_order_code_valid(
            session,
            user_id=user_id,
            code=signup.code,
            now_utc=SIGNUP_AT + timedelta(days=2),
        )
    assert after_use is None
    assert validation.valid is False
    assert validation.reason == "used"


@pytest.mark.asyncio
async def test_code_cannot_be_consumed_by_another_user() -> None:
    owner_id, owner_signup = await _signup(email="owner@example.com")
    other_id, _ = await _signup(email="other@example.com")

    result = await _pay(user_id=other_id, order_id="ORD-STOLEN-1", promotion_code=owner_signup.code)

    assert result.promotion_consumed is False
    promotion = await _get_first_order_promotion(owner_id)
    assert promotion is not None
    assert promotion.usage_count == 0


@pytest.mark.asyncio
async def test_expire_job_deactivates_codes_past_their_end() -> None:
    fresh_id, _ = await _signup(email="fresh@example.com", now_utc=SIGNUP_AT + timedelta(days=20))
    stale_id, _ = await _signup(email="stale@example.com")

    async with SessionLocal.begin() as session:
        expired = await expire_first_order_codes(session, now_utc=SIGNUP_AT + timedelta(days=31))
    async with SessionLocal.begin() as session:
        expired_again = await expire_first_order_codes(
            session,
            now_utc=SIGNUP_AT + timedelta(days=31),
        )

    assert expired == 1
    assert expired_again == 0
    stale = await _get_first_order_promotion(stale_id)
    fresh = await _get_first_order_promotion(fresh_id)
    assert stale is not None and stale.is_active is False
    assert fresh is not None and fresh.is_active is True


@pytest.mark.asyncio
async def test_code_presented_on_a_later_order_is_not_consumed() -> None:
    user_id, signup = await _signup(email="late-code@example.com")

    first = await _pay(user_id=user_id, order_id="ORD-LATE-1")
    second = await _pay(
        user_id=user_id,
        order_id="ORD-LATE-2",
        promotion_code=signup.code,
        completed_at=SIGNUP_AT + timedelta(days=2),
    )

    assert first.promotion_consumed is False
    assert second.promotion_consumed is False
    promotion = await _get_first_order_promotion(user_id)
    assert promotion is not None
    assert promotion.usage_count == 0
    assert promotion.used_order_id is None


@pytest.mark.asyncio
async def test_code_past_its_end_is_not_consumed_on_first_order() -> None:
    user_id, signup = await _signup(email="expired-code@example.com")

    result = await _pay(
        user_id=user_id,
        order_id="ORD-EXPIRED-1",
        promotion_code=signup.code,
        completed_at=SIGNUP_AT + timedelta(days=31),
    )

    assert result.promotion_consumed is False
    promotion = await _get_first_order_promotion(user_id)
    assert promotion is not None
    assert promotion.usage_count == 0


@pytest.mark.asyncio
async def test_deactivated_code_is_not_consumed() -> None:
    user_id, signup = await _signup(email="deactivated-code@example.com")
    async with SessionLocal.begin() as session:
        await expire_first_order_codes(session, now_utc=SIGNUP_AT + timedelta(days=31))

    result = await _pay(user_id=user_id, order_id="ORD-INACTIVE-1", promotion_code=signup.code)

    assert result.promotion_consumed is False
    promotion = await _get_first_order_promotion(user_id)
    assert promotion is not None
    assert promotion.is_active is False
    assert promotion.usage_count == 0
