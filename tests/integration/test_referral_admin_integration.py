from __future__ import annotations

from uuid import uuid4

import pytest

from referral_engine.db.models.users import User
from referral_engine.db.session import SessionLocal
from referral_engine.economy.referrals.errors import ReferralUserNotFoundError
from referral_engine.economy.referrals.service import ReferralService
from tests.integration.referral_flow_fixtures import (
    SIGNUP_AT,
    _get_referral_code_row,
    _signup,
)


@pytest.mark.asyncio
async def test_suspend_user_deactivates_code_and_is_idempotent() -> None:
    user_id, _ = await _signup(email="to-suspend@example.com")

    async with SessionLocal.begin() as session:
        first = await ReferralService.suspend_user(session, user_id=user_id, now_utc=SIGNUP_AT)
    async with SessionLocal.begin() as session:
        second = await ReferralService.suspend_user(session, user_id=user_id, now_utc=SIGNUP_AT)

    assert first.idempotent_replay is False
    assert first.deactivated_codes == 1
    assert second.idempotent_replay is True
    assert second.deactivated_codes == 0

    code_row = await _get_referral_code_row(user_id)
    assert code_row is not None
    assert code_row.is_active is False
    async with SessionLocal() as session:
        user = await session.get(User, user_id)
    assert user is not None
    assert user.status == "SUSPENDED"
    assert user.suspended_at == SIGNUP_AT


@pytest.mark.asyncio
async def test_suspend_unknown_user_raises() -> None:
    with pytest.raises(ReferralUserNotFoundError):
        async with SessionLocal.begin() as session:
            await ReferralService.suspend_user(session, user_id=uuid4(), now_utc=SIGNUP_AT)


@pytest.mark.asyncio
async def test_code_info_reports_inactive_code_after_suspension() -> None:
    user_id, signup = await _signup(email="info@example.com")
    async with SessionLocal.begin() as session:
        await ReferralService.suspend_user(session, user_id=user_id, now_utc=SIGNUP_AT)

    async with SessionLocal() as session:
        info = await ReferralService.get_referral_code_info(
            session,
            user_id=user_id,
            base_url="https://shop.example.com/signup",
            now_utc=SIGNUP_AT,
        )

    assert info.code == signup.referral_code
    assert info.is_active is False
    assert info.share_link == f"https://shop.example.com/signup?ref={signup.referral_code}"
