from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import func, select, update

from referral_engine.db.models.credit_transactions import CreditTransaction
from referral_engine.db.models.promotions import Promotion
from referral_engine.db.models.referrals import Referral
from referral_engine.db.models.user_credits import UserCredit
from referral_engine.db.models.user_referral_codes import UserReferralCode
from referral_engine.db.models.users import User
from referral_engine.db.session import SessionLocal
from referral_engine.economy.config.service import update_system_config
from referral_engine.economy.referrals.service import (
    ConversionResult,
    ReferralService,
    RefundResult,
    SignupResult,
)
from referral_engine.economy.referrals.types import (
    OrderPaymentCompleted,
    OrderRefunded,
    UserSignedUp,
)

UTC = timezone.utc
SIGNUP_AT = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)


async def _signup(
    *,
    email: str,
    referral_code: str | None = None,
    ip_address: str | None = None,
    user_id: UUID | None = None,
    now_utc: datetime = SIGNUP_AT,
) -> tuple[UUID, SignupResult]:
    resolved_user_id = user_id or uuid4()
    async with SessionLocal.begin() as session:
        result = await ReferralService.process_signup(
            session,
            event=UserSignedUp(
                user_id=resolved_user_id,
                email=email,
                referral_code=referral_code,
                ip_address=ip_address,
            ),
            now_utc=now_utc,
        )
    return resolved_user_id, result


async def _pay(
    *,
    user_id: UUID,
    order_id: str,
    subtotal: Decimal | None = Decimal("45.00"),
    ip_address: str | None = "198.51.100.10",
    promotion_code: str | None = None,
    completed_at: datetime = SIGNUP_AT + timedelta(days=1),
) -> ConversionResult:
    async with SessionLocal.begin() as session:
        return await ReferralService.process_order_payment_completed(
            session,
            event=OrderPaymentCompleted(
                user_id=user_id,
                order_id=order_id,
                ip_address=ip_address,
                subtotal=subtotal,
                completed_at=completed_at,
                promotion_code=promotion_code,
            ),
            now_utc=completed_at,
        )


async def _refund(
    *,
    order_id: str,
    refunded_at: datetime,
    reason: str | None = None,
) -> RefundResult:
    async with SessionLocal.begin() as session:
        return await ReferralService.process_order_refunded(
            session,
            event=OrderRefunded(order_id=order_id, refunded_at=refunded_at, reason=reason),
            now_utc=refunded_at,
        )


async def _set_config(key: str, value: dict[str, object], *, now_utc: datetime = SIGNUP_AT) -> None:
    async with SessionLocal.begin() as session:
        await update_system_config(
            session,
            key=key,
            value=value,
            updated_by="integration-test",
            now_utc=now_utc,
        )


async def _mark_suspended_without_deactivation(user_id: UUID) -> None:
    async with SessionLocal.begin() as session:
        await session.execute(update(User).where(User.id == user_id).values(status="SUSPENDED"))


async def _get_referral_for_referee(referee_user_id: UUID) -> Referral | None:
    async with SessionLocal() as session:
        return await session.scalar(
            select(Referral).where(Referral.referee_user_id == referee_user_id)
        )


async def _get_first_order_promotion(user_id: UUID) -> Promotion | None:
    async with SessionLocal() as session:
        return await session.scalar(
            select(Promotion).where(
                Promotion.user_id == user_id,
                Promotion.is_first_order_code.is_(True),
            )
        )


async def _get_referral_code_row(user_id: UUID) -> UserReferralCode | None:
    async with SessionLocal() as session:
        return await session.get(UserReferralCode, user_id)


async def _get_balance(user_id: UUID) -> Decimal:
    async with SessionLocal() as session:
        credits = await session.get(UserCredit, user_id)
        return Decimal(credits.balance) if credits is not None else Decimal("0")


async def _ledger_entries(user_id: UUID) -> list[CreditTransaction]:
    async with SessionLocal() as session:
        result = await session.execute(
            select(CreditTransaction)
            .where(CreditTransaction.user_id == user_id)
            .order_by(CreditTransaction.id.asc())
        )
        return list(result.scalars())


async def _ledger_sum(user_id: UUID) -> Decimal:
    async with SessionLocal() as session:
        total = await session.scalar(
            select(func.coalesce(func.sum(CreditTransaction.amount), 0)).where(
                CreditTransaction.user_id == user_id
            )
        )
        return Decimal(total or 0)


async def _create_referred_pair(
    *,
    seed: str,
    referee_ip: str | None = "198.51.100.10",
    referrer_user_id: UUID | None = None,
    referrer_code: str | None = None,
) -> tuple[UUID, str, UUID, SignupResult]:
    if referrer_user_id is None or referrer_code is None:
        referrer_user_id, referrer_signup = await _signup(email=f"referrer-{seed}@example.com")
        referrer_code = referrer_signup.referral_code
    referee_user_id, referee_signup = await _signup(
        email=f"referee-{seed}@example.com",
        referral_code=referrer_code,
        ip_address=referee_ip,
    )
    return referrer_user_id, referrer_code, referee_user_id, referee_signup
