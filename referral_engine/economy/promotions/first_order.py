from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.core.referral_codes import FIRST_ORDER_CODE_PREFIX
from referral_engine.db.models.promotions import Promotion
from referral_engine.db.repo.processed_orders_repo import ProcessedOrdersRepo
from referral_engine.db.repo.promotions_repo import PromotionsRepo
from referral_engine.economy.config.snapshot import ConfigSnapshot

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")
EXPIRE_BATCH_LIMIT = 500

FIRST_ORDER_PROMOTION_NAME = "Sconto Primo Ordine"
REFERRAL_FIRST_ORDER_PROMOTION_NAME = "Sconto Primo Ordine (Referral)"

VALIDATION_REASON_NOT_FOUND = "not-found"
VALIDATION_REASON_NOT_OWNER = "not-owner"
VALIDATION_REASON_EXPIRED = "expired"
VALIDATION_REASON_USED = "used"
VALIDATION_REASON_NOT_FIRST_ORDER = "not-first-order"


@dataclass(frozen=True, slots=True)
class FirstOrderCode:
    promotion_id: UUID
    code: str
    discount_percent: int
    discount_type: str
    expires_at: datetime
    is_referral_bonus: bool


@dataclass(frozen=True, slots=True)
class FirstOrderCodeValidation:
    valid: bool
    reason: str | None = None
    code: FirstOrderCode | None = None


@dataclass(frozen=True, slots=True)
class FirstOrderDiscount:
    subtotal: Decimal
    discount: Decimal
    shipping: Decimal
    total: Decimal


@dataclass(frozen=True, slots=True)
class ReferralBonusEligibility:
    is_eligible: bool
    amount_needed: Decimal
    bonus_amount: Decimal
    minimum_order: Decimal


def promotion_name(*, is_referral: bool) -> str:
    return REFERRAL_FIRST_ORDER_PROMOTION_NAME if is_referral else FIRST_ORDER_PROMOTION_NAME


def promotion_description(discount_percent: int) -> str:
    return f"{discount_percent}% di sconto sul tuo primo ordine"


def _to_first_order_code(promotion: Promotion) -> FirstOrderCode:
    return FirstOrderCode(
        promotion_id=promotion.id,
        code=promotion.code,
        discount_percent=int(promotion.discount_value),
        discount_type=promotion.discount_type,
        expires_at=promotion.ends_at,
        is_referral_bonus=bool(promotion.referral_bonus),
    )


def _is_redeemable_at(promotion: Promotion, now_utc: datetime) -> bool:
    return promotion.is_active and promotion.starts_at <= now_utc <= promotion.ends_at


async def get_first_order_code(
    session: AsyncSession,
    *,
    user_id: UUID,
    now_utc: datetime,
) -> FirstOrderCode | None:
    promotion = await PromotionsRepo.get_first_order_code_by_user_id(session, user_id=user_id)
    if promotion is None:
        return None
    if not _is_redeemable_at(promotion, now_utc) or promotion.usage_count > 0:
        return None
    return _to_first_order_code(promotion)


async def is_first_order_code_valid(
    session: AsyncSession,
    *,
    user_id: UUID,
    code: str,
    now_utc: datetime,
) -> FirstOrderCodeValidation:
    normalized_code = code.strip().upper().replace("-", "")
    if not normalized_code.startswith(FIRST_ORDER_CODE_PREFIX):
        return FirstOrderCodeValidation(valid=False, reason=VALIDATION_REASON_NOT_FOUND)

    promotion = await PromotionsRepo.get_first_order_code_by_code(session, code=normalized_code)
    if promotion is None:
        return FirstOrderCodeValidation(valid=False, reason=VALIDATION_REASON_NOT_FOUND)
    if promotion.user_id != user_id:
        return FirstOrderCodeValidation(valid=False, reason=VALIDATION_REASON_NOT_OWNER)
    if not _is_redeemable_at(promotion, now_utc):
        return FirstOrderCodeValidation(valid=False, reason=VALIDATION_REASON_EXPIRED)

    # Consumed codes report "used" even though their order now counts as completed.
    if promotion.usage_count >= promotion.usage_limit:
        return FirstOrderCodeValidation(valid=False, reason=VALIDATION_REASON_USED)
    completed_orders = await ProcessedOrdersRepo.count_for_user(session, user_id=user_id)
    if completed_orders > 0:
        return FirstOrderCodeValidation(valid=False, reason=VALIDATION_REASON_NOT_FIRST_ORDER)

    return FirstOrderCodeValidation(valid=True, code=_to_first_order_code(promotion))


def calculate_first_order_discount(
    subtotal: Decimal,
    discount_percent: int,
    shipping_cost: Decimal = Decimal("0"),
) -> FirstOrderDiscount:
    """Discount applies to the merchandise subtotal only, never to shipping."""
    if subtotal < 0 or shipping_cost < 0:
        raise ValueError("amounts must be non-negative")
    if not 0 <= discount_percent <= 100:
        raise ValueError("discount_percent must be within 0..100")

    discount = (subtotal * Decimal(discount_percent) / Decimal(100)).quantize(
        CENT,
        rounding=ROUND_HALF_UP,
    )
    total = (subtotal - discount + shipping_cost).quantize(CENT, rounding=ROUND_HALF_UP)
    return FirstOrderDiscount(
        subtotal=subtotal,
        discount=discount,
        shipping=shipping_cost,
        total=total,
    )


def get_referral_bonus_eligibility(
    snapshot: ConfigSnapshot,
    cart_subtotal: Decimal,
) -> ReferralBonusEligibility:
    minimum_order = snapshot.minimum_order_amount
    amount_needed = max(Decimal("0"), minimum_order - cart_subtotal).quantize(
        CENT,
        rounding=ROUND_HALF_UP,
    )
    return ReferralBonusEligibility(
        is_eligible=cart_subtotal >= minimum_order,
        amount_needed=amount_needed,
        bonus_amount=snapshot.reward_amount,
        minimum_order=minimum_order,
    )


async def expire_first_order_codes(
    session: AsyncSession,
    *,
    now_utc: datetime,
    batch_limit: int = EXPIRE_BATCH_LIMIT,
) -> int:
    expired_total = await PromotionsRepo.deactivate_expired_first_order_codes(
        session,
        now_utc=now_utc,
        limit=batch_limit,
    )
    if expired_total:
        logger.info("first_order_codes_expired", expired_total=expired_total)
    return expired_total
