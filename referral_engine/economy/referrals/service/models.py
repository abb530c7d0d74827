from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from referral_engine.economy.referrals.types import (
    ConversionOutcome,
    FallbackReason,
    RefundOutcome,
)


@dataclass(frozen=True, slots=True)
class SignupResult:
    code: str
    discount_percent: int
    is_referral: bool
    referral_code: str
    fallback_reason: FallbackReason | None
    referrer_user_id: UUID | None
    idempotent_replay: bool


@dataclass(frozen=True, slots=True)
class ConversionResult:
    outcome: ConversionOutcome
    order_id: str
    referral_id: UUID | None = None
    referrer_user_id: UUID | None = None
    reward_amount: Decimal | None = None
    promotion_consumed: bool = False
    review_required: bool = False


@dataclass(frozen=True, slots=True)
class RefundResult:
    outcome: RefundOutcome
    order_id: str
    referral_id: UUID | None = None
    referrer_user_id: UUID | None = None
    revoked_amount: Decimal | None = None


@dataclass(frozen=True, slots=True)
class ReferralCodeInfo:
    code: str
    share_link: str
    is_active: bool


@dataclass(frozen=True, slots=True)
class ReferralStats:
    total_invites: int
    conversions: int
    pending_rewards: int
    total_earned: Decimal
    is_active: bool


@dataclass(frozen=True, slots=True)
class ReferralHistoryItem:
    referral_id: UUID
    referee_user_id: UUID
    status: str
    reward_amount: Decimal
    reward_credited: bool
    created_at: datetime
    converted_at: datetime | None
    revoked_at: datetime | None


@dataclass(frozen=True, slots=True)
class SuspensionResult:
    user_id: UUID
    deactivated_codes: int
    idempotent_replay: bool
