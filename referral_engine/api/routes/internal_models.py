from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field


class UserSignedUpRequest(BaseModel):
    user_id: UUID
    email: str = Field(min_length=3, max_length=320)
    referral_code: str | None = Field(default=None, max_length=32)
    ip_address: str | None = Field(default=None, max_length=64)


class SignupResponse(BaseModel):
    code: str
    discount_percent: int = Field(ge=1, le=90)
    is_referral: bool
    referral_code: str
    share_link: str
    fallback_reason: str | None = None
    referrer_user_id: UUID | None = None
    idempotent_replay: bool


class OrderPaymentCompletedRequest(BaseModel):
    user_id: UUID
    order_id: str = Field(min_length=1, max_length=64)
    ip_address: str | None = Field(default=None, max_length=64)
    subtotal: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    completed_at: datetime | None = None
    promotion_code: str | None = Field(default=None, max_length=32)


class ConversionResponse(BaseModel):
    outcome: str
    order_id: str
    referral_id: UUID | None = None
    reward_amount: Decimal | None = None
    promotion_consumed: bool


class OrderRefundedRequest(BaseModel):
    order_id: str = Field(min_length=1, max_length=64)
    refunded_at: datetime | None = None
    reason: str | None = Field(default=None, max_length=256)


class RefundResponse(BaseModel):
    outcome: str
    order_id: str
    referral_id: UUID | None = None
    revoked_amount: Decimal | None = None


class SystemConfigUpdateRequest(BaseModel):
    value: dict[str, object]
    updated_by: str | None = Field(default=None, max_length=64)


class SystemConfigUpdateResponse(BaseModel):
    key: str
    value: dict[str, object]
    version: int = Field(ge=1)


class SuspendUserResponse(BaseModel):
    user_id: UUID
    deactivated_codes: int = Field(ge=0)
    idempotent_replay: bool


class FirstOrderCodeResponse(BaseModel):
    code: str
    discount_percent: int
    discount_type: str
    expires_at: datetime
    is_referral_bonus: bool


class FirstOrderCodeLookupResponse(BaseModel):
    first_order_code: FirstOrderCodeResponse | None = None


class FirstOrderCodeValidateRequest(BaseModel):
    code: str = Field(min_length=1, max_length=32)
    subtotal: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    shipping_cost: Decimal = Field(default=Decimal("0"), ge=0, max_digits=10, decimal_places=2)


class FirstOrderDiscountResponse(BaseModel):
    subtotal: Decimal
    discount: Decimal
    shipping: Decimal
    total: Decimal


class FirstOrderCodeValidateResponse(BaseModel):
    valid: bool
    reason: str | None = None
    first_order_code: FirstOrderCodeResponse | None = None
    discount: FirstOrderDiscountResponse | None = None


class ReferralCodeResponse(BaseModel):
    code: str
    share_link: str
    is_active: bool


class ReferralBonusEligibilityResponse(BaseModel):
    is_eligible: bool
    amount_needed: Decimal
    bonus_amount: Decimal
    minimum_order: Decimal


class ReferralStatsResponse(BaseModel):
    total_invites: int = Field(ge=0)
    conversions: int = Field(ge=0)
    pending_rewards: int = Field(ge=0)
    total_earned: Decimal
    is_active: bool


class ReferralHistoryItemResponse(BaseModel):
    referral_id: UUID
    referee_user_id: UUID
    status: str
    reward_amount: Decimal
    reward_credited: bool
    created_at: datetime
    converted_at: datetime | None = None
    revoked_at: datetime | None = None


class ReferralHistoryResponse(BaseModel):
    items: list[ReferralHistoryItemResponse]


class ReferralTopReferrerResponse(BaseModel):
    referrer_user_id: UUID
    invites: int = Field(ge=0)
    conversions: int = Field(ge=0)


class ReferralDashboardResponse(BaseModel):
    generated_at: datetime
    window_hours: int = Field(ge=1, le=720)
    referrals_created_total: int = Field(ge=0)
    status_counts: dict[str, int]
    pending_total: int = Field(ge=0)
    converted_total: int = Field(ge=0)
    revoked_total: int = Field(ge=0)
    conversion_rate: float = Field(ge=0.0, le=1.0)
    revocation_rate: float = Field(ge=0.0, le=1.0)
    credited_amount: Decimal
    revoked_amount: Decimal
    review_flags_total: int = Field(ge=0)
    flagged_referrers_total: int = Field(ge=0)
    top_referrers: list[ReferralTopReferrerResponse]
