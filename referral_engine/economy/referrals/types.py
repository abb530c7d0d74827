from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class ReferralStatus(str, Enum):
    PENDING = "pending"
    CONVERTED = "converted"
    REVOKED = "revoked"


class FallbackReason(str, Enum):
    NO_CODE = "no_code"
    INVALID_CODE = "invalid_code"
    SELF_REFERRAL = "self_referral"
    REFERRER_SUSPENDED = "referrer_suspended"


class ConversionOutcome(str, Enum):
    RECEIVED = "received"
    DUPLICATE_EVENT = "duplicate_event"
    NOT_REFERRED = "not_referred"
    NOT_FIRST_ORDER = "not_first_order"
    REFERRER_SUSPENDED = "referrer_suspended"
    MINIMUM_ORDER_NOT_MET = "minimum_order_not_met"
    IP_LIMIT_EXCEEDED = "ip_limit_exceeded"
    CREDITED = "credited"


class RefundOutcome(str, Enum):
    UNKNOWN_ORDER = "unknown_order"
    DUPLICATE_EVENT = "duplicate_event"
    OUTSIDE_WINDOW = "outside_window"
    NO_ELIGIBLE_REFERRAL = "no_eligible_referral"
    REVOKED = "revoked"


@dataclass(frozen=True, slots=True)
class UserSignedUp:
    user_id: UUID
    email: str
    referral_code: str | None = None
    ip_address: str | None = None


@dataclass(frozen=True, slots=True)
class OrderPaymentCompleted:
    user_id: UUID
    order_id: str
    ip_address: str | None = None
    subtotal: Decimal | None = None
    completed_at: datetime | None = None
    promotion_code: str | None = None


@dataclass(frozen=True, slots=True)
class OrderRefunded:
    order_id: str
    refunded_at: datetime
    reason: str | None = None
