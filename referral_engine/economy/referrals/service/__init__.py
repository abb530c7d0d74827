from __future__ import annotations

from .admin import suspend_user
from .conversion import process_order_payment_completed
from .fraud import check_ip_velocity, check_review_threshold, is_self_referral, is_suspended
from .models import (
    ConversionResult,
    ReferralCodeInfo,
    ReferralHistoryItem,
    ReferralStats,
    RefundResult,
    SignupResult,
    SuspensionResult,
)
from .refund import is_within_refund_window, process_order_refunded
from .registry import (
    build_share_link,
    deactivate_codes_for_user,
    get_or_create_referral_code,
    get_referral_code_info,
    resolve_active_code_owner,
)
from .signup import process_signup
from .stats import (
    ReferralsDashboardSnapshot,
    build_referrals_dashboard_snapshot,
    get_referral_history,
    get_referral_stats,
)


class ReferralService:
    process_signup = staticmethod(process_signup)
    process_order_payment_completed = staticmethod(process_order_payment_completed)
    process_order_refunded = staticmethod(process_order_refunded)
    is_within_refund_window = staticmethod(is_within_refund_window)
    is_self_referral = staticmethod(is_self_referral)
    is_suspended = staticmethod(is_suspended)
    check_ip_velocity = staticmethod(check_ip_velocity)
    check_review_threshold = staticmethod(check_review_threshold)
    get_or_create_referral_code = staticmethod(get_or_create_referral_code)
    get_referral_code_info = staticmethod(get_referral_code_info)
    resolve_active_code_owner = staticmethod(resolve_active_code_owner)
    build_share_link = staticmethod(build_share_link)
    deactivate_codes_for_user = staticmethod(deactivate_codes_for_user)
    get_referral_stats = staticmethod(get_referral_stats)
    get_referral_history = staticmethod(get_referral_history)
    build_referrals_dashboard_snapshot = staticmethod(build_referrals_dashboard_snapshot)
    suspend_user = staticmethod(suspend_user)


__all__ = [
    "ConversionResult",
    "ReferralCodeInfo",
    "ReferralHistoryItem",
    "ReferralService",
    "ReferralStats",
    "ReferralsDashboardSnapshot",
    "RefundResult",
    "SignupResult",
    "SuspensionResult",
]
