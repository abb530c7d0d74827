from referral_engine.economy.promotions.first_order import (
    FirstOrderCode,
    FirstOrderCodeValidation,
    FirstOrderDiscount,
    ReferralBonusEligibility,
    calculate_first_order_discount,
    expire_first_order_codes,
    get_first_order_code,
    get_referral_bonus_eligibility,
    is_first_order_code_valid,
)

__all__ = [
    "FirstOrderCode",
    "FirstOrderCodeValidation",
    "FirstOrderDiscount",
    "ReferralBonusEligibility",
    "calculate_first_order_discount",
    "expire_first_order_codes",
    "get_first_order_code",
    "get_referral_bonus_eligibility",
    "is_first_order_code_valid",
]
