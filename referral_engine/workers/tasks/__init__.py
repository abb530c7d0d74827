from referral_engine.workers.tasks.credits_reconciliation import run_credits_reconciliation
from referral_engine.workers.tasks.promotions_maintenance import run_first_order_code_expiry

__all__ = [
    "run_credits_reconciliation",
    "run_first_order_code_expiry",
]
