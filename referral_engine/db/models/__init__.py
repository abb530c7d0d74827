from referral_engine.db.models.credit_transactions import CreditTransaction
from referral_engine.db.models.outbox_events import OutboxEvent
from referral_engine.db.models.processed_orders import ProcessedOrder
from referral_engine.db.models.promotions import Promotion
from referral_engine.db.models.referrals import Referral
from referral_engine.db.models.system_config import SystemConfig
from referral_engine.db.models.user_credits import UserCredit
from referral_engine.db.models.user_referral_codes import UserReferralCode
from referral_engine.db.models.users import User

__all__ = [
    "CreditTransaction",
    "OutboxEvent",
    "ProcessedOrder",
    "Promotion",
    "Referral",
    "SystemConfig",
    "User",
    "UserCredit",
    "UserReferralCode",
]
