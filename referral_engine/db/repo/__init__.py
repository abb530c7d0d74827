from referral_engine.db.repo.credits_repo import CreditsRepo
from referral_engine.db.repo.outbox_events_repo import OutboxEventsRepo
from referral_engine.db.repo.processed_orders_repo import ProcessedOrdersRepo
from referral_engine.db.repo.promotions_repo import PromotionsRepo
from referral_engine.db.repo.referral_codes_repo import ReferralCodesRepo
from referral_engine.db.repo.referrals_repo import ReferralsRepo
from referral_engine.db.repo.system_config_repo import SystemConfigRepo
from referral_engine.db.repo.users_repo import UsersRepo

__all__ = [
    "CreditsRepo",
    "OutboxEventsRepo",
    "ProcessedOrdersRepo",
    "PromotionsRepo",
    "ReferralCodesRepo",
    "ReferralsRepo",
    "SystemConfigRepo",
    "UsersRepo",
]
