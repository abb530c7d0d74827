from __future__ import annotations

IP_VELOCITY_WINDOW_HOURS = 24
DEFAULT_MAX_CONVERSIONS_PER_IP = 3
DEFAULT_REVIEW_THRESHOLD = 50
DEFAULT_HISTORY_LIMIT = 20
MAX_HISTORY_LIMIT = 100
DASHBOARD_TOP_REFERRERS_LIMIT = 10

REVIEW_THRESHOLD_EVENT_TYPE = "referral_review_threshold_reached"
REWARD_DESCRIPTION = "Reward per referral convertito"
REVOCATION_DESCRIPTION = "Reward referral revocato per rimborso"
DEFAULT_REVOKE_REASON = "order_refunded"
