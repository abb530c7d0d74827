from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

REFERENCE_TYPE_REWARD = "referral_reward"
REFERENCE_TYPE_REVOCATION = "referral_revocation"
REFERRAL_REFERENCE_TYPES = (REFERENCE_TYPE_REWARD, REFERENCE_TYPE_REVOCATION)


@dataclass(frozen=True, slots=True)
class LedgerResult:
    entry_id: int
    user_id: UUID
    reference_type: str
    reference_id: UUID
    amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
