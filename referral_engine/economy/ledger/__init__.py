from referral_engine.economy.ledger.errors import (
    AlreadyRevokedError,
    DuplicateReferenceError,
    LedgerError,
    NothingToRevokeError,
)
from referral_engine.economy.ledger.service import credit, revoke
from referral_engine.economy.ledger.types import LedgerResult

__all__ = [
    "AlreadyRevokedError",
    "DuplicateReferenceError",
    "LedgerError",
    "LedgerResult",
    "NothingToRevokeError",
    "credit",
    "revoke",
]
