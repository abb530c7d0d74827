from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.db.models.credit_transactions import CreditTransaction
from referral_engine.db.repo.credits_repo import CreditsRepo
from referral_engine.economy.ledger.errors import (
    AlreadyRevokedError,
    DuplicateReferenceError,
    NothingToRevokeError,
)
from referral_engine.economy.ledger.types import (
    REFERENCE_TYPE_REVOCATION,
    REFERENCE_TYPE_REWARD,
    LedgerResult,
)

logger = structlog.get_logger(__name__)


async def _append_entry(
    session: AsyncSession,
    *,
    user_id: UUID,
    amount: Decimal,
    reference_type: str,
    reference_id: UUID,
    description: str | None,
    now_utc: datetime,
) -> LedgerResult:
    balance = await CreditsRepo.get_balance_for_update(session, user_id=user_id, now_utc=now_utc)
    balance_before = Decimal(balance.balance)
    balance_after = balance_before + amount

    entry = CreditTransaction(
        user_id=user_id,
        amount=amount,
        balance_before=balance_before,
        balance_after=balance_after,
        reference_type=reference_type,
        reference_id=reference_id,
        description=description,
        created_at=now_utc,
    )
    async with session.begin_nested():
        await CreditsRepo.create_entry(session, entry=entry)

    balance.balance = balance_after
    if amount > 0:
        balance.total_earned = Decimal(balance.total_earned) + amount
    else:
        balance.total_revoked = Decimal(balance.total_revoked) - amount
    balance.version += 1
    balance.updated_at = now_utc
    await session.flush()

    return LedgerResult(
        entry_id=entry.id,
        user_id=user_id,
        reference_type=reference_type,
        reference_id=reference_id,
        amount=amount,
        balance_before=balance_before,
        balance_after=balance_after,
    )


async def credit(
    session: AsyncSession,
    *,
    user_id: UUID,
    amount: Decimal,
    reference_id: UUID,
    now_utc: datetime,
    description: str | None = None,
) -> LedgerResult:
    if amount <= 0:
        raise ValueError("credit amount must be positive")

    existing = await CreditsRepo.get_entry_by_reference(
        session,
        reference_type=REFERENCE_TYPE_REWARD,
        reference_id=reference_id,
    )
    if existing is not None:
        raise DuplicateReferenceError(str(reference_id))

    try:
        result = await _append_entry(
            session,
            user_id=user_id,
            amount=amount,
            reference_type=REFERENCE_TYPE_REWARD,
            reference_id=reference_id,
            description=description,
            now_utc=now_utc,
        )
    except IntegrityError as exc:
        raise DuplicateReferenceError(str(reference_id)) from exc

    logger.info(
        "credit_ledger_credited",
        user_id=str(user_id),
        reference_id=str(reference_id),
        amount=str(amount),
        balance_after=str(result.balance_after),
    )
    return result


async def revoke(
    session: AsyncSession,
    *,
    user_id: UUID,
    reference_id: UUID,
    now_utc: datetime,
    description: str | None = None,
) -> LedgerResult:
    reward_entry = await CreditsRepo.get_entry_by_reference(
        session,
        reference_type=REFERENCE_TYPE_REWARD,
        reference_id=reference_id,
    )
    if reward_entry is None or reward_entry.user_id != user_id:
        raise NothingToRevokeError(str(reference_id))

    existing_revocation = await CreditsRepo.get_entry_by_reference(
        session,
        reference_type=REFERENCE_TYPE_REVOCATION,
        reference_id=reference_id,
    )
    if existing_revocation is not None:
        raise AlreadyRevokedError(str(reference_id))

    try:
        result = await _append_entry(
            session,
            user_id=user_id,
            amount=-Decimal(reward_entry.amount),
            reference_type=REFERENCE_TYPE_REVOCATION,
            reference_id=reference_id,
            description=description,
            now_utc=now_utc,
        )
    except IntegrityError as exc:
        raise AlreadyRevokedError(str(reference_id)) from exc

    # Revocations never block on a spent balance.
    if result.balance_after < 0:
        logger.warning(
            "credit_ledger_negative_balance",
            user_id=str(user_id),
            reference_id=str(reference_id),
            balance_after=str(result.balance_after),
        )
    logger.info(
        "credit_ledger_revoked",
        user_id=str(user_id),
        reference_id=str(reference_id),
        amount=str(result.amount),
        balance_after=str(result.balance_after),
    )
    return result
