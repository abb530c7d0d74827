from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.db.repo.credits_repo import CreditsRepo

RECONCILIATION_SAMPLE_LIMIT = 50


@dataclass(frozen=True, slots=True)
class CreditsReconciliationReport:
    checked_at: datetime
    drifted_users: int
    total_drift: Decimal
    samples: list[dict[str, object]]

    @property
    def status(self) -> str:
        return "OK" if self.drifted_users == 0 else "DIFF"


def summarize_balance_drift(
    rows: list[dict[str, object]],
    *,
    checked_at: datetime,
) -> CreditsReconciliationReport:
    total_drift = Decimal("0")
    samples: list[dict[str, object]] = []
    for row in rows:
        cached_balance = Decimal(str(row["cached_balance"]))
        ledger_balance = Decimal(str(row["ledger_balance"]))
        drift = cached_balance - ledger_balance
        total_drift += abs(drift)
        samples.append(
            {
                "user_id": str(row["user_id"]),
                "cached_balance": str(cached_balance),
                "ledger_balance": str(ledger_balance),
                "drift": str(drift),
            }
        )
    return CreditsReconciliationReport(
        checked_at=checked_at,
        drifted_users=len(samples),
        total_drift=total_drift,
        samples=samples,
    )


async def reconcile_credit_balances(
    session: AsyncSession,
    *,
    now_utc: datetime,
    limit: int = RECONCILIATION_SAMPLE_LIMIT,
) -> CreditsReconciliationReport:
    rows = await CreditsRepo.list_balance_drift(session, limit=limit)
    return summarize_balance_drift(rows, checked_at=now_utc)
