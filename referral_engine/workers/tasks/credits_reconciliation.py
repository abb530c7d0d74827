from __future__ import annotations

from datetime import datetime, timezone

import structlog

from referral_engine.db.session import SessionLocal
from referral_engine.services.alerts import send_ops_alert
from referral_engine.services.credits_reconciliation import reconcile_credit_balances
from referral_engine.workers.asyncio_runner import run_async_job
from referral_engine.workers.celery_app import MAINTENANCE_QUEUE, celery_app

logger = structlog.get_logger(__name__)


async def run_credits_reconciliation_async() -> dict[str, int | str]:
    now_utc = datetime.now(timezone.utc)
    async with SessionLocal.begin() as session:
        report = await reconcile_credit_balances(session, now_utc=now_utc)

    result: dict[str, int | str] = {
        "status": report.status,
        "drifted_users": report.drifted_users,
        "total_drift": str(report.total_drift),
    }
    if report.drifted_users > 0:
        await send_ops_alert(
            event="credits_reconciliation_diff_detected",
            payload={**result, "samples": report.samples},
        )
        logger.warning("credits_reconciliation_diff_detected", **result)
    else:
        logger.info("credits_reconciliation_finished", **result)
    return result


@celery_app.task(
    name="referral_engine.workers.tasks.credits_reconciliation.run_credits_reconciliation"
)
def run_credits_reconciliation() -> dict[str, int | str]:
    return run_async_job(run_credits_reconciliation_async())


celery_app.conf.beat_schedule = celery_app.conf.beat_schedule or {}
celery_app.conf.beat_schedule.update(
    {
        "credits-reconciliation-every-hour": {
            "task": "referral_engine.workers.tasks.credits_reconciliation.run_credits_reconciliation",
            "schedule": 3600.0,
            "options": {"queue": MAINTENANCE_QUEUE},
        },
    }
)
