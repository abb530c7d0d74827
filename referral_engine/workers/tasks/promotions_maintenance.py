from __future__ import annotations

from datetime import datetime, timezone

import structlog

from referral_engine.db.session import SessionLocal
from referral_engine.economy.promotions.first_order import expire_first_order_codes
from referral_engine.workers.asyncio_runner import run_async_job
from referral_engine.workers.celery_app import MAINTENANCE_QUEUE, celery_app

logger = structlog.get_logger(__name__)


async def run_first_order_code_expiry_async() -> dict[str, int]:
    now_utc = datetime.now(timezone.utc)
    async with SessionLocal.begin() as session:
        expired_count = await expire_first_order_codes(session, now_utc=now_utc)

    result = {"expired_first_order_codes": expired_count}
    logger.info("first_order_code_expiry_finished", **result)
    return result


@celery_app.task(
    name="referral_engine.workers.tasks.promotions_maintenance.run_first_order_code_expiry"
)
def run_first_order_code_expiry() -> dict[str, int]:
    return run_async_job(run_first_order_code_expiry_async())


celery_app.conf.beat_schedule = celery_app.conf.beat_schedule or {}
celery_app.conf.beat_schedule.update(
    {
        "first-order-code-expiry-every-10-minutes": {
            "task": "referral_engine.workers.tasks.promotions_maintenance.run_first_order_code_expiry",
            "schedule": 600.0,
            "options": {"queue": MAINTENANCE_QUEUE},
        },
    }
)
