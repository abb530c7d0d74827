from __future__ import annotations

import asyncio
import time
from collections.abc import Coroutine
from typing import Any, TypeVar

import structlog

from referral_engine.db.session import dispose_engine

T = TypeVar("T")

logger = structlog.get_logger(__name__)


async def _run_job(job: Coroutine[Any, Any, T]) -> T:
    # Every asyncio.run owns a new loop; pooled asyncpg connections are bound to the old one.
    await dispose_engine()
    job_name = getattr(job, "__qualname__", "async_job")
    started = time.monotonic()
    try:
        return await job
    except Exception:
        logger.exception("worker_job_failed", job=job_name)
        raise
    finally:
        logger.info(
            "worker_job_finished",
            job=job_name,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        await dispose_engine()


def run_async_job(job: Coroutine[Any, Any, T]) -> T:
    """Run one maintenance coroutine to completion from a synchronous Celery task."""
    return asyncio.run(_run_job(job))
