from __future__ import annotations

import asyncio
from typing import Any

import structlog
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from redis.asyncio import Redis

from referral_engine.core.config import get_settings
from referral_engine.db.repo.system_config_repo import SystemConfigRepo
from referral_engine.db.session import SessionLocal
from referral_engine.economy.config.snapshot import CONFIG_KEYS
from referral_engine.workers.celery_app import celery_app

router = APIRouter(tags=["health"])
logger = structlog.get_logger(__name__)

Check = dict[str, Any]


def _ok(**details: Any) -> Check:
    return {"status": "ok", **details}


def _failed(check: str) -> Check:
    logger.warning("health_check_failed", check=check, exc_info=True)
    return {"status": "failed", "error": f"{check}_unavailable"}


async def _check_database() -> Check:
    """Reads system_config, so the probe also shows which business keys fall back to defaults."""
    try:
        async with SessionLocal() as session:
            rows = await SystemConfigRepo.list_by_keys(session, keys=CONFIG_KEYS)
    except Exception:
        return _failed("database")

    missing = sorted(set(CONFIG_KEYS) - {row.key for row in rows})
    if missing:
        return _ok(config_defaults_in_use=missing)
    return _ok()


async def _check_redis() -> Check:
    try:
        async with Redis.from_url(get_settings().redis_url) as client:
            await client.ping()
    except Exception:
        return _failed("redis")
    return _ok()


def _check_celery_worker_sync() -> Check:
    try:
        replies = celery_app.control.inspect(timeout=1.0).ping() or {}
    except Exception:
        return _failed("celery")
    if not replies:
        return {"status": "failed", "error": "celery_no_workers"}
    return _ok(workers=len(replies))


async def _check_celery_worker() -> Check:
    return await asyncio.to_thread(_check_celery_worker_sync)


def _probe_response(checks: dict[str, Check], *, ok_label: str, failed_label: str) -> JSONResponse:
    healthy = all(check.get("status") == "ok" for check in checks.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": ok_label if healthy else failed_label, "checks": checks},
    )


@router.get("/live")
async def live() -> dict[str, str]:
    return {"status": "live"}


@router.get("/health")
async def health() -> JSONResponse:
    database, redis, celery = await asyncio.gather(
        _check_database(),
        _check_redis(),
        _check_celery_worker(),
    )
    return _probe_response(
        {"database": database, "redis": redis, "celery": celery},
        ok_label="ok",
        failed_label="degraded",
    )


@router.get("/ready")
async def ready() -> JSONResponse:
    # Event webhooks need the database and redis; celery only runs maintenance jobs.
    database, redis = await asyncio.gather(_check_database(), _check_redis())
    return _probe_response(
        {"database": database, "redis": redis},
        ok_label="ready",
        failed_label="not_ready",
    )
