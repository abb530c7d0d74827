from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, Request

from referral_engine.db.session import SessionLocal
from referral_engine.economy.config.errors import ConfigKeyUnknownError, ConfigValueInvalidError
from referral_engine.economy.config.service import update_system_config
from referral_engine.economy.referrals.errors import ReferralUserNotFoundError
from referral_engine.economy.referrals.service import ReferralService

from .internal_helpers import _assert_internal_access
from .internal_models import (
    SuspendUserResponse,
    SystemConfigUpdateRequest,
    SystemConfigUpdateResponse,
)

router = APIRouter(tags=["internal", "admin"])


@router.put("/internal/admin/config/{key}", response_model=SystemConfigUpdateResponse)
async def put_system_config(
    payload: SystemConfigUpdateRequest,
    request: Request,
    key: str = Path(min_length=1, max_length=100),
) -> SystemConfigUpdateResponse:
    _assert_internal_access(request)
    now_utc = datetime.now(timezone.utc)

    try:
        async with SessionLocal.begin() as session:
            result = await update_system_config(
                session,
                key=key,
                value=payload.value,
                updated_by=payload.updated_by,
                now_utc=now_utc,
            )
    except ConfigKeyUnknownError as exc:
        raise HTTPException(status_code=404, detail={"code": "E_CONFIG_KEY_UNKNOWN"}) from exc
    except ConfigValueInvalidError as exc:
        raise HTTPException(status_code=422, detail={"code": "E_CONFIG_VALUE_INVALID"}) from exc

    return SystemConfigUpdateResponse(key=result.key, value=result.value, version=result.version)


@router.post("/internal/admin/users/{user_id}/suspend", response_model=SuspendUserResponse)
async def suspend_user(user_id: UUID, request: Request) -> SuspendUserResponse:
    _assert_internal_access(request)
    now_utc = datetime.now(timezone.utc)

    try:
        async with SessionLocal.begin() as session:
            result = await ReferralService.suspend_user(session, user_id=user_id, now_utc=now_utc)
    except ReferralUserNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "E_USER_NOT_FOUND"}) from exc

    return SuspendUserResponse(
        user_id=result.user_id,
        deactivated_codes=result.deactivated_codes,
        idempotent_replay=result.idempotent_replay,
    )
