from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient

from referral_engine.api.routes import internal_admin
from referral_engine.economy.config.errors import ConfigKeyUnknownError, ConfigValueInvalidError
from referral_engine.economy.config.service import SystemConfigUpdateResult
from referral_engine.economy.referrals.errors import ReferralUserNotFoundError
from referral_engine.economy.referrals.service import SuspensionResult
from referral_engine.main import app
from tests.api.internal_api_fixtures import DummySessionLocal, allow_internal_access, auth_headers


def _prepare(monkeypatch) -> None:
    allow_internal_access(monkeypatch)
    monkeypatch.setattr(internal_admin, "SessionLocal", DummySessionLocal)


def test_put_config_returns_new_version(monkeypatch) -> None:
    _prepare(monkeypatch)
    captured: dict[str, object] = {}

    async def _fake_update(session, *, key, value, updated_by, now_utc):
        captured.update({"key": key, "value": value, "updated_by": updated_by})
        return SystemConfigUpdateResult(key=key, value={"amount": "7.50", "currency": "EUR"}, version=2)

    monkeypatch.setattr(internal_admin, "update_system_config", _fake_update)

    client = TestClient(app)
    response = client.put(
        "/internal/admin/config/referral_reward",
        json={"value": {"amount": 7.5, "currency": "EUR"}, "updated_by": "ops@example.com"},
        headers=auth_headers(),
    )

    assert response.status_code == 200
    assert response.json() == {
        "key": "referral_reward",
        "value": {"amount": "7.50", "currency": "EUR"},
        "version": 2,
    }
    assert captured["key"] == "referral_reward"
    assert captured["updated_by"] == "ops@example.com"


def test_put_config_unknown_key_returns_404(monkeypatch) -> None:
    _prepare(monkeypatch)

    async def _fake_update(session, *, key, value, updated_by, now_utc):
        raise ConfigKeyUnknownError(key)

    monkeypatch.setattr(internal_admin, "update_system_config", _fake_update)

    client = TestClient(app)
    response = client.put(
        "/internal/admin/config/loyalty_points",
        json={"value": {"amount": 1}},
        headers=auth_headers(),
    )

    assert response.status_code == 404
    assert response.json() == {"detail": {"code": "E_CONFIG_KEY_UNKNOWN"}}


def test_put_config_invalid_value_returns_422(monkeypatch) -> None:
    _prepare(monkeypatch)

    async def _fake_update(session, *, key, value, updated_by, now_utc):
        raise ConfigValueInvalidError(key)

    monkeypatch.setattr(internal_admin, "update_system_config", _fake_update)

    client = TestClient(app)
    response = client.put(
        "/internal/admin/config/first_order_discount",
        json={"value": {"percentage": 99, "validity_days": 30}},
        headers=auth_headers(),
    )

    assert response.status_code == 422
    assert response.json() == {"detail": {"code": "E_CONFIG_VALUE_INVALID"}}


def test_suspend_user_route(monkeypatch) -> None:
    _prepare(monkeypatch)
    user_id = uuid4()

    async def _fake_suspend(session, *, user_id, now_utc):
        return SuspensionResult(user_id=user_id, deactivated_codes=1, idempotent_replay=False)

    monkeypatch.setattr(internal_admin.ReferralService, "suspend_user", _fake_suspend)

    client = TestClient(app)
    response = client.post(f"/internal/admin/users/{user_id}/suspend", headers=auth_headers())

    assert response.status_code == 200
    assert response.json() == {
        "user_id": str(user_id),
        "deactivated_codes": 1,
        "idempotent_replay": False,
    }


def test_suspend_unknown_user_returns_404(monkeypatch) -> None:
    _prepare(monkeypatch)

    async def _fake_suspend(session, *, user_id, now_utc):
        raise ReferralUserNotFoundError(str(user_id))

    monkeypatch.setattr(internal_admin.ReferralService, "suspend_user", _fake_suspend)

    client = TestClient(app)
    response = client.post(f"/internal/admin/users/{uuid4()}/suspend", headers=auth_headers())

    assert response.status_code == 404
    assert response.json() == {"detail": {"code": "E_USER_NOT_FOUND"}}
