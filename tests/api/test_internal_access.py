from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from referral_engine.main import app
from tests.api.internal_api_fixtures import allow_internal_access, auth_headers

PROTECTED_REQUESTS = [
    ("post", "/internal/events/user-signed-up", {"user_id": str(uuid4()), "email": "a@example.com"}),
    (
        "post",
        "/internal/events/order-payment-completed",
        {"user_id": str(uuid4()), "order_id": "ORD-1"},
    ),
    ("post", "/internal/events/order-refunded", {"order_id": "ORD-1"}),
    ("put", "/internal/admin/config/referral_reward", {"value": {"amount": 5}}),
    ("post", f"/internal/admin/users/{uuid4()}/suspend", None),
    ("get", f"/internal/users/{uuid4()}/first-order-code", None),
    ("get", f"/internal/users/{uuid4()}/referral-code", None),
    ("get", f"/internal/users/{uuid4()}/referral-stats", None),
    ("get", f"/internal/users/{uuid4()}/referral-history", None),
    ("get", "/internal/referrals/bonus-eligibility?cart_subtotal=10", None),
    ("get", "/internal/referrals/dashboard", None),
]


@pytest.mark.parametrize(("method", "path", "body"), PROTECTED_REQUESTS)
def test_internal_endpoints_reject_missing_token(monkeypatch, method: str, path: str, body) -> None:
    allow_internal_access(monkeypatch)

    client = TestClient(app)
    response = client.request(method, path, json=body)

    assert response.status_code == 403
    assert response.json() == {"detail": {"code": "E_FORBIDDEN"}}


@pytest.mark.parametrize(("method", "path", "body"), PROTECTED_REQUESTS)
def test_internal_endpoints_reject_disallowed_ip(monkeypatch, method: str, path: str, body) -> None:
    allow_internal_access(monkeypatch, client_ip="10.0.0.25")

    client = TestClient(app)
    response = client.request(method, path, json=body, headers=auth_headers())

    assert response.status_code == 403
    assert response.json() == {"detail": {"code": "E_FORBIDDEN"}}


def test_internal_endpoints_reject_wrong_token(monkeypatch) -> None:
    allow_internal_access(monkeypatch)

    client = TestClient(app)
    response = client.get(
        "/internal/referrals/dashboard",
        headers={"X-Internal-Token": "not-the-token"},
    )

    assert response.status_code == 403
