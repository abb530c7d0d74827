from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone

import httpx
import structlog

from referral_engine.core.config import get_settings
from referral_engine.economy.referrals.constants import REVIEW_THRESHOLD_EVENT_TYPE

logger = structlog.get_logger(__name__)

ALERT_TIMEOUT_SECONDS = 5.0
RECONCILIATION_DIFF_EVENT = "credits_reconciliation_diff_detected"


@dataclass(frozen=True, slots=True)
class AlertPolicy:
    severity: str
    notify_slack: bool
    summary_template: str


ALERT_POLICIES: dict[str, AlertPolicy] = {
    REVIEW_THRESHOLD_EVENT_TYPE: AlertPolicy(
        severity="warning",
        notify_slack=True,
        summary_template=(
            "Referrer {referrer_user_id} crossed the review threshold on order {order_id}"
        ),
    ),
    RECONCILIATION_DIFF_EVENT: AlertPolicy(
        severity="critical",
        notify_slack=True,
        summary_template="{drifted_users} credit balances drift from the ledger by {total_drift}",
    ),
}
FALLBACK_POLICY = AlertPolicy(severity="warning", notify_slack=False, summary_template="{event}")


class _Placeholders(dict[str, object]):
    def __missing__(self, key: str) -> str:
        return "?"


def render_summary(*, event: str, policy: AlertPolicy, payload: dict[str, object]) -> str:
    return policy.summary_template.format_map(_Placeholders(payload, event=event))


def _slack_body(
    *, event: str, policy: AlertPolicy, summary: str, app_env: str
) -> dict[str, object]:
    return {
        "text": f"[{policy.severity.upper()}] {event}",
        "attachments": [
            {
                "color": "#B42318" if policy.severity == "critical" else "#F79009",
                "text": summary,
                "footer": f"referral-engine {app_env}",
            }
        ],
    }


def _webhook_body(
    *,
    event: str,
    policy: AlertPolicy,
    summary: str,
    payload: dict[str, object],
    app_env: str,
    sent_at: datetime,
) -> dict[str, object]:
    return {
        "event": event,
        "severity": policy.severity,
        "summary": summary,
        "env": app_env,
        "sent_at": sent_at.isoformat(),
        "payload": json.loads(json.dumps(payload, default=str)),
    }


async def send_ops_alert(*, event: str, payload: dict[str, object]) -> bool:
    """Deliver an ops alert to every configured channel.

    Returns True when at least one channel accepted it. Delivery failures are
    logged and never raised, since alerts run after the business transaction.
    """
    settings = get_settings()
    policy = ALERT_POLICIES.get(event, FALLBACK_POLICY)
    app_env = (settings.app_env or "dev").strip()
    summary = render_summary(event=event, policy=policy, payload=payload)
    sent_at = datetime.now(timezone.utc)

    deliveries: list[tuple[str, str, dict[str, object]]] = []
    slack_url = (settings.ops_alert_slack_webhook_url or "").strip()
    if policy.notify_slack and slack_url:
        body = _slack_body(event=event, policy=policy, summary=summary, app_env=app_env)
        deliveries.append(("slack", slack_url, body))
    webhook_url = (settings.ops_alert_webhook_url or "").strip()
    if webhook_url:
        deliveries.append(
            (
                "webhook",
                webhook_url,
                _webhook_body(
                    event=event,
                    policy=policy,
                    summary=summary,
                    payload=payload,
                    app_env=app_env,
                    sent_at=sent_at,
                ),
            )
        )
    if not deliveries:
        logger.info("ops_alert_skipped_no_channels", alert_event=event)
        return False

    delivered_to: list[str] = []
    async with httpx.AsyncClient(timeout=ALERT_TIMEOUT_SECONDS) as client:
        for channel, url, body in deliveries:
            try:
                response = await client.post(url, json=body)
                response.raise_for_status()
            except httpx.HTTPError:
                logger.exception("ops_alert_delivery_failed", alert_event=event, channel=channel)
                continue
            delivered_to.append(channel)

    if not delivered_to:
        logger.error("ops_alert_undelivered", alert_event=event, severity=policy.severity)
        return False
    logger.info("ops_alert_delivered", alert_event=event, delivered_to=delivered_to)
    return True
