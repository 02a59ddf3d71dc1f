"""
Security alerts for refused redemptions and internal failures.

The audit trail records every outcome; this module singles out the refusal
reasons an operator has to act on (forged tokens, scans at the wrong
merchant, replays, store failures) and reports them as a `SecurityAlert`.
Every alert is logged at its severity. When `alert_webhook_url` is set the
alert is also POSTed there as camelCase JSON, in the background, so a slow
receiver never delays a scan response.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

import httpx

from promohub.core.config import settings
from promohub.core.security import redact_dict

logger = logging.getLogger(__name__)


class AlertSeverity(Enum):
    """Severity levels for alerts."""
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AlertType(Enum):
    """What kind of incident an alert reports."""
    TOKEN_TAMPERING = "token_tampering"
    AUTHORIZATION_FAILURE = "authorization_failure"
    REPLAY_ATTEMPT = "replay_attempt"
    STORE_FAILURE = "store_failure"
    INTERNAL_FAILURE = "internal_failure"


# Refusal reason -> (alert type, severity); any other reason raises no alert
REFUSAL_ALERTS: dict[str, tuple[AlertType, AlertSeverity]] = {
    "invalid_signature": (AlertType.TOKEN_TAMPERING, AlertSeverity.ERROR),
    "reservation_not_found": (AlertType.AUTHORIZATION_FAILURE, AlertSeverity.WARNING),
    "promo_mismatch": (AlertType.AUTHORIZATION_FAILURE, AlertSeverity.WARNING),
    "promo_not_authorized": (AlertType.AUTHORIZATION_FAILURE, AlertSeverity.WARNING),
    "token_used": (AlertType.REPLAY_ATTEMPT, AlertSeverity.WARNING),
    "redemption_failed": (AlertType.STORE_FAILURE, AlertSeverity.ERROR),
    "confirm_failed": (AlertType.STORE_FAILURE, AlertSeverity.ERROR),
}

_LOG_LEVELS = {
    AlertSeverity.WARNING: logging.WARNING,
    AlertSeverity.ERROR: logging.ERROR,
    AlertSeverity.CRITICAL: logging.CRITICAL,
}


@dataclass(frozen=True)
class SecurityAlert:
    """
    One alert about a refused redemption or an internal failure.

    Only the token hash is carried, never the raw token.
    """

    alert_type: AlertType
    severity: AlertSeverity
    reason: str
    message: str
    merchant_id: str | None = None
    reservation_id: str | None = None
    token_hash: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    raised_at: datetime = field(default_factory=datetime.utcnow)

    def to_payload(self) -> dict[str, Any]:
        """Webhook body."""
        return {
            "alertType": self.alert_type.value,
            "severity": self.severity.value,
            "reason": self.reason,
            "message": self.message,
            "merchantId": self.merchant_id,
            "reservationId": self.reservation_id,
            "tokenHash": self.token_hash,
            "details": self.details,
            "raisedAt": self.raised_at.isoformat(),
        }


class AlertDispatcher:
    """
    Logs alerts and forwards them to the configured webhook.

    Webhook deliveries run as tasks on the running event loop. The dispatcher
    holds each task until it finishes; `drain()` waits for the ones still
    in flight and is called on application shutdown.
    """

    def __init__(self, webhook_url: str | None = None):
        self.webhook_url = webhook_url
        self._pending: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def dispatch(self, alert: SecurityAlert) -> None:
        if not settings.alert_enabled:
            return

        logger.log(
            _LOG_LEVELS[alert.severity],
            f"[ALERT] {alert.alert_type.value.upper()} reason={alert.reason} "
            f"merchant={alert.merchant_id} reservation={alert.reservation_id} "
            f"token={(alert.token_hash or '-')[:12]}: {alert.message}"
        )

        if not self.webhook_url:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop; webhook delivery skipped for {alert.reason}")
            return

        task = loop.create_task(self._post_webhook(alert))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _post_webhook(self, alert: SecurityAlert) -> None:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(self.webhook_url, json=alert.to_payload(), timeout=5.0)
            if response.status_code >= 400:
                logger.warning(f"Alert webhook returned status {response.status_code}")
        except httpx.HTTPError as e:
            logger.error(f"Failed to deliver alert {alert.reason} to webhook: {e}")

    async def drain(self) -> None:
        """Wait for webhook deliveries still in flight."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)


dispatcher = AlertDispatcher(settings.alert_webhook_url)


def alert_refusal(
    reason: str,
    merchant_id: UUID | str,
    token_hash: str | None,
    reservation_id: UUID | str | None = None,
) -> SecurityAlert | None:
    """
    Raise an alert for a refused scan or confirm, if the reason warrants one.

    Returns:
        The dispatched alert, or None when the reason is routine
        (an expired token, an inactive reservation, a bad wallet amount).
    """
    if reason not in REFUSAL_ALERTS:
        return None

    alert_type, severity = REFUSAL_ALERTS[reason]
    alert = SecurityAlert(
        alert_type=alert_type,
        severity=severity,
        reason=reason,
        message=f"QR redemption refused: {reason}",
        merchant_id=str(merchant_id),
        reservation_id=str(reservation_id) if reservation_id else None,
        token_hash=token_hash,
    )
    dispatcher.dispatch(alert)
    return alert


def alert_internal_failure(exc: Exception, path: str, method: str) -> SecurityAlert:
    """Raise a critical alert for an exception no handler expected."""
    alert = SecurityAlert(
        alert_type=AlertType.INTERNAL_FAILURE,
        severity=AlertSeverity.CRITICAL,
        reason="internal_error",
        message=f"Unhandled exception: {type(exc).__name__}",
        details=redact_dict({"error": str(exc), "path": path, "method": method}),
    )
    dispatcher.dispatch(alert)
    return alert
