"""
Notification hooks for freshly stored alerts.

The engine calls ``send(alert)`` once per new alert and only marks the alert
as sent when the notifier returns True.
"""

from typing import Optional

import requests
import structlog

from wardwatch.core.config import settings
from wardwatch.models.alert import Alert

logger = structlog.get_logger(__name__)


class AlertNotifier:
    """Interface for alert delivery channels."""

    def send(self, alert: Alert) -> bool:
        raise NotImplementedError


class NullNotifier(AlertNotifier):
    """Default notifier: nothing is delivered, alerts stay unsent."""

    def send(self, alert: Alert) -> bool:
        return False


class SmsGatewayNotifier(AlertNotifier):
    """Deliver alerts as SMS through an HTTP gateway (MSG91, Twilio proxy, ...)."""

    def __init__(self, url: str, token: Optional[str] = None, timeout: int = 10):
        self.url = url
        self.token = token
        self.timeout = timeout

    def send(self, alert: Alert) -> bool:
        mobile = (alert.alert_metadata or {}).get("mobile")
        if not mobile:
            logger.debug("No mobile number on alert, skipping SMS", alert_id=alert.id)
            return False

        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        payload = {
            "to": mobile,
            "message": alert.message,
            "alert_id": alert.id,
            "alert_type": alert.alert_type,
        }

        try:
            response = requests.post(self.url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("Failed to send alert SMS", alert_id=alert.id, error=str(e))
            return False

        if not response.ok:
            logger.warning(
                "SMS gateway rejected alert",
                alert_id=alert.id,
                status_code=response.status_code,
            )
            return False

        logger.info("Alert SMS sent", alert_id=alert.id, alert_type=alert.alert_type)
        return True


def build_notifier() -> AlertNotifier:
    """Pick the notifier from settings."""
    if settings.SMS_GATEWAY_URL:
        return SmsGatewayNotifier(
            settings.SMS_GATEWAY_URL,
            token=settings.SMS_GATEWAY_TOKEN,
            timeout=settings.SMS_TIMEOUT_SECONDS,
        )
    return NullNotifier()
