"""
notify.py - Delivery of fired alerts to subscribers.

LogNotifier only records the would-be message. WebhookNotifier posts a JSON
payload to ALERT_WEBHOOK_URL and raises on any non-2xx answer so the alert
engine can store the failure on the history row.
"""

import logging
from typing import Optional

import httpx

logger = logging.getLogger("notify")


class Notifier:
    async def send(self, email: str, message: str, alert_type: Optional[str] = None,
                   pool_name: Optional[str] = None):
        raise NotImplementedError

    async def close(self):
        pass


class LogNotifier(Notifier):

    async def send(self, email, message, alert_type=None, pool_name=None):
        logger.info("[MOCK EMAIL] To: %s - %s", email, message)


class WebhookNotifier(Notifier):

    def __init__(self, url: str, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def send(self, email, message, alert_type=None, pool_name=None):
        payload = {
            "email": email,
            "message": message,
            "alert_type": alert_type,
            "pool_name": pool_name,
        }
        response = await self._client.post(self.url, json=payload)
        if not response.is_success:
            raise RuntimeError(f"Webhook returned HTTP {response.status_code}")
        logger.info("Alert delivered to %s via webhook", email)

    async def close(self):
        await self._client.aclose()


def build_notifier(settings) -> Notifier:
    if settings.is_production and settings.ALERT_WEBHOOK_URL:
        return WebhookNotifier(settings.ALERT_WEBHOOK_URL, timeout=settings.HTTP_TIMEOUT)
    if settings.is_production:
        logger.warning("ALERT_WEBHOOK_URL not configured, alerts will only be logged")
    return LogNotifier()
