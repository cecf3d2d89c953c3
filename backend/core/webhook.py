# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Outbound event webhook.

Integrations subscribe to account events (``user.registered``,
``user.created``, ``user.deleted``, ``password.reset``) through
GLOBAL_WEBHOOK_URL.  Each event is POSTed as

    {"event": ..., "data": {...}, "timestamp": "<ISO-8601 UTC>"}

with the shared secret in both ``Authorization: Bearer`` and ``X-API-Key``.
Routes schedule ``send`` as a background task, so a slow or failing
receiver never affects the response.
"""

from datetime import datetime, timezone

import httpx

from core.logger import logger
from core.results import DeliveryResult


class EventWebhook:
    def __init__(self, settings, http_client: httpx.Client):
        self.url = settings.global_webhook_url
        self.api_key = settings.global_api_key
        self.timeout = settings.recovery_timeout_seconds
        self.http = http_client

    def configured(self) -> bool:
        return bool(self.url and self.api_key)

    def send(self, event: str, data: dict) -> DeliveryResult:
        if not self.configured():
            logger.debug("Event webhook not configured; dropping %s", event)
            return DeliveryResult.failure("GLOBAL_WEBHOOK_URL or GLOBAL_API_KEY not configured")

        payload = {
            "event": event,
            "data": data,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        try:
            response = self.http.post(
                self.url,
                json=payload,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "X-API-Key": self.api_key,
                },
                timeout=self.timeout,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Event webhook %s failed: %s", event, exc)
            return DeliveryResult.failure(f"webhook unreachable: {exc}")

        if not response.is_success:
            logger.warning("Event webhook %s returned %d", event, response.status_code)
            return DeliveryResult.failure(f"webhook returned {response.status_code}")
        return DeliveryResult(ok=True, diagnostic="event delivered")
