# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
FastAPI dependency providers for the recovery components.

Each component is built once per process from the settings singleton and a
shared ``httpx.Client``.  Tests swap them with ``app.dependency_overrides``.
"""

from functools import lru_cache

import httpx

from core.config import settings
from core.webhook import EventWebhook
from recovery.dispatcher import RecoveryDispatcher
from recovery.tokens import TokenService


@lru_cache
def _http_client() -> httpx.Client:
    return httpx.Client()


@lru_cache
def get_token_service() -> TokenService:
    return TokenService(settings)


@lru_cache
def get_dispatcher() -> RecoveryDispatcher:
    return RecoveryDispatcher(settings, _http_client())


@lru_cache
def get_event_webhook() -> EventWebhook:
    return EventWebhook(settings, _http_client())


def close_http_client() -> None:
    if _http_client.cache_info().currsize:
        _http_client().close()
        _http_client.cache_clear()
        get_dispatcher.cache_clear()
        get_event_webhook.cache_clear()
