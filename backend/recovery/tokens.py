# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Password-reset token lifecycle.

A reset token is 32 bytes from the OS CSPRNG rendered as 64 hex chars.  It is
stored on the user row together with its expiry, and it is valid only while
all three hold:

* it is well-formed (64 chars – a cheap pre-check before any DB lookup),
* it equals the token currently stored for some user,
* the stored expiry has not passed.

Callers must report every failure with the same generic message.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

TOKEN_BYTES = 32
TOKEN_LENGTH = TOKEN_BYTES * 2


class TokenService:
    def __init__(self, settings):
        self._ttl_hours = settings.reset_token_ttl_hours

    @staticmethod
    def generate_token() -> str:
        return secrets.token_hex(TOKEN_BYTES)

    def compute_expiry(self, hours: Optional[float] = None) -> datetime:
        if hours is None:
            hours = self._ttl_hours
        return datetime.now(timezone.utc) + timedelta(hours=hours)

    @staticmethod
    def is_expired(expiry: Optional[datetime]) -> bool:
        """Missing expiry is treated as expired."""
        if expiry is None:
            return True
        # SQLite hands back naive datetimes; everything is stored as UTC.
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) > expiry

    @staticmethod
    def is_well_formed(token: Optional[str]) -> bool:
        return isinstance(token, str) and len(token) == TOKEN_LENGTH

    @staticmethod
    def matches(candidate: str, stored: Optional[str]) -> bool:
        if not stored:
            return False
        return secrets.compare_digest(candidate.encode("utf-8"), stored.encode("utf-8"))
