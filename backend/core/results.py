# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Outcome of an outbound delivery (recovery link, event webhook)."""

from dataclasses import dataclass


@dataclass(frozen=True)
class DeliveryResult:
    ok: bool
    diagnostic: str = ""

    @classmethod
    def failure(cls, diagnostic: str) -> "DeliveryResult":
        return cls(ok=False, diagnostic=diagnostic)
