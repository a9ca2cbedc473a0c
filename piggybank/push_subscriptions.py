"""Web push subscription records.

A browser subscription is stored as ``{endpoint, keys: {auth, p256dh}}``
under an id derived from its endpoint URL.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class SubscriptionRecord:
    endpoint: str
    auth: str
    p256dh: str

    @property
    def id(self) -> str:
        return build_subscription_id(self.endpoint)

    def to_dict(self) -> Dict[str, Any]:
        return {"endpoint": self.endpoint, "keys": {"auth": self.auth, "p256dh": self.p256dh}}


def build_subscription_id(endpoint: str) -> str:
    """Storage key for an endpoint: every ``/`` becomes ``_``."""
    return endpoint.replace("/", "_")


def normalize_subscription_payload(payload: Any) -> Optional[SubscriptionRecord]:
    """Validate a subscription payload; ``None`` when it is malformed."""
    if not isinstance(payload, dict):
        return None

    endpoint = payload.get("endpoint")
    keys = payload.get("keys")
    if not isinstance(endpoint, str) or not endpoint or not isinstance(keys, dict):
        return None

    auth = keys.get("auth")
    p256dh = keys.get("p256dh")
    if not isinstance(auth, str) or not auth or not isinstance(p256dh, str) or not p256dh:
        return None

    return SubscriptionRecord(endpoint=endpoint, auth=auth, p256dh=p256dh)
