"""Push notifications for new entries.

Delivery goes to the user's registered FCM device tokens through the
Firebase Admin SDK and, when the profile carries a notification key, to
the key-based provider at ``KEY_PUSH_URL/<key>``.  Failures are logged
and reported in :class:`PushResult`; they never propagate into the
request that created the entry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

import firebase_admin
import requests
from firebase_admin import credentials, exceptions, messaging
from google.auth.exceptions import GoogleAuthError

try:
    from . import db
    from .config import FIREBASE_CREDENTIALS, HTTP_TIMEOUT, KEY_PUSH_URL
except ImportError:  # pragma: no cover - fallback for direct execution
    import db
    from config import FIREBASE_CREDENTIALS, HTTP_TIMEOUT, KEY_PUSH_URL

logger = logging.getLogger(__name__)

NOTIFICATION_TITLE = "New Transaction Added"
NOTIFICATION_ICON = "/icon.png"
NO_TOKENS_ERROR = "No push subscription tokens found for user."


@dataclass
class PushResult:
    success_count: int = 0
    failure_count: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "successCount": self.success_count,
            "failureCount": self.failure_count,
            "errors": list(self.errors),
        }


def init_firebase_app() -> firebase_admin.App:
    """Initialise the default Firebase app once.

    Uses the service-account file from ``GOOGLE_APPLICATION_CREDENTIALS``
    when set, application default credentials otherwise.
    """
    if firebase_admin._apps:
        return firebase_admin.get_app()
    cred = credentials.Certificate(FIREBASE_CREDENTIALS) if FIREBASE_CREDENTIALS else credentials.ApplicationDefault()
    return firebase_admin.initialize_app(cred)


def transaction_message(entry: Mapping[str, Any]) -> str:
    return f"New transaction added: {entry.get('Notes', '')} for ${float(entry.get('Amount', 0)):.2f}"


def _send_to_devices(user_id: str, tokens: List[str], message: str) -> PushResult:
    multicast = messaging.MulticastMessage(
        tokens=tokens,
        notification=messaging.Notification(title=NOTIFICATION_TITLE, body=message),
        webpush=messaging.WebpushConfig(
            notification=messaging.WebpushNotification(icon=NOTIFICATION_ICON),
        ),
    )
    try:
        init_firebase_app()
        response = messaging.send_each_for_multicast(multicast)
    except (exceptions.FirebaseError, GoogleAuthError, ValueError) as exc:
        logger.error("FCM delivery failed for user %s: %s", user_id, exc)
        return PushResult(0, len(tokens), [str(exc)])

    errors: List[str] = []
    for index, result in enumerate(response.responses):
        if result.success:
            continue
        errors.append(f"Token {index}: {result.exception}")
        if isinstance(result.exception, messaging.UnregisteredError):
            logger.info("Removing unregistered device token for user %s", user_id)
            db.delete_device_token(user_id, tokens[index])
    return PushResult(response.success_count, response.failure_count, errors)


def send_key_notification(key: str, message: str) -> None:
    """Post ``message`` to the key-based provider; raises ``requests.RequestException``."""
    response = requests.post(
        f"{KEY_PUSH_URL}/{key}",
        data=message.encode("utf-8"),
        headers={"Title": NOTIFICATION_TITLE},
        timeout=HTTP_TIMEOUT,
    )
    response.raise_for_status()


def send_push_notification(user_id: str, message: str) -> PushResult:
    """Notify every device of ``user_id``."""
    tokens = db.fetch_device_tokens(user_id)
    if tokens:
        result = _send_to_devices(user_id, tokens, message)
    else:
        result = PushResult(errors=[NO_TOKENS_ERROR])

    profile = db.get_profile(user_id)
    notify_key = (profile or {}).get("notify_key")
    if notify_key:
        try:
            send_key_notification(notify_key, message)
            result.success_count += 1
        except requests.RequestException as exc:
            logger.warning("Key-based notification failed for user %s: %s", user_id, exc)
            result.failure_count += 1
            result.errors.append(f"Key provider: {exc}")

    logger.info(
        "Push notification for user %s: %d sent, %d failed",
        user_id, result.success_count, result.failure_count,
    )
    return result


def notify_new_transaction(user_id: str, entry: Mapping[str, Any]) -> None:
    """Send the "new transaction" notification; errors are only logged."""
    try:
        send_push_notification(user_id, transaction_message(entry))
    except Exception:
        logger.exception("Failed to send push notification")
