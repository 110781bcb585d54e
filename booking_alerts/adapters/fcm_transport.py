"""Firebase Cloud Messaging transport adapter.

Mental model refresher:
- This module is an outbound adapter over `firebase_admin.messaging`.
- Domain/application code hands it a plain notification dictionary and gets
  back a message id, or a `TransportError` with a coarse reason.
- No retries here: a failed send stays unacknowledged and the next run
  picks it up again.
"""

from __future__ import annotations

import logging
from typing import Any

from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging

from ..errors import TransportError
from ..types import Notification
from .firebase_app import get_firebase_app

logger = logging.getLogger(__name__)


class FcmTransport:
    def __init__(self, *, app: Any | None = None, dry_run: bool = False) -> None:
        self._app = app
        self.dry_run = dry_run

    @property
    def app(self) -> Any:
        if self._app is None:
            self._app = get_firebase_app()
        return self._app

    def send(self, token: str, notification: Notification) -> str:
        message = build_fcm_message(token, notification)
        try:
            message_id = messaging.send(message, dry_run=self.dry_run, app=self.app)
        except firebase_exceptions.FirebaseError as exc:
            raise TransportError(_reason_for(exc), f"FCM send failed: {exc}") from exc
        except ValueError as exc:
            # raised by the SDK for malformed messages before any network call
            raise TransportError(TransportError.INVALID_ARGUMENT, f"FCM send failed: {exc}") from exc

        logger.debug("[FCM] sent message_id=%s token_prefix=%s", message_id, token[:8])
        return message_id


def build_fcm_message(token: str, notification: Notification) -> messaging.Message:
    android = notification.get("android") or {}
    apns = notification.get("apns") or {}

    return messaging.Message(
        token=token,
        notification=messaging.Notification(
            title=notification["title"],
            body=notification["body"],
        ),
        data={str(key): str(value) for key, value in (notification.get("data") or {}).items()},
        android=messaging.AndroidConfig(
            priority=android.get("priority", "high"),
            notification=messaging.AndroidNotification(
                channel_id=android.get("channel_id"),
                sound=android.get("sound"),
            ),
        ),
        apns=messaging.APNSConfig(
            payload=messaging.APNSPayload(
                aps=messaging.Aps(
                    sound=apns.get("sound"),
                    category=apns.get("category"),
                ),
            ),
        ),
    )


def _reason_for(exc: firebase_exceptions.FirebaseError) -> str:
    if isinstance(exc, (messaging.UnregisteredError, messaging.SenderIdMismatchError)):
        return TransportError.INVALID_TOKEN
    if isinstance(exc, messaging.QuotaExceededError):
        return TransportError.QUOTA_EXCEEDED
    if isinstance(exc, (firebase_exceptions.UnavailableError, firebase_exceptions.DeadlineExceededError)):
        return TransportError.UNAVAILABLE
    if isinstance(exc, firebase_exceptions.InvalidArgumentError):
        return TransportError.INVALID_ARGUMENT
    return TransportError.UNKNOWN
