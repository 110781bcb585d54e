"""Firebase Admin app bootstrap shared by the Firestore and FCM adapters."""

from __future__ import annotations

import logging
import os

import firebase_admin
from firebase_admin import credentials

logger = logging.getLogger(__name__)


def get_firebase_app() -> firebase_admin.App:
    """Return the default Firebase app, initializing it on first use.

    Credentials come from `BOOKING_ALERTS_CREDENTIALS_FILE` (a service-account
    JSON) when set, otherwise from Application Default Credentials, which is
    what Cloud Functions provides.
    """
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    credentials_file = os.getenv("BOOKING_ALERTS_CREDENTIALS_FILE")
    if credentials_file and credentials_file.strip():
        logger.info("[FIREBASE] initializing with service account file=%s", credentials_file)
        return firebase_admin.initialize_app(credentials.Certificate(credentials_file.strip()))

    logger.info("[FIREBASE] initializing with application default credentials")
    return firebase_admin.initialize_app()
