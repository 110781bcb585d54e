"""
Cloud Functions entry points for booking alerts.

- scheduled_booking_dispatch: Firebase scheduled function, full pass every 15 minutes
- notify_manager_on_booking: Firestore trigger, single pass for each new booking
- http_booking_dispatch: HTTP function for Cloud Scheduler / manual runs
"""

import os
import sys
from pathlib import Path

# Deployed from the project root; make the package importable
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import functions_framework
from firebase_functions import firestore_fn, scheduler_fn

from booking_alerts.adapters.cloud_triggers import (
    handle_booking_created,
    handle_scheduled_dispatch,
    http_response,
)
from booking_alerts.adapters.firebase_app import get_firebase_app
from booking_alerts.application.run import COMPLETED
from booking_alerts.lib.logging_config import setup_logging

setup_logging()
get_firebase_app()

# Must match the collection the dispatch config acknowledges into
BOOKINGS_COLLECTION = os.environ.get("BOOKING_ALERTS_BOOKINGS_COLLECTION", "Bookings")


@scheduler_fn.on_schedule(schedule="every 15 minutes", timezone="Etc/UTC")
def scheduled_booking_dispatch(event: scheduler_fn.ScheduledEvent) -> None:
    """Notify the manager about every pending pickup/drop that has not been notified yet."""
    result = handle_scheduled_dispatch()
    if result["status"] != COMPLETED:
        # surfaces as a failed invocation in Cloud Logging
        raise RuntimeError(f"booking dispatch failed: {result['status']}: {result['error']}")


@firestore_fn.on_document_created(document=f"{BOOKINGS_COLLECTION}/{{bookingId}}", region="us-central1")
def notify_manager_on_booking(event: firestore_fn.Event[firestore_fn.DocumentSnapshot | None]) -> None:
    """Notify the manager as soon as a booking is created."""
    snapshot = event.data
    booking_id = event.params["bookingId"]
    booking_data = snapshot.to_dict() if snapshot is not None else None
    handle_booking_created(booking_id, booking_data)


@functions_framework.http
def http_booking_dispatch(request):
    """Cloud Function triggered by Cloud Scheduler over HTTP"""
    return http_response(handle_scheduled_dispatch())
