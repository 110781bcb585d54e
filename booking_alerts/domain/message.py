"""Notification content for driver-assignment alerts.

Mental model refresher:
- Domain modules hold booking/notification business rules.
- This one decides what the manager sees for an eligible sub-event:
  - title per sub-event kind
  - body with per-field placeholders for missing booking details
  - a string-only data payload for the client app
  - fixed platform delivery hints per kind
- It does not know which push provider delivers the message.
"""

from __future__ import annotations

from ..config import DispatchConfig
from ..types import DROP, PICKUP, Booking, Notification

NOTIFICATION_TYPE = "driver_assignment"

BOOKING_TYPES = {PICKUP: "Pickup", DROP: "Drop"}

TITLES = {
    PICKUP: "🔔 Pickup Needs Driver",
    DROP: "🔔 Drop Needs Driver",
}

APNS_CATEGORIES = {
    PICKUP: "BOOKING_PICKUP_UNASSIGNED",
    DROP: "BOOKING_DROP_UNASSIGNED",
}

PLACEHOLDER_PERSON = "Someone"
PLACEHOLDER_FACILITY = "a vehicle"
PLACEHOLDER_DATE = "an unscheduled date"
PLACEHOLDER_TIME = "an unscheduled time"


def build_notification(booking: Booking, sub_event: str, config: DispatchConfig) -> Notification:
    """Build the push payload for one eligible (booking, sub-event)."""
    if sub_event not in BOOKING_TYPES:
        raise ValueError(f"Unknown sub-event: {sub_event!r}")

    leg = booking.get(sub_event) or {}
    booking_type = BOOKING_TYPES[sub_event]

    person = booking.get("resource_person")
    facility = booking.get("facility")
    date = leg.get("date")
    time = leg.get("time")

    body = (
        f"{person or PLACEHOLDER_PERSON} booked {facility or PLACEHOLDER_FACILITY} "
        f"for {booking_type.lower()} on {date or PLACEHOLDER_DATE} "
        f"at {time or PLACEHOLDER_TIME}. No driver assigned yet."
    )

    return {
        "title": TITLES[sub_event],
        "body": body,
        "data": {
            "type": NOTIFICATION_TYPE,
            "bookingId": str(booking["id"]),
            "bookingType": booking_type,
            "tripType": _as_data_str(booking.get("trip_type")),
            "resourcePerson": _as_data_str(person),
            "facility": _as_data_str(facility),
            "date": _as_data_str(date),
            "time": _as_data_str(time),
        },
        "android": {
            "priority": "high",
            "channel_id": config.android_channel_id,
            "sound": "default",
        },
        "apns": {
            "sound": "default",
            "category": APNS_CATEGORIES[sub_event],
        },
    }


def _as_data_str(value: object) -> str:
    # FCM data payload values must be strings
    return "" if value is None else str(value)
