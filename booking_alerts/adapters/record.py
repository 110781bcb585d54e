"""Booking document adapter functions.

Mental model refresher:
- This is an adapter/edge module.
- It translates store-shaped data (a Firestore booking document, with
  whatever field casing the deployment uses) into the normalized booking
  dictionary used by application/domain code.
- It resolves field paths and fills defaults, but it does not decide
  eligibility or anything else about notifications.
"""

from __future__ import annotations

from typing import Any, Mapping

from ..config import DispatchConfig, SubEventFields
from ..types import DROP, ONE_WAY, PICKUP, ROUND_TRIP, Booking, Document, SubEvent

_MISSING = object()


def normalize_booking(document: Document, config: DispatchConfig) -> Booking:
    """Normalize one booking document (must carry its id under `"id"`).

    Optional fields stay `None` when absent so that domain rules can tell
    "absent" from "present with a value".
    """
    booking_id = _as_required_str(document.get("id"), "id")

    return {
        "id": booking_id,
        "resource_person": _as_optional_str(get_field(document, config.resource_person_field)),
        "facility": _as_optional_str(get_field(document, config.facility_field)),
        "trip_type": normalize_trip_type(get_field(document, config.trip_type_field)),
        PICKUP: _normalize_sub_event(document, config.pickup_fields),
        DROP: _normalize_sub_event(document, config.drop_fields),
    }


def normalize_trip_type(value: Any) -> str:
    """Map `"round trip"`, `"ROUND_TRIP"`, `"RoundTrip"`... onto the canonical names."""
    text = _as_optional_str(value)
    if text is None:
        return ONE_WAY

    compact = "".join(ch for ch in text.lower() if ch not in " _-")
    if compact == ROUND_TRIP.lower():
        return ROUND_TRIP
    if compact == ONE_WAY.lower():
        return ONE_WAY
    return text


def get_field(document: Mapping[str, Any], path: str, default: Any = None) -> Any:
    """Read a field by Firestore-style path, descending into nested maps on dots.

    A literal key containing dots wins over the nested interpretation.
    """
    if path in document:
        return document[path]

    current: Any = document
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return default
        current = current.get(part, _MISSING)
        if current is _MISSING:
            return default
    return current


def _normalize_sub_event(document: Document, fields: SubEventFields) -> SubEvent:
    return {
        "status": _as_optional_str(get_field(document, fields.status)),
        "date": _as_optional_str(get_field(document, fields.date)),
        "time": _as_optional_str(get_field(document, fields.time)),
        "driver_id": _as_optional_str(get_field(document, fields.driver_id)),
        "notification_sent": get_field(document, fields.notification_sent) is True,
        "notification_sent_at": get_field(document, fields.notification_sent_at),
    }


def _as_required_str(value: Any, field_name: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValueError(f"Missing required field: {field_name}")
    return text


def _as_optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_booking_event(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Normalize a `bookings.created` event payload.

    The event names the booking by id and may embed the document body
    (`booking`) so the consumer can skip the store read.
    """
    booking = payload.get("booking")
    if booking is not None and not isinstance(booking, Mapping):
        raise ValueError("booking must be an object when present")

    return {
        "event_id": _as_required_str(payload.get("event_id"), "event_id"),
        "booking_id": _as_required_str(payload.get("booking_id"), "booking_id"),
        "booking": dict(booking) if booking is not None else None,
    }
