"""Eligibility rules for driver-assignment alerts.

Mental model refresher:
- Domain modules hold booking/notification business rules.
- This one decides, per booking and per sub-event (pickup, drop), whether a
  notification is due right now.
- Pure functions only: no store reads, no sends, no clock.
"""

from __future__ import annotations

from typing import Iterable

from ..config import DRIVER_UNASSIGNED, PENDING_STATUS, DispatchConfig
from ..types import DROP, PICKUP, ROUND_TRIP, Booking, SubEvent

PENDING = "pending"


def applicable_sub_events(booking: Booking) -> tuple[str, ...]:
    """Pickup always applies; drop only for round trips."""
    if booking.get("trip_type") == ROUND_TRIP:
        return (PICKUP, DROP)
    return (PICKUP,)


def is_eligible(booking: Booking, sub_event: str, config: DispatchConfig) -> bool:
    if sub_event not in applicable_sub_events(booking):
        return False

    leg: SubEvent = booking.get(sub_event) or {}
    if config.idempotent and leg.get("notification_sent", False):
        return False

    return all(_rule_holds(rule, leg, config) for rule in config.eligibility_rules)


def eligible_items(
    bookings: Iterable[Booking], config: DispatchConfig
) -> list[tuple[Booking, str]]:
    """Expand bookings into the ordered list of eligible (booking, sub-event) pairs."""
    return [
        (booking, sub_event)
        for booking in bookings
        for sub_event in applicable_sub_events(booking)
        if is_eligible(booking, sub_event, config)
    ]


def _rule_holds(rule: str, leg: SubEvent, config: DispatchConfig) -> bool:
    if rule == PENDING_STATUS:
        return _is_pending(leg.get("status"), config.default_status)
    if rule == DRIVER_UNASSIGNED:
        driver_id = leg.get("driver_id")
        return driver_id is None or not str(driver_id).strip()
    raise ValueError(f"Unknown eligibility rule: {rule!r}")


def _is_pending(status: str | None, default_status: str | None) -> bool:
    """`Pending` compared case-insensitively and ignoring surrounding whitespace."""
    # absent status only counts when the deployment declares a default for it
    if status is None:
        status = default_status
    if status is None:
        return False
    return status.strip().lower() == PENDING
