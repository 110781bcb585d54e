"""Idempotent push notifications for bookings that still need a driver."""

from .application import dispatch_notifications, format_report, run_for_booking, run_once
from .config import DispatchConfig, SubEventFields
from .domain import build_notification, eligible_items, is_eligible
from .errors import (
    BookingAlertsError,
    ConfigurationError,
    NotFoundError,
    StoreReadError,
    StoreUnavailableError,
    StoreWriteError,
    TransportError,
)

__all__ = [
    "BookingAlertsError",
    "ConfigurationError",
    "DispatchConfig",
    "NotFoundError",
    "StoreReadError",
    "StoreUnavailableError",
    "StoreWriteError",
    "SubEventFields",
    "TransportError",
    "build_notification",
    "dispatch_notifications",
    "eligible_items",
    "format_report",
    "is_eligible",
    "run_for_booking",
    "run_once",
]
