"""Error taxonomy for the dispatch job.

Fatal to a run:
- ConfigurationError (no manager token, malformed environment)
- StoreReadError (bookings or manager profile cannot be read)

Per-item, caught at the item boundary and reported:
- TransportError (push send failed, item stays eligible)
- StoreWriteError (acknowledgement write failed after a successful send)
"""

from __future__ import annotations


class BookingAlertsError(Exception):
    """Base class for all package errors."""


class ConfigurationError(BookingAlertsError):
    pass


class StoreReadError(BookingAlertsError):
    pass


class StoreWriteError(BookingAlertsError):
    pass


class NotFoundError(StoreWriteError):
    pass


class StoreUnavailableError(StoreWriteError):
    pass


class TransportError(BookingAlertsError):
    """Push send failure with a coarse machine-readable reason."""

    INVALID_TOKEN = "invalid_token"
    QUOTA_EXCEEDED = "quota_exceeded"
    UNAVAILABLE = "unavailable"
    INVALID_ARGUMENT = "invalid_argument"
    UNKNOWN = "unknown"

    def __init__(self, reason: str, message: str | None = None) -> None:
        self.reason = reason
        super().__init__(message or reason)
