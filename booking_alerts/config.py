"""Dispatch configuration.

One engine serves every booking collection layout. What differs between
deployments (collection names, field casing, whether acknowledgement flags
are used, which eligibility rule applies) lives here instead of in code.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from .errors import ConfigurationError

PENDING_STATUS = "pending_status"
DRIVER_UNASSIGNED = "driver_unassigned"
ELIGIBILITY_RULES = (PENDING_STATUS, DRIVER_UNASSIGNED)

FLAT_LAYOUT = "flat"
NESTED_LAYOUT = "nested"


@dataclass(frozen=True)
class SubEventFields:
    """Firestore field paths for one sub-event. Dotted paths address nested maps."""

    status: str
    date: str
    time: str
    driver_id: str
    notification_sent: str
    notification_sent_at: str


FLAT_PICKUP_FIELDS = SubEventFields(
    status="pickupStatus",
    date="pickupDate",
    time="pickupTime",
    driver_id="driverId",
    notification_sent="pickupNotificationSent",
    notification_sent_at="pickupNotificationSentAt",
)

FLAT_DROP_FIELDS = SubEventFields(
    status="dropStatus",
    date="dropDate",
    time="dropTime",
    driver_id="dropDriverId",
    notification_sent="dropNotificationSent",
    notification_sent_at="dropNotificationSentAt",
)


def nested_fields(prefix: str) -> SubEventFields:
    return SubEventFields(
        status=f"{prefix}.status",
        date=f"{prefix}.date",
        time=f"{prefix}.time",
        driver_id=f"{prefix}.driverId",
        notification_sent=f"{prefix}.notificationSent",
        notification_sent_at=f"{prefix}.notificationSentAt",
    )


@dataclass(frozen=True)
class DispatchConfig:
    bookings_collection: str = "Bookings"
    manager_collection: str = "managers"
    manager_doc_id: str = "manager"
    manager_token_field: str = "fcmToken"

    resource_person_field: str = "resourcePerson"
    facility_field: str = "facility"
    trip_type_field: str = "tripType"
    pickup_fields: SubEventFields = FLAT_PICKUP_FIELDS
    drop_fields: SubEventFields = FLAT_DROP_FIELDS

    idempotent: bool = True
    eligibility_rules: tuple[str, ...] = (PENDING_STATUS,)
    default_status: str | None = None

    max_in_flight: int = 5
    run_timeout_seconds: float | None = None

    android_channel_id: str = "booking_alerts"
    dry_run: bool = False

    def __post_init__(self) -> None:
        unknown = [rule for rule in self.eligibility_rules if rule not in ELIGIBILITY_RULES]
        if unknown:
            raise ConfigurationError(f"Unknown eligibility rule(s): {', '.join(unknown)}")
        if not self.eligibility_rules:
            raise ConfigurationError("At least one eligibility rule is required")
        if self.max_in_flight < 1:
            raise ConfigurationError("max_in_flight must be >= 1")
        if self.run_timeout_seconds is not None and self.run_timeout_seconds <= 0:
            raise ConfigurationError("run_timeout_seconds must be > 0")

    def fields_for(self, sub_event: str) -> SubEventFields:
        if sub_event == "pickup":
            return self.pickup_fields
        if sub_event == "drop":
            return self.drop_fields
        raise ValueError(f"Unknown sub-event: {sub_event!r}")

    @classmethod
    def from_env(cls) -> "DispatchConfig":
        """Build a config from `BOOKING_ALERTS_*` environment variables."""
        layout = os.getenv("BOOKING_ALERTS_FIELD_LAYOUT", FLAT_LAYOUT).strip().lower()
        if layout == FLAT_LAYOUT:
            pickup_fields, drop_fields = FLAT_PICKUP_FIELDS, FLAT_DROP_FIELDS
        elif layout == NESTED_LAYOUT:
            pickup_fields, drop_fields = nested_fields("pickup"), nested_fields("drop")
        else:
            raise ConfigurationError(f"Invalid BOOKING_ALERTS_FIELD_LAYOUT: {layout!r}")

        rules = tuple(
            item.strip()
            for item in os.getenv("BOOKING_ALERTS_ELIGIBILITY_RULES", PENDING_STATUS).split(",")
            if item.strip()
        )

        return cls(
            bookings_collection=os.getenv("BOOKING_ALERTS_BOOKINGS_COLLECTION", "Bookings"),
            manager_collection=os.getenv("BOOKING_ALERTS_MANAGER_COLLECTION", "managers"),
            manager_doc_id=os.getenv("BOOKING_ALERTS_MANAGER_DOC_ID", "manager"),
            manager_token_field=os.getenv("BOOKING_ALERTS_MANAGER_TOKEN_FIELD", "fcmToken"),
            pickup_fields=pickup_fields,
            drop_fields=drop_fields,
            idempotent=env_bool("BOOKING_ALERTS_IDEMPOTENT", default=True),
            eligibility_rules=rules,
            default_status=_optional_env("BOOKING_ALERTS_DEFAULT_STATUS"),
            max_in_flight=env_int("BOOKING_ALERTS_MAX_IN_FLIGHT", default=5),
            run_timeout_seconds=env_float("BOOKING_ALERTS_RUN_TIMEOUT_SECONDS", default=None),
            android_channel_id=os.getenv("BOOKING_ALERTS_ANDROID_CHANNEL_ID", "booking_alerts"),
            dry_run=env_bool("BOOKING_ALERTS_DRY_RUN", default=False),
        )


def required_env(name: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        raise ConfigurationError(f"Missing required environment variable: {name}")
    return value.strip()


def env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    normalized = raw.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ConfigurationError(f"Invalid boolean value for {name}: {raw!r}")


def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ConfigurationError(f"Invalid integer value for {name}: {raw!r}") from exc


def env_float(name: str, default: float | None) -> float | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError as exc:
        raise ConfigurationError(f"Invalid number value for {name}: {raw!r}") from exc


def _optional_env(name: str) -> str | None:
    value = os.getenv(name)
    if value is None:
        return None
    return value.strip() or None
