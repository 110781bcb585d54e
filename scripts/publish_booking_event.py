#!/usr/bin/env python3
"""Publish one `bookings.created` event to Kafka for local testing."""

from __future__ import annotations

import argparse
import sys
import uuid
from datetime import UTC, datetime
from pathlib import Path

# Allow running this file directly from repository root.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv  # noqa: E402

from booking_alerts.adapters.kafka_runtime import publish_booking_created_event  # noqa: E402


def main() -> int:
    load_dotenv(REPO_ROOT / ".env")
    args = parse_args()
    payload = build_payload(args)
    metadata = publish_booking_created_event(payload, topic=args.topic)

    print("[PUBLISHED]")
    print(f"topic={metadata['topic']}")
    print(f"partition={metadata['partition']}")
    print(f"offset={metadata['offset']}")
    print(f"event_id={payload['event_id']}")
    print(f"booking_id={payload['booking_id']} embedded={'booking' in payload}")
    return 0


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Publish one bookings.created event for Kafka testing."
    )
    parser.add_argument(
        "--booking-id",
        required=True,
        help="Booking document id the worker should evaluate.",
    )
    parser.add_argument(
        "--embed",
        action="store_true",
        help="Embed a sample booking body so the worker skips the store read.",
    )
    parser.add_argument(
        "--round-trip",
        action="store_true",
        help="With --embed: make the sample booking a round trip.",
    )
    parser.add_argument(
        "--event-id",
        default=None,
        help="Optional event id. Default: generated UUID.",
    )
    parser.add_argument(
        "--topic",
        default=None,
        help="Override Kafka topic (defaults to KAFKA_TOPIC_BOOKINGS_CREATED).",
    )
    return parser.parse_args()


def build_payload(args: argparse.Namespace) -> dict[str, object]:
    if args.round_trip and not args.embed:
        raise SystemExit("--round-trip only applies together with --embed.")

    payload: dict[str, object] = {
        "event_id": args.event_id or f"evt-{uuid.uuid4()}",
        "event_type": "bookings.created",
        "occurred_at": datetime.now(tz=UTC).isoformat(),
        "booking_id": args.booking_id,
    }
    if args.embed:
        booking: dict[str, object] = {
            "resourcePerson": "Demo Person",
            "facility": "Demo Vehicle",
            "tripType": "RoundTrip" if args.round_trip else "OneWay",
            "pickupStatus": "Pending",
            "pickupDate": datetime.now(tz=UTC).date().isoformat(),
            "pickupTime": "09:00",
        }
        if args.round_trip:
            booking |= {"dropStatus": "Pending", "dropTime": "18:00"}
        payload["booking"] = booking
    return payload


if __name__ == "__main__":
    sys.exit(main())
