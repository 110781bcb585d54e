#!/usr/bin/env python3
"""Run the dispatch flow locally without Firestore or FCM.

Seeds an in-memory store, runs two passes and prints both summaries. The
second pass sends nothing: every notified sub-event is acknowledged.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

# Allow running this file directly from repository root.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from booking_alerts.adapters.fakes import ConsoleTransport, InMemoryRecordStore  # noqa: E402
from booking_alerts.application.run import format_report, run_once  # noqa: E402
from booking_alerts.config import DispatchConfig  # noqa: E402
from booking_alerts.lib.logging_config import setup_logging  # noqa: E402


def main() -> int:
    setup_logging()
    args = parse_args()
    config = DispatchConfig(max_in_flight=1)
    store = InMemoryRecordStore(load_collections(args.seed_file, config))
    transport = ConsoleTransport()

    exit_code = 0
    for attempt in (1, 2):
        result = run_once(store=store, transport=transport, config=config)
        print("")
        print(f"[RUN {attempt} SUMMARY]")
        print(format_report(result))
        exit_code = max(exit_code, result["exit_code"])

    print("")
    print("[FINAL BOOKINGS]")
    for document in store.fetch_all(config.bookings_collection):
        print(json.dumps(document, default=str, sort_keys=True))
    return exit_code


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Execute two dispatch passes against an in-memory booking store."
    )
    parser.add_argument(
        "--seed-file",
        type=Path,
        default=None,
        help="Optional JSON file: {collection: {doc_id: document}}.",
    )
    return parser.parse_args()


def load_collections(seed_file: Path | None, config: DispatchConfig) -> dict[str, Any]:
    if seed_file is None:
        return sample_collections(config)
    with seed_file.open("r", encoding="utf-8") as file_handle:
        return json.load(file_handle)


def sample_collections(config: DispatchConfig) -> dict[str, Any]:
    return {
        config.manager_collection: {
            config.manager_doc_id: {config.manager_token_field: "demo-manager-token"},
        },
        config.bookings_collection: {
            "B1": {
                "resourcePerson": "Asha",
                "facility": "Innova",
                "tripType": "RoundTrip",
                "pickupStatus": "Pending",
                "pickupDate": "2026-10-21",
                "pickupTime": "09:30",
                "dropStatus": "Pending",
                "dropDate": "2026-10-21",
                "dropTime": "18:00",
            },
            "B2": {
                "resourcePerson": "Ravi",
                "tripType": "OneWay",
                "pickupStatus": "Pending",
                "pickupDate": "2026-10-22",
                "dropStatus": "Pending",
            },
            "B3": {
                "resourcePerson": "Meera",
                "facility": "Dzire",
                "tripType": "OneWay",
                "pickupStatus": "Assigned",
                "driverId": "D7",
            },
        },
    }


if __name__ == "__main__":
    sys.exit(main())
