#!/usr/bin/env python3
"""Run the Kafka booking worker.

This worker consumes `bookings.created` and notifies the manager about each
new booking's pickup/drop legs that still need a driver.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Allow running this file directly from repository root.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv  # noqa: E402

from booking_alerts.adapters.kafka_runtime import run_booking_worker_forever  # noqa: E402
from booking_alerts.lib.logging_config import setup_logging  # noqa: E402


def main() -> int:
    parse_args()
    load_dotenv(REPO_ROOT / ".env")
    setup_logging()
    return run_booking_worker_forever()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run Kafka consumer loop for booking driver-assignment alerts."
    )
    return parser.parse_args()


if __name__ == "__main__":
    sys.exit(main())
