#!/usr/bin/env python3
"""Run one booking dispatch pass against Firestore and FCM.

Meant for cron or manual runs. Exits 0 when the pass completed (even if
some sends failed; they stay eligible for the next run), 2 when no manager
push token is configured, 1 when bookings cannot be read.
"""

from __future__ import annotations

import argparse
import dataclasses
import sys
from pathlib import Path

# Allow running this file directly from repository root.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv  # noqa: E402

from booking_alerts.adapters.cloud_triggers import build_gateways  # noqa: E402
from booking_alerts.application.run import (  # noqa: E402
    EXIT_CONFIGURATION_ERROR,
    format_report,
    run_for_booking,
    run_once,
)
from booking_alerts.config import DispatchConfig  # noqa: E402
from booking_alerts.errors import ConfigurationError  # noqa: E402
from booking_alerts.lib.logging_config import setup_logging  # noqa: E402


def main() -> int:
    load_dotenv(REPO_ROOT / ".env")
    setup_logging()
    args = parse_args()

    try:
        config = build_config(args)
    except ConfigurationError as exc:
        print(f"[CONFIG ERROR] {exc}", file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR

    store, transport = build_gateways(config)
    if args.booking_id:
        result = run_for_booking(args.booking_id, store=store, transport=transport, config=config)
    else:
        result = run_once(store=store, transport=transport, config=config)

    print("[SUMMARY]")
    print(format_report(result))
    return result["exit_code"]


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Notify the manager about bookings whose pickup/drop still needs a driver."
    )
    parser.add_argument(
        "--booking-id",
        default=None,
        help="Only evaluate this booking (event-driven mode). Default: whole collection.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate messages with FCM without delivering them.",
    )
    parser.add_argument(
        "--resend",
        action="store_true",
        help="Ignore and do not write acknowledgement flags (non-idempotent mode).",
    )
    parser.add_argument(
        "--max-in-flight",
        type=int,
        default=None,
        help="Concurrent sends (overrides BOOKING_ALERTS_MAX_IN_FLIGHT).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Stop starting new sends after this many seconds.",
    )
    return parser.parse_args()


def build_config(args: argparse.Namespace) -> DispatchConfig:
    config = DispatchConfig.from_env()
    overrides: dict[str, object] = {}
    if args.dry_run:
        overrides["dry_run"] = True
    if args.resend:
        overrides["idempotent"] = False
    if args.max_in_flight is not None:
        overrides["max_in_flight"] = args.max_in_flight
    if args.timeout is not None:
        overrides["run_timeout_seconds"] = args.timeout
    return dataclasses.replace(config, **overrides) if overrides else config


if __name__ == "__main__":
    sys.exit(main())
