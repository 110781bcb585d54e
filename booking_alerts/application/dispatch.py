"""Application orchestration for one dispatch pass.

Mental model refresher:
- Application layer coordinates use-case flow across domain modules and the
  injected gateways (record store, push transport).
- For each eligible (booking, sub-event) it sends first and acknowledges
  second. A crash between the two causes a duplicate on the next run,
  never a lost notification.
- Per-item failures never escape the item: they are logged and aggregated
  into the report, and the batch carries on.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from typing import Any, Callable, Sequence

from ..config import DispatchConfig
from ..domain.eligibility import eligible_items
from ..domain.message import build_notification
from ..errors import ConfigurationError, StoreWriteError, TransportError
from ..types import Booking, DispatchReport, Notification, NotificationTransport, RecordStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
ItemOutcome = dict[str, Any]

SKIPPED = "skipped"
SEND_FAILED = "send_failed"
SENT = "sent"
ACK_FAILED = "ack_failed"
ACKNOWLEDGED = "acknowledged"


def dispatch_notifications(
    bookings: Sequence[Booking],
    manager_token: str | None,
    *,
    store: RecordStore,
    transport: NotificationTransport,
    config: DispatchConfig,
    cancel_event: threading.Event | None = None,
    clock: Clock | None = None,
) -> DispatchReport:
    """Send one push per eligible sub-event and acknowledge each confirmed send.

    Raises `ConfigurationError` before any send when the manager token is
    missing. Everything else is reported, not raised.
    """
    token = (manager_token or "").strip()
    if not token:
        raise ConfigurationError("manager push token is missing; refusing to dispatch")

    now = clock or _utcnow
    items = [
        (booking, sub_event, build_notification(booking, sub_event, config))
        for booking, sub_event in eligible_items(bookings, config)
    ]
    report = _empty_report(eligible=len(items))
    logger.info(
        "[DISPATCH START] bookings=%d eligible=%d idempotent=%s max_in_flight=%d",
        len(bookings),
        len(items),
        config.idempotent,
        config.max_in_flight,
    )
    if not items:
        return report

    def run_item(item: tuple[Booking, str, Notification]) -> ItemOutcome:
        booking, sub_event, notification = item
        return _dispatch_item(
            booking,
            sub_event,
            notification,
            token=token,
            store=store,
            transport=transport,
            config=config,
            cancel_event=cancel_event,
            now=now,
        )

    if config.max_in_flight == 1 or len(items) == 1:
        outcomes = [run_item(item) for item in items]
    else:
        workers = min(config.max_in_flight, len(items))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="booking-dispatch") as pool:
            outcomes = list(pool.map(run_item, items))

    for outcome in outcomes:
        _merge_outcome(report, outcome)

    logger.info(
        "[DISPATCH DONE] eligible=%d sent=%d acknowledged=%d failed=%d ack_failed=%d skipped=%d",
        report["eligible"],
        report["sent"],
        report["acknowledged"],
        report["failed"],
        report["ack_failed"],
        report["skipped"],
    )
    return report


def _dispatch_item(
    booking: Booking,
    sub_event: str,
    notification: Notification,
    *,
    token: str,
    store: RecordStore,
    transport: NotificationTransport,
    config: DispatchConfig,
    cancel_event: threading.Event | None,
    now: Clock,
) -> ItemOutcome:
    booking_id = booking["id"]
    outcome: ItemOutcome = {
        "booking_id": booking_id,
        "sub_event": sub_event,
        "status": SKIPPED,
        "message_id": None,
        "stage": None,
        "error_type": None,
        "error": None,
    }

    if cancel_event is not None and cancel_event.is_set():
        logger.info("[DISPATCH SKIP] booking_id=%s sub_event=%s reason=cancelled", booking_id, sub_event)
        return outcome

    # Once the send starts, this item always runs to its acknowledgement.
    try:
        message_id = transport.send(token, notification)
    except TransportError as exc:
        logger.warning(
            "[DISPATCH SEND FAILED] booking_id=%s sub_event=%s reason=%s error=%s",
            booking_id,
            sub_event,
            exc.reason,
            exc,
        )
        return outcome | {
            "status": SEND_FAILED,
            "stage": "send",
            "error_type": type(exc).__name__,
            "error": f"{exc.reason}: {exc}",
        }
    except Exception as exc:
        logger.error(
            "[DISPATCH SEND FAILED] booking_id=%s sub_event=%s error=%s",
            booking_id,
            sub_event,
            exc,
            exc_info=True,
        )
        return outcome | {
            "status": SEND_FAILED,
            "stage": "send",
            "error_type": type(exc).__name__,
            "error": str(exc),
        }

    logger.info(
        "[DISPATCH SENT] booking_id=%s sub_event=%s message_id=%s",
        booking_id,
        sub_event,
        message_id,
    )
    outcome = outcome | {"status": SENT, "message_id": message_id}
    if not config.idempotent:
        return outcome

    fields = config.fields_for(sub_event)
    acknowledgement = {
        fields.notification_sent: True,
        fields.notification_sent_at: now(),
    }
    try:
        store.update(config.bookings_collection, booking_id, acknowledgement)
    except Exception as exc:
        # StoreWriteError is the expected case; anything else is reported the same way.
        level = logging.WARNING if isinstance(exc, StoreWriteError) else logging.ERROR
        logger.log(
            level,
            "[DISPATCH ACK FAILED] booking_id=%s sub_event=%s error=%s duplicate_risk=true",
            booking_id,
            sub_event,
            exc,
        )
        return outcome | {
            "status": ACK_FAILED,
            "stage": "acknowledge",
            "error_type": type(exc).__name__,
            "error": str(exc),
        }

    return outcome | {"status": ACKNOWLEDGED}


def _empty_report(*, eligible: int) -> DispatchReport:
    return {
        "eligible": eligible,
        "sent": 0,
        "acknowledged": 0,
        "failed": 0,
        "ack_failed": 0,
        "skipped": 0,
        "message_ids": [],
        "failures": [],
    }


def _merge_outcome(report: DispatchReport, outcome: ItemOutcome) -> None:
    status = outcome["status"]
    if status == SKIPPED:
        report["skipped"] += 1
        return

    if status == SEND_FAILED:
        report["failed"] += 1
    else:
        report["sent"] += 1
        report["message_ids"].append(
            {
                "booking_id": outcome["booking_id"],
                "sub_event": outcome["sub_event"],
                "message_id": outcome["message_id"],
            }
        )
        if status == ACKNOWLEDGED:
            report["acknowledged"] += 1
        elif status == ACK_FAILED:
            report["ack_failed"] += 1

    if outcome["error"] is not None:
        report["failures"].append(
            {
                "booking_id": outcome["booking_id"],
                "sub_event": outcome["sub_event"],
                "stage": outcome["stage"],
                "error_type": outcome["error_type"],
                "error": outcome["error"],
            }
        )


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)
