"""Single-invocation run driver.

One call = one pass: read the manager token, read bookings, dispatch,
summarize, return. Invocation cadence (cron, Cloud Scheduler, Firestore
trigger, Kafka event) belongs to the caller.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Mapping

from ..adapters.record import get_field, normalize_booking
from ..config import DispatchConfig
from ..errors import ConfigurationError, StoreReadError
from ..types import Booking, DocumentDict, NotificationTransport, RecordStore, RunResult
from .dispatch import Clock, dispatch_notifications

logger = logging.getLogger(__name__)

COMPLETED = "completed"
CONFIGURATION_ERROR = "configuration_error"
STORE_READ_ERROR = "store_read_error"

EXIT_OK = 0
EXIT_STORE_READ_ERROR = 1
EXIT_CONFIGURATION_ERROR = 2


def run_once(
    *,
    store: RecordStore,
    transport: NotificationTransport,
    config: DispatchConfig,
    cancel_event: threading.Event | None = None,
    clock: Clock | None = None,
) -> RunResult:
    """Run one full-collection dispatch pass."""
    logger.info("[RUN START] collection=%s", config.bookings_collection)

    def load_bookings() -> list[Booking]:
        documents = store.fetch_all(config.bookings_collection)
        logger.info("[RUN] fetched=%d collection=%s", len(documents), config.bookings_collection)
        return normalize_documents(documents, config)

    return _run(
        load_bookings,
        store=store,
        transport=transport,
        config=config,
        cancel_event=cancel_event,
        clock=clock,
    )


def run_for_booking(
    booking_id: str,
    *,
    store: RecordStore,
    transport: NotificationTransport,
    config: DispatchConfig,
    booking_data: Mapping[str, Any] | None = None,
    cancel_event: threading.Event | None = None,
    clock: Clock | None = None,
) -> RunResult:
    """Event-driven variant: the same rules applied to a single booking.

    `booking_data` is the document body when the trigger already has it
    (e.g. a Firestore create event). In idempotent mode the stored document
    wins over it and the event body is used only when the store has no
    such document yet.
    """
    logger.info("[RUN START] booking_id=%s", booking_id)

    def load_bookings() -> list[Booking]:
        data = booking_data
        if data is None or config.idempotent:
            stored = store.get(config.bookings_collection, booking_id)
            if stored is not None:
                data = stored
            elif data is None:
                raise StoreReadError(
                    f"booking {booking_id} not found in {config.bookings_collection}"
                )
        return normalize_documents([dict(data) | {"id": booking_id}], config)

    return _run(
        load_bookings,
        store=store,
        transport=transport,
        config=config,
        cancel_event=cancel_event,
        clock=clock,
    )


def load_manager_token(store: RecordStore, config: DispatchConfig) -> str | None:
    profile = store.get(config.manager_collection, config.manager_doc_id)
    if not profile:
        logger.warning(
            "[RUN] manager profile missing path=%s/%s",
            config.manager_collection,
            config.manager_doc_id,
        )
        return None

    token = get_field(profile, config.manager_token_field)
    if not isinstance(token, str) or not token.strip():
        return None
    return token.strip()


def normalize_documents(
    documents: list[DocumentDict], config: DispatchConfig
) -> list[Booking]:
    bookings: list[Booking] = []
    for document in documents:
        try:
            bookings.append(normalize_booking(document, config))
        except ValueError as exc:
            logger.warning("[RUN] skipping malformed booking document error=%s", exc)
    return bookings


def format_report(result: RunResult) -> str:
    """Render a run result as the multi-line summary printed by the CLI."""
    lines = [f"status={result['status']}"]
    if result.get("error"):
        lines.append(f"error={result['error']}")

    report = result.get("report")
    if report is not None:
        lines.append(
            "eligible={eligible} sent={sent} acknowledged={acknowledged} "
            "failed={failed} ack_failed={ack_failed} skipped={skipped}".format(**report)
        )
        for failure in report["failures"]:
            lines.append(
                f"failure booking_id={failure['booking_id']} sub_event={failure['sub_event']} "
                f"stage={failure['stage']} error_type={failure['error_type']} "
                f"error={failure['error']}"
            )
    return "\n".join(lines)


def _run(
    load_bookings,
    *,
    store: RecordStore,
    transport: NotificationTransport,
    config: DispatchConfig,
    cancel_event: threading.Event | None,
    clock: Clock | None,
) -> RunResult:
    if cancel_event is None:
        cancel_event = threading.Event()

    timer: threading.Timer | None = None
    if config.run_timeout_seconds is not None:
        timer = threading.Timer(config.run_timeout_seconds, cancel_event.set)
        timer.daemon = True
        timer.start()

    try:
        token = load_manager_token(store, config)
        if token is None:
            raise ConfigurationError(
                "no push token found on "
                f"{config.manager_collection}/{config.manager_doc_id}.{config.manager_token_field}"
            )
        bookings = load_bookings()
        report = dispatch_notifications(
            bookings,
            token,
            store=store,
            transport=transport,
            config=config,
            cancel_event=cancel_event,
            clock=clock,
        )
    except ConfigurationError as exc:
        logger.error("[RUN ABORTED] reason=configuration_error error=%s", exc)
        return _result(CONFIGURATION_ERROR, EXIT_CONFIGURATION_ERROR, error=str(exc))
    except StoreReadError as exc:
        logger.error("[RUN ABORTED] reason=store_read_error error=%s", exc)
        return _result(STORE_READ_ERROR, EXIT_STORE_READ_ERROR, error=str(exc))
    finally:
        if timer is not None:
            timer.cancel()

    logger.info(
        "[RUN DONE] eligible=%d sent=%d failed=%d ack_failed=%d skipped=%d",
        report["eligible"],
        report["sent"],
        report["failed"],
        report["ack_failed"],
        report["skipped"],
    )
    return _result(COMPLETED, EXIT_OK, report=report)


def _result(
    status: str,
    exit_code: int,
    *,
    error: str | None = None,
    report: dict[str, Any] | None = None,
) -> RunResult:
    return {
        "status": status,
        "exit_code": exit_code,
        "error": error,
        "report": report,
    }
