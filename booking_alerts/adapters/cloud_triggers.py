"""Cloud trigger handlers (framework-free).

Mental model refresher:
- `functions/main.py` owns the Firebase/Functions Framework decorators.
- These handlers hold what those entry points do, so they can be exercised
  without a deployed trigger: build gateways, run the driver, turn the run
  result into a log line or an HTTP-style response.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from ..application.run import COMPLETED, run_for_booking, run_once
from ..config import DispatchConfig
from ..types import NotificationTransport, RecordStore, RunResult

logger = logging.getLogger(__name__)


def build_gateways(config: DispatchConfig) -> tuple[RecordStore, NotificationTransport]:
    """Production gateways: Firestore for records, FCM for pushes."""
    from .fcm_transport import FcmTransport
    from .firestore_store import FirestoreRecordStore

    return FirestoreRecordStore(), FcmTransport(dry_run=config.dry_run)


def handle_scheduled_dispatch(
    *,
    config: DispatchConfig | None = None,
    store: RecordStore | None = None,
    transport: NotificationTransport | None = None,
) -> RunResult:
    """Full-collection pass for a scheduler trigger."""
    config = config or DispatchConfig.from_env()
    if store is None or transport is None:
        default_store, default_transport = build_gateways(config)
        store = store or default_store
        transport = transport or default_transport

    result = run_once(store=store, transport=transport, config=config)
    _log_result("scheduled", result)
    return result


def handle_booking_created(
    booking_id: str,
    booking_data: Mapping[str, Any] | None,
    *,
    config: DispatchConfig | None = None,
    store: RecordStore | None = None,
    transport: NotificationTransport | None = None,
) -> RunResult:
    """Single-booking pass for a document-created trigger."""
    config = config or DispatchConfig.from_env()
    if store is None or transport is None:
        default_store, default_transport = build_gateways(config)
        store = store or default_store
        transport = transport or default_transport

    result = run_for_booking(
        booking_id,
        store=store,
        transport=transport,
        config=config,
        booking_data=booking_data,
    )
    _log_result(f"booking_created booking_id={booking_id}", result)
    return result


def http_response(result: RunResult) -> tuple[dict[str, Any], int]:
    """Map a run result onto a JSON body and status code for HTTP triggers."""
    if result["status"] == COMPLETED:
        return {"status": "success", "report": result["report"]}, 200
    return {"status": "error", "reason": result["status"], "message": result["error"]}, 500


def _log_result(trigger: str, result: RunResult) -> None:
    if result["status"] == COMPLETED:
        report = result["report"]
        logger.info(
            "[TRIGGER] trigger=%s status=%s eligible=%d sent=%d failed=%d",
            trigger,
            result["status"],
            report["eligible"],
            report["sent"],
            report["failed"],
        )
    else:
        logger.error(
            "[TRIGGER] trigger=%s status=%s error=%s", trigger, result["status"], result["error"]
        )
