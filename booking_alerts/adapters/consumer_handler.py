"""Consumer-handler adapter functions for `bookings.created` events.

Mental model refresher:
- This is the controller-like entrypoint for event-driven dispatch.
- Kafka code calls this after polling a record.
- Flow:
  record -> parse adapter -> single-booking run -> commit/no-commit decision
- This module owns transport lifecycle behavior (parse errors, commit
  callbacks), not eligibility or message rules.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Sequence

from ..application.run import COMPLETED, run_for_booking
from ..config import DispatchConfig
from ..types import DocumentDict, NotificationTransport, RecordStore
from .record import parse_booking_event

Record = Mapping[str, Any]
CommitFn = Callable[[Record], None]
RejectFn = Callable[[Record, str], None]


def handle_message(
    record: Record,
    *,
    store: RecordStore,
    transport: NotificationTransport,
    config: DispatchConfig,
    commit: CommitFn,
    reject: RejectFn | None = None,
) -> dict[str, Any]:
    """Handle one incoming record and decide commit/no-commit.

    Commit policy:
    - Commit when the run completed and no send failed. Acknowledgement
      write failures still commit: the push went out.
    - Do not commit on parse failures, aborted runs, send failures or
      cancelled items.
    """
    try:
        payload = _get_record_payload(record)
        event = parse_booking_event(payload)
    except Exception as exc:
        error = f"parse_failed: {exc}"
        if reject is not None:
            reject(record, error)
        return {
            "status": "parse_failed",
            "record_meta": _record_meta(record),
            "event": None,
            "run": None,
            "should_commit": False,
            "error": error,
        }

    run = run_for_booking(
        event["booking_id"],
        store=store,
        transport=transport,
        config=config,
        booking_data=event["booking"],
    )
    error = _run_error(run)
    should_commit = error is None

    if should_commit:
        commit(record)
        status = "processed_and_committed"
    else:
        status = "processed_not_committed"
        if reject is not None:
            reject(record, error)

    return {
        "status": status,
        "record_meta": _record_meta(record),
        "event": event,
        "run": run,
        "should_commit": should_commit,
        "error": error,
    }


def handle_batch(
    records: Sequence[Record],
    *,
    store: RecordStore,
    transport: NotificationTransport,
    config: DispatchConfig,
    commit: CommitFn,
    reject: RejectFn | None = None,
) -> list[dict[str, Any]]:
    """Handle a batch of records sequentially using `handle_message`."""
    results: list[dict[str, Any]] = []
    for record in records:
        result = handle_message(
            record,
            store=store,
            transport=transport,
            config=config,
            commit=commit,
            reject=reject,
        )
        results.append(result)
    return results


def _run_error(run: dict[str, Any]) -> str | None:
    if run["status"] != COMPLETED:
        return f"run_failed: {run['status']}: {run['error']}"
    report = run["report"]
    if report["failed"]:
        return "one_or_more_sends_failed"
    if report["skipped"]:
        return "one_or_more_sends_skipped"
    return None


def _get_record_payload(record: Record) -> DocumentDict:
    payload = record.get("value")
    if not isinstance(payload, dict):
        raise ValueError("record.value must be a dict payload")
    return payload


def _record_meta(record: Record) -> dict[str, Any]:
    return {
        "topic": record.get("topic"),
        "partition": record.get("partition"),
        "offset": record.get("offset"),
    }
