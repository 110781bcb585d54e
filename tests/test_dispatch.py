from __future__ import annotations

import threading
import time
import unittest
from datetime import UTC, datetime
from typing import Any, Mapping

from booking_alerts.adapters.fakes import InMemoryRecordStore
from booking_alerts.adapters.record import normalize_booking
from booking_alerts.application.dispatch import dispatch_notifications
from booking_alerts.config import DispatchConfig
from booking_alerts.errors import ConfigurationError, StoreUnavailableError, TransportError

FIXED_NOW = datetime(2026, 10, 19, 8, 0, tzinfo=UTC)


def fixed_clock() -> datetime:
    return FIXED_NOW


def make_document(booking_id: str = "B1", **fields: Any) -> dict[str, Any]:
    document: dict[str, Any] = {
        "resourcePerson": "Asha",
        "facility": "Innova",
        "tripType": "RoundTrip",
        "pickupStatus": "Pending",
        "pickupNotificationSent": False,
        "dropStatus": "Pending",
        "dropNotificationSent": False,
    }
    document.update(fields)
    return document | {"id": booking_id}


class RecordingTransport:
    """Collects sends; fails for (booking_id, booking_type) pairs or whole booking ids."""

    def __init__(self, fail_for: set[Any] | None = None, log: list[tuple[str, ...]] | None = None) -> None:
        self.fail_for = fail_for or set()
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.log = log if log is not None else []
        self._lock = threading.Lock()

    def send(self, token: str, notification: dict[str, Any]) -> str:
        booking_id = notification["data"]["bookingId"]
        booking_type = notification["data"]["bookingType"]
        with self._lock:
            self.calls.append((token, notification))
            self.log.append(("send", booking_id, booking_type))
            count = len(self.calls)
        if booking_id in self.fail_for or (booking_id, booking_type) in self.fail_for:
            raise TransportError(TransportError.INVALID_TOKEN, "registration token is not registered")
        return f"msg-{count}"

    def sent_pairs(self) -> list[tuple[str, str]]:
        return [
            (notification["data"]["bookingId"], notification["data"]["bookingType"])
            for _token, notification in self.calls
        ]


class LoggingStore(InMemoryRecordStore):
    def __init__(self, *args: Any, log: list[tuple[str, ...]], fail_updates: bool = False, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.log = log
        self.fail_updates = fail_updates

    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        self.log.append(("ack", doc_id, ",".join(sorted(fields))))
        if self.fail_updates:
            raise StoreUnavailableError("firestore unavailable")
        super().update(collection, doc_id, fields)


def seed_store(*documents: dict[str, Any], config: DispatchConfig, log: list | None = None, **kwargs: Any) -> InMemoryRecordStore:
    collections = {
        config.bookings_collection: {
            document["id"]: {key: value for key, value in document.items() if key != "id"}
            for document in documents
        }
    }
    if log is None:
        return InMemoryRecordStore(collections)
    return LoggingStore(collections, log=log, **kwargs)


def read_bookings(store: InMemoryRecordStore, config: DispatchConfig) -> list[dict[str, Any]]:
    return [normalize_booking(document, config) for document in store.fetch_all(config.bookings_collection)]


class DispatchNotificationsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.config = DispatchConfig(max_in_flight=1)

    def dispatch(self, store: InMemoryRecordStore, transport: RecordingTransport, **kwargs: Any) -> dict[str, Any]:
        config = kwargs.pop("config", self.config)
        return dispatch_notifications(
            read_bookings(store, config),
            kwargs.pop("token", "manager-token"),
            store=store,
            transport=transport,
            config=config,
            clock=fixed_clock,
            **kwargs,
        )

    def test_round_trip_sends_pickup_and_drop_and_acknowledges_both(self) -> None:
        store = seed_store(make_document("B1"), config=self.config)
        transport = RecordingTransport()

        report = self.dispatch(store, transport)

        self.assertEqual(transport.sent_pairs(), [("B1", "Pickup"), ("B1", "Drop")])
        self.assertEqual(report["eligible"], 2)
        self.assertEqual(report["sent"], 2)
        self.assertEqual(report["acknowledged"], 2)
        self.assertEqual(report["failed"], 0)
        self.assertEqual(report["failures"], [])

        stored = store.get(self.config.bookings_collection, "B1")
        self.assertIs(stored["pickupNotificationSent"], True)
        self.assertIs(stored["dropNotificationSent"], True)
        self.assertEqual(stored["pickupNotificationSentAt"], FIXED_NOW)
        self.assertEqual(stored["dropNotificationSentAt"], FIXED_NOW)

    def test_already_acknowledged_pickup_sends_drop_only(self) -> None:
        store = seed_store(make_document("B1", pickupNotificationSent=True), config=self.config)
        transport = RecordingTransport()

        report = self.dispatch(store, transport)

        self.assertEqual(transport.sent_pairs(), [("B1", "Drop")])
        self.assertEqual(report["sent"], 1)

    def test_second_pass_sends_nothing(self) -> None:
        store = seed_store(
            make_document("B1"),
            make_document("B2", tripType="OneWay"),
            config=self.config,
        )
        transport = RecordingTransport()

        first = self.dispatch(store, transport)
        second = self.dispatch(store, transport)

        self.assertEqual(first["sent"], 3)
        self.assertEqual(second["eligible"], 0)
        self.assertEqual(second["sent"], 0)
        self.assertEqual(len(transport.calls), 3)

    def test_non_pending_pickup_is_never_sent(self) -> None:
        store = seed_store(
            make_document("B1", tripType="OneWay", pickupStatus="Assigned"),
            make_document("B2", tripType="OneWay", pickupStatus=None),
            config=self.config,
        )
        transport = RecordingTransport()

        report = self.dispatch(store, transport)

        self.assertEqual(transport.calls, [])
        self.assertEqual(report["eligible"], 0)

    def test_one_way_never_sends_drop(self) -> None:
        store = seed_store(
            make_document("B1", tripType="OneWay", dropStatus="Pending"),
            config=self.config,
        )
        transport = RecordingTransport()

        self.dispatch(store, transport)

        self.assertEqual(transport.sent_pairs(), [("B1", "Pickup")])
        stored = store.get(self.config.bookings_collection, "B1")
        self.assertIs(stored["dropNotificationSent"], False)
        self.assertNotIn("dropNotificationSentAt", stored)

    def test_transport_failure_leaves_item_unacknowledged_and_batch_continues(self) -> None:
        store = seed_store(make_document("B1"), make_document("B2"), config=self.config)
        transport = RecordingTransport(fail_for={("B1", "Pickup")})

        report = self.dispatch(store, transport)

        self.assertEqual(len(transport.calls), 4)
        self.assertEqual(report["sent"], 3)
        self.assertEqual(report["failed"], 1)
        self.assertEqual(
            report["failures"],
            [
                {
                    "booking_id": "B1",
                    "sub_event": "pickup",
                    "stage": "send",
                    "error_type": "TransportError",
                    "error": "invalid_token: registration token is not registered",
                }
            ],
        )
        stored = store.get(self.config.bookings_collection, "B1")
        self.assertIs(stored["pickupNotificationSent"], False)
        self.assertIs(stored["dropNotificationSent"], True)

        retry_transport = RecordingTransport()
        retry = self.dispatch(store, retry_transport)
        self.assertEqual(retry_transport.sent_pairs(), [("B1", "Pickup")])
        self.assertEqual(retry["acknowledged"], 1)

    def test_unexpected_transport_exception_is_contained(self) -> None:
        store = seed_store(make_document("B1", tripType="OneWay"), make_document("B2", tripType="OneWay"), config=self.config)

        class FlakyTransport(RecordingTransport):
            def send(self, token: str, notification: dict[str, Any]) -> str:
                if notification["data"]["bookingId"] == "B1":
                    raise ConnectionResetError("socket closed")
                return super().send(token, notification)

        transport = FlakyTransport()
        report = self.dispatch(store, transport)

        self.assertEqual(report["failed"], 1)
        self.assertEqual(report["sent"], 1)
        self.assertEqual(report["failures"][0]["error_type"], "ConnectionResetError")

    def test_missing_token_aborts_before_any_send(self) -> None:
        store = seed_store(make_document("B1"), config=self.config)
        transport = RecordingTransport()

        for token in (None, "", "   "):
            with self.subTest(token=token):
                with self.assertRaises(ConfigurationError):
                    self.dispatch(store, transport, token=token)

        self.assertEqual(transport.calls, [])

    def test_send_happens_before_acknowledgement(self) -> None:
        log: list[tuple[str, ...]] = []
        store = seed_store(make_document("B1"), config=self.config, log=log)
        transport = RecordingTransport(log=log)

        self.dispatch(store, transport)

        self.assertEqual(
            log,
            [
                ("send", "B1", "Pickup"),
                ("ack", "B1", "pickupNotificationSent,pickupNotificationSentAt"),
                ("send", "B1", "Drop"),
                ("ack", "B1", "dropNotificationSent,dropNotificationSentAt"),
            ],
        )

    def test_failed_send_is_never_acknowledged(self) -> None:
        log: list[tuple[str, ...]] = []
        store = seed_store(make_document("B1", tripType="OneWay"), config=self.config, log=log)
        transport = RecordingTransport(fail_for={"B1"}, log=log)

        self.dispatch(store, transport)

        self.assertEqual(log, [("send", "B1", "Pickup")])

    def test_acknowledgement_failure_is_reported_but_not_fatal(self) -> None:
        log: list[tuple[str, ...]] = []
        store = seed_store(
            make_document("B1", tripType="OneWay"),
            make_document("B2", tripType="OneWay"),
            config=self.config,
            log=log,
            fail_updates=True,
        )
        transport = RecordingTransport(log=log)

        report = self.dispatch(store, transport)

        self.assertEqual(report["sent"], 2)
        self.assertEqual(report["acknowledged"], 0)
        self.assertEqual(report["ack_failed"], 2)
        self.assertEqual(report["failed"], 0)
        self.assertEqual({failure["stage"] for failure in report["failures"]}, {"acknowledge"})
        self.assertEqual(report["failures"][0]["error_type"], "StoreUnavailableError")

    def test_non_idempotent_mode_resends_and_never_writes(self) -> None:
        config = DispatchConfig(max_in_flight=1, idempotent=False)
        log: list[tuple[str, ...]] = []
        store = seed_store(make_document("B1", tripType="OneWay"), config=config, log=log)
        transport = RecordingTransport()

        self.dispatch(store, transport, config=config)
        second = self.dispatch(store, transport, config=config)

        self.assertEqual(transport.sent_pairs(), [("B1", "Pickup"), ("B1", "Pickup")])
        self.assertEqual(second["acknowledged"], 0)
        self.assertEqual(log, [])

    def test_cancelled_run_skips_unstarted_items(self) -> None:
        store = seed_store(make_document("B1"), config=self.config)
        transport = RecordingTransport()
        cancel_event = threading.Event()
        cancel_event.set()

        report = self.dispatch(store, transport, cancel_event=cancel_event)

        self.assertEqual(transport.calls, [])
        self.assertEqual(report["skipped"], 2)
        self.assertEqual(report["sent"], 0)

    def test_cancellation_during_send_still_acknowledges_that_item(self) -> None:
        store = seed_store(make_document("B1"), make_document("B2"), config=self.config)
        cancel_event = threading.Event()

        class CancellingTransport(RecordingTransport):
            def send(self, token: str, notification: dict[str, Any]) -> str:
                message_id = super().send(token, notification)
                cancel_event.set()
                return message_id

        transport = CancellingTransport()
        report = self.dispatch(store, transport, cancel_event=cancel_event)

        self.assertEqual(report["sent"], 1)
        self.assertEqual(report["acknowledged"], 1)
        self.assertEqual(report["skipped"], 3)
        stored = store.get(self.config.bookings_collection, "B1")
        self.assertIs(stored["pickupNotificationSent"], True)

    def test_concurrent_sends_respect_in_flight_limit(self) -> None:
        config = DispatchConfig(max_in_flight=3)
        documents = [make_document(f"B{index}") for index in range(6)]
        store = seed_store(*documents, config=config)
        state = {"active": 0, "peak": 0}
        lock = threading.Lock()

        class SlowTransport(RecordingTransport):
            def send(self, token: str, notification: dict[str, Any]) -> str:
                with lock:
                    state["active"] += 1
                    state["peak"] = max(state["peak"], state["active"])
                try:
                    time.sleep(0.01)
                    return super().send(token, notification)
                finally:
                    with lock:
                        state["active"] -= 1

        transport = SlowTransport()
        report = self.dispatch(store, transport, config=config)

        self.assertEqual(report["sent"], 12)
        self.assertEqual(report["acknowledged"], 12)
        self.assertLessEqual(state["peak"], 3)
        self.assertEqual(len({message["message_id"] for message in report["message_ids"]}), 12)
        for document in store.fetch_all(config.bookings_collection):
            self.assertIs(document["pickupNotificationSent"], True)
            self.assertIs(document["dropNotificationSent"], True)


if __name__ == "__main__":
    unittest.main()
