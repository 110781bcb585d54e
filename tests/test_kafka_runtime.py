from __future__ import annotations

import unittest
from datetime import UTC, datetime
from types import SimpleNamespace
from unittest import mock

from booking_alerts.adapters import kafka_runtime
from booking_alerts.adapters.fakes import InMemoryRecordStore
from booking_alerts.config import DispatchConfig
from booking_alerts.errors import ConfigurationError, TransportError


class KafkaRuntimeHelperTests(unittest.TestCase):
    def test_deserialize_json_object_accepts_bytes(self) -> None:
        payload = kafka_runtime._deserialize_json_object(
            b'{"event_id":"evt-1","booking_id":"B1"}'
        )
        self.assertEqual(payload["event_id"], "evt-1")
        self.assertEqual(payload["booking_id"], "B1")

    def test_deserialize_json_object_rejects_non_object_json(self) -> None:
        with self.assertRaises(ValueError):
            kafka_runtime._deserialize_json_object(b'["not","an","object"]')

    def test_serialize_handles_timestamps_in_embedded_booking(self) -> None:
        raw = kafka_runtime._serialize_json_object(
            {"booking_id": "B1", "booking": {"createdAt": datetime(2026, 10, 19, tzinfo=UTC)}}
        )
        self.assertEqual(
            raw, b'{"booking_id":"B1","booking":{"createdAt":"2026-10-19T00:00:00+00:00"}}'
        )

    def test_bootstrap_servers_from_env_parses_csv(self) -> None:
        env = {"KAFKA_BOOTSTRAP_SERVERS": "localhost:9092, kafka:29092 "}
        with mock.patch.dict("os.environ", env, clear=True):
            servers = kafka_runtime._bootstrap_servers_from_env()
        self.assertEqual(servers, ["localhost:9092", "kafka:29092"])

    def test_bootstrap_servers_from_env_requires_value(self) -> None:
        with mock.patch.dict("os.environ", {}, clear=True):
            with self.assertRaises(ConfigurationError):
                kafka_runtime._bootstrap_servers_from_env()

    def test_poll_timeout_must_be_positive(self) -> None:
        with mock.patch.dict("os.environ", {"KAFKA_POLL_TIMEOUT_SECONDS": "0"}, clear=True):
            with self.assertRaises(ConfigurationError):
                kafka_runtime._poll_timeout_ms_from_env()

    def test_topic_defaults_to_bookings_created(self) -> None:
        with mock.patch.dict("os.environ", {}, clear=True):
            self.assertEqual(kafka_runtime._topic_from_env(), "bookings.created")

    def test_worker_returns_config_exit_code_without_bootstrap_servers(self) -> None:
        with mock.patch.dict("os.environ", {}, clear=True):
            exit_code = kafka_runtime.run_booking_worker_forever(
                store=mock.Mock(), transport=mock.Mock()
            )
        self.assertEqual(exit_code, 2)

    def test_worker_returns_config_exit_code_for_malformed_numbers(self) -> None:
        cases = {
            "KAFKA_MAX_RECORDS_PER_POLL": "fifty",
            "KAFKA_POLL_TIMEOUT_SECONDS": "soon",
            "KAFKA_SEND_TIMEOUT_SECONDS": "ten",
            "KAFKA_DLQ_SEND_TIMEOUT_SECONDS": "later",
        }
        for name, value in cases.items():
            with self.subTest(name=name):
                env = {"KAFKA_BOOTSTRAP_SERVERS": "localhost:9092", name: value}
                with mock.patch.dict("os.environ", env, clear=True), mock.patch.object(
                    kafka_runtime, "_import_kafka_python"
                ) as import_mock:
                    exit_code = kafka_runtime.run_booking_worker_forever(
                        store=mock.Mock(), transport=mock.Mock()
                    )
                self.assertEqual(exit_code, 2)
                import_mock.assert_not_called()

    def test_build_dlq_payload_includes_source_metadata_and_ids(self) -> None:
        source_payload = {"event_id": "evt-abc", "booking_id": "B42"}

        dlq_payload = kafka_runtime._build_dlq_payload(
            source_topic="bookings.created",
            source_partition=0,
            source_offset=42,
            source_payload=source_payload,
            failure_reason="one_or_more_sends_failed",
        )

        self.assertEqual(dlq_payload["event_type"], "bookings.created.dlq")
        self.assertEqual(dlq_payload["failure_reason"], "one_or_more_sends_failed")
        self.assertEqual(dlq_payload["source"]["offset"], 42)
        self.assertEqual(dlq_payload["source_event_id"], "evt-abc")
        self.assertEqual(dlq_payload["source_booking_id"], "B42")
        self.assertIn("failed_at", dlq_payload)


class BookingWorkerLoopTests(unittest.TestCase):
    def _run_worker(self, transport: object) -> tuple[int, mock.Mock, InMemoryRecordStore]:
        store = InMemoryRecordStore(
            {
                "managers": {"manager": {"fcmToken": "manager-token"}},
                "Bookings": {"B1": {"tripType": "OneWay", "pickupStatus": "Pending"}},
            }
        )
        message = SimpleNamespace(
            topic="bookings.created",
            partition=0,
            offset=7,
            value=b'{"event_id":"evt-1","booking_id":"B1"}',
        )
        consumer = mock.Mock()
        consumer.poll.side_effect = [{("bookings.created", 0): [message]}, KeyboardInterrupt()]

        def offset_and_metadata(offset: int, metadata: str, leader_epoch: int) -> tuple:
            return (offset, metadata, leader_epoch)

        kafka_classes = (
            mock.Mock(return_value=consumer),
            mock.Mock(),
            lambda topic, partition: (topic, partition),
            offset_and_metadata,
        )
        env = {"KAFKA_BOOTSTRAP_SERVERS": "localhost:9092", "KAFKA_DLQ_ENABLED": "false"}
        with mock.patch.dict("os.environ", env, clear=True), mock.patch.object(
            kafka_runtime, "_import_kafka_python", return_value=kafka_classes
        ):
            exit_code = kafka_runtime.run_booking_worker_forever(
                config=DispatchConfig(max_in_flight=1), store=store, transport=transport
            )
        return exit_code, consumer, store

    def test_delivered_booking_commits_next_offset(self) -> None:
        transport = mock.Mock()
        transport.send.return_value = "msg-1"

        exit_code, consumer, store = self._run_worker(transport)

        self.assertEqual(exit_code, 0)
        consumer.commit.assert_called_once_with(
            offsets={("bookings.created", 0): (8, "", -1)}
        )
        self.assertIs(store.get("Bookings", "B1")["pickupNotificationSent"], True)
        consumer.close.assert_called_once()

    def test_failed_send_without_dlq_leaves_offset_uncommitted(self) -> None:
        transport = mock.Mock()
        transport.send.side_effect = TransportError(TransportError.UNAVAILABLE, "fcm down")

        exit_code, consumer, store = self._run_worker(transport)

        self.assertEqual(exit_code, 0)
        consumer.commit.assert_not_called()
        self.assertNotIn("pickupNotificationSent", store.get("Bookings", "B1"))


if __name__ == "__main__":
    unittest.main()
