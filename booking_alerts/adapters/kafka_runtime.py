"""Kafka transport adapters for `bookings.created` events.

Mental model refresher:
- This module is transport glue to Kafka itself.
- It maps Kafka records into the consumer-handler adapter flow, which runs
  the single-booking dispatch.
- Eligibility and message rules still live in the domain layer; offsets are
  committed only for handled (or dead-lettered) records.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from typing import Any, Mapping

from ..config import DispatchConfig, env_bool, env_float, env_int, required_env
from ..errors import ConfigurationError
from ..types import NotificationTransport, RecordStore
from .consumer_handler import handle_message

logger = logging.getLogger(__name__)

DEFAULT_TOPIC = "bookings.created"


def publish_booking_created_event(
    payload: Mapping[str, Any],
    *,
    topic: str | None = None,
) -> dict[str, Any]:
    """Publish one `bookings.created` event to Kafka."""
    _KafkaConsumer, KafkaProducer, _TopicPartition, _OffsetAndMetadata = _import_kafka_python()
    bootstrap_servers = _bootstrap_servers_from_env()
    topic_name = topic or _topic_from_env()
    send_timeout_seconds = _send_timeout_seconds_from_env()

    producer = KafkaProducer(
        bootstrap_servers=bootstrap_servers,
        value_serializer=_serialize_json_object,
        acks=os.getenv("KAFKA_PRODUCER_ACKS", "all"),
    )
    try:
        config = config or DispatchConfig.from_env()
        bootstrap_servers = _bootstrap_servers_from_env()
        poll_timeout_ms = _poll_timeout_ms_from_env()
        dlq_enabled = env_bool("KAFKA_DLQ_ENABLED", default=True)
        max_records = env_int("KAFKA_MAX_RECORDS_PER_POLL", default=50)
        dlq_send_timeout_seconds = env_float(
            "KAFKA_DLQ_SEND_TIMEOUT_SECONDS", default=_send_timeout_seconds_from_env()
        )
    except ConfigurationError as exc:
        logger.error("[WORKER CONFIG ERROR] %s", exc)
        return 2

    if store is None or transport is None:
        from .cloud_triggers import build_gateways

        default_store, default_transport = build_gateways(config)
        store = store or default_store
        transport = transport or default_transport

    KafkaConsumer, KafkaProducer, TopicPartition, OffsetAndMetadata = _import_kafka_python()
    topic_name = _topic_from_env()
    dlq_topic = os.getenv("KAFKA_TOPIC_BOOKINGS_CREATED_DLQ", f"{topic_name}.dlq")
    group_id = os.getenv("KAFKA_GROUP_ID", "booking-alerts-worker")
    auto_offset_reset = os.getenv("KAFKA_AUTO_OFFSET_RESET", "earliest")

    consumer = KafkaConsumer(
        topic_name,
        bootstrap_servers=bootstrap_servers,
        group_id=group_id,
        enable_auto_commit=False,
        auto_offset_reset=auto_offset_reset,
    )
    dlq_producer = (
        KafkaProducer(
            bootstrap_servers=bootstrap_servers,
            value_serializer=_serialize_json_object,
            acks=os.getenv("KAFKA_PRODUCER_ACKS", "all"),
        )
        if dlq_enabled
        else None
    )
    logger.info(
        "[WORKER START] topic=%s group_id=%s dlq_enabled=%s dlq_topic=%s collection=%s",
        topic_name,
        group_id,
        dlq_enabled,
        dlq_topic,
        config.bookings_collection,
    )

    def commit_offset(message: Any) -> None:
        offsets = {
            TopicPartition(message.topic, int(message.partition)): _offset_and_metadata(
                OffsetAndMetadata, int(message.offset) + 1
            )
        }
        consumer.commit(offsets=offsets)
        logger.info(
            "[COMMIT] topic=%s partition=%s offset=%s",
            message.topic,
            message.partition,
            message.offset,
        )

    def dead_letter(message: Any, *, reason: str, source_payload: Any) -> None:
        """Publish to the DLQ and commit; leave the offset alone if that fails."""
        if dlq_producer is None:
            logger.warning(
                "[NO-COMMIT] topic=%s partition=%s offset=%s reason=%s",
                message.topic,
                message.partition,
                message.offset,
                reason,
            )
            return

        dlq_payload = _build_dlq_payload(
            source_topic=message.topic,
            source_partition=int(message.partition),
            source_offset=int(message.offset),
            source_payload=source_payload,
            failure_reason=reason,
        )
        try:
            metadata = dlq_producer.send(dlq_topic, value=dlq_payload).get(
                timeout=dlq_send_timeout_seconds
            )
        except Exception as exc:
            logger.error(
                "[DLQ ERROR] source_topic=%s source_partition=%s source_offset=%s "
                "reason=%s error=%s",
                message.topic,
                message.partition,
                message.offset,
                reason,
                exc,
            )
            return

        logger.warning(
            "[DLQ] source_offset=%s dlq_topic=%s dlq_partition=%s dlq_offset=%s reason=%s",
            message.offset,
            metadata.topic,
            metadata.partition,
            metadata.offset,
            reason,
        )
        commit_offset(message)

    def handle_kafka_message(message: Any) -> None:
        try:
            payload = _deserialize_json_object(message.value)
        except Exception as exc:
            dead_letter(message, reason=f"decode_failed: {exc}", source_payload=message.value)
            return

        internal_record = {
            "topic": message.topic,
            "partition": int(message.partition),
            "offset": int(message.offset),
            "value": payload,
        }
        result = handle_message(
            internal_record,
            store=store,
            transport=transport,
            config=config,
            commit=lambda _record: commit_offset(message),
            reject=lambda record, reason: dead_letter(
                message, reason=reason, source_payload=record.get("value")
            ),
        )
        logger.info(
            "[RESULT] topic=%s partition=%s offset=%s status=%s should_commit=%s error=%s",
            message.topic,
            message.partition,
            message.offset,
            result["status"],
            result["should_commit"],
            result["error"],
        )

    try:
        while True:
            batches = consumer.poll(timeout_ms=poll_timeout_ms, max_records=max_records)
            for _topic_partition, messages in batches.items():
                for message in messages:
                    handle_kafka_message(message)
    except KeyboardInterrupt:
        logger.info("[WORKER STOP] received keyboard interrupt")
        return 0
    except Exception as exc:
        logger.error("[WORKER ERROR] %s", exc, exc_info=True)
        return 1
    finally:
        _close_quietly(consumer.close)
        if dlq_producer is not None:
            _close_quietly(lambda: dlq_producer.flush(timeout=dlq_send_timeout_seconds))
            _close_quietly(dlq_producer.close)


def _import_kafka_python() -> tuple[Any, Any, Any, Any]:
    try:
        from kafka import KafkaConsumer, KafkaProducer, TopicPartition
        from kafka.structs import OffsetAndMetadata
    except Exception as exc:
        raise RuntimeError(
            "Kafka support requires `kafka-python`. Install with: pip install kafka-python"
        ) from exc
    return KafkaConsumer, KafkaProducer, TopicPartition, OffsetAndMetadata


def _topic_from_env() -> str:
    return os.getenv("KAFKA_TOPIC_BOOKINGS_CREATED", DEFAULT_TOPIC)


def _bootstrap_servers_from_env() -> list[str]:
    raw = required_env("KAFKA_BOOTSTRAP_SERVERS")
    servers = [item.strip() for item in raw.split(",") if item.strip()]
    if not servers:
        raise ConfigurationError("KAFKA_BOOTSTRAP_SERVERS must include at least one host:port")
    return servers


def _poll_timeout_ms_from_env() -> int:
    timeout_ms = int(env_float("KAFKA_POLL_TIMEOUT_SECONDS", default=1.0) * 1000)
    if timeout_ms <= 0:
        raise ConfigurationError("KAFKA_POLL_TIMEOUT_SECONDS must be > 0")
    return timeout_ms


def _send_timeout_seconds_from_env() -> float:
    timeout_seconds = env_float("KAFKA_SEND_TIMEOUT_SECONDS", default=10.0)
    if timeout_seconds <= 0:
        raise ConfigurationError("KAFKA_SEND_TIMEOUT_SECONDS must be > 0")
    return timeout_seconds


def _serialize_json_object(payload: Mapping[str, Any]) -> bytes:
    return json.dumps(_to_json_compatible(payload), separators=(",", ":")).encode("utf-8")


def _deserialize_json_object(raw: bytes | str | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(raw, Mapping):
        return dict(raw)

    if isinstance(raw, bytes):
        text = raw.decode("utf-8")
    elif isinstance(raw, str):
        text = raw
    else:
        raise ValueError(f"Unsupported Kafka payload type: {type(raw).__name__}")

    parsed = json.loads(text)
    if not isinstance(parsed, dict):
        raise ValueError("Kafka payload must decode to a JSON object")
    return parsed


def _build_dlq_payload(
    *,
    source_topic: str,
    source_partition: int,
    source_offset: int,
    source_payload: Any,
    failure_reason: str,
) -> dict[str, Any]:
    payload = {
        "event_type": f"{source_topic}.dlq",
        "failed_at": datetime.now(tz=UTC).isoformat(),
        "failure_reason": failure_reason,
        "source": {
            "topic": source_topic,
            "partition": source_partition,
            "offset": source_offset,
        },
        "payload": _to_json_compatible(source_payload),
    }

    if isinstance(source_payload, Mapping):
        for key in ("event_id", "booking_id"):
            value = source_payload.get(key)
            if isinstance(value, str) and value.strip():
                payload[f"source_{key}"] = value.strip()

    return payload


def _to_json_compatible(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Mapping):
        return {str(key): _to_json_compatible(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_to_json_compatible(item) for item in value]
    return repr(value)


def _close_quietly(close: Any) -> None:
    try:
        close()
    except Exception as exc:
        logger.warning("[WORKER SHUTDOWN] cleanup step failed error=%s", exc)


def _offset_and_metadata(offset_and_metadata_type: Any, offset: int) -> Any:
    """Build kafka-python OffsetAndMetadata across version signatures."""
    try:
        return offset_and_metadata_type(offset, "", -1)
    except TypeError:
        try:
            return offset_and_metadata_type(offset, "", None)
        except TypeError:
            return offset_and_metadata_type(offset, "")
