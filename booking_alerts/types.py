"""Shared type aliases and gateway protocols for the booking alerts package."""

from __future__ import annotations

from typing import Any, Mapping, Protocol

Document = Mapping[str, Any]
DocumentDict = dict[str, Any]
Booking = dict[str, Any]
SubEvent = dict[str, Any]
Notification = dict[str, Any]
DispatchReport = dict[str, Any]
RunResult = dict[str, Any]

PICKUP = "pickup"
DROP = "drop"
SUB_EVENTS = (PICKUP, DROP)

ONE_WAY = "OneWay"
ROUND_TRIP = "RoundTrip"


class RecordStore(Protocol):
    def fetch_all(self, collection: str) -> list[DocumentDict]: ...

    def get(self, collection: str, doc_id: str) -> DocumentDict | None: ...

    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None: ...


class NotificationTransport(Protocol):
    def send(self, token: str, notification: Notification) -> str: ...
