"""In-memory and console gateway adapters for local smoke runs.

Mental model refresher:
- This is outbound adapter code standing in for Firestore and FCM.
- The run driver calls these through the same `fetch_all`/`get`/`update`
  and `send` methods as the real adapters; it does not know which one is
  underneath.
"""

from __future__ import annotations

import copy
import itertools
import threading
from typing import Any, Mapping

from ..errors import NotFoundError
from ..types import DocumentDict, Notification


class ConsoleTransport:
    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def send(self, token: str, notification: Notification) -> str:
        with self._lock:
            message_id = f"console-{next(self._ids)}"
            print("[PUSH]")
            print(f"to={token}")
            print(f"title={notification['title']}")
            print(f"body={notification['body']}")
            print(f"data={notification.get('data', {})}")
        return message_id


class InMemoryRecordStore:
    """Dict-backed store with Firestore-like dotted-path updates."""

    def __init__(self, collections: Mapping[str, Mapping[str, Mapping[str, Any]]] | None = None) -> None:
        self._lock = threading.Lock()
        self._collections: dict[str, dict[str, dict[str, Any]]] = {
            name: {doc_id: copy.deepcopy(dict(data)) for doc_id, data in documents.items()}
            for name, documents in (collections or {}).items()
        }

    def fetch_all(self, collection: str) -> list[DocumentDict]:
        with self._lock:
            documents = self._collections.get(collection, {})
            return [copy.deepcopy(data) | {"id": doc_id} for doc_id, data in documents.items()]

    def get(self, collection: str, doc_id: str) -> DocumentDict | None:
        with self._lock:
            data = self._collections.get(collection, {}).get(doc_id)
            if data is None:
                return None
            return copy.deepcopy(data) | {"id": doc_id}

    def set(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        with self._lock:
            self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(dict(data))

    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        with self._lock:
            document = self._collections.get(collection, {}).get(doc_id)
            if document is None:
                raise NotFoundError(f"{collection}/{doc_id} does not exist")
            for path, value in fields.items():
                _set_path(document, path, value)


def _set_path(document: dict[str, Any], path: str, value: Any) -> None:
    *parents, leaf = path.split(".")
    current = document
    for part in parents:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    current[leaf] = value
