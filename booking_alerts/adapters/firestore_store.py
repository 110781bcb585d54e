"""Firestore record-store adapter.

Mental model refresher:
- This module is an outbound adapter over `google-cloud-firestore`, reached
  through `firebase_admin.firestore.client()`.
- Application code only sees `fetch_all` / `get` / `update` and the package
  error taxonomy; Google API exceptions never leak past this module.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions

from ..errors import NotFoundError, StoreReadError, StoreUnavailableError
from ..types import DocumentDict
from .firebase_app import get_firebase_app

logger = logging.getLogger(__name__)


class FirestoreRecordStore:
    def __init__(self, client: Any | None = None) -> None:
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = firestore.client(app=get_firebase_app())
        return self._client

    def fetch_all(self, collection: str) -> list[DocumentDict]:
        """Snapshot every document in `collection`, each with its id under `"id"`."""
        try:
            snapshots = list(self.client.collection(collection).stream())
        except (google_exceptions.GoogleAPICallError, google_exceptions.RetryError) as exc:
            raise StoreReadError(f"failed to read collection {collection}: {exc}") from exc

        documents = [_with_id(snapshot) for snapshot in snapshots]
        logger.debug("[FIRESTORE] fetched collection=%s count=%d", collection, len(documents))
        return documents

    def get(self, collection: str, doc_id: str) -> DocumentDict | None:
        try:
            snapshot = self.client.collection(collection).document(doc_id).get()
        except (google_exceptions.GoogleAPICallError, google_exceptions.RetryError) as exc:
            raise StoreReadError(f"failed to read {collection}/{doc_id}: {exc}") from exc

        if not snapshot.exists:
            return None
        return _with_id(snapshot)

    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        """Merge `fields` into an existing document. Dotted keys address nested maps."""
        try:
            self.client.collection(collection).document(doc_id).update(dict(fields))
        except google_exceptions.NotFound as exc:
            raise NotFoundError(f"{collection}/{doc_id} does not exist") from exc
        except (google_exceptions.GoogleAPICallError, google_exceptions.RetryError) as exc:
            raise StoreUnavailableError(f"failed to update {collection}/{doc_id}: {exc}") from exc

        logger.debug(
            "[FIRESTORE] updated path=%s/%s fields=%s", collection, doc_id, sorted(fields)
        )


def _with_id(snapshot: Any) -> DocumentDict:
    data = snapshot.to_dict() or {}
    data["id"] = snapshot.id
    return data
