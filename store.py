"""
Document store over SQLAlchemy.

Every collection lives in the single `documents` table, keyed by
(collection, doc_id), with the document body in a JSON column. Timestamps
are kept as tagged strings in JSON and come back as aware UTC datetimes.

The store never commits: callers own the session and commit once per
request so that related writes land together.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytz
from sqlalchemy.orm import Session

from models import Document, new_id

logger = logging.getLogger(__name__)

TIMESTAMP_TAG = "__timestamp__"

USERS = "users"
PARKING_SPOTS = "parking_spots"
RESERVATIONS = "reservations"
NOTIFICATIONS = "notifications"
SETTINGS = "settings"
SYSTEM_LOGS = "system_logs"
BACKUPS = "backups"

COLLECTIONS = (USERS, PARKING_SPOTS, RESERVATIONS, NOTIFICATIONS, SETTINGS, SYSTEM_LOGS, BACKUPS)


class DocumentNotFound(Exception):
    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"No document to update: {collection}/{doc_id}")
        self.collection = collection
        self.doc_id = doc_id


class DocumentAlreadyExists(Exception):
    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"Document already exists: {collection}/{doc_id}")
        self.collection = collection
        self.doc_id = doc_id


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return pytz.utc.localize(value)
    return value.astimezone(pytz.utc)


def server_timestamp(previous: Optional[datetime] = None) -> datetime:
    """Current UTC time, strictly after `previous` when given."""
    now = as_utc(datetime.now(timezone.utc))
    if previous is not None:
        floor = as_utc(previous) + timedelta(microseconds=1)
        if now < floor:
            now = floor
    return now


def encode_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return {TIMESTAMP_TAG: as_utc(value).isoformat()}
    if isinstance(value, dict):
        return {key: encode_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(item) for item in value]
    return value


def decode_value(value: Any) -> Any:
    if isinstance(value, dict):
        if set(value.keys()) == {TIMESTAMP_TAG}:
            return as_utc(datetime.fromisoformat(value[TIMESTAMP_TAG]))
        return {key: decode_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [decode_value(item) for item in value]
    return value


def is_metadata_id(doc_id: str) -> bool:
    return doc_id.startswith("_")


@dataclass
class DocumentSnapshot:
    collection: str
    id: str
    data: Dict[str, Any]
    create_time: datetime
    update_time: datetime

    def get(self, field: str, default: Any = None) -> Any:
        return self.data.get(field, default)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.data)


class DocumentStore:
    def __init__(self, db: Session):
        self.db = db

    def _row(self, collection: str, doc_id: str, for_update: bool = False) -> Optional[Document]:
        if for_update:
            return self.db.get(Document, (collection, doc_id), with_for_update=True, populate_existing=True)
        return self.db.get(Document, (collection, doc_id))

    @staticmethod
    def _snapshot(row: Document) -> DocumentSnapshot:
        return DocumentSnapshot(
            collection=row.collection,
            id=row.doc_id,
            data=decode_value(row.data or {}),
            create_time=as_utc(row.created_at),
            update_time=as_utc(row.updated_at),
        )

    def get(self, collection: str, doc_id: str, for_update: bool = False) -> Optional[DocumentSnapshot]:
        """`for_update` re-reads the row and locks it until commit where the backend supports row locks."""
        row = self._row(collection, doc_id, for_update=for_update)
        return self._snapshot(row) if row else None

    def get_data(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        snapshot = self.get(collection, doc_id)
        return snapshot.to_dict() if snapshot else None

    def create(self, collection: str, doc_id: str, data: Dict[str, Any]) -> DocumentSnapshot:
        if self._row(collection, doc_id) is not None:
            raise DocumentAlreadyExists(collection, doc_id)
        row = Document(collection=collection, doc_id=doc_id, data=encode_value(data))
        self.db.add(row)
        self.db.flush()
        return self._snapshot(row)

    def add(self, collection: str, data: Dict[str, Any]) -> DocumentSnapshot:
        return self.create(collection, new_id(), data)

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> DocumentSnapshot:
        row = self._row(collection, doc_id)
        if row is None:
            return self.create(collection, doc_id, data)
        body = decode_value(row.data) if merge else {}
        body.update(data)
        row.data = encode_value(body)
        self.db.flush()
        return self._snapshot(row)

    def update(self, collection: str, doc_id: str, changes: Dict[str, Any]) -> DocumentSnapshot:
        row = self._row(collection, doc_id)
        if row is None:
            raise DocumentNotFound(collection, doc_id)
        body = decode_value(row.data)
        body.update(changes)
        row.data = encode_value(body)
        self.db.flush()
        return self._snapshot(row)

    def delete(self, collection: str, doc_id: str) -> None:
        row = self._row(collection, doc_id)
        if row is None:
            raise DocumentNotFound(collection, doc_id)
        self.db.delete(row)
        self.db.flush()

    def stream(self, collection: str) -> List[DocumentSnapshot]:
        rows = (
            self.db.query(Document)
            .filter(Document.collection == collection)
            .order_by(Document.created_at, Document.doc_id)
            .all()
        )
        return [self._snapshot(row) for row in rows if not is_metadata_id(row.doc_id)]

    def where(self, collection: str, field: str, value: Any) -> List[DocumentSnapshot]:
        # JSON path filters differ per backend, so equality is checked after decoding
        return [snap for snap in self.stream(collection) if snap.data.get(field) == value]

    def count(self, collection: str) -> int:
        return len(self.stream(collection))

    def commit(self) -> None:
        try:
            self.db.commit()
        except Exception:
            logger.exception("Store commit failed")
            self.db.rollback()
            raise
