"""Document store adapter over SQLAlchemy.

Collections of JSON documents with point reads/writes, equality-filtered
queries, bulk delete-by-query and live listeners. Every write commits on its
own; there is no multi-document transaction. ``mutate`` is the one
read-modify-write primitive and uses the row ``version`` as a
compare-and-swap guard.
"""
import copy
import enum
import logging
import uuid
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional

from sqlalchemy import update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from trainbuddy.config import settings
from trainbuddy.models.document import Document
from trainbuddy.store.errors import ConflictError, DocumentNotFoundError, MissingIndexError, translate
from trainbuddy.store.listeners import ChangeFeed, Listener, ListenerRegistration, change_feed

logger = logging.getLogger(__name__)


class _ServerTimestamp:
    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


def encode_timestamp(value: datetime) -> str:
    """UTC ISO-8601 with fixed microsecond precision, so strings sort chronologically."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _encode(value: Any, now: datetime) -> Any:
    if value is SERVER_TIMESTAMP:
        return encode_timestamp(now)
    if isinstance(value, datetime):
        return encode_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _encode(v, now) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode(v, now) for v in value]
    return value


def _field(name: str, value: Any):
    column = Document.data[name]
    if isinstance(value, bool):
        return column.as_boolean()
    if isinstance(value, int):
        return column.as_integer()
    if isinstance(value, float):
        return column.as_float()
    return column.as_string()


class DocumentStore:
    def __init__(self, db: Session, indexes: Optional[set] = None, feed: ChangeFeed = change_feed):
        self.db = db
        self.indexes = settings.store_indexes if indexes is None else set(indexes)
        self._feed = feed

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------
    @contextmanager
    def _errors(self):
        try:
            yield
        except DBAPIError as exc:
            self.db.rollback()
            translated = translate(exc)
            if translated is exc:
                raise
            raise translated from exc

    def _row(self, collection: str, doc_id: str) -> Optional[Document]:
        return (
            self.db.query(Document)
            .filter(Document.collection == collection, Document.doc_id == doc_id)
            .populate_existing()
            .first()
        )

    def _commit(self, collection: str) -> None:
        self.db.commit()
        self._feed.publish(collection, self.db.get_bind())

    def _filtered(self, collection: str, filters: Optional[dict[str, Any]]):
        q = self.db.query(Document).filter(Document.collection == collection)
        for name, value in (filters or {}).items():
            q = q.filter(_field(name, value) == value)
        return q

    def _check_index(self, collection: str, filters: Optional[dict[str, Any]], order_by: str) -> None:
        if not filters:
            return
        key = (collection, frozenset(filters), order_by)
        if key not in self.indexes:
            raise MissingIndexError(collection, sorted(filters), order_by)

    # ------------------------------------------------------------------
    # point operations
    # ------------------------------------------------------------------
    def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        with self._errors():
            row = self._row(collection, doc_id)
        return dict(row.data) if row else None

    def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Create the document or replace it wholesale."""
        encoded = _encode(data, datetime.now(timezone.utc))
        with self._errors():
            row = self._row(collection, doc_id)
            if row is None:
                self.db.add(Document(collection=collection, doc_id=doc_id, data=encoded, version=1))
            else:
                row.data = encoded
                row.version += 1
            self._commit(collection)

    def add(self, collection: str, data: dict[str, Any], id_field: Optional[str] = None) -> str:
        """Create a document under a generated id and return the id.

        With ``id_field`` the id is also written into the document itself.
        """
        doc_id = str(uuid.uuid4())
        if id_field:
            data = {**data, id_field: doc_id}
        encoded = _encode(data, datetime.now(timezone.utc))
        with self._errors():
            self.db.add(Document(collection=collection, doc_id=doc_id, data=encoded, version=1))
            self._commit(collection)
        return doc_id

    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Patch top-level fields; the rest of the document is left as is."""
        encoded = _encode(fields, datetime.now(timezone.utc))
        with self._errors():
            row = self._row(collection, doc_id)
            if row is None:
                raise DocumentNotFoundError(collection, doc_id)
            data = dict(row.data)
            data.update(encoded)
            row.data = data
            row.version += 1
            self._commit(collection)
        return data

    def delete(self, collection: str, doc_id: str) -> bool:
        with self._errors():
            row = self._row(collection, doc_id)
            if row is None:
                return False
            self.db.delete(row)
            self._commit(collection)
        return True

    def mutate(
        self,
        collection: str,
        doc_id: str,
        fn: Callable[[dict[str, Any]], Optional[dict[str, Any]]],
        max_attempts: Optional[int] = None,
    ) -> Optional[dict[str, Any]]:
        """Read-modify-write guarded by the document version.

        ``fn`` gets a copy of the current data and returns the new data, or
        None to leave the document untouched. If another writer commits in
        between, the document is re-read and ``fn`` runs again. Returns the
        resulting data, or None when the document does not exist.
        """
        attempts = max_attempts or settings.MEMBERSHIP_MAX_ATTEMPTS
        for attempt in range(1, attempts + 1):
            with self._errors():
                row = self._row(collection, doc_id)
                if row is None:
                    return None
                current = dict(row.data)
                version = row.version
                row_id = row.id
                changed = fn(copy.deepcopy(current))
                if changed is None:
                    return current
                encoded = _encode(changed, datetime.now(timezone.utc))
                result = self.db.execute(
                    update(Document)
                    .where(Document.id == row_id, Document.version == version)
                    .values(data=encoded, version=version + 1, updated_at=func.now())
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 1:
                    self._commit(collection)
                    return encoded
                self.db.rollback()
            logger.info("Version conflict on %s/%s (attempt %d/%d)", collection, doc_id, attempt, attempts)
        raise ConflictError(f"Gave up writing {collection}/{doc_id} after {attempts} attempts")

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------
    def query(
        self,
        collection: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        direction: str = "asc",
    ) -> list[dict[str, Any]]:
        """Equality-filtered query; unordered results come back in insertion order."""
        with self._errors():
            q = self._filtered(collection, filters)
            if order_by:
                self._check_index(collection, filters, order_by)
                key = Document.data[order_by].as_string()
                q = q.order_by(key.desc() if direction == "desc" else key.asc(), Document.id)
            else:
                q = q.order_by(Document.id)
            return [dict(row.data) for row in q.all()]

    def delete_where(self, collection: str, filters: dict[str, Any]) -> int:
        with self._errors():
            rows = self._filtered(collection, filters).all()
            for row in rows:
                self.db.delete(row)
            if rows:
                self._commit(collection)
        return len(rows)

    # ------------------------------------------------------------------
    # live listeners
    # ------------------------------------------------------------------
    def _detached(self, session: Session) -> "DocumentStore":
        return DocumentStore(session, indexes=self.indexes, feed=self._feed)

    def listen(
        self,
        collection: str,
        on_snapshot: Callable[[list[dict[str, Any]]], None],
        on_error: Optional[Callable[[Exception], None]] = None,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        direction: str = "asc",
    ) -> ListenerRegistration:
        """Deliver the query result now and after every write to ``collection``."""
        bind = self.db.get_bind()

        def fetch():
            with Session(bind=bind) as session:
                return self._detached(session).query(collection, filters, order_by, direction)

        return self._feed.register(Listener(collection, bind, fetch, on_snapshot, on_error))

    def listen_document(
        self,
        collection: str,
        doc_id: str,
        on_snapshot: Callable[[dict[str, Any]], None],
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> ListenerRegistration:
        """Deliver a single document while it exists."""
        bind = self.db.get_bind()

        def fetch():
            with Session(bind=bind) as session:
                return self._detached(session).get(collection, doc_id)

        return self._feed.register(
            Listener(collection, bind, fetch, on_snapshot, on_error, skip_missing=True)
        )
