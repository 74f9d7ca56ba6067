"""Document store over SQLite: named collections of JSON documents.

Every write made through a store instance is pushed to the live subscriptions
registered on that instance for the written collection. Writes are
last-write-wins; there is no version check and no multi-document transaction.
"""
import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from tutorhub.db import get_connection
from tutorhub.errors import DocumentNotFound, StoreUnavailable

logger = logging.getLogger(__name__)

Snapshot = list[dict]


def server_timestamp() -> str:
    """Current UTC time as an ISO-8601 string; sorts chronologically."""
    return datetime.now(timezone.utc).isoformat()


@dataclass
class _Subscription:
    collection: str
    on_snapshot: Callable[[Snapshot], None]
    filters: dict = field(default_factory=dict)
    order_by: Optional[str] = None
    descending: bool = False
    limit: Optional[int] = None
    on_error: Optional[Callable[[Exception], None]] = None


class DocumentStore:
    def __init__(self, db_path: str):
        self.db_path = db_path
        self._subscriptions: list[_Subscription] = []

    @contextmanager
    def _connect(self):
        conn = None
        try:
            conn = get_connection(self.db_path)
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"document store request failed: {exc}") from exc
        finally:
            if conn is not None:
                conn.close()

    @staticmethod
    def _to_doc(row) -> dict:
        doc = json.loads(row["data"])
        doc["id"] = row["id"]
        return doc

    def get(self, collection: str, doc_id: str) -> dict | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, data FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            ).fetchone()
        return self._to_doc(row) if row else None

    def set(self, collection: str, doc_id: str, doc: dict) -> None:
        """Create or fully replace a document."""
        data = {k: v for k, v in doc.items() if k != "id"}
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO documents (collection, id, data) VALUES (?, ?, ?)",
                (collection, doc_id, json.dumps(data)),
            )
        self._notify(collection)

    def add(self, collection: str, doc: dict) -> str:
        doc_id = uuid.uuid4().hex
        self.set(collection, doc_id, doc)
        return doc_id

    def update(self, collection: str, doc_id: str, partial: dict) -> None:
        """Merge top-level fields into an existing document."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT data FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            ).fetchone()
            if row is None:
                raise DocumentNotFound(collection, doc_id)
            data = json.loads(row["data"])
            data.update({k: v for k, v in partial.items() if k != "id"})
            conn.execute(
                "UPDATE documents SET data = ? WHERE collection = ? AND id = ?",
                (json.dumps(data), collection, doc_id),
            )
        self._notify(collection)

    def query(
        self,
        collection: str,
        filters: Optional[dict] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        """Equality-filtered, optionally ordered query over one collection."""
        sql = "SELECT id, data FROM documents WHERE collection = ?"
        params: list = [collection]
        for name, value in (filters or {}).items():
            if value is None:
                sql += " AND json_extract(data, ?) IS NULL"
                params.append(f"$.{name}")
            else:
                sql += " AND json_extract(data, ?) = ?"
                params.extend([f"$.{name}", int(value) if isinstance(value, bool) else value])
        if order_by:
            sql += f" ORDER BY json_extract(data, ?) {'DESC' if descending else 'ASC'}, id"
            params.append(f"$.{order_by}")
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._to_doc(r) for r in rows]

    def subscribe(
        self,
        collection: str,
        on_snapshot: Callable[[Snapshot], None],
        filters: Optional[dict] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> Callable[[], None]:
        """Deliver the query result now and after every write to the collection.

        Returns a callable that cancels the subscription.
        """
        sub = _Subscription(collection, on_snapshot, dict(filters or {}), order_by, descending, limit, on_error)
        self._subscriptions.append(sub)
        self._deliver(sub)

        def unsubscribe() -> None:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

        return unsubscribe

    def _deliver(self, sub: _Subscription) -> None:
        try:
            snapshot = self.query(sub.collection, sub.filters, sub.order_by, sub.descending, sub.limit)
        except StoreUnavailable as exc:
            self._fail(sub, exc)
            return
        try:
            sub.on_snapshot(snapshot)
        except Exception as exc:
            # The write that triggered delivery is already committed.
            self._fail(sub, exc)

    @staticmethod
    def _fail(sub: _Subscription, exc: Exception) -> None:
        if sub.on_error is None:
            logger.warning("Subscription on %s failed: %s", sub.collection, exc)
        else:
            sub.on_error(exc)

    def _notify(self, collection: str) -> None:
        for sub in list(self._subscriptions):
            if sub.collection == collection:
                self._deliver(sub)
