# Overview: Document store over SQLAlchemy: atomic write batches, snapshot reads and live listeners.

"""
NumberFlow Document Store

================================================================================
PURPOSE: Give the lifecycle engine a collection/document API with all-or-nothing
multi-document batches and push notifications after every commit.
================================================================================

MODEL:
- A collection is a named set of JSON documents keyed by a string id.
- Writes are grouped in a WriteBatch (create / update / delete). A batch is
  checked against the write rules, applied inside one database transaction and
  committed once. Any failure rolls the whole batch back.
- After a successful commit, every listener subscribed to a touched collection
  receives a fresh snapshot of that collection.

DATES:
- datetime values inside documents are stored as {"$date": "<iso>"} and come
  back as UTC-naive datetimes.

FAILURES:
- Every rejected batch raises StoreWriteError carrying the path and the
  attempted operation. Nothing is retried here.
"""

from __future__ import annotations

import json
import threading
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Iterable, Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..permissions import OP_CREATE, OP_DELETE, OP_UPDATE, write_denial_reason
from ..records import Identity
from .numbering import contains_unset


DATE_TAG = "$date"

Listener = Callable[[str, list], None]


class StoreWriteError(Exception):
    """
    Raised when the store rejects a write or batch.

    reason is one of:
    - "permission-denied": a write rule denied one of the operations
    - "invalid-argument": a document still contains UNSET values
    - "not-found": an update targeted a missing document
    - "aborted": the database refused the transaction (conflict, lock, constraint)
    """

    def __init__(
        self,
        *,
        path: str,
        operation: str,
        reason: str = "permission-denied",
        info: Any = None,
        detail: str | None = None,
    ):
        self.path = path
        self.operation = operation
        self.reason = reason
        self.info = info
        self.detail = detail
        payload = {"operation": operation, "path": path, "reason": reason}
        if detail:
            payload["detail"] = detail
        if info is not None and operation in (OP_CREATE, OP_UPDATE, "write"):
            payload["data"] = info
        super().__init__(
            "Document store rejected the request:\n"
            + json.dumps(payload, indent=2, default=str)
        )

    def to_dict(self) -> dict:
        return {
            "error": "Write rejected",
            "reason": self.reason,
            "path": self.path,
            "operation": self.operation,
            "detail": self.detail,
        }


class _MissingDocument(Exception):
    def __init__(self, path: str):
        super().__init__(path)
        self.path = path


def encode_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return {DATE_TAG: value.isoformat()}
    if isinstance(value, date):
        return {DATE_TAG: datetime(value.year, value.month, value.day).isoformat()}
    if isinstance(value, Mapping):
        return {k: encode_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(v) for v in value]
    return value


def decode_value(value: Any) -> Any:
    if isinstance(value, dict):
        if len(value) == 1 and DATE_TAG in value:
            return datetime.fromisoformat(value[DATE_TAG])
        return {k: decode_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [decode_value(v) for v in value]
    return value


def new_document_id() -> str:
    return uuid.uuid4().hex


@dataclass
class WriteOp:
    kind: str
    collection: str
    doc_id: str
    data: dict | None = None

    @property
    def path(self) -> str:
        return f"{self.collection}/{self.doc_id}"


class WriteBatch:
    """
    Collects writes and commits them atomically.

    Ids for created documents are assigned when the write is queued, so a
    caller can reference them before commit.
    """

    def __init__(self, store: "DocumentStore", identity: Identity | None):
        self._store = store
        self.identity = identity
        self.ops: list[WriteOp] = []
        self.committed = False

    def __len__(self) -> int:
        return len(self.ops)

    def set(self, collection: str, data: Mapping[str, Any], doc_id: str | None = None) -> str:
        doc_id = doc_id or new_document_id()
        self.ops.append(WriteOp(OP_CREATE, collection, doc_id, dict(data)))
        return doc_id

    def update(self, collection: str, doc_id: str, changes: Mapping[str, Any]) -> None:
        self.ops.append(WriteOp(OP_UPDATE, collection, doc_id, dict(changes)))

    def delete(self, collection: str, doc_id: str) -> None:
        self.ops.append(WriteOp(OP_DELETE, collection, doc_id))

    @property
    def operation(self) -> str:
        kinds = {op.kind for op in self.ops}
        return kinds.pop() if len(kinds) == 1 else "write"

    @property
    def path(self) -> str:
        if len(self.ops) == 1:
            return self.ops[0].path
        collections = list(dict.fromkeys(op.collection for op in self.ops))
        return "/".join(collections)

    def commit(self, *, info: Any = None) -> None:
        if self.committed:
            raise RuntimeError("WriteBatch has already been committed")
        self._store._commit(self, info=info)
        self.committed = True


class DocumentStore:
    """
    Flask extension exposing the collections to the service layer.

    Listener registration is thread-safe; listeners run on the thread that
    committed the batch.
    """

    def __init__(self, app=None):
        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self._lock = threading.RLock()
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        app.extensions["document_store"] = self

    # ----------------------------------------------------------------------
    # Reads
    # ----------------------------------------------------------------------

    def fetch(self, collection: str) -> list[dict]:
        """Snapshot of a collection: one dict per document, `id` included."""
        from ..extensions import db
        from ..models import Document

        rows = (
            db.session.query(Document)
            .filter(Document.collection == collection)
            .order_by(Document.created_at.asc(), Document.id.asc())
            .all()
        )
        return [self._to_record(row) for row in rows]

    def get(self, collection: str, doc_id: str) -> dict | None:
        from ..extensions import db
        from ..models import Document

        row = db.session.get(Document, (collection, doc_id))
        return self._to_record(row) if row is not None else None

    @staticmethod
    def _to_record(row) -> dict:
        record = decode_value(row.data or {})
        record["id"] = row.id
        return record

    # ----------------------------------------------------------------------
    # Writes
    # ----------------------------------------------------------------------

    def batch(self, identity: Identity | None) -> WriteBatch:
        return WriteBatch(self, identity)

    def add(self, collection: str, data: Mapping[str, Any], identity: Identity | None, *, doc_id: str | None = None) -> str:
        batch = self.batch(identity)
        new_id = batch.set(collection, data, doc_id=doc_id)
        batch.commit(info=dict(data))
        return new_id

    def update(self, collection: str, doc_id: str, changes: Mapping[str, Any], identity: Identity | None) -> None:
        batch = self.batch(identity)
        batch.update(collection, doc_id, changes)
        batch.commit(info=dict(changes))

    def delete(self, collection: str, doc_id: str, identity: Identity | None) -> None:
        batch = self.batch(identity)
        batch.delete(collection, doc_id)
        batch.commit()

    def _check(self, batch: WriteBatch, info: Any) -> None:
        for op in batch.ops:
            denial = write_denial_reason(batch.identity, op.collection, op.kind)
            if denial:
                raise StoreWriteError(
                    path=batch.path,
                    operation=batch.operation,
                    reason="permission-denied",
                    info=info,
                    detail=denial,
                )
            if op.data is not None and contains_unset(op.data):
                raise StoreWriteError(
                    path=op.path,
                    operation=op.kind,
                    reason="invalid-argument",
                    info=info,
                    detail="document contains UNSET values; sanitize before writing",
                )

    def _commit(self, batch: WriteBatch, *, info: Any = None) -> None:
        from ..extensions import db
        from ..models import Document

        if not batch.ops:
            return
        self._check(batch, info)

        try:
            for op in batch.ops:
                row = db.session.get(Document, (op.collection, op.doc_id))
                if op.kind == OP_CREATE:
                    if row is None:
                        db.session.add(Document(collection=op.collection, id=op.doc_id, data=encode_value(op.data)))
                    else:
                        row.data = encode_value(op.data)
                elif op.kind == OP_UPDATE:
                    if row is None:
                        raise _MissingDocument(op.path)
                    merged = dict(row.data or {})
                    merged.update(encode_value(op.data))
                    row.data = merged
                elif op.kind == OP_DELETE:
                    if row is not None:
                        db.session.delete(row)
            db.session.commit()
        except _MissingDocument as exc:
            db.session.rollback()
            raise StoreWriteError(
                path=exc.path,
                operation=OP_UPDATE,
                reason="not-found",
                info=info,
                detail="no document to update",
            ) from None
        except (StaleDataError, SQLAlchemyError) as exc:
            db.session.rollback()
            raise StoreWriteError(
                path=batch.path,
                operation=batch.operation,
                reason="aborted",
                info=info,
                detail=str(exc),
            ) from exc

        self._notify({op.collection for op in batch.ops})

    # ----------------------------------------------------------------------
    # Live listeners
    # ----------------------------------------------------------------------

    def subscribe(self, collection: str, listener: Listener) -> Callable[[], None]:
        """
        Register `listener(collection, snapshot)` and deliver the current snapshot.

        Returns an unsubscribe callable; calling it more than once is harmless.
        """
        with self._lock:
            self._listeners[collection].append(listener)
        listener(collection, self.fetch(collection))

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(collection, [])
                if listener in listeners:
                    listeners.remove(listener)

        return unsubscribe

    def listener_count(self, collection: str | None = None) -> int:
        with self._lock:
            if collection is not None:
                return len(self._listeners.get(collection, []))
            return sum(len(v) for v in self._listeners.values())

    def _notify(self, collections: Iterable[str]) -> None:
        for collection in collections:
            with self._lock:
                listeners = list(self._listeners.get(collection, []))
            if not listeners:
                continue
            snapshot = self.fetch(collection)
            for listener in listeners:
                listener(collection, [dict(r) for r in snapshot])
