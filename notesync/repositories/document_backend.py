"""Document database backends.

Documents live in per-user collections (``users/{userId}/{collection}/{docId}``).
``SQLDocumentBackend`` keeps them as JSON bodies in any SQLAlchemy database and
pushes full collection snapshots to listeners after every commit.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from notesync.models.document import DocumentRecord
from notesync.utils.codec import Document, from_json, to_json
from notesync.utils.datetime import utc_now
from notesync.utils.events import ListenerRegistry, Subscription
from notesync.utils.exceptions import RemoteError, WriteError

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[list[Document]], None]


@dataclass(frozen=True)
class WriteOp:
    """One write of a batch: set (optionally merged), field update or delete."""

    kind: Literal["set", "update", "delete"]
    collection: str
    doc_id: str
    data: Document = field(default_factory=dict)
    merge: bool = False

    @classmethod
    def set(cls, collection: str, doc_id: str, data: Document, merge: bool = False) -> "WriteOp":
        return cls("set", collection, doc_id, data, merge)

    @classmethod
    def update(cls, collection: str, doc_id: str, fields: Document) -> "WriteOp":
        return cls("update", collection, doc_id, fields)

    @classmethod
    def delete(cls, collection: str, doc_id: str) -> "WriteOp":
        return cls("delete", collection, doc_id)


class DocumentBackend(ABC):
    """Abstract document database scoped by user and collection."""

    @abstractmethod
    def get(self, user_id: str, collection: str, doc_id: str) -> Document | None:
        pass

    @abstractmethod
    def get_all(self, user_id: str, collection: str, limit: int | None = None) -> list[Document]:
        pass

    @abstractmethod
    def commit(self, user_id: str, ops: Sequence[WriteOp]) -> None:
        """Apply all operations atomically, or none of them."""

    @abstractmethod
    def listen(self, user_id: str, collection: str, listener: SnapshotListener) -> Subscription:
        """Deliver the current snapshot now and a new one after every change."""

    def set(self, user_id: str, collection: str, doc_id: str, data: Document, merge: bool = False) -> None:
        self.commit(user_id, [WriteOp.set(collection, doc_id, data, merge)])

    def update(self, user_id: str, collection: str, doc_id: str, fields: Document) -> None:
        self.commit(user_id, [WriteOp.update(collection, doc_id, fields)])

    def delete(self, user_id: str, collection: str, doc_id: str) -> None:
        self.commit(user_id, [WriteOp.delete(collection, doc_id)])


class SQLDocumentBackend(DocumentBackend):
    """Document backend over a SQL database, one row per document."""

    def __init__(self, engine: Engine):
        """
        Initialize the backend.

        Args:
            engine: Engine whose database holds the documents table
        """
        self.engine = engine
        self.listeners = ListenerRegistry()

    def _record(self, session: Session, user_id: str, collection: str, doc_id: str) -> DocumentRecord | None:
        return session.get(DocumentRecord, (user_id, collection, doc_id))

    @staticmethod
    def _body(record: DocumentRecord) -> Document | None:
        try:
            body = from_json(record.body)
        except (ValueError, TypeError, OverflowError) as e:
            logger.warning(f"Corrupt body for {record.collection}/{record.doc_id}: {e}")
            return None
        return body if isinstance(body, dict) else None

    def get(self, user_id: str, collection: str, doc_id: str) -> Document | None:
        try:
            with Session(self.engine) as session:
                record = self._record(session, user_id, collection, doc_id)
                return self._body(record) if record else None
        except SQLAlchemyError as e:
            raise RemoteError(f"Failed to read {collection}/{doc_id}: {e}") from e

    def get_all(self, user_id: str, collection: str, limit: int | None = None) -> list[Document]:
        statement = (
            select(DocumentRecord)
            .where(DocumentRecord.user_id == user_id, DocumentRecord.collection == collection)
            .order_by(DocumentRecord.doc_id)  # type: ignore[arg-type]
        )
        if limit is not None:
            statement = statement.limit(limit)

        try:
            with Session(self.engine) as session:
                records = session.exec(statement).all()
                bodies = [self._body(record) for record in records]
        except SQLAlchemyError as e:
            raise RemoteError(f"Failed to read {collection}: {e}") from e
        return [body for body in bodies if body is not None]

    def _apply(self, session: Session, user_id: str, op: WriteOp) -> None:
        record = self._record(session, user_id, op.collection, op.doc_id)

        if op.kind == "delete":
            if record is not None:
                session.delete(record)
            return

        if op.kind == "update":
            if record is None:
                raise WriteError(f"No document to update: {op.collection}/{op.doc_id}")
            body = self._body(record) or {}
            body.update(op.data)
        elif op.merge and record is not None:
            body = self._body(record) or {}
            body.update(op.data)
        else:
            body = dict(op.data)

        if record is None:
            record = DocumentRecord(
                user_id=user_id, collection=op.collection, doc_id=op.doc_id, body=to_json(body)
            )
        else:
            record.body = to_json(body)
            record.updated_at = utc_now()
        session.add(record)

    def commit(self, user_id: str, ops: Sequence[WriteOp]) -> None:
        if not ops:
            return

        with Session(self.engine) as session:
            try:
                for op in ops:
                    self._apply(session, user_id, op)
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                raise WriteError(f"Failed to commit {len(ops)} write(s): {e}") from e
            except WriteError:
                session.rollback()
                raise

        logger.debug(f"Committed {len(ops)} write(s) for user {user_id}")

        # Notify in the order collections were first touched by the batch
        touched: list[str] = []
        for op in ops:
            if op.collection not in touched:
                touched.append(op.collection)
        self._notify(user_id, touched)

    def _notify(self, user_id: str, collections: list[str]) -> None:
        snapshots: list[tuple[tuple[str, str], list[Document]]] = []
        for collection in collections:
            key = (user_id, collection)
            if self.listeners.has_listeners(key):
                snapshots.append((key, self.get_all(user_id, collection)))

        for key, documents in snapshots:
            self.listeners.broadcast(key, documents)

    def listen(self, user_id: str, collection: str, listener: SnapshotListener) -> Subscription:
        subscription = self.listeners.subscribe((user_id, collection), listener)
        try:
            listener(self.get_all(user_id, collection))
        except Exception:
            subscription.cancel()
            raise
        return subscription


def describe_ops(ops: Sequence[WriteOp]) -> str:
    """Short summary of a batch for log lines."""
    counts: dict[str, Any] = {}
    for op in ops:
        counts[op.kind] = counts.get(op.kind, 0) + 1
    return ", ".join(f"{count} {kind}" for kind, count in counts.items())
