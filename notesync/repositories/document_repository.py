"""Entity-level access to the user's remote collections."""

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import TYPE_CHECKING

from notesync.models.entities import Entity, new_id
from notesync.repositories.document_backend import DocumentBackend, WriteOp, describe_ops
from notesync.utils.codec import Document, decode, decode_many, encode, encode_timestamp
from notesync.utils.events import Subscription
from notesync.utils.exceptions import RemoteError, WriteError

if TYPE_CHECKING:
    from notesync.services.auth_service import AuthSession

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[list[Entity]], None]


class DocumentRepository:
    """
    Remote store adapter.

    Every call is scoped to the session's user and fails with Unauthenticated
    when nobody is signed in. Blocking backend calls run in a worker thread.
    Failures surface as RemoteError / WriteError; nothing is retried here.
    """

    def __init__(self, backend: DocumentBackend, session: "AuthSession"):
        """
        Initialize the repository.

        Args:
            backend: Document database to talk to
            session: Auth session providing the current user id
        """
        self.backend = backend
        self.session = session

    async def create(self, collection: str, entity: Entity, explicit_id: str | None = None) -> str:
        """
        Write a new document.

        Args:
            collection: Target collection
            entity: Entity to encode
            explicit_id: Document id to use; a fresh id is generated when omitted

        Returns:
            Id of the written document

        Raises:
            WriteError: If the backend rejects the write
        """
        user_id = self.session.require_user_id()
        doc_id = explicit_id or new_id()
        try:
            await asyncio.to_thread(self.backend.set, user_id, collection, doc_id, encode(entity))
        except WriteError:
            raise
        except RemoteError as e:
            raise WriteError(e.detail) from e
        logger.debug(f"Created {collection}/{doc_id}")
        return doc_id

    async def read(self, collection: str, doc_id: str) -> Entity | None:
        """Read one document; None when it does not exist."""
        user_id = self.session.require_user_id()
        data = await asyncio.to_thread(self.backend.get, user_id, collection, doc_id)
        if data is None:
            return None
        return decode(collection, data)

    async def read_all(self, collection: str, limit: int | None = None) -> list[Entity]:
        """Read a whole collection, skipping documents that fail to decode."""
        user_id = self.session.require_user_id()
        documents = await asyncio.to_thread(self.backend.get_all, user_id, collection, limit)
        return decode_many(collection, documents)

    async def update(self, collection: str, doc_id: str, entity: Entity) -> None:
        """Merge-write an entity; cleared optional fields are written as null."""
        user_id = self.session.require_user_id()
        await asyncio.to_thread(
            self.backend.set, user_id, collection, doc_id, encode(entity, merge=True), True
        )
        logger.debug(f"Updated {collection}/{doc_id}")

    async def update_fields(self, collection: str, doc_id: str, fields: Document) -> None:
        """Patch individual fields of an existing document."""
        user_id = self.session.require_user_id()
        await asyncio.to_thread(
            self.backend.update, user_id, collection, doc_id, _normalize(fields)
        )
        logger.debug(f"Patched {collection}/{doc_id}: {', '.join(fields)}")

    async def delete(self, collection: str, doc_id: str) -> None:
        user_id = self.session.require_user_id()
        await asyncio.to_thread(self.backend.delete, user_id, collection, doc_id)
        logger.debug(f"Deleted {collection}/{doc_id}")

    async def batch(self, ops: Sequence[WriteOp]) -> None:
        """Apply writes as one atomic unit."""
        user_id = self.session.require_user_id()
        await asyncio.to_thread(self.backend.commit, user_id, list(ops))
        logger.info(f"Committed batch for user {user_id}: {describe_ops(ops)}")

    async def subscribe(self, collection: str, on_change: SnapshotCallback) -> Subscription:
        """
        Open a live query on a collection.

        The callback receives the full decoded snapshot once right away and
        again after every change, possibly from a worker thread. Corrupt
        documents are left out of the snapshot.

        Returns:
            Handle whose cancel() must be called once to stop updates
        """
        user_id = self.session.require_user_id()

        def deliver(documents: list[Document]) -> None:
            on_change(decode_many(collection, documents))

        subscription = await asyncio.to_thread(self.backend.listen, user_id, collection, deliver)
        logger.info(f"Listening to {collection} for user {user_id}")
        return subscription

    # Batch operation builders

    @staticmethod
    def set_op(collection: str, entity: Entity, merge: bool = True) -> WriteOp:
        return WriteOp.set(collection, entity.id, encode(entity, merge=merge), merge)

    @staticmethod
    def update_op(collection: str, doc_id: str, fields: Document) -> WriteOp:
        return WriteOp.update(collection, doc_id, _normalize(fields))

    @staticmethod
    def delete_op(collection: str, doc_id: str) -> WriteOp:
        return WriteOp.delete(collection, doc_id)


def _normalize(fields: Document) -> Document:
    return {
        key: encode_timestamp(value) if isinstance(value, datetime) else value
        for key, value in fields.items()
    }
