"""On-device cache of encoded collections."""

import logging
from collections.abc import Iterable

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from notesync.models.document import CacheEntry
from notesync.models.entities import Entity
from notesync.utils.codec import FOLDERS, NOTES, TAGS, decode_many, encode, from_json, to_json
from notesync.utils.datetime import utc_now

logger = logging.getLogger(__name__)

CACHE_KEYS = {
    NOTES: "saved_notes",
    FOLDERS: "saved_folders",
    TAGS: "saved_tags",
}


class LocalCacheRepository:
    """
    Key/value cache holding one JSON array of documents per collection.

    Loading never fails: a missing or corrupt entry reads as empty.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    @staticmethod
    def key_for(collection: str, user_id: str | None = None) -> str:
        """
        Cache key of a collection.

        Args:
            collection: One of notes, folders, tags
            user_id: Scope the key to a signed-in user's mirror

        Returns:
            Key such as ``saved_notes`` or ``saved_notes@{user_id}``
        """
        key = CACHE_KEYS[collection]
        return f"{key}@{user_id}" if user_id else key

    def save(self, key: str, entities: Iterable[Entity]) -> None:
        payload = to_json([encode(entity) for entity in entities])
        with Session(self.engine) as session:
            entry = session.get(CacheEntry, key)
            if entry is None:
                entry = CacheEntry(key=key, value=payload)
            else:
                entry.value = payload
                entry.updated_at = utc_now()
            session.add(entry)
            session.commit()
        logger.debug(f"Saved cache entry {key}")

    def load(self, key: str, collection: str) -> list[Entity]:
        """Read a cached array; empty when absent or unreadable."""
        try:
            with Session(self.engine) as session:
                entry = session.get(CacheEntry, key)
                value = entry.value if entry else None
        except SQLAlchemyError as e:
            logger.warning(f"Could not read cache entry {key}: {e}")
            return []

        if value is None:
            return []

        try:
            documents = from_json(value)
        except (ValueError, TypeError, OverflowError) as e:
            logger.warning(f"Discarding corrupt cache entry {key}: {e}")
            return []
        if not isinstance(documents, list):
            logger.warning(f"Discarding cache entry {key}: not an array")
            return []

        return decode_many(collection, documents)

    def save_collection(self, collection: str, entities: Iterable[Entity], user_id: str | None = None) -> None:
        self.save(self.key_for(collection, user_id), entities)

    def load_collection(self, collection: str, user_id: str | None = None) -> list[Entity]:
        return self.load(self.key_for(collection, user_id), collection)

    def clear(self, key: str) -> None:
        with Session(self.engine) as session:
            entry = session.get(CacheEntry, key)
            if entry is not None:
                session.delete(entry)
                session.commit()
        logger.debug(f"Cleared cache entry {key}")
