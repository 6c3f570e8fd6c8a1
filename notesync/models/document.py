"""Document and cache row models."""

from datetime import datetime

from sqlalchemy import Column, Index, Text
from sqlmodel import Field, SQLModel

from notesync.utils.datetime import utc_now


class DocumentRecord(SQLModel, table=True):  # type: ignore
    """One document of a user-scoped collection, stored as a JSON body."""

    __tablename__ = "documents"  # type: ignore

    user_id: str = Field(primary_key=True)
    collection: str = Field(primary_key=True)
    doc_id: str = Field(primary_key=True)

    # Codec JSON shape of the document
    body: str = Field(sa_column=Column(Text, nullable=False))

    updated_at: datetime = Field(default_factory=utc_now)

    __table_args__ = (Index("ix_documents_user_collection", "user_id", "collection"),)


class CacheEntry(SQLModel, table=True):  # type: ignore
    """Persisted array of encoded entities under a well-known key."""

    __tablename__ = "local_cache"  # type: ignore

    key: str = Field(primary_key=True)
    value: str = Field(sa_column=Column(Text, nullable=False))
    updated_at: datetime = Field(default_factory=utc_now)
