"""Entity, filter and storage row models."""

from notesync.models.document import CacheEntry, DocumentRecord
from notesync.models.entities import (
    Block,
    BlockMetadata,
    BlockType,
    Entity,
    Folder,
    Note,
    Tag,
    new_id,
)
from notesync.models.filters import (
    AllNotes,
    InFolder,
    NoteFilter,
    Pinned,
    RecentlyDeleted,
    SortOrder,
    WithTag,
)

__all__ = [
    "AllNotes",
    "Block",
    "BlockMetadata",
    "BlockType",
    "CacheEntry",
    "DocumentRecord",
    "Entity",
    "Folder",
    "InFolder",
    "Note",
    "NoteFilter",
    "Pinned",
    "RecentlyDeleted",
    "SortOrder",
    "Tag",
    "WithTag",
    "new_id",
]
