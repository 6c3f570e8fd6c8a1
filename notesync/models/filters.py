"""Note list filters and sort orders."""

from dataclasses import dataclass
from enum import Enum
from typing import Union


@dataclass(frozen=True)
class AllNotes:
    """Every note that is not soft-deleted."""


@dataclass(frozen=True)
class InFolder:
    """Non-deleted notes filed in one folder."""

    folder_id: str


@dataclass(frozen=True)
class WithTag:
    """Non-deleted notes carrying one tag."""

    tag_id: str


@dataclass(frozen=True)
class RecentlyDeleted:
    """Soft-deleted notes awaiting restore or permanent deletion."""


@dataclass(frozen=True)
class Pinned:
    """Non-deleted pinned notes."""


NoteFilter = Union[AllNotes, InFolder, WithTag, RecentlyDeleted, Pinned]


class SortOrder(str, Enum):
    UPDATED_DESCENDING = "updated_desc"
    TITLE_ASCENDING = "title_asc"
    CREATED_DESCENDING = "created_desc"
