"""Filtering, search and ordering over a notes snapshot.

All functions are pure: they never mutate their input and can run against a
store snapshot from any number of readers.
"""

from collections.abc import Iterable

from notesync.models.entities import Note
from notesync.models.filters import (
    AllNotes,
    InFolder,
    NoteFilter,
    Pinned,
    RecentlyDeleted,
    SortOrder,
    WithTag,
)


def by_filter(notes: Iterable[Note], note_filter: NoteFilter) -> list[Note]:
    """
    Select the notes matching a filter.

    Only RecentlyDeleted returns soft-deleted notes; every other filter
    excludes them.

    Raises:
        TypeError: If the filter is not a known variant
    """
    if isinstance(note_filter, RecentlyDeleted):
        return [note for note in notes if note.is_deleted]

    live = [note for note in notes if not note.is_deleted]
    if isinstance(note_filter, AllNotes):
        return live
    if isinstance(note_filter, InFolder):
        return [note for note in live if note.folder_id == note_filter.folder_id]
    if isinstance(note_filter, WithTag):
        return [note for note in live if note_filter.tag_id in note.tag_ids]
    if isinstance(note_filter, Pinned):
        return [note for note in live if note.is_pinned]
    raise TypeError(f"Unknown note filter: {note_filter!r}")


def search(notes: Iterable[Note], query: str) -> list[Note]:
    """Case-insensitive substring match on the title or any block's content."""
    notes = list(notes)
    if not query:
        return notes

    needle = query.casefold()
    return [
        note
        for note in notes
        if needle in note.title.casefold()
        or any(needle in block.content.casefold() for block in note.blocks)
    ]


def sort(notes: Iterable[Note], order: SortOrder = SortOrder.UPDATED_DESCENDING) -> list[Note]:
    """Stable sort into a new list."""
    if order is SortOrder.UPDATED_DESCENDING:
        return sorted(notes, key=lambda note: note.updated_at, reverse=True)
    if order is SortOrder.CREATED_DESCENDING:
        return sorted(notes, key=lambda note: note.created_at, reverse=True)
    if order is SortOrder.TITLE_ASCENDING:
        return sorted(notes, key=lambda note: note.title.casefold())
    raise ValueError(f"Unknown sort order: {order}")


def query_notes(
    notes: Iterable[Note],
    note_filter: NoteFilter = AllNotes(),
    text: str = "",
    order: SortOrder = SortOrder.UPDATED_DESCENDING,
) -> list[Note]:
    """Filter, then search, then sort."""
    return sort(search(by_filter(notes, note_filter), text), order)


def recent_notes(notes: Iterable[Note], limit: int = 10) -> list[Note]:
    """Most recently updated live notes."""
    return query_notes(notes)[:limit]
