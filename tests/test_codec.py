"""Tests for the document codec."""

import json
from datetime import UTC, datetime

import pytest

from notesync.models import Folder, Note, Tag
from notesync.utils.codec import (
    FOLDERS,
    NOTES,
    TAGS,
    decode,
    decode_many,
    encode,
    encode_fields,
    from_json,
    to_json,
)
from notesync.utils.exceptions import InvalidDocument

NOW = datetime(2025, 7, 19, 12, 0, 0, tzinfo=UTC)


def _note_document(**overrides):
    data = {
        "id": "NOTE-1",
        "userId": "user-1",
        "title": "Old note",
        "createdAt": NOW,
        "updatedAt": NOW,
    }
    data.update(overrides)
    return data


def test_note_round_trip(sample_note: Note):
    """Test that encoding then decoding a note keeps every field."""
    decoded = decode(NOTES, encode(sample_note))
    assert decoded.same_fields(sample_note)


def test_folder_and_tag_round_trip(sample_folder: Folder, sample_tag: Tag):
    """Test folder and tag round trips."""
    assert decode(FOLDERS, encode(sample_folder)).same_fields(sample_folder)
    assert decode(TAGS, encode(sample_tag)).same_fields(sample_tag)


def test_json_round_trip_keeps_timestamps(sample_note: Note):
    """Test the persisted JSON shape restores timestamps as aware datetimes."""
    text = to_json(encode(sample_note))
    assert '"_seconds"' in text

    decoded = decode(NOTES, from_json(text))
    assert decoded.same_fields(sample_note)
    assert decoded.created_at.tzinfo is not None


def test_encode_uses_wire_names(sample_note: Note):
    """Test camelCase field names and nested block documents."""
    data = encode(sample_note)
    assert data["userId"] == sample_note.user_id
    assert data["tagIds"] == ["TAG-1", "TAG-2"]
    assert data["isPinned"] is True
    assert data["contentBlocks"][1]["type"] == "transcript"
    assert data["contentBlocks"][1]["metadata"]["imageURL"].startswith("https://")
    assert "pdfURL" not in data["contentBlocks"][1]["metadata"]
    assert "metadata" not in data["contentBlocks"][0]


def test_encode_omits_cleared_optionals():
    """Test unset folder and deletion time are omitted from a plain encoding."""
    data = encode(Note(user_id="user-1"))
    assert "folderId" not in data
    assert "deletedAt" not in data


def test_merge_encoding_writes_explicit_nulls():
    """Test a merge encoding nulls the cleared optionals so the remote value is removed."""
    data = encode(Note(user_id="user-1"), merge=True)
    assert data["folderId"] is None
    assert data["deletedAt"] is None


def test_encode_fields_picks_patch(sample_note: Note):
    """Test building a field patch from a note."""
    moved = sample_note.model_copy(update={"folder_id": None})
    patch = encode_fields(moved, "folderId", "updatedAt")
    assert patch == {"folderId": None, "updatedAt": sample_note.updated_at}


def test_encode_fields_rejects_unknown_field(sample_note: Note):
    """Test that an unknown wire field is an error."""
    with pytest.raises(KeyError):
        encode_fields(sample_note, "colour")


def test_decode_defaults_for_old_documents():
    """Test documents written before flags, tags and blocks existed."""
    note = decode(NOTES, _note_document())
    assert note.blocks == ()
    assert note.tag_ids == ()
    assert note.folder_id is None
    assert note.is_pinned is False
    assert note.is_deleted is False
    assert note.deleted_at is None


@pytest.mark.parametrize("missing", ["id", "userId", "title", "createdAt", "updatedAt"])
def test_decode_requires_fields(missing: str):
    """Test that each required field is enforced."""
    data = _note_document()
    del data[missing]
    with pytest.raises(InvalidDocument) as exc_info:
        decode(NOTES, data)
    assert missing in exc_info.value.detail


def test_decode_rejects_mistyped_fields():
    """Test that a wrongly typed required field fails decoding."""
    with pytest.raises(InvalidDocument):
        decode(NOTES, _note_document(title=42))
    with pytest.raises(InvalidDocument):
        decode(NOTES, _note_document(createdAt="2025-07-19"))


def test_decode_rejects_unknown_block_type():
    """Test that a malformed block invalidates the note."""
    block = {"id": "B", "type": "hologram", "content": "", "createdAt": NOW, "updatedAt": NOW}
    with pytest.raises(InvalidDocument):
        decode(NOTES, _note_document(contentBlocks=[block]))


def test_decode_normalizes_deleted_state():
    """Test isDeleted and deletedAt are made consistent."""
    flagged = decode(NOTES, _note_document(isDeleted=True))
    assert flagged.is_deleted is True
    assert flagged.deleted_at == NOW

    restored = decode(NOTES, _note_document(isDeleted=False, deletedAt=NOW))
    assert restored.deleted_at is None


def test_decode_treats_naive_timestamps_as_utc():
    """Test naive datetimes are read as UTC."""
    note = decode(NOTES, _note_document(createdAt=datetime(2025, 1, 1, 8, 0)))
    assert note.created_at == datetime(2025, 1, 1, 8, 0, tzinfo=UTC)


def test_decode_drops_duplicate_and_invalid_tag_ids():
    """Test tag ids are deduplicated and non-strings skipped."""
    note = decode(NOTES, _note_document(tagIds=["A", "B", "A", 7]))
    assert note.tag_ids == ("A", "B")


def test_decode_many_skips_corrupt_documents(sample_folder: Folder):
    """Test a single corrupt document does not fail the whole read."""
    documents = [encode(sample_folder), {"id": "broken"}, "not a document"]
    folders = decode_many(FOLDERS, documents)
    assert folders == [sample_folder]


@pytest.mark.parametrize(
    "timestamp",
    [
        {"_seconds": "oops", "_nanoseconds": 0},
        {"_seconds": 99999999999999999, "_nanoseconds": 0},
        {"_seconds": 1, "_nanoseconds": None},
    ],
)
def test_unreadable_json_timestamp_is_an_invalid_field(sample_folder: Folder, timestamp: dict):
    """Test a malformed timestamp parses as a mapping and the document is rejected."""
    body = json.dumps([{**json.loads(to_json(encode(sample_folder))), "createdAt": timestamp}])

    [document] = from_json(body)
    assert document["createdAt"] == timestamp
    with pytest.raises(InvalidDocument):
        decode(FOLDERS, document)
    assert decode_many(FOLDERS, [document]) == []
