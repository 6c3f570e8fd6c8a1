"""Tests for the local cache."""

import json

import pytest
from sqlmodel import Session

from notesync.models import CacheEntry, Folder, Note
from notesync.repositories import LocalCacheRepository
from notesync.utils.codec import FOLDERS, NOTES, encode, to_json


def _write_raw(cache: LocalCacheRepository, key: str, value: str) -> None:
    with Session(cache.engine) as session:
        session.add(CacheEntry(key=key, value=value))
        session.commit()


def test_save_and_load(cache: LocalCacheRepository, sample_note: Note):
    """Test a saved collection loads back with identical fields."""
    other = Note(user_id="default_user", title="Second")
    cache.save_collection(NOTES, [sample_note, other])

    loaded = cache.load_collection(NOTES)
    assert loaded == [sample_note, other]
    assert loaded[0].same_fields(sample_note)


def test_save_overwrites_previous_value(cache: LocalCacheRepository, sample_folder: Folder):
    """Test saving replaces the whole array."""
    cache.save_collection(FOLDERS, [sample_folder])
    cache.save_collection(FOLDERS, [])
    assert cache.load_collection(FOLDERS) == []


def test_missing_key_loads_empty(cache: LocalCacheRepository):
    """Test an absent entry reads as empty."""
    assert cache.load_collection(NOTES) == []


def test_corrupt_entry_loads_empty(cache: LocalCacheRepository):
    """Test unreadable JSON and non-array values read as empty."""
    _write_raw(cache, "saved_notes", "{not json")
    assert cache.load("saved_notes", NOTES) == []

    _write_raw(cache, "saved_folders", '{"id": "x"}')
    assert cache.load("saved_folders", FOLDERS) == []


def test_corrupt_document_is_skipped(cache: LocalCacheRepository, sample_folder: Folder):
    """Test one bad document does not discard the others."""
    _write_raw(cache, "saved_folders", to_json([encode(sample_folder), {"id": "half"}]))
    assert cache.load_collection(FOLDERS) == [sample_folder]


def test_user_scoped_keys(cache: LocalCacheRepository, sample_folder: Folder):
    """Test the per-user mirror is independent from the unbound collection."""
    assert LocalCacheRepository.key_for(NOTES) == "saved_notes"
    assert LocalCacheRepository.key_for(NOTES, "user-1") == "saved_notes@user-1"

    cache.save_collection(FOLDERS, [sample_folder], user_id="user-1")
    assert cache.load_collection(FOLDERS) == []
    assert cache.load_collection(FOLDERS, user_id="user-1") == [sample_folder]


def test_clear(cache: LocalCacheRepository, sample_folder: Folder):
    """Test clearing an entry."""
    cache.save_collection(FOLDERS, [sample_folder])
    cache.clear("saved_folders")
    assert cache.load_collection(FOLDERS) == []


@pytest.mark.parametrize("seconds", ["oops", 99999999999999999])
def test_corrupt_timestamp_is_skipped(cache: LocalCacheRepository, sample_folder: Folder, seconds):
    """Test a document with an unreadable timestamp is dropped instead of failing the load."""
    good = json.loads(to_json(encode(sample_folder)))
    bad = {**good, "id": "bad", "createdAt": {"_seconds": seconds, "_nanoseconds": 0}}
    _write_raw(cache, "saved_folders", json.dumps([good, bad]))

    assert cache.load_collection(FOLDERS) == [sample_folder]
